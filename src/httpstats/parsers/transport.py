import struct
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TcpSegment:
    src_port: int
    dst_port: int
    flags: int
    header_len: int
    payload: bytes

    def has_port(self, port: int) -> bool:
        return port in (self.src_port, self.dst_port)


def parse_tcp(segment: bytes) -> Optional[TcpSegment]:
    if len(segment) < 20:
        return None
    src_port, dst_port, _seq, _ack, offset_reserved_flags = struct.unpack('!HHIIH', segment[:14])
    data_offset = (offset_reserved_flags >> 12) * 4
    if data_offset < 20 or len(segment) < data_offset:
        return None
    return TcpSegment(
        src_port=src_port,
        dst_port=dst_port,
        flags=offset_reserved_flags & 0x01FF,  # NS,CWR,ECE,URG,ACK,PSH,RST,SYN,FIN
        header_len=data_offset,
        payload=segment[data_offset:],
    )


@dataclass(frozen=True)
class UdpDatagram:
    src_port: int
    dst_port: int
    payload: bytes

    def has_port(self, port: int) -> bool:
        return port in (self.src_port, self.dst_port)


def parse_udp(datagram: bytes) -> Optional[UdpDatagram]:
    if len(datagram) < 8:
        return None
    src_port, dst_port, length = struct.unpack('!HHH', datagram[:6])
    payload = datagram[8:length] if 8 <= length <= len(datagram) else datagram[8:]
    return UdpDatagram(src_port=src_port, dst_port=dst_port, payload=payload)
