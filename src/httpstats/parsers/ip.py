import ipaddress
import struct
from dataclasses import dataclass
from typing import Optional


IPPROTO_TCP = 6
IPPROTO_UDP = 17


@dataclass(frozen=True)
class IpPacket:
    version: int
    src: str
    dst: str
    proto: int  # IPv4 protocol / IPv6 next header
    total_length: int
    payload: bytes


def parse_ipv4(packet: bytes) -> Optional[IpPacket]:
    if len(packet) < 20:
        return None
    ver_ihl = packet[0]
    version = ver_ihl >> 4
    ihl = (ver_ihl & 0x0F) * 4
    if version != 4 or ihl < 20 or len(packet) < ihl:
        return None
    total_length = struct.unpack('!H', packet[2:4])[0]
    # Fragmentos não iniciais não têm cabeçalho TCP
    frag_offset = struct.unpack('!H', packet[6:8])[0] & 0x1FFF
    if frag_offset:
        return None
    # total_length pode ser menor que o quadro (padding Ethernet) ou 0 (TSO)
    end = total_length if ihl <= total_length <= len(packet) else len(packet)
    return IpPacket(
        version=4,
        src=ipaddress.IPv4Address(packet[12:16]).compressed,
        dst=ipaddress.IPv4Address(packet[16:20]).compressed,
        proto=packet[9],
        total_length=total_length,
        payload=packet[ihl:end],
    )


def parse_ipv6(packet: bytes) -> Optional[IpPacket]:
    if len(packet) < 40 or packet[0] >> 4 != 6:
        return None
    payload_len = struct.unpack('!H', packet[4:6])[0]
    total_length = 40 + payload_len
    end = total_length if total_length <= len(packet) else len(packet)
    return IpPacket(
        version=6,
        src=ipaddress.IPv6Address(packet[8:24]).compressed,
        dst=ipaddress.IPv6Address(packet[24:40]).compressed,
        proto=packet[6],
        total_length=total_length,
        payload=packet[40:end],
    )


def parse_ip(packet: bytes) -> Optional[IpPacket]:
    """Tenta IPv4 e depois IPv6. Retorna None se nenhum dos dois servir."""
    return parse_ipv4(packet) or parse_ipv6(packet)
