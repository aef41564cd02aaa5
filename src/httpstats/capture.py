import fcntl
import ipaddress
import logging
import os
import socket
import struct
import sys
from typing import Iterator, List, Optional, Tuple

from scapy.all import get_if_addr, get_if_list
from scapy.layers.inet import IP
from scapy.layers.inet6 import IPv6
from scapy.utils import PcapReader, RawPcapWriter

logger = logging.getLogger(__name__)

ETH_P_ALL = 0x0003
ETH_P_IP = 0x0800
ETH_P_IPV6 = 0x86DD
ETH_P_8021Q = 0x8100
LINKTYPE_ETHERNET = 1
LINKTYPE_RAW = 101


class CaptureError(RuntimeError):
    pass


class RawCapture:
    """Captura quadros na interface informada.

    Dois modos:
    - AF_PACKET (camada 2) para interfaces "normais" (ex.: eth0).
    - Leitura direta do /dev/net/tun quando a interface começa com "tun".

    Requer root ou CAP_NET_RAW.
    """

    def __init__(self, interface: str) -> None:
        self.interface = interface
        self.sock: Optional[socket.socket] = None
        self.tun_fd: Optional[int] = None
        self.mode: str = 'af_packet'

    @property
    def linktype(self) -> int:
        return LINKTYPE_RAW if self.mode == 'tun' else LINKTYPE_ETHERNET

    def open(self) -> None:
        if self.interface.startswith('tun'):
            self._open_tun()
            return
        try:
            self.sock = socket.socket(socket.AF_PACKET, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
            self.sock.bind((self.interface, 0))
            self.mode = 'af_packet'
            try:
                self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4 * 1024 * 1024)
            except OSError:
                logger.debug("SO_RCVBUF não ajustado em %s", self.interface)
        except PermissionError as e:
            print("Permissão negada para abrir socket raw. Execute com sudo ou conceda CAP_NET_RAW.", file=sys.stderr)
            raise CaptureError(f"sem permissão para capturar em {self.interface}") from e
        except OSError as e:
            raise CaptureError(f"falha ao abrir AF_PACKET na interface {self.interface}: {e}") from e
        logger.info("Captura AF_PACKET aberta em %s", self.interface)

    def _open_tun(self) -> None:
        TUNSETIFF = 0x400454ca
        IFF_TUN = 0x0001
        IFF_NO_PI = 0x1000
        name = self.interface.encode()
        if len(name) > 15:
            raise CaptureError("nome de interface TUN muito longo")
        ifr = struct.pack('16sH', name, IFF_TUN | IFF_NO_PI)
        try:
            fd = os.open('/dev/net/tun', os.O_RDWR)
        except OSError as e:
            raise CaptureError(f"falha ao abrir /dev/net/tun para {self.interface}: {e}") from e
        try:
            fcntl.ioctl(fd, TUNSETIFF, ifr)
        except OSError as e:
            os.close(fd)
            raise CaptureError(f"falha ao associar /dev/net/tun a {self.interface}: {e}") from e
        self.tun_fd = fd
        self.mode = 'tun'
        logger.info("Captura TUN aberta em %s", self.interface)

    def close(self) -> None:
        if self.sock:
            try:
                self.sock.close()
            finally:
                self.sock = None
        if self.tun_fd is not None:
            try:
                os.close(self.tun_fd)
            finally:
                self.tun_fd = None

    def recv(self) -> bytes:
        if self.mode == 'af_packet':
            if not self.sock:
                raise CaptureError("socket não inicializado")
            data, _addr = self.sock.recvfrom(65535)
            return data
        if self.mode == 'tun':
            if self.tun_fd is None:
                raise CaptureError("FD TUN não inicializado")
            return os.read(self.tun_fd, 65535)
        raise CaptureError("modo de captura inválido")

    def network_layer(self, frame: bytes) -> Optional[bytes]:
        if self.mode == 'tun':
            return frame
        return split_l2_l3(frame)[1]


def split_l2_l3(frame: bytes) -> Tuple[bytes, Optional[bytes]]:
    """
    Separa um quadro Ethernet em (l2, l3). Aceita uma tag 802.1Q.
    l3 é None quando o EtherType não é IPv4/IPv6.
    """
    if len(frame) < 14:
        return frame, None
    eth_proto = struct.unpack('!H', frame[12:14])[0]
    header_len = 14
    if eth_proto == ETH_P_8021Q and len(frame) >= 18:
        eth_proto = struct.unpack('!H', frame[16:18])[0]
        header_len = 18
    if eth_proto not in (ETH_P_IP, ETH_P_IPV6):
        return frame[:header_len], None
    return frame[:header_len], frame[header_len:]


class PcapFileReader:
    """Lê um arquivo pcap/pcapng e entrega a camada IP de cada pacote."""

    def __init__(self, path: str) -> None:
        self.path = path

    def packets(self) -> Iterator[bytes]:
        try:
            reader = PcapReader(self.path)
        except (OSError, ValueError) as e:
            raise CaptureError(f"não foi possível abrir {self.path}: {e}") from e
        except Exception as e:
            # Scapy_Exception para arquivos que não são pcap/pcapng
            raise CaptureError(f"arquivo de captura inválido {self.path}: {e}") from e
        with reader:
            for pkt in reader:
                if IP in pkt:
                    yield bytes(pkt[IP])
                elif IPv6 in pkt:
                    yield bytes(pkt[IPv6])


class PcapFileWriter:
    """Grava quadros crus num pcap, com flush a cada pacote."""

    def __init__(self, path: str, linktype: int) -> None:
        try:
            self._writer = RawPcapWriter(path, linktype=linktype, sync=True)
        except OSError as e:
            raise CaptureError(f"não foi possível abrir {path} para escrita: {e}") from e
        self.path = path

    def write(self, frame: bytes) -> None:
        self._writer.write(frame)

    def close(self) -> None:
        self._writer.close()


def list_interfaces() -> List[Tuple[str, str]]:
    """(nome, IPv4) de cada interface; IPv4 é '0.0.0.0' quando não há."""
    return [(name, get_if_addr(name)) for name in get_if_list()]


def resolve_interface(name_or_ip: str) -> Optional[str]:
    """Aceita nome de interface ou endereço IPv4 atribuído a ela."""
    try:
        ipaddress.IPv4Address(name_or_ip)
    except ValueError:
        # Interfaces tun* podem ainda não existir; RawCapture as cria
        if name_or_ip.startswith('tun') or name_or_ip in get_if_list():
            return name_or_ip
        return None
    for name, addr in list_interfaces():
        if addr == name_or_ip:
            return name
    return None
