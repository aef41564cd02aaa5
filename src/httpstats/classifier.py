from typing import Optional

from .events import Event, RequestEvent, ResponseEvent
from .parsers.http import HttpRequestHead, HttpResponseHead, parse_http
from .parsers.ip import IPPROTO_TCP, IPPROTO_UDP, parse_ip
from .parsers.transport import TcpSegment, parse_tcp, parse_udp


def match_port(packet: bytes, port: int) -> Optional[TcpSegment]:
    """Segmento TCP do pacote IP se a porta de origem ou destino for `port`."""
    ip = parse_ip(packet)
    if ip is None or ip.proto != IPPROTO_TCP:
        return None
    tcp = parse_tcp(ip.payload)
    if tcp is None or not tcp.has_port(port):
        return None
    return tcp


def port_matches(packet: bytes, port: int) -> bool:
    """Equivale ao filtro `port N`: TCP ou UDP com `port` na origem ou no destino."""
    ip = parse_ip(packet)
    if ip is None:
        return False
    if ip.proto == IPPROTO_TCP:
        l4 = parse_tcp(ip.payload)
    elif ip.proto == IPPROTO_UDP:
        l4 = parse_udp(ip.payload)
    else:
        return False
    return l4 is not None and l4.has_port(port)


def classify(packet: bytes, port: int) -> Optional[Event]:
    """
    Classifica um pacote IP (sem cabeçalho de enlace) em requisição,
    resposta ou nada (None).

    O pacote precisa ser TCP com porta de origem ou destino igual a `port`
    e o payload precisa começar com um método HTTP seguido de espaço
    (requisição) ou com a linha de status (resposta).
    byte_size é o tamanho do payload TCP deste quadro apenas; mensagens
    grandes contam uma vez por segmento que carrega a linha inicial.
    """
    tcp = match_port(packet, port)
    if tcp is None:
        return None
    head = parse_http(tcp.payload)
    if isinstance(head, HttpRequestHead):
        return RequestEvent(host=head.host, byte_size=len(tcp.payload))
    if isinstance(head, HttpResponseHead):
        return ResponseEvent(byte_size=len(tcp.payload))
    return None
