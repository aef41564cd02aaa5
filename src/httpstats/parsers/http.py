import re
from dataclasses import dataclass
from typing import Optional, Union


HTTP_METHODS = {b'GET', b'HEAD', b'POST', b'PUT', b'DELETE', b'TRACE', b'OPTIONS', b'CONNECT', b'PATCH'}

_REQUEST_LINE = re.compile(rb'^([A-Z]+) (\S*)')
_STATUS_LINE = re.compile(rb'^HTTP/\d(?:\.\d)? (\d{3})(?: (.*))?\r?$')


@dataclass(frozen=True)
class HttpRequestHead:
    method: str
    target: str
    host: str  # vazio quando não há cabeçalho Host


@dataclass(frozen=True)
class HttpResponseHead:
    status_code: int
    reason: str


def _first_line(payload: bytes) -> bytes:
    return payload.split(b'\n', 1)[0]


def find_header(payload: bytes, name: str) -> Optional[str]:
    """Valor do primeiro cabeçalho `name` (sem diferenciar maiúsculas).

    Só olha o que está neste segmento; cabeçalhos que ficaram para o
    próximo segmento TCP não são encontrados.
    """
    wanted = name.lower().encode()
    head = payload.split(b'\r\n\r\n', 1)[0]
    for raw in head.split(b'\n')[1:]:
        key, sep, value = raw.partition(b':')
        if sep and key.strip().lower() == wanted:
            return value.strip().decode('latin-1')
    return None


def parse_request(payload: bytes) -> Optional[HttpRequestHead]:
    # Basta o método seguido de espaço; alvo e versão podem ter ficado
    # para o próximo segmento quando a URL é longa
    m = _REQUEST_LINE.match(_first_line(payload))
    if not m or m.group(1) not in HTTP_METHODS:
        return None
    return HttpRequestHead(
        method=m.group(1).decode(),
        target=m.group(2).decode('latin-1'),
        host=find_header(payload, 'Host') or '',
    )


def parse_response(payload: bytes) -> Optional[HttpResponseHead]:
    m = _STATUS_LINE.match(_first_line(payload))
    if not m:
        return None
    reason = (m.group(2) or b'').rstrip(b'\r')
    return HttpResponseHead(status_code=int(m.group(1)), reason=reason.decode('latin-1'))


def parse_http(payload: bytes) -> Union[HttpRequestHead, HttpResponseHead, None]:
    """Identifica o início de uma mensagem HTTP pela linha inicial."""
    if not payload:
        return None
    if payload.startswith(b'HTTP/'):
        return parse_response(payload)
    return parse_request(payload)
