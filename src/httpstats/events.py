from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class RequestEvent:
    """Requisição HTTP observada: host declarado e bytes de payload TCP do quadro."""
    host: str
    byte_size: int


@dataclass(frozen=True)
class ResponseEvent:
    """Resposta HTTP observada. O host é decidido pelo agregador."""
    byte_size: int


# Quadros ignorados pelo classificador são representados por None
Event = Union[RequestEvent, ResponseEvent]
