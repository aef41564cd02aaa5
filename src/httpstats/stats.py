import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict

from .events import Event, RequestEvent, ResponseEvent


@dataclass
class RequestStats:
    out_byte_count: Dict[str, int] = field(default_factory=lambda: defaultdict(int))  # host -> bytes
    out_message_count: Dict[str, int] = field(default_factory=lambda: defaultdict(int))  # host -> mensagens

    def copy(self) -> 'RequestStats':
        return RequestStats(dict(self.out_byte_count), dict(self.out_message_count))


@dataclass
class ResponseStats:
    in_byte_count: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    in_message_count: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def copy(self) -> 'ResponseStats':
        return ResponseStats(dict(self.in_byte_count), dict(self.in_message_count))


@dataclass(frozen=True)
class StatsSnapshot:
    requests: RequestStats
    responses: ResponseStats


class HttpStatsCollector:
    """Agrega bytes e mensagens HTTP por host.

    Respostas não carregam o host; são atribuídas ao host da última
    requisição observada (last_request_host). Com pipelining ou várias
    conversas simultâneas na mesma porta a atribuição pode errar.

    Um único lock protege as duas tabelas e o campo de correlação, para que
    a thread de captura e o timer de relatório nunca vejam um par
    bytes/mensagens atualizado pela metade.
    """

    def __init__(self) -> None:
        self._requests = RequestStats()
        self._responses = ResponseStats()
        self._last_request_host = ''
        self._lock = threading.Lock()

    @property
    def last_request_host(self) -> str:
        with self._lock:
            return self._last_request_host

    def ingest(self, event: Event) -> None:
        if isinstance(event, RequestEvent):
            self._add_request(event.host, event.byte_size)
        elif isinstance(event, ResponseEvent):
            self._add_response(event.byte_size)
        else:
            raise TypeError(f"evento desconhecido: {event!r}")

    def _add_request(self, host: str | None, size: int) -> None:
        host = host or ''
        size = max(size, 0)
        with self._lock:
            self._requests.out_byte_count[host] += size
            self._requests.out_message_count[host] += 1
            self._last_request_host = host

    def _add_response(self, size: int) -> None:
        size = max(size, 0)
        with self._lock:
            host = self._last_request_host
            self._responses.in_byte_count[host] += size
            self._responses.in_message_count[host] += 1

    def request_stats(self) -> RequestStats:
        with self._lock:
            return self._requests.copy()

    def response_stats(self) -> ResponseStats:
        with self._lock:
            return self._responses.copy()

    def snapshot(self) -> StatsSnapshot:
        # Cópia consistente das duas tabelas numa única aquisição do lock
        with self._lock:
            return StatsSnapshot(self._requests.copy(), self._responses.copy())
