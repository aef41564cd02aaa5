import sys
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO, Tuple

from .stats import HttpStatsCollector, RequestStats, ResponseStats, StatsSnapshot


@dataclass(frozen=True)
class HostDelta:
    out_packets: int
    in_packets: int
    out_bytes: int
    in_bytes: int


def render_summary(current: StatsSnapshot, previous: Optional[StatsSnapshot] = None) -> List[str]:
    """Uma linha por host com requisições, em ordem alfabética.

    Hosts que só receberam respostas (ex.: o balde vazio de respostas sem
    requisição anterior) não aparecem. `previous` não altera o texto; fica
    disponível para cálculo de taxas por intervalo.
    """
    req, res = current.requests, current.responses
    lines: list[str] = []
    for host in sorted(req.out_byte_count):
        out_pkts = req.out_message_count.get(host, 0)
        in_pkts = res.in_message_count.get(host, 0)
        out_bytes = req.out_byte_count.get(host, 0)
        in_bytes = res.in_byte_count.get(host, 0)
        lines.append(
            f"{host}: {out_pkts + in_pkts} packets ({out_pkts} OUT / {in_pkts} IN) "
            f"Traffic: {out_bytes + in_bytes}B ({out_bytes}B OUT / {in_bytes}B IN)"
        )
    return lines


def compute_deltas(current: StatsSnapshot, previous: Optional[StatsSnapshot]) -> Dict[str, HostDelta]:
    # Sem baseline, o delta é o próprio total acumulado
    if previous is None:
        previous = StatsSnapshot(RequestStats(), ResponseStats())
    req, res = current.requests, current.responses
    prev_req, prev_res = previous.requests, previous.responses
    out: Dict[str, HostDelta] = {}
    for host in sorted(req.out_byte_count):
        out[host] = HostDelta(
            out_packets=req.out_message_count.get(host, 0) - prev_req.out_message_count.get(host, 0),
            in_packets=res.in_message_count.get(host, 0) - prev_res.in_message_count.get(host, 0),
            out_bytes=req.out_byte_count.get(host, 0) - prev_req.out_byte_count.get(host, 0),
            in_bytes=res.in_byte_count.get(host, 0) - prev_res.in_byte_count.get(host, 0),
        )
    return out


class Reporter:
    """Renderiza o resumo do coletor e mantém o snapshot anterior como baseline."""

    def __init__(self, collector: HttpStatsCollector) -> None:
        self.collector = collector
        self.previous: Optional[StatsSnapshot] = None

    def summary(self) -> List[str]:
        return render_summary(self.collector.snapshot(), self.previous)

    def tick(self) -> Tuple[StatsSnapshot, List[str], Dict[str, HostDelta]]:
        current = self.collector.snapshot()
        lines = render_summary(current, self.previous)
        deltas = compute_deltas(current, self.previous)
        self.previous = current
        return current, lines, deltas


def print_lines(lines: List[str], out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    for line in lines:
        print(line, file=out)
    print(file=out)
    out.flush()


def print_periodic(tick_fn, interval: float, stop: threading.Event, out: Optional[TextIO] = None) -> None:
    """Chama tick_fn a cada intervalo e imprime as linhas retornadas.

    Retorna quando `stop` é sinalizado; a espera usa o próprio evento para
    que o encerramento não aguarde o intervalo inteiro.
    """
    while not stop.wait(interval):
        print_lines(tick_fn(), out)
