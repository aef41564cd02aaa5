import csv
import os
import threading
from datetime import datetime, timezone
from typing import Dict

from .stats import StatsSnapshot
from .ui import HostDelta


class CsvLogger:
    """
    Logger CSV com flush imediato, thread-safe.
    """
    def __init__(self, path: str, headers: list[str]) -> None:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        self._fh = open(path, 'a', newline='', encoding='utf-8')
        self._csv = csv.writer(self._fh)
        self._lock = threading.Lock()
        # Escreve cabeçalho se arquivo está vazio
        if self._fh.tell() == 0:
            self._csv.writerow(headers)
            self._fh.flush()

    def write_rows(self, rows: list[list]) -> None:
        with self._lock:
            self._csv.writerows(rows)
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            self._fh.close()


class SummaryLogger:
    """Uma linha por host a cada tick: totais acumulados e variação desde o tick anterior."""

    HEADERS = [
        'timestamp', 'host',
        'out_packets', 'in_packets', 'out_bytes', 'in_bytes',
        'out_packets_delta', 'in_packets_delta', 'out_bytes_delta', 'in_bytes_delta',
    ]

    def __init__(self, base_dir: str = 'logs') -> None:
        self.path = os.path.join(base_dir, 'summary.csv')
        self.logger = CsvLogger(self.path, self.HEADERS)

    def log(self, snapshot: StatsSnapshot, deltas: Dict[str, HostDelta]) -> None:
        ts = datetime.now(timezone.utc).isoformat()
        req, res = snapshot.requests, snapshot.responses
        rows = []
        for host, d in deltas.items():
            rows.append([
                ts, host,
                req.out_message_count.get(host, 0), res.in_message_count.get(host, 0),
                req.out_byte_count.get(host, 0), res.in_byte_count.get(host, 0),
                d.out_packets, d.in_packets, d.out_bytes, d.in_bytes,
            ])
        if rows:
            self.logger.write_rows(rows)

    def close(self) -> None:
        self.logger.close()
