import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from typing import Optional, TextIO

from . import __version__, ui
from .capture import CaptureError, PcapFileReader, PcapFileWriter, RawCapture, list_interfaces, resolve_interface
from .classifier import classify, port_matches
from .logging_csv import SummaryLogger
from .stats import HttpStatsCollector

logger = logging.getLogger(__name__)

DEFAULT_PORT = 80
DEFAULT_PERIOD_SEC = 2.0


@dataclass
class MonitorConfig:
    port: int = DEFAULT_PORT
    interval: float = DEFAULT_PERIOD_SEC
    print_rates: bool = True
    output_file: Optional[str] = None
    csv_dir: Optional[str] = None


class Monitor:
    def __init__(self, config: MonitorConfig, out: Optional[TextIO] = None) -> None:
        self.config = config
        self.out = out or sys.stdout
        self.stats = HttpStatsCollector()
        self.reporter = ui.Reporter(self.stats)
        self.summary_log = SummaryLogger(config.csv_dir) if config.csv_dir else None
        self.cap: Optional[RawCapture] = None
        self.writer: Optional[PcapFileWriter] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._writer_lock = threading.Lock()
        self._stop = threading.Event()
        self.failed = False

    def process(self, packet: bytes) -> None:
        try:
            event = classify(packet, self.config.port)
        except Exception:
            # Um quadro ruim não pode derrubar a sessão
            logger.debug("Quadro descartado", exc_info=True)
            return
        if event is not None:
            self.stats.ingest(event)

    def tick(self) -> list[str]:
        snapshot, lines, deltas = self.reporter.tick()
        if self.summary_log:
            self.summary_log.log(snapshot, deltas)
        return lines

    def run_file(self, path: str) -> None:
        count = 0
        for packet in PcapFileReader(path).packets():
            self.process(packet)
            count += 1
        logger.info("%d pacotes IP lidos de %s", count, path)
        ui.print_lines(self.tick(), self.out)

    def run_live(self, interface: str) -> None:
        self.cap = RawCapture(interface)
        self.cap.open()
        if self.config.output_file:
            self.writer = PcapFileWriter(self.config.output_file, self.cap.linktype)
        self._capture_thread = threading.Thread(target=self._loop_capture, name='httpstats-capture', daemon=True)
        self._capture_thread.start()
        # Relatório periódico na thread principal até stop()
        if self.config.print_rates:
            ui.print_periodic(self.tick, self.config.interval, self._stop, self.out)
        else:
            self._stop.wait()
        ui.print_lines(self.tick(), self.out)

    def stop(self) -> None:
        self._stop.set()

    def close(self) -> None:
        self._stop.set()
        if self.cap:
            self.cap.close()
        if self._capture_thread:
            self._capture_thread.join(timeout=1.0)
        # A thread de captura pode seguir presa no recv após o join
        with self._writer_lock:
            if self.writer:
                self.writer.close()
                self.writer = None
        if self.summary_log:
            self.summary_log.close()
            self.summary_log = None

    def _loop_capture(self) -> None:
        while not self._stop.is_set():
            try:
                frame = self.cap.recv()
            except (OSError, CaptureError) as e:
                if not self._stop.is_set():
                    logger.error("Captura interrompida: %s", e)
                    self.failed = True
                    self._stop.set()
                break
            packet = self.cap.network_layer(frame)
            if packet is None:
                continue
            self.process(packet)
            if self.writer is not None and port_matches(packet, self.config.port):
                self.write_frame(frame)

    def write_frame(self, frame: bytes) -> None:
        with self._writer_lock:
            if self.writer:
                self.writer.write(frame)


def port_type(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"porta inválida: {value}")
    if not 0 < port <= 65535:
        raise argparse.ArgumentTypeError("informe um número entre 1 e 65535")
    return port


def period_type(value: str) -> float:
    try:
        period = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"período inválido: {value}")
    if period <= 0:
        raise argparse.ArgumentTypeError("o período deve ser maior que zero")
    return period


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='httpstats',
        description='Estatísticas de tráfego HTTP por host (captura ao vivo ou arquivo pcap)',
    )
    p.add_argument('-f', '--input-file', help='Arquivo pcap/pcapng a analisar')
    p.add_argument('-i', '--interface', help='Interface de captura (nome ou endereço IPv4)')
    p.add_argument('-p', '--dst-port', type=port_type, default=DEFAULT_PORT,
                   help=f'Porta TCP do tráfego HTTP (padrão: {DEFAULT_PORT})')
    p.add_argument('-o', '--output-file', help='Salva os pacotes capturados na porta em um pcap')
    p.add_argument('-r', '--rate-calc-period', type=period_type, default=DEFAULT_PERIOD_SEC,
                   help='Intervalo em segundos entre resumos (padrão: 2)')
    p.add_argument('-d', '--disable-rates-print', action='store_true', help='Desliga o resumo periódico')
    p.add_argument('-l', '--list-interfaces', action='store_true', help='Lista as interfaces e sai')
    p.add_argument('-v', '--version', action='version', version=f'%(prog)s {__version__}')
    p.add_argument('--csv-dir', help='Grava cada resumo em DIR/summary.csv')
    p.add_argument('--log-level', default='WARNING',
                   choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Nível de log (padrão: WARNING)')
    return p


def print_interfaces(out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print("\nInterfaces de rede:", file=out)
    for name, addr in list_interfaces():
        print(f"    -> Nome: '{name}'   Endereço IP: {addr}", file=out)


def main(argv: list[str] | None = None) -> int:
    parser = build_argparser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    if args.list_interfaces:
        print_interfaces()
        return 0
    if not args.input_file and not args.interface:
        parser.error('nem interface nem arquivo de entrada foram informados')

    config = MonitorConfig(
        port=args.dst_port,
        interval=args.rate_calc_period,
        print_rates=not args.disable_rates_print,
        output_file=args.output_file,
        csv_dir=args.csv_dir,
    )

    try:
        mon = Monitor(config)
    except OSError as e:
        print(f"Erro: {e}", file=sys.stderr)
        return 1

    try:
        if args.input_file:
            mon.run_file(args.input_file)
            return 0

        interface = resolve_interface(args.interface)
        if interface is None:
            print(f"Erro: interface não encontrada: {args.interface}", file=sys.stderr)
            return 1

        def handle_sigint(_sig, _frm):
            mon.stop()

        signal.signal(signal.SIGINT, handle_sigint)
        mon.run_live(interface)
        if mon.failed:
            return 1
    except CaptureError as e:
        print(f"Erro: {e}", file=sys.stderr)
        return 1
    finally:
        mon.close()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
