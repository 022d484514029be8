"""
main.py

Entry point: loads settings.ini, gates on the history-loading notifier and
replays the car-data file into per-channel CSV files.

    lrb-injector run                  # default command
    lrb-injector ready | ruok | shutdown
    lrb-injector parse FILE           # decode a file without the coordinator
"""
import argparse
import logging
import os
import signal
import sys
from collections import deque
from typing import Dict, List, Optional

from PyQt5 import QtCore

from lrb_core.coordinator_client import CoordinatorClient, ProbeResult
from lrb_core.errors import RecordParseError
from lrb_core.model import channel_of
from lrb_core.record_parser import decode_record
from lrb_feed.core.channel_recorder import ChannelRecorder
from lrb_feed.core.config_backend import ConfigError
from lrb_feed.core.config_store import ConfigModel, check_port, init_config_store
from lrb_feed.core.injector import InputEventInjector
from lrb_feed.core.version import __version__
from lrb_feed.updater.feed_driver import FeedDriver

logger = logging.getLogger(__name__)


class CappedFileHandler(logging.FileHandler):
    """A FileHandler that keeps only the last N lines of logs."""
    def __init__(self, filename, max_lines=200, mode="a", encoding="utf-8"):
        super().__init__(filename, mode=mode, encoding=encoding)
        self.max_lines = max_lines
        self._buffer = deque(maxlen=max_lines)

    def emit(self, record):
        msg = self.format(record)
        self._buffer.append(msg + "\n")
        # Flush buffer to file every 10 lines or on error
        if len(self._buffer) % 10 == 0 or record.levelno >= logging.ERROR:
            self.flush_buffer()

    def flush_buffer(self):
        with open(self.baseFilename, "w", encoding=self.encoding) as f:
            f.writelines(self._buffer)

    def close(self):
        if self._buffer:
            self.flush_buffer()
        super().close()


def configure_logging(cfg: ConfigModel, log_level_name: str) -> None:
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if cfg.log_file:
        log_path = cfg.log_file
        if not os.path.isabs(log_path):
            log_path = os.path.join(os.path.dirname(sys.argv[0]), log_path)
        handlers.insert(0, CappedFileHandler(log_path, max_lines=cfg.log_max_lines))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Linear Road input-event injector")
    parser.add_argument("--config", help="settings.ini path (default: next to the executable)")
    parser.add_argument("--host", help="override [coordinator] host")
    parser.add_argument("--port", type=int, help="override [coordinator] port")
    parser.add_argument("--log-level", default="INFO", help="logging level (default INFO)")
    parser.add_argument("--debug", action="store_true", help="shortcut for --log-level DEBUG")

    sub = parser.add_subparsers(dest="command")
    run = sub.add_parser("run", help="wait for history, then replay the car-data file")
    run.add_argument("--file", help="override [feed] car_data_points")
    run.add_argument("--passes", type=int, help="override [feed] max_passes (0 = unbounded)")
    run.add_argument("--output", help="override [output] dir")

    sub.add_parser("ready", help="ask the coordinator whether history has loaded (done?)")
    sub.add_parser("ruok", help="liveness check against the coordinator")
    sub.add_parser("shutdown", help="ask the coordinator to shut down (shtdn)")

    parse = sub.add_parser("parse", help="decode a car-data file and print per-channel counts")
    parse.add_argument("file", help="car-data file")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.file = args.passes = args.output = None
    return args


def make_client(cfg: ConfigModel) -> CoordinatorClient:
    return CoordinatorClient(
        cfg.coordinator_host, cfg.coordinator_port, timeout=cfg.coordinator_timeout_s
    )


def run_probe(client: CoordinatorClient, command: str) -> int:
    if command == "shutdown":
        client.request_shutdown()
        print(f"shutdown sent to {client.host}:{client.port}")
        return 0

    result = client.probe_readiness() if command == "ready" else client.probe_liveness()
    print(result.name)
    return 0 if result is ProbeResult.YES else 1


def run_parse(path: str) -> int:
    counts: Dict[str, int] = {}
    ignored = 0
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                event = decode_record(line, line_number)
                channel = channel_of(event) if event is not None else None
                if channel is None:
                    ignored += 1
                    continue
                counts[channel.name] = counts.get(channel.name, 0) + 1
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read {path}: {e}")
        return 1
    except RecordParseError as e:
        logger.error(str(e))
        return 1

    for name in sorted(counts):
        print(f"{name}: {counts[name]}")
    print(f"not emitted: {ignored}")
    return 0


def run_feed(cfg: ConfigModel) -> int:
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication(sys.argv)
    client = make_client(cfg)
    logger.info(
        f"Feeding {cfg.car_data_points or '<no car_data_points configured>'} "
        f"once {client.host}:{client.port} reports history loaded"
    )

    with ChannelRecorder(cfg.output_dir, flush_every=cfg.flush_every) as recorder:
        injector = InputEventInjector(client, recorder, cfg.car_data_points, wait_s=cfg.wait_s)
        driver = FeedDriver(injector, poll_ms=cfg.poll_ms, max_passes=cfg.max_passes)

        thread = QtCore.QThread()
        driver.moveToThread(thread)
        thread.started.connect(driver.start)
        driver.finished.connect(thread.quit)
        thread.finished.connect(app.quit)

        # Let Ctrl-C reach Python while the Qt loop runs
        previous_sigint = signal.signal(signal.SIGINT, lambda *_: app.quit())
        keepalive = QtCore.QTimer()
        keepalive.start(250)
        keepalive.timeout.connect(lambda: None)

        thread.start()
        app.exec_()

        keepalive.stop()
        signal.signal(signal.SIGINT, previous_sigint)
        if thread.isRunning():
            # Interrupted: the driver still ticks inside the worker loop
            if driver.running:
                QtCore.QMetaObject.invokeMethod(driver, "stop", QtCore.Qt.BlockingQueuedConnection)
            thread.quit()
            if not thread.wait(5000):
                logger.warning("Worker thread did not stop cleanly")

        for name, count in sorted(recorder.rows_written.items()):
            logger.info(f"{name}: {count} tuples written to {recorder.filenames[name]}")

    return 1 if driver.last_error else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        store = init_config_store(args.config)
        cfg = store.config
        if args.host:
            cfg.coordinator_host = args.host
        if args.port is not None:
            cfg.coordinator_port = check_port(args.port)
    except ConfigError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    configure_logging(cfg, "DEBUG" if args.debug else args.log_level)

    if args.command in ("ready", "ruok", "shutdown"):
        return run_probe(make_client(cfg), args.command)
    if args.command == "parse":
        return run_parse(args.file)

    if args.file:
        cfg.car_data_points = args.file
    if args.passes is not None:
        cfg.max_passes = max(0, args.passes)
    if args.output:
        cfg.output_dir = args.output
    logger.info(f"Starting input-event injector {__version__} (settings {store.path})")
    return run_feed(cfg)


if __name__ == "__main__":
    sys.exit(main())
