"""Runtime configuration and logging setup for pulsetop."""

import argparse
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from pulsetop import __version__

MIN_INTERVAL = 0.1
LOG_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s"


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Settings shared by the samplers and the UI."""

    sample_interval: float = 1.0
    network_interval: float = 1.0
    ui_interval: float = 0.1  # Normal redraw throttle
    command_ui_interval: float = 0.016  # Redraw throttle while typing a command
    lock_timeout: float = 0.5
    process_rows: int = 30
    network_rows: int = 6
    start_paused: bool = False
    log_file: str | None = None
    log_level: str = "WARNING"


DEFAULTS = MonitorConfig()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulsetop",
        description="Live terminal dashboard for processes, memory, disk and network.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULTS.sample_interval,
        help="seconds between process samples (default: %(default)s)",
    )
    parser.add_argument(
        "--network-interval",
        type=float,
        default=DEFAULTS.network_interval,
        help="seconds between network samples (default: %(default)s)",
    )
    parser.add_argument(
        "--rows",
        type=int,
        default=DEFAULTS.process_rows,
        help="process rows to display (default: %(default)s)",
    )
    parser.add_argument("--paused", action="store_true", help="start with sampling paused")
    parser.add_argument("--log-file", default=None, help="write logs to this file")
    parser.add_argument(
        "--log-level",
        default=DEFAULTS.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> MonitorConfig:
    """Build a MonitorConfig from command-line arguments."""
    args = build_parser().parse_args(argv)
    return MonitorConfig(
        sample_interval=max(MIN_INTERVAL, args.interval),
        network_interval=max(MIN_INTERVAL, args.network_interval),
        process_rows=max(1, args.rows),
        start_paused=args.paused,
        log_file=args.log_file,
        log_level=args.log_level,
    )


def configure_logging(config: MonitorConfig) -> None:
    """
    Send package logs to a file when one is configured.

    The terminal belongs to the UI, so without a log file nothing is
    emitted.
    """
    if not config.log_file:
        return

    handler = logging.FileHandler(config.log_file)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("pulsetop")
    root.addHandler(handler)
    root.setLevel(config.log_level)
