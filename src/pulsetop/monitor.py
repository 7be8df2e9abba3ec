"""Sampling engine for pulsetop."""

import abc
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from pulsetop.models import (
    NetworkInterfaceRecord,
    NetworkSnapshot,
    ProcessRecord,
    SystemSnapshot,
)
from pulsetop.probe import SystemProbe
from pulsetop.rates import rate
from pulsetop.state import TelemetryState

logger = logging.getLogger(__name__)

DISK_KEY = "disk"
MIN_INTERVAL = 0.1

# Lower-cased prefixes and substrings of interfaces that never reach a snapshot
EXCLUDED_PREFIXES = ("lo", "docker", "veth", "br-", "vir")
EXCLUDED_SUBSTRINGS = ("npcap", "nocap")


def is_excluded_interface(name: str) -> bool:
    """Check whether an interface is loopback, virtual or a capture driver."""
    lowered = name.lower()
    if lowered.startswith(EXCLUDED_PREFIXES):
        return True
    return any(part in lowered for part in EXCLUDED_SUBSTRINGS)


@dataclass(slots=True, frozen=True)
class RateBaseline:
    """Last cumulative (in, out) totals per counter key and when they were read."""

    totals: dict[str, tuple[int, int]] = field(default_factory=dict)
    timestamp: float = 0.0


class Sampler(abc.ABC):
    """
    Periodic producer running on a daemon thread.

    Subclasses implement seed() and cycle(). The loop seeds once, then runs
    one cycle per interval. Exceptions from a cycle are logged and the loop
    carries on.
    """

    thread_name = "Sampler"

    def __init__(
        self,
        probe: SystemProbe,
        state: TelemetryState,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the sampler.

        Args:
            probe: Probe instance owned by this sampler alone.
            state: Shared state to publish into.
            interval: Seconds between cycles. Default 1.0s.
            clock: Monotonic time source used for rate math.
        """
        self._probe = probe
        self._state = state
        self._interval = max(MIN_INTERVAL, interval)
        self._clock = clock
        self._baseline: RateBaseline | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        """Get the current sampling interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the sampling interval."""
        self._interval = max(MIN_INTERVAL, value)

    @property
    def baseline(self) -> RateBaseline | None:
        """The counters the next rate will be computed against."""
        return self._baseline

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name=self.thread_name,
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampling thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        try:
            self.seed()
        except Exception:
            logger.exception("%s: initial probe read failed", self.thread_name)

        while not self._stop_event.wait(timeout=self._interval):
            try:
                self.cycle()
            except Exception:
                logger.exception("%s: sampling cycle failed", self.thread_name)

    @abc.abstractmethod
    def seed(self) -> None:
        """Take the first probe reading that rates are measured against."""

    @abc.abstractmethod
    def cycle(self) -> bool:
        """Run one sampling cycle. Returns True when a snapshot was published."""


class ProcessSampler(Sampler):
    """Publishes process, CPU, memory and disk throughput snapshots."""

    thread_name = "ProcessSampler"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._cpu_model = ""

    def seed(self) -> None:
        """Take the first probe reading as the disk rate baseline."""
        self._probe.refresh_all()
        cpus = self._probe.cpus()
        self._cpu_model = (cpus[0].brand if cpus else "") or "Unknown"
        read_total, write_total = self._disk_totals()
        self._baseline = RateBaseline(
            totals={DISK_KEY: (read_total, write_total)},
            timestamp=self._clock(),
        )

    def _disk_totals(self) -> tuple[int, int]:
        processes = self._probe.processes()
        read_total = sum(p.disk_read for p in processes)
        write_total = sum(p.disk_written for p in processes)
        return read_total, write_total

    def cycle(self) -> bool:
        """
        Run one sampling cycle.

        While paused nothing is read and the baseline is left alone, so the
        first cycle after resuming measures against the last real sample.

        Returns:
            True if a snapshot was published.
        """
        if self._state.is_paused():
            return False
        if self._baseline is None:
            self.seed()

        self._probe.refresh_all()
        now = self._clock()
        elapsed = now - self._baseline.timestamp

        read_total, write_total = self._disk_totals()
        prev_read, prev_write = self._baseline.totals[DISK_KEY]
        disk_read_bps = rate(prev_read, read_total, elapsed)
        disk_write_bps = rate(prev_write, write_total, elapsed)

        processes = tuple(
            ProcessRecord(
                name=p.name,
                pid=p.pid,
                cpu_usage_percent=max(p.cpu_usage, 0.0),
                memory_bytes=p.memory,
                status=p.status,
                run_time_seconds=p.run_time,
            )
            for p in self._probe.processes()
        )

        snapshot = SystemSnapshot(
            processes=processes,
            cpu_model=self._cpu_model,
            total_cpu_usage_percent=self._probe.global_cpu_usage(),
            total_memory_bytes=self._probe.total_memory(),
            used_memory_bytes=self._probe.used_memory(),
            available_memory_bytes=self._probe.available_memory(),
            total_swap_bytes=self._probe.total_swap(),
            used_swap_bytes=self._probe.used_swap(),
            disk_read_bytes_per_sec=disk_read_bps,
            disk_write_bytes_per_sec=disk_write_bps,
            captured_at=datetime.now(),
        )

        self._baseline = RateBaseline(
            totals={DISK_KEY: (read_total, write_total)},
            timestamp=now,
        )

        if not self._state.publish_system(snapshot):
            logger.debug("state busy, dropped process sample")
            return False
        return True


class NetworkSampler(Sampler):
    """Publishes per-interface network throughput snapshots."""

    thread_name = "NetworkSampler"

    def _tracked_totals(self) -> dict[str, tuple[int, int]]:
        return {
            iface.name: (iface.rx_total, iface.tx_total)
            for iface in self._probe.networks()
            if not is_excluded_interface(iface.name)
        }

    def seed(self) -> None:
        """Record current interface totals as the baseline."""
        self._probe.refresh_networks()
        self._baseline = RateBaseline(
            totals=self._tracked_totals(),
            timestamp=self._clock(),
        )

    def cycle(self) -> bool:
        """
        Run one sampling cycle.

        Interfaces unseen in the baseline report a zero rate this cycle.
        Interfaces that vanished are dropped from the next baseline.

        Returns:
            True if a snapshot was published.
        """
        if self._state.is_paused():
            return False
        if self._baseline is None:
            self.seed()

        self._probe.refresh_networks()
        now = self._clock()
        elapsed = now - self._baseline.timestamp

        current = self._tracked_totals()
        records = []
        for name, (rx, tx) in current.items():
            prev_rx, prev_tx = self._baseline.totals.get(name, (rx, tx))
            records.append(
                NetworkInterfaceRecord(
                    name=name,
                    rx_total_bytes=rx,
                    tx_total_bytes=tx,
                    rx_rate_bytes_per_sec=rate(prev_rx, rx, elapsed),
                    tx_rate_bytes_per_sec=rate(prev_tx, tx, elapsed),
                )
            )
        records.sort(key=lambda r: r.name, reverse=True)

        snapshot = NetworkSnapshot(interfaces=tuple(records), captured_at=datetime.now())
        self._baseline = RateBaseline(totals=current, timestamp=now)

        if not self._state.publish_network(snapshot):
            logger.debug("state busy, dropped network sample")
            return False
        return True
