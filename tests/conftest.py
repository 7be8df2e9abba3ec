"""Shared fixtures: a scripted probe and a manual clock."""

import pytest

from pulsetop.probe import CpuRaw, InterfaceRaw, ProcessRaw
from pulsetop.state import TelemetryState


def make_process(
    pid: int,
    name: str = "proc",
    cpu_usage: float = 0.0,
    memory: int = 1024,
    disk_read: int = 0,
    disk_written: int = 0,
    status: str = "sleeping",
) -> ProcessRaw:
    return ProcessRaw(
        pid=pid,
        name=name,
        cpu_usage=cpu_usage,
        memory=memory,
        virtual_memory=memory * 4,
        status=status,
        run_time=42,
        disk_read=disk_read,
        disk_written=disk_written,
    )


def make_interfaces(**totals: tuple[int, int]) -> list[InterfaceRaw]:
    return [InterfaceRaw(name=name, rx_total=rx, tx_total=tx) for name, (rx, tx) in totals.items()]


class FakeProbe:
    """
    SystemProbe that replays scripted readings.

    Each refresh_all() advances to the next process reading and each
    refresh_networks() to the next network reading; the last reading
    repeats once the script runs out.
    """

    def __init__(
        self,
        process_readings: list[list[ProcessRaw]] | None = None,
        network_readings: list[list[InterfaceRaw]] | None = None,
    ) -> None:
        self.process_readings = process_readings or [[]]
        self.network_readings = network_readings or [[]]
        self.refresh_count = 0
        self.network_refresh_count = 0
        self.paths: dict[int, tuple[str | None, str | None]] = {}
        self.kill_result = True
        self.killed: list[tuple[int, int]] = []

    def _current_processes(self) -> list[ProcessRaw]:
        index = min(max(self.refresh_count - 1, 0), len(self.process_readings) - 1)
        return self.process_readings[index]

    def refresh_all(self) -> None:
        self.refresh_count += 1

    def cpus(self) -> list[CpuRaw]:
        return [CpuRaw(brand="Fake CPU 9000")]

    def processes(self) -> list[ProcessRaw]:
        return list(self._current_processes())

    def process(self, pid: int) -> ProcessRaw | None:
        for proc in self._current_processes():
            if proc.pid == pid:
                return proc
        return None

    def process_paths(self, pid: int) -> tuple[str | None, str | None]:
        return self.paths.get(pid, (None, None))

    def global_cpu_usage(self) -> float:
        return 12.5

    def total_memory(self) -> int:
        return 8 * 1024**3

    def used_memory(self) -> int:
        return 2 * 1024**3

    def available_memory(self) -> int:
        return 6 * 1024**3

    def total_swap(self) -> int:
        return 1024**3

    def used_swap(self) -> int:
        return 0

    def refresh_networks(self) -> None:
        self.network_refresh_count += 1

    def networks(self) -> list[InterfaceRaw]:
        index = min(max(self.network_refresh_count - 1, 0), len(self.network_readings) - 1)
        return list(self.network_readings[index])

    def kill(self, pid: int, sig: int) -> bool:
        self.killed.append((pid, sig))
        return self.kill_result


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def state() -> TelemetryState:
    return TelemetryState(lock_timeout=0.05)
