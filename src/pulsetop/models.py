"""Data models for pulsetop."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process as seen in a single sampling cycle."""

    name: str
    pid: int
    cpu_usage_percent: float  # 0.0 - 100.0 * core_count
    memory_bytes: int
    status: str  # 'running', 'sleeping', 'zombie', etc.
    run_time_seconds: int


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Snapshot of processes, CPU, memory and disk throughput."""

    processes: tuple[ProcessRecord, ...]
    cpu_model: str
    total_cpu_usage_percent: float
    total_memory_bytes: int
    used_memory_bytes: int
    available_memory_bytes: int
    total_swap_bytes: int
    used_swap_bytes: int
    disk_read_bytes_per_sec: float
    disk_write_bytes_per_sec: float
    captured_at: datetime | None = None

    @classmethod
    def empty(cls) -> "SystemSnapshot":
        """Zero-valued snapshot used before the first sample lands."""
        return cls(
            processes=(),
            cpu_model="",
            total_cpu_usage_percent=0.0,
            total_memory_bytes=0,
            used_memory_bytes=0,
            available_memory_bytes=0,
            total_swap_bytes=0,
            used_swap_bytes=0,
            disk_read_bytes_per_sec=0.0,
            disk_write_bytes_per_sec=0.0,
        )

    @property
    def memory_percent(self) -> float:
        if self.total_memory_bytes <= 0:
            return 0.0
        return self.used_memory_bytes / self.total_memory_bytes * 100.0

    @property
    def swap_percent(self) -> float:
        if self.total_swap_bytes <= 0:
            return 0.0
        return self.used_swap_bytes / self.total_swap_bytes * 100.0


@dataclass(slots=True, frozen=True)
class NetworkInterfaceRecord:
    """Totals and rates for one network interface."""

    name: str
    rx_total_bytes: int
    tx_total_bytes: int
    rx_rate_bytes_per_sec: float
    tx_rate_bytes_per_sec: float


@dataclass(slots=True, frozen=True)
class NetworkSnapshot:
    """Interfaces ordered by name, descending."""

    interfaces: tuple[NetworkInterfaceRecord, ...]
    captured_at: datetime | None = None

    @classmethod
    def empty(cls) -> "NetworkSnapshot":
        return cls(interfaces=())

    @property
    def names(self) -> list[str]:
        return [iface.name for iface in self.interfaces]

    def __len__(self) -> int:
        return len(self.interfaces)

    def __iter__(self) -> Iterator[NetworkInterfaceRecord]:
        return iter(self.interfaces)


@dataclass(slots=True, frozen=True)
class TelemetryView:
    """Consistent copy of the shared telemetry state."""

    system: SystemSnapshot
    network: NetworkSnapshot
    paused: bool


@dataclass(slots=True, frozen=True)
class ProcessDetail:
    """Extended process information returned by an on-demand query."""

    pid: int
    name: str
    status: str
    cpu_usage_percent: float
    memory_bytes: int
    virtual_memory_bytes: int
    run_time_seconds: int
    disk_read_bytes: int
    disk_written_bytes: int
    cwd: str | None = None
    exe: str | None = None


@dataclass(slots=True, frozen=True)
class NotFound:
    """Result of a query for a pid the probe does not know."""

    pid: int
