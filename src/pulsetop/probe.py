"""System probe: raw OS counters behind a small protocol."""

import logging
import platform
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CpuRaw:
    brand: str


@dataclass(slots=True, frozen=True)
class ProcessRaw:
    """Raw per-process readings, cumulative disk counters included."""

    pid: int
    name: str
    cpu_usage: float
    memory: int
    virtual_memory: int
    status: str
    run_time: int
    disk_read: int
    disk_written: int


@dataclass(slots=True, frozen=True)
class InterfaceRaw:
    name: str
    rx_total: int
    tx_total: int


class SystemProbe(Protocol):
    """Source of raw host readings consumed by the samplers and queries."""

    def refresh_all(self) -> None: ...

    def cpus(self) -> list[CpuRaw]: ...

    def processes(self) -> list[ProcessRaw]: ...

    def process(self, pid: int) -> ProcessRaw | None: ...

    def process_paths(self, pid: int) -> tuple[str | None, str | None]: ...

    def global_cpu_usage(self) -> float: ...

    def total_memory(self) -> int: ...

    def used_memory(self) -> int: ...

    def available_memory(self) -> int: ...

    def total_swap(self) -> int: ...

    def used_swap(self) -> int: ...

    def refresh_networks(self) -> None: ...

    def networks(self) -> list[InterfaceRaw]: ...

    def kill(self, pid: int, sig: int) -> bool: ...


def read_cpu_brand() -> str:
    """Best-effort CPU model name, empty when unknown."""
    cpuinfo = Path("/proc/cpuinfo")
    try:
        for line in cpuinfo.read_text().splitlines():
            if line.lower().startswith("model name"):
                return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.processor()


class PsutilProbe:
    """
    SystemProbe backed by psutil.

    Readings are cached by refresh_all() / refresh_networks() so that a
    sampling cycle sees one consistent view. Each instance keeps its own
    psutil state, so samplers and queries should not share an instance.
    """

    # Attributes to fetch in one pass over the process table
    _ATTRS = [
        "pid",
        "name",
        "status",
        "cpu_percent",
        "memory_info",
        "create_time",
    ]

    def __init__(self) -> None:
        self._attrs = list(self._ATTRS)
        # Not every platform exposes per-process I/O counters
        if hasattr(psutil.Process, "io_counters"):
            self._attrs.append("io_counters")
        # Own Process handles; psutil.process_iter() shares one module-wide cache
        self._handles: dict[int, psutil.Process] = {}
        self._processes: dict[int, ProcessRaw] = {}
        self._networks: list[InterfaceRaw] = []
        self._cpus: list[CpuRaw] = []
        self._cpu_usage = 0.0
        self._memory = None
        self._swap = None

    def refresh_all(self) -> None:
        """Re-read the process table, CPU and memory counters."""
        if not self._cpus:
            self._cpus = [CpuRaw(brand=read_cpu_brand())]
        self._cpu_usage = psutil.cpu_percent(interval=None)
        self._memory = psutil.virtual_memory()
        self._swap = psutil.swap_memory()
        self._processes = self._collect_processes()

    def _handle(self, pid: int) -> psutil.Process:
        """Cached Process for pid, replaced when the pid was recycled."""
        proc = self._handles.get(pid)
        if proc is None or not proc.is_running():
            proc = psutil.Process(pid)
            self._handles[pid] = proc
        return proc

    def _collect_processes(self) -> dict[int, ProcessRaw]:
        """
        Read every visible process.

        Processes that exit mid-iteration are skipped; unreadable fields
        (AccessDenied) fall back to zero values. Handles of exited processes
        are dropped so per-process CPU baselines never outlive their pid.
        """
        processes: dict[int, ProcessRaw] = {}
        now = time.time()
        live = set(psutil.pids())

        for pid in list(self._handles):
            if pid not in live:
                del self._handles[pid]

        for pid in live:
            try:
                proc = self._handle(pid)
                with proc.oneshot():
                    info = proc.as_dict(attrs=self._attrs, ad_value=None)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                self._handles.pop(pid, None)
                continue

            mem_info = info.get("memory_info")
            io = info.get("io_counters")
            create_time = info.get("create_time")
            run_time = int(now - create_time) if create_time else 0

            processes[pid] = ProcessRaw(
                pid=pid,
                name=info.get("name") or "",
                cpu_usage=info.get("cpu_percent") or 0.0,
                memory=mem_info.rss if mem_info else 0,
                virtual_memory=mem_info.vms if mem_info else 0,
                status=info.get("status") or "?",
                run_time=max(run_time, 0),
                disk_read=getattr(io, "read_bytes", 0) if io else 0,
                disk_written=getattr(io, "write_bytes", 0) if io else 0,
            )

        return processes

    def cpus(self) -> list[CpuRaw]:
        return list(self._cpus)

    def processes(self) -> list[ProcessRaw]:
        return list(self._processes.values())

    def process(self, pid: int) -> ProcessRaw | None:
        return self._processes.get(pid)

    def process_paths(self, pid: int) -> tuple[str | None, str | None]:
        """Return (cwd, exe) for a process; either is None when unreadable."""
        try:
            proc = psutil.Process(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None, None

        cwd: str | None
        exe: str | None
        try:
            cwd = proc.cwd() or None
        except (psutil.Error, OSError):
            cwd = None
        try:
            exe = proc.exe() or None
        except (psutil.Error, OSError):
            exe = None
        return cwd, exe

    def global_cpu_usage(self) -> float:
        return self._cpu_usage

    def total_memory(self) -> int:
        return self._memory.total if self._memory else 0

    def used_memory(self) -> int:
        return self._memory.used if self._memory else 0

    def available_memory(self) -> int:
        return self._memory.available if self._memory else 0

    def total_swap(self) -> int:
        return self._swap.total if self._swap else 0

    def used_swap(self) -> int:
        return self._swap.used if self._swap else 0

    def refresh_networks(self) -> None:
        """Re-read per-interface byte counters."""
        counters = psutil.net_io_counters(pernic=True) or {}
        self._networks = [
            InterfaceRaw(name=name, rx_total=stats.bytes_recv, tx_total=stats.bytes_sent)
            for name, stats in counters.items()
        ]

    def networks(self) -> list[InterfaceRaw]:
        return list(self._networks)

    def kill(self, pid: int, sig: int) -> bool:
        """Deliver a signal to a process. Returns False when it cannot be delivered."""
        try:
            psutil.Process(pid).send_signal(sig)
        except (psutil.NoSuchProcess, psutil.AccessDenied, ValueError, OSError) as exc:
            logger.info("signal %s to pid %s failed: %s", sig, pid, exc)
            return False
        return True
