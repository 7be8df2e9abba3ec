"""On-demand process lookups and the text command interpreter."""

import logging
import signal

from pulsetop.models import NotFound, ProcessDetail
from pulsetop.probe import SystemProbe
from pulsetop.rates import format_bytes

logger = logging.getLogger(__name__)

HELP_LINES = [
    "Available commands:",
    "  p <PID> - Show detailed process information",
    "  k <PID> - Send SIGTERM to a process",
    "  help or ? - Show this help message",
    "  Press ESC to exit command mode",
]


class ProcessQuery:
    """
    Synchronous process lookups against a private probe.

    The probe handed in here must not be shared with a sampler; a query
    refreshes it in the foreground while samplers refresh theirs.
    """

    def __init__(self, probe: SystemProbe) -> None:
        self._probe = probe

    def query_process(self, pid: int) -> ProcessDetail | NotFound:
        """Refresh the probe and return details for pid, or NotFound."""
        self._probe.refresh_all()
        raw = self._probe.process(pid)
        if raw is None:
            return NotFound(pid=pid)

        cwd, exe = self._probe.process_paths(pid)
        return ProcessDetail(
            pid=raw.pid,
            name=raw.name,
            status=raw.status,
            cpu_usage_percent=raw.cpu_usage,
            memory_bytes=raw.memory,
            virtual_memory_bytes=raw.virtual_memory,
            run_time_seconds=raw.run_time,
            disk_read_bytes=raw.disk_read,
            disk_written_bytes=raw.disk_written,
            cwd=cwd,
            exe=exe,
        )

    def kill_process(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        """Send a signal to pid. Returns False if it could not be delivered."""
        delivered = self._probe.kill(pid, sig)
        if not delivered:
            logger.warning("could not deliver signal %s to pid %s", sig, pid)
        return delivered


def parse_pid(text: str) -> int | None:
    """Parse a non-negative integer pid, None when the text is not one."""
    text = text.strip()
    if not text.isdecimal():
        return None
    return int(text)


def describe_process(detail: ProcessDetail) -> list[str]:
    lines = [
        f"Process Details for PID {detail.pid}:",
        f"  Name: {detail.name}",
        f"  Status: {detail.status}",
        f"  CPU Usage: {detail.cpu_usage_percent:.2f}%",
        f"  Memory: {format_bytes(detail.memory_bytes)}",
        f"  Virtual Memory: {format_bytes(detail.virtual_memory_bytes)}",
        f"  Runtime: {detail.run_time_seconds} seconds",
        f"  Disk Read: {format_bytes(detail.disk_read_bytes)}",
        f"  Disk Write: {format_bytes(detail.disk_written_bytes)}",
    ]
    if detail.cwd is not None:
        lines.append(f"  CWD: {detail.cwd}")
    if detail.exe is not None:
        lines.append(f"  Executable: {detail.exe}")
    return lines


class CommandInterpreter:
    """Turns command-line text into output lines."""

    def __init__(self, query: ProcessQuery) -> None:
        self._query = query

    def execute(self, text: str) -> list[str]:
        """
        Run one command.

        Supported commands are ``p <pid>``, ``k <pid>`` and ``help`` / ``?``.
        Bad input yields a message; nothing here raises for user mistakes.
        """
        cmd = text.strip()
        if not cmd:
            return []

        if cmd in ("help", "?"):
            return list(HELP_LINES)

        if cmd[:2] in ("p ", "P "):
            return self._show(cmd[2:])

        if cmd[:2] in ("k ", "K "):
            return self._kill(cmd[2:])

        return [f"Unknown command: '{cmd}'. Type 'help' for available commands."]

    def _show(self, arg: str) -> list[str]:
        pid = parse_pid(arg)
        if pid is None:
            return ["Invalid PID format. Usage: p <PID>"]

        result = self._query.query_process(pid)
        if isinstance(result, NotFound):
            return [f"Process with PID {pid} not found"]
        return describe_process(result)

    def _kill(self, arg: str) -> list[str]:
        pid = parse_pid(arg)
        if pid is None:
            return ["Invalid PID format. Usage: k <PID>"]

        if self._query.kill_process(pid):
            return [f"Sent SIGTERM to PID {pid}"]
        return [f"Failed to signal PID {pid}"]
