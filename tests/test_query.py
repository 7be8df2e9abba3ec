"""Tests for on-demand process queries and the command interpreter."""

import signal

import pytest

from conftest import FakeProbe, make_process
from pulsetop.models import NotFound, ProcessDetail
from pulsetop.query import CommandInterpreter, ProcessQuery, describe_process, parse_pid
from pulsetop.state import TelemetryState


@pytest.fixture
def probe() -> FakeProbe:
    probe = FakeProbe(
        process_readings=[
            [
                make_process(100, "nginx", cpu_usage=3.25, memory=1536, disk_read=2048, disk_written=1024**2),
                make_process(200, "redis", cpu_usage=0.0, memory=4096),
            ]
        ]
    )
    probe.paths[100] = ("/var/www", "/usr/sbin/nginx")
    return probe


@pytest.fixture
def interpreter(probe) -> CommandInterpreter:
    return CommandInterpreter(ProcessQuery(probe))


class TestProcessQuery:
    """Tests for ProcessQuery."""

    def test_query_existing_process(self, probe):
        result = ProcessQuery(probe).query_process(100)

        assert isinstance(result, ProcessDetail)
        assert result.name == "nginx"
        assert result.cpu_usage_percent == 3.25
        assert result.memory_bytes == 1536
        assert result.virtual_memory_bytes == 1536 * 4
        assert result.disk_read_bytes == 2048
        assert result.disk_written_bytes == 1024**2
        assert result.cwd == "/var/www"
        assert result.exe == "/usr/sbin/nginx"

    def test_query_refreshes_before_lookup(self, probe):
        ProcessQuery(probe).query_process(100)
        ProcessQuery(probe).query_process(200)
        assert probe.refresh_count == 2

    def test_unresolvable_paths_are_none(self, probe):
        result = ProcessQuery(probe).query_process(200)
        assert result.cwd is None
        assert result.exe is None

    def test_missing_process_is_not_found(self, probe):
        state = TelemetryState()
        before = state.read_snapshot()

        result = ProcessQuery(probe).query_process(4242)

        assert result == NotFound(pid=4242)
        assert state.read_snapshot() == before

    def test_kill_process(self, probe):
        assert ProcessQuery(probe).kill_process(100) is True
        assert probe.killed == [(100, signal.SIGTERM)]

    def test_kill_failure_is_reported(self, probe):
        probe.kill_result = False
        assert ProcessQuery(probe).kill_process(100) is False


def test_parse_pid():
    assert parse_pid("123") == 123
    assert parse_pid("  42 ") == 42
    assert parse_pid("abc") is None
    assert parse_pid("-5") is None
    assert parse_pid("1.5") is None
    assert parse_pid("") is None


def test_describe_process_omits_missing_paths():
    detail = ProcessDetail(
        pid=7,
        name="sleep",
        status="sleeping",
        cpu_usage_percent=0.0,
        memory_bytes=512,
        virtual_memory_bytes=2048,
        run_time_seconds=9,
        disk_read_bytes=0,
        disk_written_bytes=0,
    )
    lines = describe_process(detail)
    assert lines[0] == "Process Details for PID 7:"
    assert "  Memory: 512 B" in lines
    assert "  Virtual Memory: 2.0 KB" in lines
    assert "  Runtime: 9 seconds" in lines
    assert not any(line.startswith("  CWD") for line in lines)
    assert not any(line.startswith("  Executable") for line in lines)


class TestCommandInterpreter:
    """Tests for CommandInterpreter."""

    def test_show_process(self, interpreter):
        lines = interpreter.execute("p 100")

        assert lines == [
            "Process Details for PID 100:",
            "  Name: nginx",
            "  Status: sleeping",
            "  CPU Usage: 3.25%",
            "  Memory: 1.5 KB",
            "  Virtual Memory: 6.0 KB",
            "  Runtime: 42 seconds",
            "  Disk Read: 2.0 KB",
            "  Disk Write: 1.0 MB",
            "  CWD: /var/www",
            "  Executable: /usr/sbin/nginx",
        ]

    def test_uppercase_prefix(self, interpreter):
        assert interpreter.execute("P 200")[0] == "Process Details for PID 200:"

    def test_process_not_found(self, interpreter):
        assert interpreter.execute("p 999") == ["Process with PID 999 not found"]

    @pytest.mark.parametrize("text", ["p abc", "p -1", "p 12x", "p 1 2"])
    def test_invalid_pid(self, interpreter, text):
        assert interpreter.execute(text) == ["Invalid PID format. Usage: p <PID>"]

    def test_help(self, interpreter):
        for text in ("help", "?", "  help  "):
            lines = interpreter.execute(text)
            assert lines[0] == "Available commands:"
            assert any("p <PID>" in line for line in lines)

    def test_empty_command(self, interpreter):
        assert interpreter.execute("") == []
        assert interpreter.execute("   ") == []

    def test_unknown_command(self, interpreter):
        assert interpreter.execute("top") == [
            "Unknown command: 'top'. Type 'help' for available commands."
        ]

    def test_kill(self, interpreter, probe):
        assert interpreter.execute("k 100") == ["Sent SIGTERM to PID 100"]
        assert probe.killed == [(100, signal.SIGTERM)]

    def test_kill_failure(self, interpreter, probe):
        probe.kill_result = False
        assert interpreter.execute("k 100") == ["Failed to signal PID 100"]

    def test_kill_invalid_pid(self, interpreter, probe):
        assert interpreter.execute("k x") == ["Invalid PID format. Usage: k <PID>"]
        assert probe.killed == []
