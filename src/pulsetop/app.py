"""pulsetop - Main Textual application."""

import logging
import sys
from collections.abc import Callable, Sequence
from enum import Enum

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Input, Static

from pulsetop.config import MonitorConfig, configure_logging, parse_args
from pulsetop.models import NetworkSnapshot, ProcessRecord, SystemSnapshot, TelemetryView
from pulsetop.monitor import NetworkSampler, ProcessSampler
from pulsetop.probe import PsutilProbe, SystemProbe
from pulsetop.query import CommandInterpreter, ProcessQuery
from pulsetop.rates import format_bytes, format_rate
from pulsetop.state import TelemetryState

logger = logging.getLogger(__name__)

COMMAND_OUTPUT_LINES = 5


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"
    PID = "pid"


SORT_LABELS = {SortKey.CPU: "CPU", SortKey.MEM: "Memory", SortKey.PID: "PID"}


def sort_processes(processes: Sequence[ProcessRecord], key: SortKey) -> list[ProcessRecord]:
    """Sort by CPU or memory descending, or by PID ascending."""
    if key is SortKey.CPU:
        return sorted(processes, key=lambda p: p.cpu_usage_percent, reverse=True)
    if key is SortKey.MEM:
        return sorted(processes, key=lambda p: p.memory_bytes, reverse=True)
    return sorted(processes, key=lambda p: p.pid)


def memory_share(proc: ProcessRecord, total_memory: int) -> float:
    if total_memory <= 0:
        return 0.0
    return proc.memory_bytes / total_memory * 100.0


def process_row_style(proc: ProcessRecord, total_memory: int) -> str:
    """Colour cue for a process row."""
    if proc.cpu_usage_percent > 80.0:
        return "red"
    if proc.cpu_usage_percent > 50.0:
        return "yellow"
    if memory_share(proc, total_memory) > 20.0:
        return "magenta"
    return "white"


def memory_style(percent: float) -> str:
    if percent > 90.0:
        return "bold red"
    if percent > 75.0:
        return "yellow"
    return "green"


def swap_style(percent: float) -> str:
    if percent > 75.0:
        return "bold red"
    if percent > 50.0:
        return "yellow"
    return "cyan"


class SystemPanel(Static):
    """Header panel with CPU model, total CPU usage and key help."""

    DEFAULT_CSS = """
    SystemPanel {
        height: 7;
        border: round $primary;
        padding: 0 1;
    }
    """

    def on_mount(self) -> None:
        self.border_title = "System"

    def update_view(self, view: TelemetryView, sort_key: SortKey) -> None:
        """Render the panel from a telemetry view."""
        self.update(self.render_text(view, sort_key))

    @staticmethod
    def render_text(view: TelemetryView, sort_key: SortKey) -> str:
        system = view.system
        cpu_model = escape(system.cpu_model) if system.cpu_model else "Loading CPU info..."
        pause_status = " \\[PAUSED]" if view.paused else ""
        cpu_style = "bold red" if view.paused else "yellow"
        return "\n".join(
            [
                f"[green]CPU Model: {cpu_model}[/green]",
                f"[{cpu_style}]Total CPU Usage: {system.total_cpu_usage_percent:.2f}%"
                f"{pause_status}[/{cpu_style}]",
                f"[cyan]Sort: {SORT_LABELS[sort_key]} | 'c'=CPU 'm'=Memory 'p'=PID | "
                f"Space/s=Pause | ':'=Cmd[/cyan]",
                f"[blue]RAM: {format_bytes(system.used_memory_bytes)}/"
                f"{format_bytes(system.total_memory_bytes)} "
                f"({system.memory_percent:.2f}%)[/blue]",
                "[red]GPU: Monitoring disabled[/red]",
            ]
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: round $primary;
    }
    """

    def __init__(self, *args, max_rows: int = 30, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._max_rows = max_rows
        self._current_pids: list[int] = []

    @property
    def current_pids(self) -> list[int]:
        """PIDs shown in the table, in display order."""
        return list(self._current_pids)

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        self.border_title = "Top Processes"
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("Name", key="name", width=24)
        table.add_column("PID", key="pid", width=8)
        table.add_column("CPU %", key="cpu", width=8)
        table.add_column("Memory", key="mem", width=20)
        table.add_column("Status", key="status", width=10)
        table.add_column("Runtime", key="runtime")

    def selected_pid(self) -> int | None:
        """PID of the row under the cursor, None when the table is empty."""
        table = self.query_one("#process-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return int(row_key.value) if row_key.value is not None else None

    def update_processes(self, snapshot: SystemSnapshot, sort_key: SortKey) -> None:
        """
        Show the top processes of a snapshot.

        Rows are rebuilt since the sort order can change between samples.
        The cursor stays on the selected PID while that PID is still listed,
        otherwise it keeps its row position.
        """
        table = self.query_one("#process-table", DataTable)
        visible = sort_processes(snapshot.processes, sort_key)[: self._max_rows]
        selected = self.selected_pid()
        cursor_row = table.cursor_row

        table.clear()
        for proc in visible:
            style = process_row_style(proc, snapshot.total_memory_bytes)
            mem_pct = memory_share(proc, snapshot.total_memory_bytes)
            table.add_row(
                Text(proc.name, style=style),
                Text(str(proc.pid), style=style),
                Text(f"{proc.cpu_usage_percent:.2f}%", style=style),
                Text(f"{format_bytes(proc.memory_bytes)} ({mem_pct:.1f}%)", style=style),
                Text(proc.status, style=style),
                Text(str(proc.run_time_seconds), style=style),
                key=str(proc.pid),
            )

        self._current_pids = [proc.pid for proc in visible]

        if not visible:
            return
        if selected in self._current_pids:
            cursor_row = self._current_pids.index(selected)
        table.move_cursor(row=min(cursor_row, len(visible) - 1), animate=False)


class MemoryPanel(Static):
    """RAM, swap and disk throughput."""

    DEFAULT_CSS = """
    MemoryPanel {
        width: 1fr;
        border: round $primary;
        padding: 0 1;
    }
    """

    def on_mount(self) -> None:
        self.border_title = "Memory"

    def update_view(self, system: SystemSnapshot) -> None:
        self.update(self.render_text(system))

    @staticmethod
    def render_text(system: SystemSnapshot) -> str:
        mem_pct = system.memory_percent
        mem_style = memory_style(mem_pct)
        lines = [
            f"[{mem_style}]RAM: {format_bytes(system.used_memory_bytes)} / "
            f"{format_bytes(system.total_memory_bytes)} ({mem_pct:.1f}%)[/{mem_style}]",
            f"[cyan]Available: {format_bytes(system.available_memory_bytes)}[/cyan]",
            "",
        ]

        if system.total_swap_bytes > 0:
            swap_pct = system.swap_percent
            sw_style = swap_style(swap_pct)
            lines.append(
                f"[{sw_style}]Swap: {format_bytes(system.used_swap_bytes)} / "
                f"{format_bytes(system.total_swap_bytes)} ({swap_pct:.1f}%)[/{sw_style}]"
            )
        else:
            lines.append("[dim]Swap: Not configured[/dim]")

        lines.append("")
        lines.append(
            f"[magenta]Disk I/O: ↓{format_rate(system.disk_read_bytes_per_sec)} "
            f"↑{format_rate(system.disk_write_bytes_per_sec)}[/magenta]"
        )
        return "\n".join(lines)


class NetworkTable(Container):
    """Per-interface totals and rates."""

    DEFAULT_CSS = """
    NetworkTable {
        width: 1fr;
        border: round $primary;
    }
    """

    def __init__(self, *args, max_rows: int = 6, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._max_rows = max_rows

    def compose(self) -> ComposeResult:
        yield DataTable(id="network-table", show_cursor=False)

    def on_mount(self) -> None:
        self.border_title = "Network"
        table = self.query_one("#network-table", DataTable)
        table.add_column("Iface", key="iface")
        table.add_column("RX/s", key="rx_rate")
        table.add_column("TX/s", key="tx_rate")
        table.add_column("RX total", key="rx_total")
        table.add_column("TX total", key="tx_total")

    def update_interfaces(self, snapshot: NetworkSnapshot) -> None:
        table = self.query_one("#network-table", DataTable)
        table.clear()
        for iface in snapshot.interfaces[: self._max_rows]:
            table.add_row(
                iface.name,
                format_rate(iface.rx_rate_bytes_per_sec),
                format_rate(iface.tx_rate_bytes_per_sec),
                format_bytes(iface.rx_total_bytes),
                format_bytes(iface.tx_total_bytes),
                key=iface.name,
            )


class CommandInput(Input):
    """Command entry line; escape abandons the command."""

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    class Cancelled(Message):
        """Posted when the user leaves command mode without submitting."""

    def action_cancel(self) -> None:
        self.post_message(self.Cancelled())


class CommandPanel(Container):
    """Prompt plus the output of the last command."""

    DEFAULT_CSS = """
    CommandPanel {
        height: 10;
        border: round $primary;
    }

    #command-output {
        color: $warning;
        padding: 0 1;
    }
    """

    IDLE_PROMPT = "> (Press ':' to enter command mode, 'p <PID>' for process details)"

    def compose(self) -> ComposeResult:
        yield CommandInput(placeholder=self.IDLE_PROMPT, id="command-input", disabled=True)
        yield Static("", id="command-output")

    def on_mount(self) -> None:
        self.border_title = "Command Line"

    def show_output(self, lines: list[str]) -> None:
        output = self.query_one("#command-output", Static)
        output.update(Text("\n".join(lines[-COMMAND_OUTPUT_LINES:])))


class PulsetopApp(App):
    """Main pulsetop application."""

    TITLE = "pulsetop"
    SUB_TITLE = "Live Telemetry Dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #bottom-row {
        height: 10;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("c", "sort('cpu')", "CPU"),
        ("m", "sort('mem')", "Memory"),
        ("p", "sort('pid')", "PID"),
        ("space", "toggle_pause", "Pause"),
        Binding("s", "toggle_pause", "Pause", show=False),
        ("colon", "command_mode", "Command"),
    ]

    def __init__(
        self,
        config: MonitorConfig | None = None,
        probe_factory: Callable[[], SystemProbe] = PsutilProbe,
    ) -> None:
        """
        Initialize the PulsetopApp.

        Args:
            config: Runtime settings; defaults when omitted.
            probe_factory: Builds one probe per sampler and one for queries.
        """
        super().__init__()
        self._config = config or MonitorConfig()
        self._state = TelemetryState(
            lock_timeout=self._config.lock_timeout,
            paused=self._config.start_paused,
        )
        self._process_sampler = ProcessSampler(
            probe_factory(), self._state, interval=self._config.sample_interval
        )
        self._network_sampler = NetworkSampler(
            probe_factory(), self._state, interval=self._config.network_interval
        )
        self._commands = CommandInterpreter(ProcessQuery(probe_factory()))
        self._sort_key = SortKey.CPU
        self._command_mode = False
        self._command_output: list[str] = []
        self._refresh_timer: Timer | None = None
        # Last objects drawn into the tables
        self._drawn_system: SystemSnapshot | None = None
        self._drawn_network: NetworkSnapshot | None = None
        self._drawn_sort: SortKey | None = None

    @property
    def state(self) -> TelemetryState:
        return self._state

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def command_mode(self) -> bool:
        return self._command_mode

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield SystemPanel(id="system-panel")
        yield ProcessTable(max_rows=self._config.process_rows)
        yield Horizontal(
            MemoryPanel(id="memory-panel"),
            NetworkTable(max_rows=self._config.network_rows),
            id="bottom-row",
        )
        yield CommandPanel()
        yield Footer()

    def on_mount(self) -> None:
        """Start the samplers when the app is mounted."""
        self._process_sampler.start()
        self._network_sampler.start()
        self._schedule_refresh(self._config.ui_interval)
        self.query_one("#process-table", DataTable).focus()

    def _schedule_refresh(self, interval: float) -> None:
        if self._refresh_timer is not None:
            self._refresh_timer.stop()
        self._refresh_timer = self.set_interval(interval, self._refresh_view)

    def _refresh_view(self) -> None:
        """
        Copy the shared state once and redraw from that copy.

        Tables are only rebuilt for a newly published snapshot or a new sort
        key, so cursor movement between samples is not undone.
        """
        view = self._state.read_snapshot()
        try:
            self.query_one(SystemPanel).update_view(view, self._sort_key)
            if view.system is not self._drawn_system or self._sort_key is not self._drawn_sort:
                self.query_one(ProcessTable).update_processes(view.system, self._sort_key)
                self.query_one(MemoryPanel).update_view(view.system)
                self._drawn_system = view.system
                self._drawn_sort = self._sort_key
            if view.network is not self._drawn_network:
                self.query_one(NetworkTable).update_interfaces(view.network)
                self._drawn_network = view.network
        except Exception:
            # Widgets may not be mounted yet or already torn down
            logger.debug("view refresh skipped", exc_info=True)

    def action_sort(self, key: str) -> None:
        """Switch the process table sort key."""
        self._sort_key = SortKey(key)
        self._refresh_view()

    def action_toggle_pause(self) -> None:
        self._state.toggle_pause()
        self._refresh_view()

    def action_command_mode(self) -> None:
        """Focus the command line and redraw faster while typing."""
        command_input = self.query_one("#command-input", CommandInput)
        command_input.disabled = False
        command_input.value = ""
        command_input.focus()
        self._command_mode = True
        self._schedule_refresh(self._config.command_ui_interval)

    def _leave_command_mode(self) -> None:
        command_input = self.query_one("#command-input", CommandInput)
        command_input.value = ""
        command_input.disabled = True
        self._command_mode = False
        self._schedule_refresh(self._config.ui_interval)
        self.query_one("#process-table", DataTable).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Run the submitted command and show its output."""
        self._command_output = self._commands.execute(event.value)
        self.query_one(CommandPanel).show_output(self._command_output)
        self._leave_command_mode()

    def on_command_input_cancelled(self, event: CommandInput.Cancelled) -> None:
        self._leave_command_mode()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._process_sampler.stop(timeout=1.0)
        self._network_sampler.stop(timeout=1.0)
        self.exit()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for pulsetop application."""
    config = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(config)
    app = PulsetopApp(config)
    app.run()


if __name__ == "__main__":
    main()
