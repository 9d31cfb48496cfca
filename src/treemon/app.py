"""treemon - Textual live view of a monitored process tree."""

from collections.abc import Callable
from dataclasses import dataclass, field
from queue import Empty, Queue

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from treemon.models import MonitorState, ProcessRecord, ProcessTree
from treemon.monitor import EXIT_INTERRUPTED, EXIT_TERMINATED, TreeMonitor
from treemon.report import Reporter, format_terminating
from treemon.snapshot import capture_snapshot, send_kill


@dataclass(slots=True)
class MonitorUpdate:
    """One event from the monitor thread, as seen by the UI."""

    iteration: int
    tree: ProcessTree | None = None
    terminated: list[ProcessRecord] = field(default_factory=list)
    finished: bool = False


class QueueReporter(Reporter):
    """Forwards monitor events to a thread-safe Queue for the UI to drain."""

    def __init__(self, update_queue: Queue[MonitorUpdate]) -> None:
        self._queue = update_queue
        self._iteration = 0
        self._victims: list[ProcessRecord] = []

    def tree(self, state: MonitorState, tree: ProcessTree) -> None:
        self._iteration = state.iteration
        self._queue.put(MonitorUpdate(iteration=state.iteration, tree=tree))

    def cleanup(self, victims: list[ProcessRecord]) -> None:
        self._victims = list(victims)

    def finished(self) -> None:
        self._queue.put(
            MonitorUpdate(iteration=self._iteration, terminated=self._victims, finished=True)
        )


class MonitorHeader(Static):
    """Header widget showing what is being watched."""

    DEFAULT_CSS = """
    MonitorHeader {
        height: auto;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, state: MonitorState, *args, **kwargs) -> None:
        """Initialize MonitorHeader."""
        self._monitor_state = state
        self._counter = 0
        self._monitored = 0
        super().__init__(self._header_text(), *args, **kwargs)

    def update_tree(self, iteration: int, tree: ProcessTree) -> None:
        """Update the header from the latest tree."""
        self._counter = iteration
        self._monitored = len(tree)
        self.update(self._header_text())

    def _header_text(self) -> str:
        return (
            f"target_pid={self._monitor_state.target_pid}  "
            f"interval={self._monitor_state.poll_interval:g} sec  "
            f"counter={self._counter}  monitored={self._monitored}"
        )


class ProcessTable(Container):
    """Container for the monitored process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("#", key="index", width=5)
        table.add_column("PID", key="pid", width=8)
        table.add_column("PPID", key="ppid", width=8)
        table.add_column("Command", key="command")

    def update_tree(self, tree: ProcessTree) -> None:
        """
        Replace the table rows with the given tree.

        Rows are keyed by pid and listed in discovery order, root first.
        """
        table = self.query_one("#process-table", DataTable)
        table.clear()
        self._current_pids = []
        for index, record in enumerate(tree.records):
            table.add_row(
                str(index),
                str(record.pid),
                str(record.parent_pid),
                Text(record.command[:80]),
                key=str(record.pid),
            )
            self._current_pids.append(record.pid)


class TreemonApp(App):
    """Live view of a process tree being monitored."""

    TITLE = "treemon"
    SUB_TITLE = "Process Tree Monitor"

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        target_pid: int,
        poll_interval: float = 3,
        capture: Callable[[], str] = capture_snapshot,
        kill: Callable[[int], None] = send_kill,
    ) -> None:
        """Initialize the TreemonApp."""
        super().__init__()
        self._update_queue: Queue[MonitorUpdate] = Queue()
        self._monitor = TreeMonitor(
            target_pid,
            poll_interval=poll_interval,
            capture=capture,
            kill=kill,
            reporter=QueueReporter(self._update_queue),
        )
        self._terminated: list[ProcessRecord] = []

    @property
    def terminated(self) -> list[ProcessRecord]:
        """Descendants signalled after the target exited, in signal order."""
        return self._terminated

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield MonitorHeader(self._monitor.state, id="monitor-header")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the tree monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and apply every pending update in order."""
        while True:
            try:
                update = self._update_queue.get_nowait()
            except Empty:
                break
            self._apply_update(update)

    def _apply_update(self, update: MonitorUpdate) -> None:
        if update.tree is not None:
            self.query_one("#monitor-header", MonitorHeader).update_tree(
                update.iteration, update.tree
            )
            self.query_one(ProcessTable).update_tree(update.tree)

        if update.finished:
            self._terminated = update.terminated
            for record in update.terminated:
                self.log(format_terminating(record))
            self.exit(update.terminated, return_code=EXIT_TERMINATED)

    def action_quit(self) -> None:
        """Stop monitoring without cleanup and leave the app."""
        self._monitor.stop()
        self.exit(return_code=EXIT_INTERRUPTED)
