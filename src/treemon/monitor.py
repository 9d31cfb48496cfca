"""Process tree monitoring loop for treemon."""

import logging
import os
import threading
from collections.abc import Callable

from treemon.models import MonitorState, ProcessRecord, ProcessTree
from treemon.report import Reporter
from treemon.snapshot import capture_snapshot, parse_snapshot, send_kill
from treemon.tree import build_tree, collect_descendants

logger = logging.getLogger(__name__)

EXIT_TERMINATED = 0
EXIT_INTERRUPTED = 130


class TreeMonitor:
    """
    Watches a target process and its descendants until the target disappears.

    Every pass samples the process table afresh and rebuilds the tree; nothing
    but MonitorState and the last known tree survives between passes. Once the
    target is missing from a snapshot, every known descendant is signalled in
    reverse discovery order (leaves before their ancestors) and the loop ends.
    """

    def __init__(
        self,
        target_pid: int,
        poll_interval: float = 3,
        capture: Callable[[], str] = capture_snapshot,
        kill: Callable[[int], None] = send_kill,
        reporter: Reporter | None = None,
    ) -> None:
        """
        Initialize the TreeMonitor.

        Args:
            target_pid: Pid of the process to watch.
            poll_interval: Seconds to wait between passes. Default 3.
            capture: Returns a snapshot of the current user's processes as text.
            kill: Sends a termination signal to a pid; its outcome is not checked.
            reporter: Receives progress events. Defaults to a silent Reporter.
        """
        self._state = MonitorState(target_pid=target_pid, poll_interval=poll_interval)
        self._capture = capture
        self._kill = kill
        self._reporter = reporter if reporter is not None else Reporter()
        self._last_tree: ProcessTree | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._exit_code: int | None = None

    @property
    def state(self) -> MonitorState:
        """Get the monitor state."""
        return self._state

    @property
    def last_tree(self) -> ProcessTree | None:
        """Get the last tree computed while the target was alive."""
        return self._last_tree

    @property
    def exit_code(self) -> int | None:
        """Get the exit code of the finished loop, or None while it runs."""
        return self._exit_code

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def _notify(self, event: str, *args) -> None:
        """Pass an event to the reporter; a failing reporter never stops the loop."""
        try:
            getattr(self._reporter, event)(*args)
        except Exception:
            logger.exception("Reporter failed on %s event", event)

    def tick(self) -> tuple[ProcessTree | None, list[ProcessRecord]]:
        """
        Run one pass: capture, parse and rebuild the target's tree.

        Returns the tree (None once the target is gone) and the parsed
        snapshot records. An empty or failed capture looks exactly like a
        vanished target.
        """
        try:
            raw = self._capture() or ""
        except Exception:
            logger.exception(
                "Snapshot capture failed; treating target %d as gone", self._state.target_pid
            )
            raw = ""
        self._notify("iteration", self._state, raw)

        records = parse_snapshot(raw)
        tree = build_tree(records, self._state.target_pid)
        if tree is not None:
            self._last_tree = tree
            self._notify("tree", self._state, tree)
        return tree, records

    def cleanup(self, records: list[ProcessRecord] | None = None) -> list[ProcessRecord]:
        """
        Signal every known descendant of the vanished target.

        The kill list is the last known tree's descendants, extended with any
        descendant of the target pid still linked to it in the final
        snapshot. Signals go out in reverse discovery order, unconditionally,
        one attempt each. The target itself and this process are never
        signalled.

        Returns:
            The records signalled, in the order they were signalled.
        """
        known = list(self._last_tree.descendants) if self._last_tree is not None else []
        known_pids = {record.pid for record in known}
        for record in collect_descendants(records or [], self._state.target_pid):
            if record.pid not in known_pids:
                known.append(record)
                known_pids.add(record.pid)

        own_pid = os.getpid()
        victims = [record for record in reversed(known) if record.pid != own_pid]
        self._notify("cleanup", victims)

        for record in victims:
            self._notify("terminating", record)
            try:
                self._kill(record.pid)
            except Exception:
                logger.exception("Failed to signal process %d", record.pid)

        logger.info("Signalled %d descendant(s) of %d", len(victims), self._state.target_pid)
        return victims

    def run(self) -> int:
        """
        Monitor until the target disappears or stop() is called.

        Returns:
            EXIT_TERMINATED after cleanup, or EXIT_INTERRUPTED when stopped
            while the target was still alive.
        """
        while True:
            tree, records = self.tick()
            if tree is None:
                break

            # Wait for poll_interval seconds or until stop is requested
            if self._stop_event.wait(timeout=self._state.poll_interval):
                logger.info("Monitor stopped before target %d exited", self._state.target_pid)
                self._exit_code = EXIT_INTERRUPTED
                return self._exit_code
            self._state.iteration += 1

        self.cleanup(records)
        self._notify("finished")
        self._exit_code = EXIT_TERMINATED
        return self._exit_code

    def start(self) -> None:
        """Run the monitoring loop in a background thread."""
        if self.is_running:
            return

        self._exit_code = None
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            daemon=True,
            name="TreeMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring loop.

        Args:
            timeout: How long to wait for the thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
