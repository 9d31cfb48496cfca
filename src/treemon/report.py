"""Human-readable reporting for treemon."""

import os
import sys
from typing import TextIO

from treemon.models import MonitorState, ProcessRecord, ProcessTree

SEPARATOR = "-" * 20


def format_header(state: MonitorState, own_pid: int | None = None) -> str:
    """Format the per-iteration header line."""
    if own_pid is None:
        own_pid = os.getpid()
    interval = state.poll_interval
    if float(interval).is_integer():
        interval = int(interval)
    return (
        f"treemon [counter={state.iteration:2d}, pid={own_pid:5d}, "
        f"target_pid={state.target_pid:5d}, interval={interval} sec]:"
    )


def format_tree(tree: ProcessTree) -> str:
    """
    Format the monitored set as ``[0:[pid,cmd], 1:[pid,cmd], ...]``.

    Index 0 is always the root; the rest follow discovery order.
    """
    entries = (
        f"{index}:[{record.pid},{record.command}]"
        for index, record in enumerate(tree.records)
    )
    return "[" + ", ".join(entries) + "]"


def format_terminating(record: ProcessRecord) -> str:
    """Format the line announcing a signal to one descendant."""
    return f"terminating [{record.pid}, {record.command}]"


class Reporter:
    """Receives monitor events. The base class ignores all of them."""

    def iteration(self, state: MonitorState, raw_snapshot: str) -> None:
        """Called at the start of every pass with the captured snapshot text."""

    def tree(self, state: MonitorState, tree: ProcessTree) -> None:
        """Called when the target was found and its tree rebuilt."""

    def cleanup(self, victims: list[ProcessRecord]) -> None:
        """Called once the target is gone, with descendants in kill order."""

    def terminating(self, record: ProcessRecord) -> None:
        """Called right before a descendant is signalled."""

    def finished(self) -> None:
        """Called after cleanup, just before the monitor exits."""


class ConsoleReporter(Reporter):
    """Writes the advisory text report to a stream, flushing per event."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout

    def _write(self, text: str) -> None:
        print(text, file=self._stream, flush=True)

    def iteration(self, state: MonitorState, raw_snapshot: str) -> None:
        self._write(format_header(state))
        # The dump already ends in a newline when non-empty
        self._stream.write(raw_snapshot)
        self._write(SEPARATOR)

    def tree(self, state: MonitorState, tree: ProcessTree) -> None:
        self._write("List of monitored processes:")
        self._write(format_tree(tree))

    def cleanup(self, victims: list[ProcessRecord]) -> None:
        self._write("treemon: target appears to have terminated; cleaning")

    def terminating(self, record: ProcessRecord) -> None:
        self._write(format_terminating(record))

    def finished(self) -> None:
        self._write("exiting treemon")
