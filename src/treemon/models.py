"""Data models for treemon."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process from a snapshot."""

    pid: int
    parent_pid: int
    command: str


@dataclass(slots=True, frozen=True)
class ProcessTree:
    """A root process and its descendants in discovery (pre-order) order."""

    root: ProcessRecord
    descendants: tuple[ProcessRecord, ...] = ()

    @property
    def records(self) -> tuple[ProcessRecord, ...]:
        """Root first, then descendants; this is the listing index order."""
        return (self.root, *self.descendants)

    def __len__(self) -> int:
        return 1 + len(self.descendants)


@dataclass(slots=True)
class MonitorState:
    """State that lives for the whole run of a monitor."""

    target_pid: int
    poll_interval: float
    iteration: int = 0
