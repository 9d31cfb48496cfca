"""Process tree reconstruction from a flat snapshot."""

from collections.abc import Iterable

from treemon.models import ProcessRecord, ProcessTree

# Far deeper than any real process tree; bounds the walk on corrupted input.
MAX_DEPTH = 256


def _unique(records: Iterable[ProcessRecord]) -> list[ProcessRecord]:
    """
    Drop records whose pid was already seen earlier in the snapshot.

    A racy sample can list one pid twice (two lifetimes of a recycled pid).
    The first occurrence wins everywhere in this module.
    """
    seen: set[int] = set()
    unique: list[ProcessRecord] = []
    for record in records:
        if record.pid in seen:
            continue
        seen.add(record.pid)
        unique.append(record)
    return unique


def find_root(records: Iterable[ProcessRecord], pid: int) -> ProcessRecord | None:
    """Return the first record with exactly this pid, or None if it is absent."""
    for record in records:
        if record.pid == pid:
            return record
    return None


def children_index(records: Iterable[ProcessRecord]) -> dict[int, list[ProcessRecord]]:
    """Map each parent pid to its children, in snapshot order."""
    index: dict[int, list[ProcessRecord]] = {}
    for record in _unique(records):
        index.setdefault(record.parent_pid, []).append(record)
    return index


def collect_descendants(
    records: Iterable[ProcessRecord],
    parent_pid: int,
    max_depth: int = MAX_DEPTH,
) -> list[ProcessRecord]:
    """
    Collect every descendant of parent_pid in pre-order.

    Each child is followed immediately by its own descendants; siblings keep
    the snapshot's order. A pid that is not a parent in the snapshot yields
    an empty list.

    Args:
        records: Records of one snapshot.
        parent_pid: Pid whose descendants to collect. It need not be present
            in the snapshot itself.
        max_depth: Levels below parent_pid to descend at most.
    """
    index = children_index(records)
    descendants: list[ProcessRecord] = []
    emitted: set[int] = {parent_pid}

    def walk(pid: int, depth: int) -> None:
        if depth >= max_depth:
            return
        for child in index.get(pid, ()):
            if child.pid in emitted:
                continue
            emitted.add(child.pid)
            descendants.append(child)
            walk(child.pid, depth + 1)

    walk(parent_pid, 0)
    return descendants


def build_tree(records: Iterable[ProcessRecord], pid: int) -> ProcessTree | None:
    """Build the tree rooted at pid, or return None if pid is not in the snapshot."""
    records = list(records)
    root = find_root(records, pid)
    if root is None:
        return None
    return ProcessTree(root=root, descendants=tuple(collect_descendants(records, root.pid)))
