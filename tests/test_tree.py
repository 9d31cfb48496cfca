"""Tests for process tree reconstruction."""

from treemon.models import ProcessRecord, ProcessTree
from treemon.snapshot import parse_snapshot
from treemon.tree import build_tree, children_index, collect_descendants, find_root

SNAPSHOT = """\
user 100 1 S 00:00:00 target
user 101 100 S 00:00:01 child_a
user 102 101 S 00:00:02 grandchild
"""


def _records() -> list[ProcessRecord]:
    return parse_snapshot(SNAPSHOT)


class TestFindRoot:
    """Tests for find_root."""

    def test_find_root_present(self):
        """Test the matching record is returned verbatim."""
        assert find_root(_records(), 100) == ProcessRecord(100, 1, "target")

    def test_find_root_absent(self):
        """Test a missing pid yields None rather than raising."""
        assert find_root(_records(), 999) is None

    def test_find_root_empty_snapshot(self):
        """Test an empty snapshot never contains the root."""
        assert find_root([], 100) is None

    def test_find_root_ignores_pid_in_command(self):
        """Test a pid that only appears in command text is not matched."""
        records = parse_snapshot("user 200 1 S 00:00:00 sleep 100\n")

        assert find_root(records, 100) is None

    def test_find_root_first_duplicate_wins(self):
        """Test the first of two records sharing a pid is chosen."""
        records = [
            ProcessRecord(100, 1, "old"),
            ProcessRecord(100, 5, "new"),
        ]

        assert find_root(records, 100) == ProcessRecord(100, 1, "old")


class TestCollectDescendants:
    """Tests for collect_descendants."""

    def test_collect_descendants_chain(self):
        """Test a child is followed by its grandchild."""
        assert collect_descendants(_records(), 100) == [
            ProcessRecord(101, 100, "child_a"),
            ProcessRecord(102, 101, "grandchild"),
        ]

    def test_collect_descendants_unknown_parent(self):
        """Test a pid absent from the snapshot has no descendants."""
        assert collect_descendants(_records(), 999) == []

    def test_collect_descendants_leaf(self):
        """Test a process without children contributes nothing."""
        assert collect_descendants(_records(), 102) == []

    def test_collect_descendants_preorder(self):
        """Test each subtree directly follows its root, siblings in snapshot order."""
        records = [
            ProcessRecord(10, 1, "root"),
            ProcessRecord(11, 10, "a"),
            ProcessRecord(12, 10, "b"),
            ProcessRecord(13, 11, "a1"),
            ProcessRecord(14, 12, "b1"),
            ProcessRecord(15, 11, "a2"),
            ProcessRecord(16, 13, "a1x"),
        ]

        pids = [record.pid for record in collect_descendants(records, 10)]

        assert pids == [11, 13, 16, 15, 12, 14]

    def test_collect_descendants_parents_precede_children(self):
        """Test every descendant appears after its parent."""
        records = [
            ProcessRecord(30, 20, "late-grandchild"),
            ProcessRecord(20, 10, "child"),
            ProcessRecord(10, 1, "root"),
            ProcessRecord(40, 30, "great-grandchild"),
        ]

        result = collect_descendants(records, 10)
        position = {record.pid: index for index, record in enumerate(result)}

        assert [record.pid for record in result] == [20, 30, 40]
        for record in result:
            if record.parent_pid in position:
                assert position[record.parent_pid] < position[record.pid]

    def test_collect_descendants_is_pure(self):
        """Test repeated calls on the same snapshot give the same result."""
        records = _records()

        assert collect_descendants(records, 100) == collect_descendants(records, 100)

    def test_collect_descendants_excludes_unrelated(self):
        """Test processes outside the subtree are left out."""
        records = _records() + [ProcessRecord(500, 1, "other"), ProcessRecord(501, 500, "other-child")]

        pids = [record.pid for record in collect_descendants(records, 100)]

        assert pids == [101, 102]

    def test_collect_descendants_cycle_terminates(self):
        """Test a corrupted snapshot with a parent cycle does not loop forever."""
        records = [
            ProcessRecord(10, 1, "root"),
            ProcessRecord(11, 12, "a"),
            ProcessRecord(12, 11, "b"),
            ProcessRecord(13, 10, "c"),
            ProcessRecord(10, 13, "root-again"),
        ]

        pids = [record.pid for record in collect_descendants(records, 10)]

        assert pids == [13]

    def test_collect_descendants_depth_cap(self):
        """Test the walk stops descending at max_depth."""
        records = [ProcessRecord(pid, pid - 1, f"p{pid}") for pid in range(2, 12)]

        result = collect_descendants(records, 1, max_depth=3)

        assert [record.pid for record in result] == [2, 3, 4]

    def test_collect_descendants_deep_chain(self):
        """Test a chain of a couple hundred processes is fully collected."""
        records = [ProcessRecord(pid, pid - 1, f"p{pid}") for pid in range(2, 202)]

        assert len(collect_descendants(records, 1)) == 200


def test_children_index_keeps_first_duplicate():
    """Test the parent index drops later records for an already-seen pid."""
    records = [
        ProcessRecord(11, 10, "first"),
        ProcessRecord(11, 10, "second"),
        ProcessRecord(12, 10, "other"),
    ]

    index = children_index(records)

    assert index == {10: [ProcessRecord(11, 10, "first"), ProcessRecord(12, 10, "other")]}


def test_build_tree():
    """Test build_tree combines the root and its descendants."""
    tree = build_tree(_records(), 100)

    assert tree == ProcessTree(
        root=ProcessRecord(100, 1, "target"),
        descendants=(ProcessRecord(101, 100, "child_a"), ProcessRecord(102, 101, "grandchild")),
    )


def test_build_tree_missing_root():
    """Test build_tree returns None when the root is gone."""
    assert build_tree(_records(), 999) is None


def test_build_tree_accepts_iterator():
    """Test build_tree can consume a one-shot iterable."""
    tree = build_tree(iter(_records()), 101)

    assert tree is not None
    assert [record.pid for record in tree.records] == [101, 102]
