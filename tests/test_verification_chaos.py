"""Verification Test: Chaos Monkey - process churn while monitoring.

Randomly starts and terminates children of the test process while a
TreeMonitor watches it, and checks that snapshots keep coming without the
loop crashing on processes that vanish mid-capture.
"""

import multiprocessing
import os
import random
import subprocess
import time

from treemon.monitor import TreeMonitor
from treemon.snapshot import capture_snapshot, parse_snapshot
from treemon.tree import collect_descendants


def dummy_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_monitor_survives_process_churn(self):
        """
        Test that the monitor keeps sampling while children come and go.

        The target is this test process, so the tree is never empty and the
        cleanup path is never taken; nothing may be signalled.
        """
        killed: list[int] = []
        monitor = TreeMonitor(os.getpid(), poll_interval=0.1, kill=killed.append)
        processes = []

        try:
            monitor.start()

            start_time = time.time()
            while time.time() - start_time < 3.0:
                for _ in range(3):
                    p = multiprocessing.Process(target=dummy_worker, args=(10.0,))
                    p.start()
                    processes.append(p)

                alive = [p for p in processes if p.is_alive()]
                if len(alive) > 6:
                    for p in random.sample(alive, 3):
                        p.terminate()

                time.sleep(0.1)

            assert monitor.is_running, "Monitor crashed during churn"
            assert monitor.state.iteration >= 5
            assert monitor.last_tree is not None
            assert monitor.last_tree.root.pid == os.getpid()
            assert killed == []

        finally:
            monitor.stop()
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_capture_handles_terminated_children(self):
        """Test capturing right after children die still parses cleanly."""
        processes = [
            multiprocessing.Process(target=dummy_worker, args=(60.0,)) for _ in range(10)
        ]
        for p in processes:
            p.start()

        try:
            for p in processes[:5]:
                p.terminate()

            records = parse_snapshot(capture_snapshot())
            descendant_pids = {record.pid for record in collect_descendants(records, os.getpid())}

            for p in processes[5:]:
                assert p.pid in descendant_pids
        finally:
            for p in processes:
                if p.is_alive():
                    p.terminate()
            for p in processes:
                p.join(timeout=1.0)

    def test_zombie_children_are_listed(self):
        """Test an exited but unreaped child still shows up in the tree."""
        p = subprocess.Popen(["true"])

        try:
            # Give it time to exit without being reaped
            time.sleep(0.5)

            records = parse_snapshot(capture_snapshot())
            zombie = [record for record in records if record.pid == p.pid]

            assert zombie, "Unreaped child should still be in the snapshot"
            assert zombie[0].parent_pid == os.getpid()
        finally:
            p.wait(timeout=1.0)
