"""Process table snapshots for treemon.

A snapshot is captured once per loop pass as ps-style text (so it can be
dumped verbatim) and parsed into ProcessRecord values straight away. All
knowledge of the text layout lives in this module.
"""

import logging
import os
import re
import signal
import time

import psutil

from treemon.models import ProcessRecord

logger = logging.getLogger(__name__)

HEADER = f"{'USER':<12} {'PID':>7} {'PPID':>7} S {'STARTED':>8} CMD"

# owner, pid, ppid, state, start time, command
_LINE_RE = re.compile(
    r"^(?P<owner>\S+)\s+(?P<pid>\d+)\s+(?P<ppid>\d+)\s+(?P<state>\S+)\s+"
    r"(?P<started>\d{2}:\d{2}:\d{2})\s+(?P<command>\S.*?)\s*$"
)

_STATE_LETTERS = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_IDLE: "I",
}

_ATTRS = [
    "pid",
    "ppid",
    "username",
    "uids",
    "status",
    "create_time",
    "name",
    "cmdline",
]


def format_line(
    owner: str,
    pid: int,
    ppid: int,
    state: str,
    started: str,
    command: str,
) -> str:
    """Format one snapshot line in the column layout parse_snapshot expects."""
    return f"{owner:<12} {pid:>7} {ppid:>7} {state} {started:>8} {command}"


def capture_snapshot() -> str:
    """
    List every process owned by the current effective user as ps-style text.

    Lines are sorted by start time ascending. Processes that disappear or
    deny access while being read are skipped. Returns an empty string if the
    process table cannot be read at all.
    """
    uid = os.geteuid()
    rows: list[tuple[float, int, str]] = []

    try:
        for proc in psutil.process_iter(attrs=_ATTRS):
            try:
                with proc.oneshot():
                    info = proc.info
                uids = info.get("uids")
                if uids is None or uids.effective != uid:
                    continue

                name = info.get("name") or ""
                cmdline = info.get("cmdline") or []
                # One line per process, even for arguments with embedded newlines
                command = " ".join(" ".join(cmdline).split())
                if not command:
                    command = f"[{name}]"
                create_time = info.get("create_time") or 0.0

                line = format_line(
                    owner=info.get("username") or str(uid),
                    pid=info["pid"],
                    ppid=info.get("ppid") or 0,
                    state=_STATE_LETTERS.get(info.get("status"), "?"),
                    started=time.strftime("%H:%M:%S", time.localtime(create_time)),
                    command=command,
                )
                rows.append((create_time, info["pid"], line))

            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
    except psutil.Error as exc:
        logger.warning("Could not read the process table: %s", exc)
        return ""

    rows.sort(key=lambda row: (row[0], row[1]))
    return "\n".join([HEADER, *(line for _, _, line in rows)]) + "\n"


def parse_snapshot(text: str) -> list[ProcessRecord]:
    """
    Parse snapshot text into records, keeping the text's line order.

    The pid is taken from the pid column only, so a number that happens to
    appear in a command line is never mistaken for a pid. Lines that do not
    fit the column layout (the header, blank lines, truncated output) are
    skipped.
    """
    records: list[ProcessRecord] = []
    for line in text.splitlines():
        match = _LINE_RE.match(line)
        if match is None:
            if line.strip() and line != HEADER:
                logger.debug("Skipping unparsable snapshot line: %r", line)
            continue
        records.append(
            ProcessRecord(
                pid=int(match["pid"]),
                parent_pid=int(match["ppid"]),
                command=match["command"],
            )
        )
    return records


def send_kill(pid: int, sig: int = signal.SIGKILL) -> None:
    """Send a signal to a pid without waiting for or checking the outcome."""
    try:
        psutil.Process(pid).send_signal(sig)
    except psutil.NoSuchProcess:
        logger.debug("Process %d already gone", pid)
    except psutil.AccessDenied:
        logger.info("Not permitted to signal process %d", pid)
