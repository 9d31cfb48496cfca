"""Command-line entry point for treemon."""

import argparse
import logging
import resource
import sys
from collections.abc import Callable

from treemon.monitor import EXIT_INTERRUPTED, EXIT_TERMINATED, TreeMonitor
from treemon.report import ConsoleReporter

logger = logging.getLogger(__name__)

EXIT_USAGE = 1
DEFAULT_INTERVAL = 3
DEFAULT_CPU_LIMIT = 600


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit code 1."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"ERROR: {message}\n")


def _int_at_least(minimum: int) -> Callable[[str], int]:
    """Build an argparse type that accepts integers no smaller than minimum."""

    def convert(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
        if number < minimum:
            raise argparse.ArgumentTypeError(f"must be at least {minimum}: {value!r}")
        return number

    return convert


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="treemon",
        description=(
            "Watch a process and everything it spawns; once it exits, "
            "kill whatever it left behind."
        ),
    )
    parser.add_argument("target_pid", type=_int_at_least(1), help="pid of the process to watch")
    parser.add_argument(
        "interval",
        type=_int_at_least(0),
        nargs="?",
        default=DEFAULT_INTERVAL,
        help=f"seconds between reports (default: {DEFAULT_INTERVAL})",
    )
    parser.add_argument(
        "--tui",
        action="store_true",
        help="show the monitored tree in a live table instead of a text log",
    )
    parser.add_argument(
        "--cpu-limit",
        type=_int_at_least(0),
        default=DEFAULT_CPU_LIMIT,
        metavar="SECONDS",
        help=f"CPU time limit for treemon itself, 0 for none (default: {DEFAULT_CPU_LIMIT})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="log more to stderr (repeat for debug output)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def set_cpu_limit(seconds: int) -> None:
    """Cap this process's CPU time so a stuck monitor cannot spin forever."""
    if seconds <= 0:
        return
    try:
        resource.setrlimit(resource.RLIMIT_CPU, (seconds, seconds))
    except (ValueError, OSError) as exc:
        logger.warning("Could not set CPU limit to %d s: %s", seconds, exc)


def run_console(target_pid: int, interval: int) -> int:
    monitor = TreeMonitor(target_pid, poll_interval=interval, reporter=ConsoleReporter())
    try:
        return monitor.run()
    except KeyboardInterrupt:
        logger.info("Interrupted while watching %d", target_pid)
        return EXIT_INTERRUPTED


def run_tui(target_pid: int, interval: int) -> int:
    from treemon.app import TreemonApp

    app = TreemonApp(target_pid, poll_interval=interval)
    app.run()
    if app.return_code != EXIT_TERMINATED:
        return app.return_code if app.return_code is not None else EXIT_INTERRUPTED

    # The live table is gone by now; leave the cleanup record on stdout
    reporter = ConsoleReporter()
    reporter.cleanup(app.terminated)
    for record in app.terminated:
        reporter.terminating(record)
    reporter.finished()
    return EXIT_TERMINATED


def main(argv: list[str] | None = None) -> int:
    """Entry point for treemon."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    set_cpu_limit(args.cpu_limit)

    if args.tui:
        return run_tui(args.target_pid, args.interval)
    return run_console(args.target_pid, args.interval)


if __name__ == "__main__":
    sys.exit(main())
