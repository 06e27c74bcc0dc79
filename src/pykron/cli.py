"""Command-line interface for pykron.

Expressions have five whitespace-separated fields:

    second  minute  hour  day-of-month  month

Each field accepts ``*``, ``N``, ``N-M``, ``[N]/M``, comma lists of these,
and the aliases ``f``/``l`` for the field's first and last value.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import NoReturn
from zoneinfo import ZoneInfoNotFoundError

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pykron import __version__
from pykron.config import settings
from pykron.cron import (
    CronParseError,
    KronScheduler,
    build_schedule,
    describe_expression,
    do_while,
    iter_next,
    validate_expression,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else settings.log_level.upper()
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
    )


def _positive_int(value: str) -> int:
    """argparse type for counts of one or more."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _build_or_exit(expr: str, tz: str | None) -> KronScheduler:
    """Build a scheduler, printing the error and exiting on failure."""
    try:
        return build_schedule(expr, tz)
    except CronParseError as e:
        console.print(f"[red]Invalid expression:[/red] {e}")
        sys.exit(1)
    except ZoneInfoNotFoundError:
        console.print(f"[red]Unknown timezone:[/red] {tz}")
        sys.exit(1)


def cmd_next(args: argparse.Namespace) -> None:
    """Show the next occurrences of an expression."""
    scheduler = _build_or_exit(args.expr, args.tz)

    relatively = None
    if args.start:
        try:
            relatively = datetime.fromisoformat(args.start)
        except ValueError:
            console.print(f"[red]Invalid datetime:[/red] {args.start}")
            console.print("Use ISO format: YYYY-MM-DDTHH:MM:SS")
            sys.exit(1)

    moments = list(iter_next(scheduler, relatively, args.count))
    if not moments:
        console.print("[yellow]This schedule never matches a calendar date.[/yellow]")
        sys.exit(1)

    table = Table(title=f"Next occurrences of '{args.expr}'")
    table.add_column("#", style="cyan")
    table.add_column("Time", style="blue")
    table.add_column("Weekday", style="magenta")

    for index, moment in enumerate(moments, start=1):
        table.add_row(str(index), moment.isoformat(), moment.strftime("%A"))

    console.print(table)


def cmd_validate(args: argparse.Namespace) -> None:
    """Check whether an expression is valid."""
    if validate_expression(args.expr):
        console.print(f"[green]Valid:[/green] {args.expr}")
        return
    console.print(f"[red]Invalid:[/red] {args.expr}")
    sys.exit(1)


def cmd_describe(args: argparse.Namespace) -> None:
    """Describe an expression in words."""
    if not validate_expression(args.expr):
        console.print(describe_expression(args.expr), style="red")
        sys.exit(1)
    console.print(describe_expression(args.expr))


def cmd_watch(args: argparse.Namespace) -> None:
    """Wait for each occurrence of an expression and print it."""
    scheduler = _build_or_exit(args.expr, args.tz)
    fired = 0

    def _report(moment: datetime) -> bool:
        nonlocal fired
        fired += 1
        console.print(f"[green]{fired}[/green] {moment.isoformat()}")
        return args.count is None or fired < args.count

    console.print(f"Watching '{args.expr}' (Ctrl+C to stop)")
    try:
        asyncio.run(do_while(scheduler, _report))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")


def cmd_version(args: argparse.Namespace) -> None:
    """Show version information."""
    console.print(f"pykron v{__version__}")


def main() -> NoReturn:
    """Main entry point for the pykron CLI."""
    parser = argparse.ArgumentParser(
        prog="pykron",
        description="pykron - crontab-like schedules with second resolution",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # Next command
    next_parser = subparsers.add_parser(
        "next",
        help="Show upcoming occurrences of an expression",
        description="Compute the next instants matching an expression.",
        epilog="""Examples:
  pykron next "0 0 12 * *"                       Noon every day
  pykron next "0/15 * * * *" -n 8                Every 15 seconds
  pykron next "0 0 0 31 *" --from 2021-02-01     Month ends with 31 days""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    next_parser.add_argument("expr", help="Schedule expression (quote it)")
    next_parser.add_argument(
        "-n", "--count", type=_positive_int, default=5,
        help="Number of occurrences to show (default: 5)"
    )
    next_parser.add_argument(
        "--from", dest="start", default=None,
        help="Reference time in ISO format (default: now)"
    )
    next_parser.add_argument(
        "--tz", default=None,
        help="Timezone the fields are matched in (IANA name or 'local')"
    )
    next_parser.set_defaults(func=cmd_next)

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Check whether an expression is valid",
    )
    validate_parser.add_argument("expr", help="Schedule expression (quote it)")
    validate_parser.set_defaults(func=cmd_validate)

    # Describe command
    describe_parser = subparsers.add_parser(
        "describe",
        help="Describe an expression in words",
    )
    describe_parser.add_argument("expr", help="Schedule expression (quote it)")
    describe_parser.set_defaults(func=cmd_describe)

    # Watch command
    watch_parser = subparsers.add_parser(
        "watch",
        help="Wait for occurrences and print them as they happen",
    )
    watch_parser.add_argument("expr", help="Schedule expression (quote it)")
    watch_parser.add_argument(
        "-n", "--count", type=_positive_int, default=None,
        help="Stop after this many occurrences (default: run until interrupted)"
    )
    watch_parser.add_argument(
        "--tz", default=None,
        help="Timezone the fields are matched in (IANA name or 'local')"
    )
    watch_parser.set_defaults(func=cmd_watch)

    # Version command
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=cmd_version)

    args = parser.parse_args()
    setup_logging(args.verbose)

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(0)

    args.func(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
