#!/usr/bin/env python3
"""
alrm: a quick countdown timer for your terminal.

Alarms and timers are useful, but sometimes you just want to know how long
you have left until an appointment, or until lunch. Give alrm a time of day
and it tells you how long you have until then.

  alrm 9          # prints the time until 9:00 am
  alrm 9:30pm     # prints the time until 9:30 pm
  alrm 9:00 -u    # counts down to 9:00 am and then exits
"""

from __future__ import annotations

import argparse
import sys
import time
from datetime import datetime
from datetime import time as _time
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.live import Live

from prompt_toolkit import prompt
from prompt_toolkit.completion import FuzzyCompleter, WordCompleter

import alrm_core as core
from alrm_parse import TimeParseError, parse_time
from alrm_report import print_report

__version__ = "0.1.0"

# ──────────────────────────────────────────────────────────────────────────────
# Constants / styling
# ──────────────────────────────────────────────────────────────────────────────
COLORS = {
    'warning': 'bright_yellow',
    'muted': 'grey58',
}

EXIT_OK = 0
EXIT_PARSE_ERROR = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alrm",
        description="A quick countdown timer",
        epilog=(__doc__ or "").split("\n\n", 2)[-1],
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "time",
        nargs="*",
        help="Count down to TIME. If TIME has already passed today, then count down to TIME tomorrow.",
    )
    parser.add_argument(
        "-u", "--update",
        action="store_true",
        default=core.UPDATE_DEFAULT,
        help="Update the countdown until the time has passed and then exit",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def make_console(*, stderr: bool = False, no_color: bool = False) -> Console:
    mode = "never" if no_color else core.COLOR_MODE
    stream = sys.stderr if stderr else sys.stdout
    use_color = core.color_enabled(mode, stream.isatty())
    return Console(
        stderr=stderr,
        highlight=False,
        force_terminal=True if mode == "always" else None,
        no_color=not use_color,
    )


def ask_time(console: Console, now: datetime) -> Optional[_time]:
    """Prompt until the user types a time we can parse (None when cancelled)."""
    suggestions = core.quarter_hours_after(now, clock_format=core.CLOCK_FORMAT)
    completer = FuzzyCompleter(WordCompleter(suggestions, match_middle=True))
    console.print(f"[{COLORS['muted']}]Count down to what time? (e.g. {', '.join(suggestions[:2])})[/]")
    while True:
        try:
            text = prompt("⏰ ", completer=completer).strip()
        except (KeyboardInterrupt, EOFError):
            console.print(f"\n[{COLORS['warning']}]Cancelled by user[/]")
            return None
        try:
            return parse_time(text)
        except TimeParseError as e:
            core.diag({"msg": "prompted time rejected", "input": text, "kind": e.kind})
            print_report(e, console)


def run_countdown(
    console: Console,
    target: datetime,
    *,
    now: Callable[[], datetime] = datetime.now,
    sleep: Callable[[float], None] = time.sleep,
    interval: float = core.REFRESH_INTERVAL,
) -> int:
    """Redraw the countdown line in place until *target* has passed."""

    def _line():
        return core.countdown_line(
            target, now(), style=core.COUNTDOWN_STYLE, clock_format=core.CLOCK_FORMAT
        )

    try:
        with Live(_line(), console=console, auto_refresh=False) as live:
            while now() < target:
                sleep(interval)
                live.update(_line(), refresh=True)
    except KeyboardInterrupt:
        return EXIT_CANCELLED
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None, *, now: Callable[[], datetime] = datetime.now) -> int:
    args = build_parser().parse_args(argv)
    out = make_console(no_color=args.no_color)
    err = make_console(stderr=True, no_color=args.no_color)

    time_str = " ".join(args.time)
    if not time_str and sys.stdin.isatty() and sys.stdout.isatty():
        t = ask_time(err, now())
        if t is None:
            return EXIT_CANCELLED
    else:
        try:
            t = parse_time(time_str)
        except TimeParseError as e:
            core.diag({"msg": "time rejected", "input": time_str, "kind": e.kind})
            print_report(e, err)
            return EXIT_PARSE_ERROR

    target = core.resolve_target(t, now())
    core.diag(f"counting down to {target.isoformat()}")

    if not args.update:
        out.print(core.countdown_line(
            target, now(), style=core.COUNTDOWN_STYLE, clock_format=core.CLOCK_FORMAT
        ))
        return EXIT_OK
    return run_countdown(out, target, now=now)


def cli() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
