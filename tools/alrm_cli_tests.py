#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
alrm CLI Tests
 - Countdown helpers (today vs. tomorrow, HH:MM:SS, clock text)
 - Config loading from a temporary TOML file via ALRM_CONFIG
 - Command-line behaviour: output, exit codes, error reports, --update loop

Run:
  python3 tools/alrm_cli_tests.py
Optional:
  python3 tools/alrm_cli_tests.py --only config --verbose
"""

import importlib
import io
import json
import sys, os
import tempfile
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from datetime import datetime, time, timedelta

HERE = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(HERE))

core = importlib.import_module("alrm_core")
app = importlib.import_module("alrm")

from rich.console import Console

# -------- Helpers -------------------------------------------------------------

def expect(cond, msg):
    if not cond:
        raise AssertionError(msg)

@contextmanager
def env(**values):
    """Temporarily set (or, with None, unset) environment variables."""
    saved = {k: os.environ.get(k) for k in values}
    try:
        for k, v in values.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
        yield
    finally:
        for k, v in saved.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v

def run_cli(argv, now):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = app.main(argv, now=lambda: now)
    return code, out.getvalue(), err.getvalue()

class FakeClock:
    def __init__(self, start):
        self.current = start
        self.sleeps = 0

    def now(self):
        return self.current

    def sleep(self, secs):
        self.sleeps += 1
        self.current = self.current + timedelta(seconds=secs)

MORNING = datetime(2024, 5, 1, 10, 0, 0)
EVENING = datetime(2024, 5, 1, 20, 0, 0)

# -------- Countdown helpers ---------------------------------------------------

def test_resolve_target_today_and_tomorrow():
    later = core.resolve_target(time(18, 0), MORNING)
    expect(later == datetime(2024, 5, 1, 18, 0), f"later today, got {later}")
    passed = core.resolve_target(time(9, 0), MORNING)
    expect(passed == datetime(2024, 5, 2, 9, 0), f"already passed rolls to tomorrow, got {passed}")
    exact = core.resolve_target(time(10, 0), MORNING)
    expect(exact == MORNING, f"the current second still counts as today, got {exact}")

def test_resolve_target_month_end():
    got = core.resolve_target(time(1, 0), datetime(2024, 2, 29, 23, 0))
    expect(got == datetime(2024, 3, 1, 1, 0), f"rolls across month end, got {got}")

def test_relative_day():
    expect(core.relative_day(datetime(2024, 5, 1, 18, 0), MORNING) == "today", "same date")
    expect(core.relative_day(datetime(2024, 5, 2, 9, 0), MORNING) == "tomorrow", "next date")

def test_fmt_hhmmss():
    expect(core.fmt_hhmmss(timedelta(hours=1, minutes=2, seconds=3)) == "01:02:03", "h:m:s")
    expect(core.fmt_hhmmss(timedelta(seconds=59.9)) == "00:00:59", "partial seconds truncate")
    expect(core.fmt_hhmmss(timedelta(seconds=-5)) == "00:00:00", "never negative")

def test_fmt_clock():
    cases = [
        (time(18, 30), "12h", "6:30pm"),
        (time(6, 0), "12h", "6:00am"),
        (time(0, 5), "12h", "12:05am"),
        (time(12, 0), "12h", "12:00pm"),
        (time(6, 30, 15), "12h", "6:30:15am"),
        (time(18, 30), "24h", "18:30"),
        (time(6, 30, 15), "24h", "06:30:15"),
    ]
    for t, fmt, want in cases:
        got = core.fmt_clock(t, fmt)
        expect(got == want, f"{t} {fmt}: got {got!r}, want {want!r}")

def test_countdown_line():
    line = core.countdown_line(datetime(2024, 5, 1, 18, 0), MORNING)
    expect(line.plain == "08:00:00 until 6:00pm today", f"got {line.plain!r}")
    line = core.countdown_line(datetime(2024, 5, 2, 6, 0), EVENING, clock_format="24h")
    expect(line.plain == "10:00:00 until 06:00 tomorrow", f"got {line.plain!r}")

def test_quarter_hours_after():
    got = core.quarter_hours_after(datetime(2024, 5, 1, 14, 7))
    expect(got == ["2:15pm", "2:30pm", "2:45pm", "3:00pm"], f"got {got}")
    got = core.quarter_hours_after(datetime(2024, 5, 1, 23, 45), count=2, clock_format="24h")
    expect(got == ["00:00", "00:15"], f"wraps past midnight, got {got}")

# -------- Config --------------------------------------------------------------

def test_config_from_env_file():
    with tempfile.TemporaryDirectory() as td:
        path = os.path.join(td, "alrm.toml")
        with open(path, "w", encoding="utf-8") as f:
            f.write('Clock_Format = "24h"\nrefresh_interval = 0.5\ncolor = "never"\n')
        with env(ALRM_CONFIG=path, ALRM_DIAG=None):
            cfg = core._load_config()
    expect(cfg["clock_format"] == "24h", f"keys are case-insensitive: {cfg}")
    expect(cfg["refresh_interval"] == 0.5, f"float survives: {cfg}")
    expect(cfg["countdown_style"] == core._DEFAULTS["countdown_style"], "untouched keys keep defaults")

def test_config_missing_env_file_uses_defaults():
    with tempfile.TemporaryDirectory() as td:
        with env(ALRM_CONFIG=os.path.join(td, "nope.toml"), ALRM_DIAG=None):
            cfg = core._load_config()
    expect(cfg == core._DEFAULTS, f"defaults expected, got {cfg}")

def test_config_broken_env_file_raises():
    with tempfile.TemporaryDirectory() as td:
        path = os.path.join(td, "alrm.toml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("color = [never\n")
        with env(ALRM_CONFIG=path, ALRM_DIAG=None):
            try:
                core._load_config()
                assert False, "an explicit ALRM_CONFIG that does not parse must be fatal"
            except RuntimeError as e:
                expect("ALRM_CONFIG" in str(e), f"unexpected message: {e}")

def test_config_broken_xdg_file_is_ignored():
    with tempfile.TemporaryDirectory() as td:
        os.makedirs(os.path.join(td, "alrm"))
        with open(os.path.join(td, "alrm", "alrm.toml"), "w", encoding="utf-8") as f:
            f.write("color = [never\n")
        with env(ALRM_CONFIG=None, XDG_CONFIG_HOME=td, ALRM_DIAG=None):
            expect(core._config_paths()[0].startswith(td), "XDG config is searched first")
            cfg = core._load_config()
    expect(cfg["color"] == core._DEFAULTS["color"], f"broken config falls back, got {cfg}")

def test_conf_accessors():
    conf = {"refresh_interval": "500", "color": "LOUD", "clock_format": "24H", "update": "yes"}
    expect(core.conf_float("refresh_interval", 1.0, 0.1, 60.0, conf=conf) == 60.0, "clamped to max")
    expect(core.conf_float("missing", 1.0, conf=conf) == 1.0, "default when absent")
    expect(core.conf_str("color", "auto", {"auto", "always", "never"}, conf=conf) == "auto", "bad choice")
    expect(core.conf_str("clock_format", "12h", {"12h", "24h"}, conf=conf) == "24h", "choices ignore case")
    expect(core.conf_bool("update", False, conf=conf) is True, "yes is true")
    expect(core.conf_bool("missing", True, conf=conf) is True, "default when absent")

def test_color_enabled():
    with env(NO_COLOR=None):
        expect(core.color_enabled("auto", True) is True, "auto on a tty")
        expect(core.color_enabled("auto", False) is False, "auto off a tty")
        expect(core.color_enabled("never", True) is False, "never")
        expect(core.color_enabled("always", False) is True, "always")
    with env(NO_COLOR="1"):
        expect(core.color_enabled("auto", True) is False, "NO_COLOR wins over auto")

def test_diag_log_writes_jsonl():
    with tempfile.TemporaryDirectory() as td:
        with env(XDG_STATE_HOME=td, ALRM_DIAG_LOG="1", ALRM_DIAG=None):
            core.diag({"msg": "time rejected", "input": "63", "kind": "out_of_range"})
        path = os.path.join(td, "alrm", "diag.jsonl")
        with open(path, "r", encoding="utf-8") as f:
            rows = [json.loads(ln) for ln in f if ln.strip()]
    expect(len(rows) == 1, f"one entry expected, got {rows}")
    expect(rows[0]["msg"] == "time rejected" and rows[0]["data"]["input"] == "63", f"got {rows[0]}")

def test_diag_is_silent_by_default():
    err = io.StringIO()
    with env(ALRM_DIAG=None, ALRM_DIAG_LOG=None), redirect_stderr(err):
        core.diag("nothing to see")
    expect(err.getvalue() == "", f"unexpected output {err.getvalue()!r}")

# -------- CLI -----------------------------------------------------------------

def test_cli_prints_countdown():
    code, out, err = run_cli(["6pm", "--no-color"], MORNING)
    expect(code == 0, f"exit {code}, stderr={err}")
    expect("08:00:00 until" in out and "today" in out, f"got {out!r}")

def test_cli_joins_tokens():
    code, out, _err = run_cli(["6:30", "pm", "--no-color"], MORNING)
    expect(code == 0 and "08:30:00 until" in out, f"exit {code}, got {out!r}")

def test_cli_rolls_to_tomorrow():
    code, out, _err = run_cli(["6", "--no-color"], EVENING)
    expect(code == 0 and "10:00:00 until" in out and "tomorrow" in out, f"got {out!r}")

def test_cli_reports_parse_errors():
    code, out, err = run_cli(["18:30", "pm", "--no-color"], MORNING)
    expect(code == 1, f"parse errors exit 1, got {code}")
    expect(out == "", f"nothing on stdout, got {out!r}")
    expect("Time is overconstrained" in err, f"got {err!r}")
    expect("this is already 24-hour" in err and "so this is too much information" in err, err)

def test_cli_reports_out_of_range():
    code, _out, err = run_cli(["6555"], MORNING)
    expect(code == 1 and "hour field is out of range" in err, f"exit {code}, got {err!r}")
    expect("0..24" in err, f"allowed range is shown: {err!r}")

def test_cli_version():
    out = io.StringIO()
    try:
        with redirect_stdout(out):
            app.main(["--version"])
        assert False, "--version must exit"
    except SystemExit as e:
        expect(e.code == 0, f"exit {e.code}")
    expect(app.__version__ in out.getvalue(), f"got {out.getvalue()!r}")

def test_run_countdown_until_target():
    clock = FakeClock(datetime(2024, 5, 1, 17, 59, 57))
    buf = io.StringIO()
    console = Console(file=buf, width=80, no_color=True)
    code = app.run_countdown(
        console, datetime(2024, 5, 1, 18, 0), now=clock.now, sleep=clock.sleep, interval=1.0
    )
    expect(code == 0, f"exit {code}")
    expect(clock.sleeps == 3, f"one redraw per second, got {clock.sleeps}")
    expect("00:00:00 until 6:00pm today" in buf.getvalue(), f"got {buf.getvalue()!r}")

def test_run_countdown_past_target_returns_at_once():
    clock = FakeClock(datetime(2024, 5, 1, 18, 0, 1))
    console = Console(file=io.StringIO(), width=80)
    code = app.run_countdown(
        console, datetime(2024, 5, 1, 18, 0), now=clock.now, sleep=clock.sleep, interval=1.0
    )
    expect(code == 0 and clock.sleeps == 0, f"exit {code}, sleeps {clock.sleeps}")


# -------- Runner --------------------------------------------------------------

TESTS = [
    test_resolve_target_today_and_tomorrow,
    test_resolve_target_month_end,
    test_relative_day,
    test_fmt_hhmmss,
    test_fmt_clock,
    test_countdown_line,
    test_quarter_hours_after,
    test_config_from_env_file,
    test_config_missing_env_file_uses_defaults,
    test_config_broken_env_file_raises,
    test_config_broken_xdg_file_is_ignored,
    test_conf_accessors,
    test_color_enabled,
    test_diag_log_writes_jsonl,
    test_diag_is_silent_by_default,
    test_cli_prints_countdown,
    test_cli_joins_tokens,
    test_cli_rolls_to_tomorrow,
    test_cli_reports_parse_errors,
    test_cli_reports_out_of_range,
    test_cli_version,
    test_run_countdown_until_target,
    test_run_countdown_past_target_returns_at_once,
]

def main():
    import argparse
    ap = argparse.ArgumentParser()
    ap.add_argument("--only", help="substring filter for test names")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    selected = TESTS
    if args.only:
        selected = [fn for fn in TESTS if args.only.lower() in fn.__name__.lower()]

    fails = 0
    for fn in selected:
        try:
            fn()
            if args.verbose:
                print(f"✓ {fn.__name__}")
        except AssertionError as e:
            fails += 1
            print(f"✗ {fn.__name__}: {e}")
        except Exception as e:
            fails += 1
            print(f"✗ {fn.__name__}: unexpected error {e}")

    total = len(selected)
    print(f"\nDone: {total - fails}/{total} passing")
    sys.exit(1 if fails else 0)

if __name__ == "__main__":
    main()
