#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Shared core for alrm.

"""
from __future__ import annotations
import os, sys
import json, time
from datetime import datetime, timedelta
from datetime import time as _time

from dateutil.relativedelta import relativedelta
from rich.text import Text


# ==============================================================================
# TABLE OF CONTENTS (major sections)
# 1) Config & defaults
# 2) Diagnostics (diag, diag_log)
# 3) Countdown helpers (target date, formatting)
# ==============================================================================


# ==============================================================================
# SECTION: Config & defaults
# ==============================================================================
# --- TOML loading helpers ---


try:
    import tomllib  # Python 3.11+
except Exception:
    try:
        import tomli as tomllib  # Python 3.10 and earlier (pip install tomli)
    except Exception:
        tomllib = None


# --- Defaults ---
_DEFAULTS = {
    "countdown_style": "bold bright_yellow",
    "refresh_interval": 1.0,        # seconds between redraws with --update
    "color": "auto",                # auto | always | never
    "clock_format": "12h",          # 12h | 24h
    "update": False,                # default for --update
}

# --- Config cache ---
_CONF_CACHE = None


def _diag_enabled() -> bool:
    return os.environ.get("ALRM_DIAG") == "1"


def _read_toml(path: str) -> dict:
    # Fast path: missing file => no config here
    if not path or not os.path.isfile(path):
        return {}

    env_path = os.environ.get("ALRM_CONFIG") or ""
    env_abs = os.path.abspath(os.path.expanduser(env_path)) if env_path else ""
    is_env_path = bool(env_abs and path == env_abs)

    # File exists, but we cannot parse TOML (Python < 3.11 and no tomli)
    if tomllib is None:
        if is_env_path:
            raise RuntimeError(
                f"ALRM_CONFIG is set but TOML parser is unavailable for {path}. "
                "Install tomli or upgrade to Python 3.11+."
            )
        diag(f"Config present but TOML parser unavailable; using defaults: {path}")
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f) or {}
    except (OSError, ValueError) as e:
        if is_env_path:
            raise RuntimeError(f"ALRM_CONFIG parse failed for {path}: {e}") from e
        diag(f"Config file found but could not be parsed; using defaults: {path}: {e}")
        return {}


def _config_paths() -> list[str]:
    env_path = os.environ.get("ALRM_CONFIG")
    if env_path:
        ap = os.path.abspath(os.path.expanduser(env_path))
        if (not os.path.exists(ap)) or os.path.isdir(ap):
            diag(f"ALRM_CONFIG is set but the file is missing; defaults will be used: {ap}")
        return [ap]

    def _candidates_in_dir(d: str) -> list[str]:
        d = os.path.abspath(os.path.expanduser(d))
        return [
            os.path.join(d, "config-alrm.toml"),
            os.path.join(d, "alrm.toml"),
        ]

    paths: list[str] = []

    # XDG config (explicit, then default)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        paths.extend(_candidates_in_dir(os.path.join(xdg, "alrm")))
    paths.extend(_candidates_in_dir(os.path.expanduser("~/.config/alrm")))

    # module-adjacent
    moddir = os.path.dirname(os.path.abspath(__file__))
    paths.extend(_candidates_in_dir(moddir))

    seen = set()
    out = []
    for p in paths:
        if p in seen:
            continue
        seen.add(p)
        out.append(p)
    return out


def _normalize_keys(d: dict) -> dict:
    # allow users to write keys in any case
    out = {}
    for k, v in (d or {}).items():
        kk = str(k).strip().lower()
        out[kk] = v
    return out


def _load_config() -> dict:
    cfg = dict(_DEFAULTS)
    chosen = None

    paths = _config_paths()
    for p in paths:
        data = _read_toml(p)
        if data:
            cfg.update(_normalize_keys(data))
            chosen = p
            break

    if chosen:
        diag(f"Using config: {chosen}")
    else:
        diag("No config file found; using defaults. Search order: " + ", ".join(paths))
    return cfg


def _get_config() -> dict:
    global _CONF_CACHE
    if _CONF_CACHE is None:
        _CONF_CACHE = _load_config()
    return _CONF_CACHE


def _conf_raw(key: str, conf: dict | None = None):
    return (conf if conf is not None else _get_config()).get(key)


def conf_str(key: str, default: str, choices: set[str] | None = None, conf: dict | None = None) -> str:
    v = _conf_raw(key, conf)
    if v is None:
        return str(default)
    s = str(v).strip().lower() if choices else str(v).strip()
    if not s:
        return str(default)
    if choices and s not in choices:
        diag(f"config {key}={v!r} is not one of {sorted(choices)}; using {default!r}")
        return str(default)
    return s


def conf_float(
    key: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
    conf: dict | None = None,
) -> float:
    v = _conf_raw(key, conf)
    try:
        out = float(str(v).strip())
    except (TypeError, ValueError):
        out = float(default)
    if out != out:  # NaN
        out = float(default)
    if min_value is not None and out < min_value:
        out = float(min_value)
    if max_value is not None and out > max_value:
        out = float(max_value)
    return out


def conf_bool(key: str, default: bool = False, conf: dict | None = None) -> bool:
    v = _conf_raw(key, conf)
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("0", "false", "no", "off", "none"):
        return False
    return bool(default)


def color_enabled(mode: str, isatty: bool) -> bool:
    """Resolve the `color` setting against the stream and NO_COLOR."""
    if mode == "never":
        return False
    if mode == "always":
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return bool(isatty)


# ==============================================================================
# SECTION: Diagnostics (diag, diag_log)
# ==============================================================================
def _diag_log_path() -> str:
    base = os.environ.get("XDG_STATE_HOME") or os.path.expanduser("~/.local/state")
    return os.path.join(base, "alrm", "diag.jsonl")


def diag_log(msg, source: str = "alrm") -> None:
    """Append a JSONL diagnostic log entry (when ALRM_DIAG_LOG=1)."""
    if os.environ.get("ALRM_DIAG_LOG") != "1":
        return
    path = _diag_log_path()
    try:
        max_bytes = int(os.environ.get("ALRM_DIAG_LOG_MAX_BYTES") or 262144)
    except ValueError:
        max_bytes = 262144
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        if max_bytes > 0 and os.path.exists(path) and os.stat(path).st_size > max_bytes:
            os.replace(path, path.replace(".jsonl", f".{int(time.time())}.jsonl"))
        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "source": source,
            "pid": os.getpid(),
        }
        if isinstance(msg, dict):
            payload["msg"] = str(msg.get("msg") or "")
            payload["data"] = msg
        else:
            payload["msg"] = str(msg)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str) + "\n")
    except OSError as e:
        if _diag_enabled():
            sys.stderr.write(f"[alrm] diag log unavailable: {e}\n")


def diag(msg, source: str = "alrm") -> None:
    """Write diagnostics to stderr when ALRM_DIAG=1 and append to diag log when ALRM_DIAG_LOG=1."""
    if _diag_enabled():
        text = msg.get("msg") if isinstance(msg, dict) else msg
        sys.stderr.write(f"[alrm] {text}\n")
    diag_log(msg, source)


# ==============================================================================
# SECTION: Countdown helpers
# ==============================================================================
def resolve_target(t: _time, now: datetime) -> datetime:
    """Today at *t*, or tomorrow if *t* has already passed today."""
    target = datetime.combine(now.date(), t)
    if t < now.time():
        target = target + relativedelta(days=+1)
    return target


def relative_day(target: datetime, now: datetime) -> str:
    return "today" if target.date() == now.date() else "tomorrow"


def fmt_hhmmss(delta: timedelta) -> str:
    """Format a remaining duration as HH:MM:SS (never negative)."""
    secs = max(0, int(delta.total_seconds()))
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def fmt_clock(t: _time, clock_format: str = "12h") -> str:
    """'6:30pm' style (12h) or '18:30' (24h); seconds only when set."""
    if clock_format == "24h":
        return t.strftime("%H:%M:%S") if t.second else t.strftime("%H:%M")
    hour12 = t.hour % 12 or 12
    suffix = "am" if t.hour < 12 else "pm"
    sec = f":{t.second:02d}" if t.second else ""
    return f"{hour12}:{t.minute:02d}{sec}{suffix}"


def countdown_line(
    target: datetime,
    now: datetime,
    *,
    style: str = _DEFAULTS["countdown_style"],
    clock_format: str = "12h",
) -> Text:
    """'01:29:59 until 6:30pm today' with the remaining time highlighted."""
    line = Text()
    line.append(fmt_hhmmss(target - now), style=style)
    line.append(f" until {fmt_clock(target.time(), clock_format)} {relative_day(target, now)}")
    return line


def quarter_hours_after(now: datetime, count: int = 4, clock_format: str = "12h") -> list[str]:
    """The next *count* quarter hours after *now*, formatted for suggestions."""
    base = now.replace(second=0, microsecond=0)
    base = base + timedelta(minutes=15 - base.minute % 15)
    return [fmt_clock((base + timedelta(minutes=15 * i)).time(), clock_format) for i in range(count)]


# ==============================================================================
# SECTION: Settings
# ==============================================================================
COUNTDOWN_STYLE  = conf_str("countdown_style", _DEFAULTS["countdown_style"])
REFRESH_INTERVAL = conf_float("refresh_interval", _DEFAULTS["refresh_interval"], min_value=0.1, max_value=60.0)
COLOR_MODE       = conf_str("color", _DEFAULTS["color"], choices={"auto", "always", "never"})
CLOCK_FORMAT     = conf_str("clock_format", _DEFAULTS["clock_format"], choices={"12h", "24h"})
UPDATE_DEFAULT   = conf_bool("update", _DEFAULTS["update"])
