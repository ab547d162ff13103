#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Compiler-style reports for time parse errors.

    Error: hour field is out of range
       ╭─[time:1:1]
       │
     1 │ 63
       │ ─┬
       │  ╰── this is not in the proper range (0..24) for hour
    ───╯

Rendering only reads the spans stored on the error; it never re-scans input.
"""
from __future__ import annotations

import io
from typing import NamedTuple, Optional

from rich.console import Console
from rich.text import Text

from alrm_parse import (
    Field,
    IncompleteField,
    InvalidFormat,
    OutOfRange,
    Overconstrained,
    StringSection,
    TimeParseError,
)


# ──────────────────────────────────────────────────────────────────────────────
# Constants / styling
# ──────────────────────────────────────────────────────────────────────────────
STYLES = {
    'error': 'bold red',
    'margin': 'grey50',
    'field': 'bold green',
    'range': 'bold white',
    'note': 'bold',
    'incomplete': 'yellow',
    'out_of_range': 'bright_red',
    'invalid': 'bright_magenta',
    'hour': 'bright_cyan',
    'meridiem': 'bright_yellow',
}

_REPORT_WIDTH = 200


class Label(NamedTuple):
    section: StringSection
    message: Text
    style: str


def _field_text(field: Field) -> Text:
    return Text(str(field), style=STYLES['field'])


def report_labels(err: TimeParseError) -> list[Label]:
    """The underlined spans a report draws for *err*, left to right."""
    labels: list[Label] = []
    if isinstance(err, IncompleteField):
        if err.field is not Field.OVERALL:
            msg = Text.assemble(_field_text(err.field), " is missing")
            labels.append(Label(err.section, msg, STYLES['incomplete']))
    elif isinstance(err, OutOfRange):
        msg = Text.assemble(
            "this is not in the proper range (",
            (str(err.allowed), STYLES['range']),
            ") for ",
            _field_text(err.field),
        )
        labels.append(Label(err.section, msg, STYLES['out_of_range']))
    elif isinstance(err, InvalidFormat):
        if err.field is Field.OVERALL:
            msg = Text("could not make sense of this")
        else:
            msg = Text.assemble(_field_text(err.field), " has invalid format")
        labels.append(Label(err.section, msg, STYLES['invalid']))
    elif isinstance(err, Overconstrained):
        labels.append(Label(err.hour, Text("this is already 24-hour"), STYLES['hour']))
        labels.append(Label(err.meridiem, Text("so this is too much information"), STYLES['meridiem']))
    return sorted(labels, key=lambda lb: lb.section.range)


def report_note(err: TimeParseError) -> Optional[str]:
    field = getattr(err, "field", None)
    if field is Field.OVERALL and isinstance(err, (IncompleteField, InvalidFormat)):
        return "expected a time"
    return None


# ──────────────────────────────────────────────────────────────────────────────
# Layout
# ──────────────────────────────────────────────────────────────────────────────
def _display_line(text: str) -> str:
    # one column per character so spans stay aligned under the source
    return "".join(" " if ch in "\t\r\n\v\f" else ch for ch in text)


def _extent(section: StringSection) -> tuple[int, int]:
    # empty spans still get a one-column marker
    return section.start, max(section.end, section.start + 1)


def _anchor(section: StringSection) -> int:
    s, e = _extent(section)
    return s + (e - s) // 2


def _underline_row(labels: list[Label]) -> Text:
    width = max(_extent(lb.section)[1] for lb in labels)
    chars = [" "] * width
    for lb in labels:
        s, e = _extent(lb.section)
        for i in range(s, e):
            chars[i] = "─"
        chars[_anchor(lb.section)] = "┬"
    row = Text("".join(chars))
    for lb in labels:
        s, e = _extent(lb.section)
        row.stylize(lb.style, s, e)
    return row


def _arrow_rows(labels: list[Label]) -> list[Text]:
    # rightmost label first so horizontal arrows never cross a pending vertical
    anchors = [_anchor(lb.section) for lb in labels]
    reach = max(anchors) + 3
    rows = []
    for i in reversed(range(len(labels))):
        pending = {anchors[j]: labels[j].style for j in range(i)}
        row = Text()
        for col in range(anchors[i]):
            if col in pending:
                row.append("│", style=pending[col])
            else:
                row.append(" ")
        row.append("╰" + "─" * (reach - anchors[i] - 1), style=labels[i].style)
        row.append(" ")
        row.append_text(labels[i].message)
        rows.append(row)
    return rows


def build_report(err: TimeParseError, source_name: str = "time") -> Text:
    """Assemble the styled report for *err* as a single rich Text."""
    labels = report_labels(err)
    gutter = "1"
    pad = " " * (len(gutter) + 2)
    margin = STYLES['margin']

    out = Text()
    out.append("Error", style=STYLES['error'])
    out.append(f": {err.summary}\n")
    out.append(f"{pad}╭─[", style=margin)
    out.append(f"{source_name}:1:{err.index + 1}")
    out.append("]\n", style=margin)
    out.append(f"{pad}│\n", style=margin)

    out.append(f" {gutter} │ ", style=margin)
    source = Text(_display_line(err.text))
    for lb in labels:
        source.stylize(lb.style, lb.section.start, lb.section.end)
    out.append_text(source)
    out.append("\n")

    if labels:
        out.append(f"{pad}│ ", style=margin)
        out.append_text(_underline_row(labels))
        out.append("\n")
        for row in _arrow_rows(labels):
            out.append(f"{pad}│ ", style=margin)
            out.append_text(row)
            out.append("\n")

    note = report_note(err)
    if note:
        out.append(f"{pad}│\n", style=margin)
        out.append(f"{pad}│ ", style=margin)
        out.append("Note", style=STYLES['note'])
        out.append(f": {note}\n")

    out.append("─" * len(pad) + "╯\n", style=margin)
    return out


def render_report(err: TimeParseError, *, color: bool = False, source_name: str = "time") -> str:
    """Render *err* as text; ANSI-styled when *color* is set."""
    report = build_report(err, source_name=source_name)
    if not color:
        return report.plain
    buf = io.StringIO()
    console = Console(
        file=buf,
        force_terminal=True,
        color_system="standard",
        width=_REPORT_WIDTH,
        highlight=False,
        emoji=False,
        markup=False,
    )
    report.rstrip()
    console.print(report, soft_wrap=True)
    return buf.getvalue()


def print_report(err: TimeParseError, console: Optional[Console] = None, source_name: str = "time") -> None:
    """Write the report for *err* to *console* (stderr by default)."""
    console = console or Console(stderr=True, highlight=False)
    body = build_report(err, source_name=source_name)
    body.rstrip()
    console.print(body, soft_wrap=True)
