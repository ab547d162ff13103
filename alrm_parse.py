#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Opinionated time-of-day parsing for alrm.

We can parse
  H          H:MM          H:MM:SS
  Hpm        H:MMpm        H:MM:SSpm
  H pm       H:MM pm       H:MM:SS pm

If the minutes or seconds are omitted, they are assumed to be zero.
If the am/pm is omitted, the hour is interpreted as 24-hour time.
All numeric fields can be zero-padded, or not.

Failures raise a TimeParseError subclass carrying the spans of the
offending text; alrm_report turns those into a readable report.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time
from enum import Enum
from typing import NamedTuple, Optional


# ==============================================================================
# SECTION: Spans & fields
# ==============================================================================
@dataclass(frozen=True)
class StringSection:
    """A [start, end) slice of the original input, kept together with the input."""

    text: str
    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start <= self.end <= len(self.text)):
            raise ValueError(
                f"section {self.start}..{self.end} is outside a text of length {len(self.text)}"
            )

    @property
    def range(self) -> tuple[int, int]:
        return (self.start, self.end)

    def as_str(self) -> str:
        return self.text[self.start:self.end]


class Field(Enum):
    OVERALL = "overall"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"
    MERIDIEM = "am/pm"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AllowedRange:
    """Half-open integer interval, printed the way it reads in a report (0..24)."""

    start: int
    end: int

    def contains(self, value: int) -> bool:
        return self.start <= value < self.end

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


HOUR_RANGE = AllowedRange(0, 24)
MINUTE_RANGE = AllowedRange(0, 60)
SECOND_RANGE = AllowedRange(0, 60)


# ==============================================================================
# SECTION: Errors
# ==============================================================================
class TimeParseError(Exception):
    """Base class for every way a time string can fail to parse."""

    kind = "error"

    @property
    def sections(self) -> tuple[StringSection, ...]:
        raise NotImplementedError

    @property
    def summary(self) -> str:
        raise NotImplementedError

    @property
    def text(self) -> str:
        return self.sections[0].text

    @property
    def index(self) -> int:
        return self.sections[0].start

    def __str__(self) -> str:
        return self.summary


class _FieldError(TimeParseError):
    def __init__(self, field: Field, section: StringSection):
        super().__init__(field, section)
        self.field = field
        self.section = section

    @property
    def sections(self) -> tuple[StringSection, ...]:
        return (self.section,)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.field.name}, "
            f"{self.section.start}..{self.section.end}, {self.section.as_str()!r})"
        )


class IncompleteField(_FieldError):
    """A field is expected but its text is empty ('6:' or '')."""

    kind = "incomplete_field"

    @property
    def summary(self) -> str:
        if self.field is Field.OVERALL:
            return "Expected time, instead got empty string"
        return f"{self.field} field is incomplete"


class OutOfRange(_FieldError):
    """A field is a number, just not one that fits the field."""

    kind = "out_of_range"

    def __init__(self, field: Field, section: StringSection, allowed: AllowedRange):
        super().__init__(field, section)
        self.allowed = allowed

    @property
    def summary(self) -> str:
        return f"{self.field} field is out of range"

    def __repr__(self) -> str:
        return (
            f"OutOfRange({self.field.name}, {self.section.start}..{self.section.end}, "
            f"{self.section.as_str()!r}, allowed={self.allowed})"
        )


class InvalidFormat(_FieldError):
    """The text is not shaped like the field it should be."""

    kind = "invalid_format"

    @property
    def summary(self) -> str:
        if self.field is Field.OVERALL:
            return "Invalid format"
        return f"{self.field} field has an invalid format"


class Overconstrained(TimeParseError):
    """A 24-hour hour together with an explicit am/pm."""

    kind = "overconstrained"

    def __init__(self, hour: StringSection, meridiem: StringSection):
        super().__init__(hour, meridiem)
        self.hour = hour
        self.meridiem = meridiem

    @property
    def sections(self) -> tuple[StringSection, ...]:
        return (self.hour, self.meridiem)

    @property
    def index(self) -> int:
        return self.meridiem.start

    @property
    def summary(self) -> str:
        return "Time is overconstrained"

    def __repr__(self) -> str:
        return (
            f"Overconstrained(hour={self.hour.as_str()!r}@{self.hour.start}, "
            f"meridiem={self.meridiem.as_str()!r}@{self.meridiem.start})"
        )


# ==============================================================================
# SECTION: Field extraction
# ==============================================================================
_TIME_RE = re.compile(
    r"""
    (?P<hour>-?\d+)                     # the hour (required)
    (?::(?P<minute>-?\d*))?             # the minute (optional)
    (?::(?P<second>-?\d*))?             # the second (optional)
    (?:\s*(?P<meridiem>.*(?:am|pm)))?   # am or pm (24-hour when omitted)
    """,
    re.VERBOSE | re.IGNORECASE | re.ASCII,
)

_UNSIGNED_RE = re.compile(r"[0-9]+")


class Capture(NamedTuple):
    value: str
    start: int
    end: int


@dataclass(frozen=True)
class ParsedFields:
    """Labeled substrings of a time string; shape only, nothing validated yet."""

    text: str
    hour: Optional[Capture]
    minute: Optional[Capture] = None
    second: Optional[Capture] = None
    meridiem: Optional[Capture] = None

    def section(self, capture: Capture) -> StringSection:
        return StringSection(self.text, capture.start, capture.end)


def extract(text: str) -> ParsedFields:
    """Split *text* into hour/minute/second/meridiem captures with their spans."""
    if not text:
        raise IncompleteField(Field.OVERALL, StringSection(text, 0, 0))

    m = _TIME_RE.search(text)
    if m is None:
        raise InvalidFormat(Field.OVERALL, StringSection(text, 0, len(text)))

    def _cap(name: str) -> Optional[Capture]:
        value = m.group(name)
        if value is None:
            return None
        start, end = m.span(name)
        return Capture(value, start, end)

    return ParsedFields(
        text=text,
        hour=_cap("hour"),
        minute=_cap("minute"),
        second=_cap("second"),
        meridiem=_cap("meridiem"),
    )


# ==============================================================================
# SECTION: Field resolution
# ==============================================================================
def check_range(value: int, allowed: AllowedRange, field: Field, section: StringSection) -> int:
    if not allowed.contains(value):
        raise OutOfRange(field, section, allowed)
    return value


def _parse_field(fields: ParsedFields, field: Field, allowed: AllowedRange, capture: Capture) -> int:
    section = fields.section(capture)
    raw = capture.value
    if not raw:
        raise IncompleteField(field, section)
    if not _UNSIGNED_RE.fullmatch(raw):
        raise InvalidFormat(field, section)
    try:
        value = int(raw)
    except ValueError:
        # more digits than int() accepts; certainly not a clock field
        raise OutOfRange(field, section, allowed) from None
    return check_range(value, allowed, field, section)


def resolve(fields: ParsedFields) -> time:
    """Validate extracted fields and combine them into a 24-hour time."""
    if fields.hour is None:
        raise IncompleteField(Field.HOUR, StringSection(fields.text, 0, len(fields.text)))

    hour = _parse_field(fields, Field.HOUR, HOUR_RANGE, fields.hour)
    minute = 0
    if fields.minute is not None:
        minute = _parse_field(fields, Field.MINUTE, MINUTE_RANGE, fields.minute)
    second = 0
    if fields.second is not None:
        second = _parse_field(fields, Field.SECOND, SECOND_RANGE, fields.second)

    offset = 0
    if fields.meridiem is not None:
        token = fields.meridiem.value.lower()
        if token == "pm":
            # 12 pm is already 12 in 24-hour time
            offset = 0 if hour == 12 else 12
        elif token != "am":
            raise InvalidFormat(Field.MERIDIEM, fields.section(fields.meridiem))

        if hour > 12:
            raise Overconstrained(
                hour=fields.section(fields.hour),
                meridiem=fields.section(fields.meridiem),
            )

    return time(hour + offset, minute, second)


def parse_time(text: str) -> time:
    """Parse a free-form clock string ('6', '6:30pm', '18:30:15') into a time."""
    return resolve(extract(text))


def try_parse_time(text: str) -> tuple[Optional[time], Optional[TimeParseError]]:
    try:
        return parse_time(text), None
    except TimeParseError as e:
        return None, e
