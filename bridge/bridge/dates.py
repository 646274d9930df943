"""Locale-aware parsing of dates and times.

ISO-8601 is always tried first: if some locale's short date format
were ``yyyy-dd-MM`` it would otherwise win on days 1-12 of every month.
After that the locale's CLDR short, medium and long patterns are tried
in order.  Patterns are compiled into regular expressions once per
locale and cached.

Parsed dates go through :func:`check_date`: a year below
:data:`LEGACY_YEAR_THRESHOLD` is a century-dropped legacy entry and is
moved forward by :data:`LEGACY_YEAR_SHIFT` years, and anything outside
:data:`MIN_YEAR`-:data:`MAX_YEAR` is rejected.
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from babel import Locale
from babel.dates import tokenize_pattern

from bridge.errors import ConversionError

log = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────

FORMAT_LENGTHS = ("short", "medium", "long")

LEGACY_YEAR_THRESHOLD = 100
LEGACY_YEAR_SHIFT = 2000
MIN_YEAR = 1000
MAX_YEAR = 2999

# Two-digit years below this land in the 2000s, the rest in the 1900s.
CENTURY_PIVOT = 60

_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_ISO_TIME = re.compile(
    r"(\d{2}):(\d{2})(?::(\d{2})(?:[.,](\d{1,9}))?)?(Z|[+-]\d{2}(?::?\d{2})?)?"
)
_ISO_DATETIME = re.compile(rf"({_ISO_DATE.pattern})[T ]({_ISO_TIME.pattern})")

_ZONE_FIELDS = frozenset("zZOvVXx")


# ── Range checks ─────────────────────────────────────────────────────


def check_date(value: Any, text: str) -> Any:
    """Shift legacy years and reject dates outside the supported window.

    Works for both ``date`` and ``datetime`` values.
    """
    if value.year < LEGACY_YEAR_THRESHOLD:
        shifted = value.replace(year=value.year + LEGACY_YEAR_SHIFT)
        log.debug("legacy year %04d in %r shifted to %04d", value.year, text, shifted.year)
        return shifted
    if not MIN_YEAR <= value.year <= MAX_YEAR:
        raise ConversionError(f"Unsupported date [{value.isoformat()}]", value=text)
    return value


# ── ISO-8601 ─────────────────────────────────────────────────────────


def _fraction_to_micros(fraction: str | None) -> int:
    if not fraction:
        return 0
    return int(fraction[:6].ljust(6, "0"))


def _iso_date(text: str) -> datetime.date | None:
    match = _ISO_DATE.fullmatch(text)
    if match is None:
        return None
    try:
        return datetime.date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def _iso_time(text: str) -> datetime.time | None:
    match = _ISO_TIME.fullmatch(text)
    if match is None:
        return None
    hour, minute, second, fraction, designator = match.groups()
    try:
        return datetime.time(
            int(hour), int(minute), int(second or 0), _fraction_to_micros(fraction), _zone(designator)
        )
    except ValueError:
        return None


def _zone(designator: str | None) -> datetime.tzinfo | None:
    """``Z`` or a ``±hh[:mm]`` offset as a fixed-offset timezone."""
    if not designator:
        return None
    if designator == "Z":
        return datetime.timezone.utc
    digits = designator[1:].replace(":", "")
    offset = datetime.timedelta(hours=int(digits[:2]), minutes=int(digits[2:] or 0))
    return datetime.timezone(-offset if designator[0] == "-" else offset)


def _iso_datetime(text: str) -> datetime.datetime | None:
    day = _iso_date(text)
    if day is not None:
        return datetime.datetime.combine(day, datetime.time())
    match = _ISO_DATETIME.fullmatch(text)
    if match is None:
        return None
    day = _iso_date(match.group(1))
    clock = _iso_time(match.group(5))
    if day is None or clock is None:
        return None
    return datetime.datetime.combine(day, clock)


# ── Locale patterns ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A CLDR pattern turned into a regex plus the field of each group."""

    pattern: str
    regex: re.Pattern[str]
    fields: tuple[tuple[str, int], ...]
    names: dict[str, int]

    def match(self, text: str) -> dict[str, Any] | None:
        found = self.regex.fullmatch(text)
        if found is None:
            return None
        values: dict[str, Any] = {}
        for (field, count), raw in zip(self.fields, found.groups()):
            values[field] = (raw, count)
        return values


def _alternation(names: Any) -> str:
    choices = sorted({str(name) for name in names if name}, key=len, reverse=True)
    return "(" + "|".join(re.escape(choice) for choice in choices) + ")"


def _compile(locale: Locale, pattern: str) -> CompiledPattern:
    parts: list[str] = []
    fields: list[tuple[str, int]] = []
    names: dict[str, int] = {}

    for kind, token in tokenize_pattern(pattern):
        if kind == "chars":
            for chunk in re.split(r"(\s+)", token):
                if not chunk:
                    continue
                parts.append(r"\s*" if chunk.isspace() else re.escape(chunk))
            continue

        field, count = token
        if field in "yYu":
            parts.append(r"(\d{2})" if count == 2 else r"(\d+)")
        elif field in "ML":
            if count <= 2:
                parts.append(r"(\d{1,2})")
            else:
                context = "format" if field == "M" else "stand-alone"
                width = "wide" if count == 4 else "abbreviated"
                months = locale.months[context][width]
                for number, name in months.items():
                    names[name.lower()] = number
                parts.append(_alternation(months.values()))
        elif field in "dhHkKms":
            parts.append(r"(\d{2})" if count == 2 and field in "ms" else r"(\d{1,2})")
        elif field == "S":
            parts.append(r"(\d+)")
        elif field in "Eec":
            if field in "ec" and count <= 2:
                parts.append(r"(\d)")
            else:
                days = locale.days["format"]
                parts.append(_alternation([*days["wide"].values(), *days["abbreviated"].values()]))
        elif field in "abB":
            periods = locale.day_periods["format"]
            labels = []
            for width in ("abbreviated", "wide", "narrow"):
                for key in ("am", "pm"):
                    label = periods.get(width, {}).get(key)
                    if label:
                        labels.append(label)
                        names.setdefault(label.lower(), 12 if key == "pm" else 0)
            parts.append(_alternation(labels))
        elif field == "G":
            eras = locale.eras
            parts.append(_alternation([*eras["abbreviated"].values(), *eras["wide"].values()]))
        elif field in _ZONE_FIELDS:
            parts.append(r"(\S+)")
        else:
            parts.append(r"(\S+)")
        fields.append((field, count))

    regex = re.compile("".join(parts), re.IGNORECASE)
    return CompiledPattern(pattern=pattern, regex=regex, fields=tuple(fields), names=names)


@lru_cache(maxsize=256)
def _compiled(identifier: str, kind: str, length: str) -> CompiledPattern:
    locale = Locale.parse(identifier)
    formats = locale.date_formats if kind == "date" else locale.time_formats
    return _compile(locale, formats[length].pattern)


def patterns_for(locale: Locale, kind: str) -> list[CompiledPattern]:
    """The compiled short, medium and long patterns of *kind* (date/time)."""
    return [_compiled(str(locale), kind, length) for length in FORMAT_LENGTHS]


def _year(raw: str, count: int) -> int:
    year = int(raw)
    if count <= 2 and len(raw) == 2:
        year += 2000 if year < CENTURY_PIVOT else 1900
    return year


def _build_date(compiled: CompiledPattern, values: dict[str, Any]) -> datetime.date | None:
    year = month = day = None
    for field, (raw, count) in values.items():
        if field in "yYu":
            year = _year(raw, count)
        elif field in "ML":
            month = int(raw) if count <= 2 else compiled.names.get(raw.lower())
        elif field == "d":
            day = int(raw)
    if year is None or month is None or day is None:
        return None
    try:
        return datetime.date(year, month, day)
    except ValueError:
        return None


def _build_time(compiled: CompiledPattern, values: dict[str, Any]) -> datetime.time | None:
    hour = minute = None
    second = micros = 0
    period = None
    hour_field = "H"
    for field, (raw, count) in values.items():
        if field in "hHkK":
            hour, hour_field = int(raw), field
        elif field == "m":
            minute = int(raw)
        elif field == "s":
            second = int(raw)
        elif field == "S":
            micros = _fraction_to_micros(raw)
        elif field in "abB":
            period = compiled.names.get(raw.lower())
    if hour is None or minute is None:
        return None

    if hour_field == "h":
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (period or 0)
    elif hour_field == "K":
        hour += period or 0
    elif hour_field == "k":
        hour %= 24
    try:
        return datetime.time(hour, minute, second, micros)
    except ValueError:
        return None


# ── Public API ───────────────────────────────────────────────────────


def parse_date(text: str, locale: Locale) -> datetime.date:
    """Parse a calendar date, ISO-8601 first and then the locale's formats."""
    trimmed = text.strip()
    result = _iso_date(trimmed)
    if result is None:
        for compiled in patterns_for(locale, "date"):
            values = compiled.match(trimmed)
            if values is not None:
                result = _build_date(compiled, values)
                if result is not None:
                    log.debug("%r matched date pattern %r", trimmed, compiled.pattern)
                    break
    if result is None:
        raise ConversionError(f"Cannot convert [{trimmed}] to date", value=text)
    return check_date(result, trimmed)


def parse_datetime(text: str, locale: Locale) -> datetime.datetime:
    """Parse a timestamp: ISO date or date-time, else a locale date at midnight."""
    trimmed = text.strip()
    result = _iso_datetime(trimmed)
    if result is None:
        day = parse_date(trimmed, locale)
        return datetime.datetime.combine(day, datetime.time())
    return check_date(result, trimmed)


def parse_time(text: str, locale: Locale) -> datetime.time:
    """Parse a wall-clock time, ISO-8601 first and then the locale's formats."""
    trimmed = text.strip()
    result = _iso_time(trimmed)
    if result is not None:
        return result
    for compiled in patterns_for(locale, "time"):
        values = compiled.match(trimmed)
        if values is not None:
            result = _build_time(compiled, values)
            if result is not None:
                log.debug("%r matched time pattern %r", trimmed, compiled.pattern)
                return result
    raise ConversionError(f"Cannot convert [{trimmed}] to time", value=text)
