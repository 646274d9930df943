"""Locale-aware parsing of human-entered numbers.

Users type numbers the way their locale writes them: ``£3,999.99``,
``12 345,67``, ``5,00,000`` or ``(777.00)``.  :func:`parse_number` strips
the decorations, checks the digit grouping against the locale's CLDR
convention and returns an exact :class:`~decimal.Decimal`.

Locale data (symbols, grouping sizes, accounting patterns) comes from
Babel and is cached per locale identifier.
"""

from __future__ import annotations

import logging
import math
import re
import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache

from babel import Locale
from babel.numbers import (
    get_currency_symbol,
    get_decimal_symbol,
    get_group_symbol,
    get_territory_currencies,
)

from bridge.errors import ConversionError

log = logging.getLogger(__name__)

# Characters a user may type where the locale groups with a space.
_SPACE_SEPARATORS = (" ", "\u00a0", "\u202f")

_PARENTHESISED = re.compile(r"\((.*)\)")
_EXPONENT = re.compile(r"[+-]?(?:\d*\.)?\d+E([+-]?)(\d+)")

# Exponents this large short-circuit to the float limits instead of
# being parsed digit by digit.
EXTREME_EXPONENT = 300

SMALLEST_MAGNITUDE = math.ulp(0.0)
LARGEST_MAGNITUDE = sys.float_info.max


@dataclass(frozen=True, slots=True)
class NumberSymbols:
    """Everything :func:`parse_number` needs to know about a locale."""

    decimal: str
    group: str
    currency: str | None
    parenthesis_negative: bool
    primary_grouping: int = 3
    secondary_grouping: int = 3
    stray_dot_grouping: bool = False

    @property
    def space_grouped(self) -> bool:
        return self.group in _SPACE_SEPARATORS


def symbols_for(locale: Locale, stray_dot_languages: tuple[str, ...] = ("sv",)) -> NumberSymbols:
    """Return the (cached) number symbols for *locale*."""
    return _symbols(str(locale), tuple(stray_dot_languages))


@lru_cache(maxsize=128)
def _symbols(identifier: str, stray_dot_languages: tuple[str, ...]) -> NumberSymbols:
    locale = Locale.parse(identifier)
    decimal = get_decimal_symbol(locale)
    primary, secondary = locale.decimal_formats[None].grouping

    currency = None
    parenthesis_negative = False
    if locale.territory:
        codes = get_territory_currencies(locale.territory)
        if codes:
            currency = get_currency_symbol(codes[0], locale)
        pattern = locale.currency_formats.get("accounting") or locale.currency_formats.get("standard")
        if pattern is not None:
            neg_prefix, neg_suffix = pattern.prefix[1], pattern.suffix[1]
            parenthesis_negative = "(" in neg_prefix and ")" in neg_suffix

    symbols = NumberSymbols(
        decimal=decimal,
        group=get_group_symbol(locale),
        currency=currency,
        parenthesis_negative=parenthesis_negative,
        primary_grouping=primary,
        secondary_grouping=secondary,
        stray_dot_grouping=locale.language in stray_dot_languages and decimal != ".",
    )
    log.debug("number symbols for %s: %s", identifier, symbols)
    return symbols


# ── Parsing ──────────────────────────────────────────────────────────


def tidy(text: str, symbols: NumberSymbols) -> str:
    """Remove currency and normalise separators and parenthesis negation."""
    tidied = text
    if symbols.currency:
        tidied = tidied.replace(symbols.currency, "")
    tidied = tidied.strip().replace("\u2212", "-")

    if symbols.space_grouped:
        for separator in _SPACE_SEPARATORS:
            tidied = tidied.replace(separator, symbols.group)

    if symbols.stray_dot_grouping:
        tidied = tidied.replace(".", symbols.group)

    if symbols.parenthesis_negative:
        match = _PARENTHESISED.fullmatch(tidied)
        if match:
            tidied = "-" + match.group(1).strip()

    return tidied


def verify_grouping(text: str, tidied: str, symbols: NumberSymbols) -> None:
    """Check each digit group left of the decimal separator.

    The right-most group needs at least ``primary_grouping`` digits and
    every other group at least ``secondary_grouping`` (three and two for
    South-Asian locales, three everywhere else).
    """
    end = len(tidied)
    for marker in (symbols.decimal, "e", "E"):
        index = tidied.find(marker)
        if index != -1:
            end = min(end, index)

    separators = [i for i, ch in enumerate(tidied[:end]) if ch == symbols.group]
    if not separators:
        return

    right_edges = separators[1:] + [end]
    for position, (separator, edge) in enumerate(reversed(list(zip(separators, right_edges)))):
        minimum = symbols.primary_grouping if position == 0 else symbols.secondary_grouping
        if edge - separator - 1 < minimum:
            raise ConversionError(f'Unparseable number: "{text}"', value=text, offset=separator)


def _extreme(tidied: str) -> float | None:
    match = _EXPONENT.fullmatch(tidied.upper())
    if match is None or int(match.group(2)) < EXTREME_EXPONENT:
        return None
    magnitude = SMALLEST_MAGNITUDE if match.group(1) == "-" else LARGEST_MAGNITUDE
    return -magnitude if tidied.startswith("-") else magnitude


def _canonical_pattern(symbols: NumberSymbols) -> re.Pattern[str]:
    group = re.escape(symbols.group)
    decimal = re.escape(symbols.decimal)
    return re.compile(rf"[+-]?(?:\d|{group})*(?:{decimal}\d*)?(?:[eE][+-]?\d+)?")


def parse_number(text: str, symbols: NumberSymbols, integral: bool = False) -> Decimal | float:
    """Parse *text* as a number written for *symbols*' locale.

    Returns a :class:`~decimal.Decimal`, or a ``float`` limit when the
    exponent is extreme.  Raises :class:`ConversionError` with the offset
    of the first character that cannot belong to the number.

    With *integral*, a value with a non-zero fractional part is rejected.
    """
    tidied = tidy(text, symbols)
    verify_grouping(text, tidied, symbols)

    extreme = _extreme(tidied.replace(symbols.group, "").replace(symbols.decimal, "."))
    if extreme is not None:
        log.debug("extreme exponent in %r, using %r", text, extreme)
        return extreme

    consumed = _canonical_pattern(symbols).match(tidied)
    end = consumed.end() if consumed else 0
    if end != len(tidied) or not any(ch.isdigit() for ch in tidied):
        raise ConversionError(f'Unparseable number: "{text}"', value=text, offset=end)

    canonical = tidied.replace(symbols.group, "").replace(symbols.decimal, ".")
    try:
        number = Decimal(canonical)
    except InvalidOperation:
        raise ConversionError(f'Unparseable number: "{text}"', value=text) from None

    if integral and number != number.to_integral_value():
        raise ConversionError(f'Unparseable number: "{text}"', value=text)
    return number
