"""Value coercion engine.

:class:`TypeConverter` turns a loosely-typed value (a JSON scalar, a
locale-formatted string, a one-element list) into the exact type an
operation declares.  The same surface serves browser-entered values and
machine-generated JSON, so the rules are heuristic and locale-sensitive.

The rules form a cascade of strategies tried in a fixed order; the first
one that produces a result wins.  Each strategy either returns a value,
returns :data:`NOT_APPLICABLE`, or raises :class:`ConversionError`.  A
strategy may also normalise ``attempt.value`` for the ones after it
(numeric parsing does this for custom number types, which then reach the
factory lookup with a clean value).

Cheap exact checks (identity, ``None``) come first, and array unwrapping
comes early so the number and date rules never see sequences:

 1. identity                 8. locale identifiers
 2. ``None``                 9. class references
 3. singleton unwrap        10. sequences
 4. blank string            11. raw primitive conversion
 5. single character        12. static factory lookup
 6. locale numbers          13. shape-assignable passthrough
 7. dates and times
"""

from __future__ import annotations

import collections.abc
import datetime
import importlib
import logging
import numbers
import re
import sys
import types
import typing
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from babel import Locale, UnknownLocaleError

from bridge import dates
from bridge.errors import ConversionError
from bridge.factories import CapabilityLookup, FactoryLookup, invoke_factory
from bridge.numbers import parse_number, symbols_for
from bridge.scalars import Byte, Char, Long, Short, is_primitive, zero_value

log = logging.getLogger(__name__)

DEFAULT_LOCALE = "en_GB"


class _NotApplicable:
    def __repr__(self) -> str:
        return "NOT_APPLICABLE"


NOT_APPLICABLE: Any = _NotApplicable()

_SEQUENCE_ORIGINS: dict[Any, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
}

_COMPOSITES = (list, tuple, set, frozenset, dict)

_LOCALE_TOKEN = re.compile(r"([a-z]{2,3})(?:_([A-Z]{2}|\d{3})(?:_(\w+))?)?")

_BUILTIN_NUMBERS = (int, float, Decimal, Long, Short, Byte)


# ── Target description ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Target:
    """A declared type, with ``Optional`` peeled off and generics split."""

    declared: Any
    tp: Any
    optional: bool
    origin: Any
    args: tuple[Any, ...]

    @classmethod
    def of(cls, declared: Any) -> "Target":
        tp, optional = _strip_optional(declared)
        origin = typing.get_origin(tp)
        return cls(declared, tp, optional, origin, typing.get_args(tp))

    @property
    def is_class(self) -> bool:
        return isinstance(self.tp, type) and self.origin is None

    @property
    def is_textual(self) -> bool:
        return self.tp is str

    @property
    def is_primitive(self) -> bool:
        return not self.optional and is_primitive(self.tp)

    @property
    def container(self) -> type | None:
        return _SEQUENCE_ORIGINS.get(self.origin or self.tp)

    @property
    def is_numeric(self) -> bool:
        return (
            self.is_class
            and issubclass(self.tp, numbers.Number)
            and not issubclass(self.tp, (bool, complex))
        )

    @property
    def is_scalar(self) -> bool:
        """Whether the cascade alone decides this type (no mapper fallback)."""
        if self.tp is type or self.origin is type:
            return True
        if not self.is_class:
            return False
        return (
            self.is_numeric
            or self.tp in (bool, Char, datetime.datetime, datetime.date, datetime.time)
            or issubclass(self.tp, Locale)
        )

    def __str__(self) -> str:
        return getattr(self.declared, "__name__", None) or repr(self.declared)


def _strip_optional(tp: Any) -> tuple[Any, bool]:
    if typing.get_origin(tp) in (typing.Union, types.UnionType):
        members = typing.get_args(tp)
        others = tuple(m for m in members if m is not type(None))
        if len(others) < len(members):
            if len(others) == 1:
                return others[0], True
            return typing.Union[others], True
    return tp, False


def _is_instance(value: Any, target: Target) -> bool:
    tp = target.tp
    if tp is Any or tp is object:
        return True
    if not target.is_class or target.origin is not None:
        return False
    if isinstance(value, bool) and tp is not bool:
        return False
    if tp is datetime.date and isinstance(value, datetime.datetime):
        return False
    return isinstance(value, tp)


def _is_machine_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


# ── Raw value helpers ────────────────────────────────────────────────


def boolean_value(value: Any) -> bool:
    """Booleans as-is; numbers and characters are true when non-zero;
    text is true for ``true`` or ``on`` in any case."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, Char):
        return value != "\0"
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    text = str(value).strip().lower()
    return text in ("true", "on")


def double_value(value: Any) -> float:
    """Booleans as 1/0, characters as their code point, text parsed."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, Char):
        return float(ord(value))
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        raise ConversionError(f"Cannot convert [{value}] to float", value=value) from None


def long_value(value: Any) -> int:
    """Like :func:`double_value` but truncated to an integer."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Char):
        return ord(value)
    try:
        if isinstance(value, (int, float, Decimal)):
            return int(value)
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, OverflowError, ValueError):
        raise ConversionError(f"Cannot convert [{value}] to int", value=value) from None


def string_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ── Cascade ──────────────────────────────────────────────────────────


class Attempt:
    """Mutable per-call state threaded through the cascade."""

    __slots__ = ("value", "target")

    def __init__(self, value: Any, target: Target) -> None:
        self.value = value
        self.target = target


Strategy = Callable[["TypeConverter", Attempt], Any]


def identity(converter: "TypeConverter", attempt: Attempt) -> Any:
    if attempt.value is not None and _is_instance(attempt.value, attempt.target):
        return attempt.value
    return NOT_APPLICABLE


def null(converter: "TypeConverter", attempt: Attempt) -> Any:
    if attempt.value is not None:
        return NOT_APPLICABLE
    if attempt.target.is_primitive:
        return zero_value(attempt.target.tp)
    return None


def singleton_unwrap(converter: "TypeConverter", attempt: Attempt) -> Any:
    value = attempt.value
    if attempt.target.container is None and isinstance(value, (list, tuple)) and len(value) == 1:
        return converter.convert_target(value[0], attempt.target)
    return NOT_APPLICABLE


def blank_string(converter: "TypeConverter", attempt: Attempt) -> Any:
    if not isinstance(attempt.value, str) or attempt.value or attempt.target.is_textual:
        return NOT_APPLICABLE
    if attempt.target.is_primitive:
        return zero_value(attempt.target.tp)
    return None


def single_character(converter: "TypeConverter", attempt: Attempt) -> Any:
    value, tp = attempt.value, attempt.target.tp
    if tp not in (Char, Byte) or isinstance(value, (list, tuple)) or _is_machine_number(value):
        return NOT_APPLICABLE
    representation = string_value(value)
    if not representation:
        return NOT_APPLICABLE
    if tp is Char:
        return Char(representation[0])
    return Byte(ord(representation[0]))


def _narrow(number: Decimal | float, tp: type, text: Any) -> Any:
    if tp is float:
        return float(number)
    if tp is Decimal:
        return number if isinstance(number, Decimal) else Decimal(number)
    try:
        integer = int(number)
    except (OverflowError, ValueError):
        raise ConversionError(f"Cannot convert [{text}] to {tp.__name__}", value=text) from None
    if tp is Long and not Long.in_range(integer):
        raise ConversionError(f"Cannot convert [{text}] to type [Long]", value=text)
    return tp(integer)


def locale_number(converter: "TypeConverter", attempt: Attempt) -> Any:
    value, target = attempt.value, attempt.target
    if not target.is_numeric or isinstance(value, (bool, list, tuple, dict)):
        return NOT_APPLICABLE

    tp = target.tp
    integral = issubclass(tp, int) and tp not in (Byte, Short)
    if _is_machine_number(value):
        parsed: Decimal | float = value if isinstance(value, Decimal) else Decimal(repr(value))
        if integral and parsed.is_finite() and parsed != parsed.to_integral_value():
            raise ConversionError(f'Unparseable number: "{value}"', value=value)
    else:
        parsed = parse_number(string_value(value), converter.symbols, integral=integral)

    if tp in _BUILTIN_NUMBERS:
        return _narrow(parsed, tp, value)
    attempt.value = parsed
    return NOT_APPLICABLE


def temporal(converter: "TypeConverter", attempt: Attempt) -> Any:
    value, tp = attempt.value, attempt.target.tp
    if tp is datetime.datetime:
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        return dates.parse_datetime(string_value(value), converter.locale)
    if tp is datetime.date:
        if isinstance(value, datetime.datetime):
            return value.date()
        return dates.parse_date(string_value(value), converter.locale)
    if tp is datetime.time:
        if isinstance(value, datetime.datetime):
            return value.time()
        return dates.parse_time(string_value(value), converter.locale)
    return NOT_APPLICABLE


def locale_identifier(converter: "TypeConverter", attempt: Attempt) -> Any:
    if not (attempt.target.is_class and issubclass(attempt.target.tp, Locale)):
        return NOT_APPLICABLE
    text = string_value(attempt.value).strip()
    match = _LOCALE_TOKEN.fullmatch(text)
    if match is None:
        raise ConversionError(f"Cannot convert [{text}] to Locale", value=attempt.value)
    language, territory, variant = match.groups()
    try:
        return Locale(language, territory, variant=variant)
    except (UnknownLocaleError, ValueError):
        raise ConversionError(f"Unknown locale [{text}]", value=attempt.value) from None


def _may_import(module_path: str, prefixes: tuple[str, ...]) -> bool:
    return any(module_path == p or module_path.startswith(p + ".") for p in prefixes)


def _import_object(path: str, importable: tuple[str, ...] = ()) -> Any:
    """Resolve a dotted name against loaded modules.

    Modules not yet loaded are imported only under an *importable* prefix.
    """
    module_path, _, attribute = path.rpartition(".")
    trail = [attribute]
    while module_path:
        found: Any = sys.modules.get(module_path)
        if found is None and _may_import(module_path, importable):
            try:
                found = importlib.import_module(module_path)
            except ImportError:
                found = None
        if found is None:
            module_path, _, attribute = module_path.rpartition(".")
            trail.insert(0, attribute)
            continue
        for name in trail:
            found = getattr(found, name)
        return found
    raise ImportError(path)


def class_reference(converter: "TypeConverter", attempt: Attempt) -> Any:
    target = attempt.target
    if not (target.tp is type or target.origin is type) or not isinstance(attempt.value, str):
        return NOT_APPLICABLE
    try:
        found = _import_object(attempt.value.strip(), converter.class_modules)
    except (ImportError, AttributeError, ValueError):
        log.debug("no class named %r", attempt.value)
        return NOT_APPLICABLE
    if not isinstance(found, type):
        return NOT_APPLICABLE
    if target.args and isinstance(target.args[0], type) and not issubclass(found, target.args[0]):
        return NOT_APPLICABLE
    return found


def sequence(converter: "TypeConverter", attempt: Attempt) -> Any:
    container = attempt.target.container
    if container is None:
        return NOT_APPLICABLE
    args = attempt.target.args
    value = attempt.value
    items = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]

    if container is tuple and args and args[-1] is not Ellipsis:
        if len(items) != len(args):
            raise ConversionError(
                f"Cannot convert {len(items)} values to {attempt.target}", value=value
            )
        return tuple(converter.convert(item, arg) for item, arg in zip(items, args))

    element = args[0] if args else Any
    return container(converter.convert(item, element) for item in items)


def raw_primitive(converter: "TypeConverter", attempt: Attempt) -> Any:
    value, tp = attempt.value, attempt.target.tp
    if isinstance(value, _COMPOSITES):
        return NOT_APPLICABLE
    if tp is bool:
        return boolean_value(value)
    if tp is float:
        return double_value(value)
    if tp is int:
        return long_value(value)
    if tp is Long:
        integer = long_value(value)
        if not Long.in_range(integer):
            raise ConversionError(f"Cannot convert [{value}] to type [Long]", value=value)
        return Long(integer)
    if tp in (Short, Byte):
        return tp(long_value(value))
    if tp is Char:
        return Char(long_value(value))
    if tp is Decimal:
        if isinstance(value, bool):
            return Decimal(int(value))
        try:
            return Decimal(string_value(value).strip())
        except InvalidOperation:
            raise ConversionError(f"Cannot convert [{value}] to Decimal", value=value) from None
    if tp is str:
        return string_value(value)
    return NOT_APPLICABLE


def static_factory(converter: "TypeConverter", attempt: Attempt) -> Any:
    if not attempt.target.is_class or attempt.target.origin is not None:
        return NOT_APPLICABLE
    if isinstance(attempt.value, _COMPOSITES):
        return NOT_APPLICABLE
    factory =converter.factories.find(attempt.target.tp)
    if factory is None:
        return NOT_APPLICABLE
    result = invoke_factory(factory, attempt.target.tp, string_value(attempt.value))
    return NOT_APPLICABLE if result is None else result


def assignable(converter: "TypeConverter", attempt: Attempt) -> Any:
    shape = attempt.target.origin or attempt.target.tp
    if isinstance(shape, type) and isinstance(attempt.value, shape):
        return attempt.value
    return NOT_APPLICABLE


CASCADE: tuple[Strategy, ...] = (
    identity,
    null,
    singleton_unwrap,
    blank_string,
    single_character,
    locale_number,
    temporal,
    locale_identifier,
    class_reference,
    sequence,
    raw_primitive,
    static_factory,
    assignable,
)


# ── Converter ────────────────────────────────────────────────────────


class TypeConverter:
    """Locale-parameterised converter; immutable once constructed.

    Parameters
    ----------
    locale : babel.Locale | str
        Locale used for every number and date heuristic.
    factories : CapabilityLookup
        Fallback factory lookup; a fresh memoising
        :class:`~bridge.factories.FactoryLookup` by default.
    stray_dot_languages : tuple[str, ...]
        Languages whose users type ``.`` as a thousands mark even though
        their decimal separator is something else.
    class_modules : tuple[str, ...]
        Module prefixes a class reference may import.  Other names only
        resolve against modules that are already loaded.
    cascade : tuple of strategies
        Override the rule order, mainly for tests.
    """

    def __init__(
        self,
        locale: Locale | str = DEFAULT_LOCALE,
        *,
        factories: CapabilityLookup | None = None,
        stray_dot_languages: tuple[str, ...] = ("sv",),
        class_modules: tuple[str, ...] = (),
        cascade: tuple[Strategy, ...] = CASCADE,
    ) -> None:
        self.locale = Locale.parse(locale)
        self.factories = factories or FactoryLookup()
        self.symbols = symbols_for(self.locale, stray_dot_languages)
        self.class_modules = tuple(class_modules)
        self.cascade = cascade

    def convert(self, value: Any, target_type: Any) -> Any:
        """Convert *value* to *target_type* or raise :class:`ConversionError`."""
        return self.convert_target(value, Target.of(target_type))

    def convert_target(self, value: Any, target: Target) -> Any:
        attempt = Attempt(value, target)
        for strategy in self.cascade:
            result = strategy(self, attempt)
            if result is not NOT_APPLICABLE:
                if log.isEnabledFor(logging.DEBUG):
                    log.debug("%r -> %s via %s", value, target, strategy.__name__)
                return result
        raise ConversionError(
            f"Cannot convert [{value}] of type {type(value).__name__} to {target}",
            value=value,
        )
