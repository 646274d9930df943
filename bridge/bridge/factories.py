"""Fallback lookup of single-string factory methods.

As a last resort the converter asks the target type whether it can
build itself from a string, looking for a static or class method named
like ``parse``, ``value_of`` or ``get_instance``.  Lookups are memoised
per type; the cache is only ever written with insert-if-absent, so
concurrent first lookups of the same type are harmless.
"""

from __future__ import annotations

import inspect
import logging
import re
from typing import Any, Callable, Protocol

from bridge.errors import UnrecoverableStateError

log = logging.getLogger(__name__)

FACTORY_NAMES = re.compile(r"parse|value_?of|valueOf|get_?instance|getInstance|from_string")

Factory = Callable[[str], Any]


class CapabilityLookup(Protocol):
    """Answers: can *tp* be built from a single string, and how?"""

    def find(self, tp: type) -> Factory | None: ...


def _accepts_single_string(fn: Any) -> bool:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return False
    params = [
        p
        for p in sig.parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.default is p.empty
    ]
    if len(params) != 1:
        return False
    annotation = params[0].annotation
    return annotation in (inspect.Parameter.empty, str, "str")


class FactoryLookup:
    """Default :class:`CapabilityLookup` backed by reflection on the type."""

    def __init__(self, names: re.Pattern[str] = FACTORY_NAMES) -> None:
        self._names = names
        self._cache: dict[type, Factory | None] = {}

    def find(self, tp: type) -> Factory | None:
        try:
            return self._cache[tp]
        except KeyError:
            pass
        except TypeError:
            # Unhashable pseudo-types are never cached.
            return self._search(tp)
        return self._cache.setdefault(tp, self._search(tp))

    def _search(self, tp: Any) -> Factory | None:
        if not inspect.isclass(tp):
            return None
        match: Factory | None = None
        for klass in tp.__mro__:
            if klass is object:
                continue
            for name, attr in vars(klass).items():
                if not self._names.fullmatch(name):
                    continue
                if not isinstance(attr, (staticmethod, classmethod)):
                    continue
                bound = getattr(tp, name)
                if _accepts_single_string(bound):
                    match = bound
            if match is not None:
                break
        if match is not None:
            log.debug("factory for %s: %s", tp.__qualname__, getattr(match, "__qualname__", match))
        return match


def invoke_factory(factory: Factory, tp: type, text: str) -> Any:
    """Call *factory* with *text*.

    ``ValueError`` means the text was not acceptable to the factory and
    yields ``None`` so the cascade can carry on.  Anything else is a defect
    in the factory and surfaces as :class:`UnrecoverableStateError`.
    """
    try:
        return factory(text)
    except ValueError:
        log.debug("factory for %s rejected %r", tp.__qualname__, text)
        return None
    except Exception as exc:
        name = getattr(factory, "__name__", repr(factory))
        raise UnrecoverableStateError(
            f"Failed invocation of {name} during type conversion"
        ) from exc
