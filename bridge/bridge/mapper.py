"""Structured JSON mapping for composite values and return values.

Anything the scalar converter cannot reduce (objects, lists of objects,
generic containers, dataclasses, pydantic models) is decoded against
the declared type with a pydantic :class:`~pydantic.TypeAdapter`.
Return values are rendered to JSON text the same way, with ``None``
fields left out.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic import ConfigDict, PydanticSchemaGenerationError, PydanticUserError, TypeAdapter
from pydantic_core import PydanticSerializationError, to_json

from bridge.errors import SerializationError

log = logging.getLogger(__name__)

_ARBITRARY = ConfigDict(arbitrary_types_allowed=True)


def _build_adapter(tp: Any) -> TypeAdapter[Any]:
    try:
        return TypeAdapter(tp)
    except (PydanticSchemaGenerationError, PydanticUserError):
        log.debug("falling back to arbitrary-type adapter for %r", tp)
        return TypeAdapter(tp, config=_ARBITRARY)


@lru_cache(maxsize=512)
def _cached_adapter(tp: Any) -> TypeAdapter[Any]:
    return _build_adapter(tp)


def adapter_for(tp: Any) -> TypeAdapter[Any]:
    """Return a (cached where possible) adapter for *tp*."""
    try:
        return _cached_adapter(tp)
    except TypeError:
        return _build_adapter(tp)


class StructuredMapper:
    """Decode JSON nodes into declared types and encode results to JSON.

    Decoding raises :class:`pydantic.ValidationError`; callers decide how
    to classify it.
    """

    def __init__(self, exclude_none: bool = True) -> None:
        self.exclude_none = exclude_none

    def decode(self, node: Any, tp: Any) -> Any:
        """Validate an already-parsed JSON node against *tp*."""
        return adapter_for(tp).validate_python(node)

    def decode_text(self, text: str, tp: Any) -> Any:
        """Parse *text* as a JSON document and validate it against *tp*."""
        return adapter_for(tp).validate_json(text)

    def encode(self, value: Any) -> str:
        """Render *value* as JSON text."""
        try:
            return to_json(value, exclude_none=self.exclude_none).decode("utf-8")
        except PydanticSerializationError as exc:
            raise SerializationError(f"Unable to serialise {type(value).__name__}: {exc}") from exc
