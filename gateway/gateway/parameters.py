"""Raw parameter extraction from an HTTP request.

Three sources feed one bag of :class:`~bridge.descriptors.RawParameter`:

* the query string: one value becomes a string node, a repeated key a
  list of strings
* the entity: fields of a JSON object
* vendor headers, assembled into one object per header parameter::

    X-Acme-Context: user=bob;branch=north
    X-Acme-Context-Branch: south

  gives the header parameter ``context`` = ``{"user": "bob", "branch": "south"}``
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping

from starlette.datastructures import QueryParams

from bridge.descriptors import RawParameter
from bridge.errors import MalformedRequestError

log = logging.getLogger(__name__)

COMPOUND_HEADER = re.compile(r"(?:\w+=\w+(?:;|$))+")


def lower_camel(name: str) -> str:
    return name[:1].lower() + name[1:]


# ── Query string ─────────────────────────────────────────────────────


def query_parameters(query: QueryParams) -> list[RawParameter]:
    raw = []
    for key in dict.fromkeys(query.keys()):
        values = query.getlist(key)
        node: Any = values[0] if len(values) == 1 else list(values)
        raw.append(RawParameter.parameter(key, node))
    return raw


# ── Entity ───────────────────────────────────────────────────────────


def entity_parameters(body: bytes) -> list[RawParameter]:
    """Fields of a JSON object entity; a blank entity yields nothing."""
    if not body.strip():
        return []
    try:
        node = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        log.warning("unparseable entity: %s", exc)
        raise MalformedRequestError(f"Request entity is not valid JSON: {exc}") from exc
    if not isinstance(node, dict):
        log.warning("entity is a JSON %s, not an object", type(node).__name__)
        raise MalformedRequestError("Request entity must be a JSON object")
    return [RawParameter.parameter(key, value) for key, value in node.items()]


# ── Headers ──────────────────────────────────────────────────────────


def _header_pattern(vendor: str) -> re.Pattern[str]:
    return re.compile(rf"x-{re.escape(vendor)}-(\w+)(?:-(\w+))?", re.IGNORECASE)


def _parse_compound(header: str, value: str) -> dict[str, str]:
    if not COMPOUND_HEADER.fullmatch(value):
        log.warning("%s is not in a legal format: %r", header, value)
        raise MalformedRequestError(f"{header} is not in a legal format.")
    pairs = (part.split("=", 1) for part in value.split(";") if part.strip())
    return {key: val for key, val in pairs}


def header_parameters(
    headers: Mapping[str, str],
    vendor: str,
    known_names: Iterable[str] = (),
    known_fields: Mapping[str, Iterable[str]] | None = None,
) -> list[RawParameter]:
    """Assemble ``X-<vendor>-<Object>[-<Property>]`` headers into objects.

    HTTP header names are case-insensitive and arrive lowercased, so object
    names are matched against *known_names* ignoring case and fall back to
    lower camel case.  Property names are matched the same way against the
    keys of the compound header, then against *known_fields* (the fields
    of each header object's declared type).  Property headers override
    keys of the compound header.
    """
    pattern = _header_pattern(vendor)
    canonical = {name.lower(): name for name in known_names}
    spellings = {
        name.lower(): {f.lower(): f for f in fields} for name, fields in (known_fields or {}).items()
    }

    compound: dict[str, tuple[str, str]] = {}
    properties: dict[str, dict[str, str]] = {}
    for header, value in headers.items():
        match = pattern.fullmatch(header)
        if match is None:
            continue
        obj, prop = match.groups()
        if prop is None:
            compound[obj.lower()] = (header, value)
        else:
            properties.setdefault(obj.lower(), {})[prop] = value

    raw = []
    for obj in dict.fromkeys([*compound, *properties]):
        node: dict[str, Any] = {}
        if obj in compound:
            node.update(_parse_compound(*compound[obj]))
        spelling = {**spellings.get(obj, {}), **{key.lower(): key for key in node}}
        for prop, value in properties.get(obj, {}).items():
            node[spelling.get(prop.lower(), lower_camel(prop))] = value
        name = canonical.get(obj, lower_camel(obj))
        raw.append(RawParameter.header_parameter(name, node))
    return raw
