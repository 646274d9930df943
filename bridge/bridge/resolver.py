"""Operation resolution by name and parameter-name set.

Wire input is a bag of named JSON fragments with no static types, so
the only thing that can tell two declarations apart before coercion is
which names are present.  A candidate matches when:

* its declared name equals the requested name and it is exposed,
* the supplied header names are a subset of its header parameters
  (headers are optional), and
* the supplied body/query names are exactly its non-header parameters.

No type-directed tie-breaking is attempted: two exposed declarations
with the same name and the same non-header names are ambiguous.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Union

from bridge.descriptors import OperationDescriptor, RawParameter
from bridge.errors import AmbiguousOperationError, OperationNotFoundError

log = logging.getLogger(__name__)


# ── Resolution outcomes ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Resolved:
    descriptor: OperationDescriptor


@dataclass(frozen=True, slots=True)
class NotFound:
    operation_name: str
    parameter_names: frozenset[str]


@dataclass(frozen=True, slots=True)
class Ambiguous:
    operation_name: str
    candidates: tuple[OperationDescriptor, ...]


Resolution = Union[Resolved, NotFound, Ambiguous]


# ── Matching ─────────────────────────────────────────────────────────


def matches(
    descriptor: OperationDescriptor,
    header_names: frozenset[str],
    body_names: frozenset[str],
) -> bool:
    """Apply the name-set rule to one declaration."""
    return header_names <= descriptor.header_names and body_names == descriptor.body_names


def resolve_operation(
    operation_name: str,
    raw_parameters: Iterable[RawParameter],
    declared_operations: Iterable[OperationDescriptor],
) -> Resolution:
    """Select the single declaration targeted by a request."""
    raw = list(raw_parameters)
    header_names = frozenset(p.name for p in raw if p.is_header)
    body_names = frozenset(p.name for p in raw if not p.is_header)

    candidates = tuple(
        d
        for d in declared_operations
        if d.declared_name == operation_name
        and d.is_exposed
        and matches(d, header_names, body_names)
    )

    if not candidates:
        return NotFound(operation_name, header_names | body_names)
    if len(candidates) > 1:
        return Ambiguous(operation_name, candidates)
    return Resolved(candidates[0])


def resolve(
    operation_name: str,
    raw_parameters: Iterable[RawParameter],
    declared_operations: Iterable[OperationDescriptor],
) -> OperationDescriptor:
    """Like :func:`resolve_operation`, raising on anything but one match.

    Raises ``OperationNotFoundError`` or ``AmbiguousOperationError``.
    """
    outcome = resolve_operation(operation_name, raw_parameters, declared_operations)
    if isinstance(outcome, Resolved):
        return outcome.descriptor
    if isinstance(outcome, Ambiguous):
        names = tuple(d.method_name for d in outcome.candidates)
        log.error("multiple potential operations found for %s: %s", operation_name, names)
        raise AmbiguousOperationError(operation_name, names)
    log.info("no operation %s accepting %s", operation_name, sorted(outcome.parameter_names))
    raise OperationNotFoundError(operation_name, outcome.parameter_names)
