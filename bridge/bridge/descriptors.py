"""Operation descriptor table.

Service classes are plain Python classes.  Every public method is an
operation, exposed under its own name unless ``@web_method`` gives it an
alias or excludes it.  Parameters are exposed under their Python name
in the body/query surface unless annotated with :class:`WebParam`::

    class WidgetService:

        def get_widget(self, id: int) -> Widget: ...

        @web_method(operation_name="save")
        def save_widget(
            self,
            item: Annotated[Widget, WebParam("item")],
            context: Annotated[Context | None, WebParam("context", header=True)] = None,
        ) -> None: ...

        @web_method(exclude=True)
        def rebuild_indexes(self) -> None: ...

:func:`describe_operations` introspects a class once and memoises the
resulting immutable table; resolution and invocation only ever look at
the table.
"""

from __future__ import annotations

import inspect
import logging
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from bridge.errors import UnrecoverableStateError

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

WEB_METHOD_ATTR = "__web_method__"


# ── Declaration markers ──────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class WebParam:
    """``Annotated`` marker giving a parameter its public name and surface."""

    name: str
    header: bool = False


@dataclass(frozen=True, slots=True)
class WebMethod:
    operation_name: str = ""
    exclude: bool = False


def web_method(fn: F | None = None, *, operation_name: str = "", exclude: bool = False) -> Any:
    """Mark a method with an operation alias, or withhold it from exposure."""

    def decorator(target: F) -> F:
        setattr(target, WEB_METHOD_ATTR, WebMethod(operation_name, exclude))
        return target

    if fn is not None:
        return decorator(fn)
    return decorator


# ── Descriptors ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ParameterDescriptor:
    """One formal parameter as seen on the wire."""

    public_name: str
    is_header: bool
    declared_type: Any
    argument_name: str = ""


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """One candidate target operation of a service class."""

    declared_name: str
    method_name: str
    parameters: tuple[ParameterDescriptor, ...] = ()
    is_exposed: bool = True
    return_type: Any = None

    @property
    def header_names(self) -> frozenset[str]:
        return frozenset(p.public_name for p in self.parameters if p.is_header)

    @property
    def body_names(self) -> frozenset[str]:
        return frozenset(p.public_name for p in self.parameters if not p.is_header)


@dataclass(frozen=True, slots=True)
class RawParameter:
    """An as-received named value: a JSON node, not yet typed."""

    name: str
    is_header: bool = False
    value: Any = field(default=None, compare=False)

    @classmethod
    def parameter(cls, name: str, value: Any) -> "RawParameter":
        return cls(name=name, is_header=False, value=value)

    @classmethod
    def header_parameter(cls, name: str, value: Any) -> "RawParameter":
        return cls(name=name, is_header=True, value=value)


# ── Introspection ────────────────────────────────────────────────────


def _split_annotated(annotation: Any) -> tuple[Any, WebParam | None]:
    if typing.get_origin(annotation) is typing.Annotated:
        base, *metadata = typing.get_args(annotation)
        marker = next((m for m in metadata if isinstance(m, WebParam)), None)
        return base, marker
    return annotation, None


def _describe_method(klass: type, name: str, fn: Callable[..., Any]) -> OperationDescriptor:
    marker: WebMethod = getattr(fn, WEB_METHOD_ATTR, None) or WebMethod()
    try:
        hints = typing.get_type_hints(fn, include_extras=True)
    except Exception as exc:
        raise UnrecoverableStateError(
            f"Cannot resolve annotations of {klass.__qualname__}.{name}: {exc}"
        ) from exc

    signature = inspect.signature(fn)
    formal = list(signature.parameters.values())
    if not isinstance(inspect.getattr_static(klass, name), staticmethod) and formal:
        formal = formal[1:]

    parameters = []
    for param in formal:
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        declared, web_param = _split_annotated(hints.get(param.name, Any))
        parameters.append(
            ParameterDescriptor(
                public_name=web_param.name if web_param else param.name,
                is_header=web_param.header if web_param else False,
                declared_type=declared,
                argument_name=param.name,
            )
        )

    return OperationDescriptor(
        declared_name=marker.operation_name or name,
        method_name=name,
        parameters=tuple(parameters),
        is_exposed=not marker.exclude,
        return_type=hints.get("return"),
    )


_TABLES: dict[type, tuple[OperationDescriptor, ...]] = {}


def describe_operations(klass: type) -> tuple[OperationDescriptor, ...]:
    """Return the (memoised) descriptor table for *klass*.

    Private methods (leading underscore) are not operations at all;
    methods marked ``exclude`` are described but not exposed.
    """
    table = _TABLES.get(klass)
    if table is not None:
        return table

    descriptors = []
    for name, fn in inspect.getmembers(klass, predicate=inspect.isfunction):
        if name.startswith("_"):
            continue
        descriptors.append(_describe_method(klass, name, fn))

    log.debug(
        "described %s: %s",
        klass.__qualname__,
        ", ".join(d.declared_name for d in descriptors if d.is_exposed),
    )
    return _TABLES.setdefault(klass, tuple(descriptors))
