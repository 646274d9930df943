"""Service routing and verb policy.

Service classes register under a path; a request path is split into
that key and an operation name (its last segment)::

    registry = ServiceRegistry()
    registry.register("/widgets", ServiceClass.for_class(WidgetService))

    service, operation = registry.route("/widgets/getWidget")

POST may reach any operation.  GET, PUT and DELETE are only allowed for
operation names matching the configured patterns for that verb.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields as dataclass_fields, is_dataclass
from typing import Any, Callable, Iterable

from bridge.coercion import Target
from bridge.descriptors import OperationDescriptor, RawParameter, describe_operations
from bridge.errors import MethodNotAllowedError, UnknownServiceError
from bridge.executor import Executor

log = logging.getLogger(__name__)

Supplier = Callable[[], Any]


# ── Service classes ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServiceClass:
    """A service class, how to obtain an instance, and its operations."""

    klass: type
    supplier: Supplier
    operations: tuple[OperationDescriptor, ...] = field(default=(), compare=False)

    @classmethod
    def for_class(cls, klass: type, supplier: Supplier | None = None) -> "ServiceClass":
        """Describe *klass*; instances come from *supplier* (default: ``klass()``)."""
        return cls(klass, supplier or klass, describe_operations(klass))

    @property
    def header_names(self) -> frozenset[str]:
        names: set[str] = set()
        for descriptor in self.operations:
            names |= descriptor.header_names
        return frozenset(names)

    @property
    def header_fields(self) -> dict[str, tuple[str, ...]]:
        """Field names of each header object's declared type."""
        fields: dict[str, tuple[str, ...]] = {}
        for descriptor in self.operations:
            for param in descriptor.parameters:
                if param.is_header:
                    fields.setdefault(param.public_name, _field_names(param.declared_type))
        return fields

    def invoke(self, executor: Executor, operation_name: str, raw: Iterable[RawParameter]) -> str:
        return executor.invoke(self.supplier(), operation_name, raw, self.operations)

    async def invoke_async(
        self, executor: Executor, operation_name: str, raw: Iterable[RawParameter]
    ) -> str:
        return await executor.invoke_async(self.supplier(), operation_name, raw, self.operations)


def _field_names(declared: Any) -> tuple[str, ...]:
    tp = Target.of(declared).tp
    if is_dataclass(tp):
        return tuple(f.name for f in dataclass_fields(tp))
    model_fields = getattr(tp, "model_fields", None)
    if isinstance(model_fields, dict):
        return tuple(model_fields)
    return ()


def normalise_path(path: str) -> str:
    return "/" + path.strip("/")


def split_path(path: str) -> tuple[str, str]:
    """Split ``/service/path/operation`` into its service key and operation."""
    key, _, operation = normalise_path(path).rpartition("/")
    return normalise_path(key), operation


class ServiceRegistry:
    """Path → :class:`ServiceClass` mapping."""

    def __init__(self, services: dict[str, ServiceClass] | None = None) -> None:
        self._services: dict[str, ServiceClass] = {}
        for path, service in (services or {}).items():
            self.register(path, service)

    def register(self, path: str, service: ServiceClass) -> None:
        key = normalise_path(path)
        if key in self._services:
            log.warning("overwriting service for %r", key)
        self._services[key] = service
        log.debug("registered %s → %s", key, service.klass.__qualname__)

    def route(self, path: str) -> tuple[ServiceClass, str]:
        """Return the service and operation name a request path targets.

        Raises ``UnknownServiceError`` when the path carries no operation
        or its prefix is not mapped.
        """
        key, operation = split_path(path)
        if not operation:
            log.error("path %s should include an operation", path)
            raise UnknownServiceError(path)
        service = self._services.get(key)
        if service is None:
            log.error("no service class mapped for %s", key)
            raise UnknownServiceError(key)
        return service, operation

    @property
    def paths(self) -> list[str]:
        return list(self._services.keys())


# ── Verb policy ──────────────────────────────────────────────────────


def _compile(patterns: Iterable[str]) -> re.Pattern[str] | None:
    patterns = list(patterns)
    if not patterns:
        return None
    return re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)


class VerbPolicy:
    """Which HTTP verbs besides POST each operation name accepts."""

    def __init__(
        self,
        get: Iterable[str] = (),
        put: Iterable[str] = (),
        delete: Iterable[str] = (),
    ) -> None:
        self._patterns = {
            "GET": _compile(get),
            "DELETE": _compile(delete),
            "PUT": _compile(put),
        }

    def supported(self, operation_name: str) -> tuple[str, ...]:
        return tuple(
            verb
            for verb, pattern in self._patterns.items()
            if pattern is not None and pattern.fullmatch(operation_name)
        )

    def check(self, verb: str, operation_name: str) -> None:
        """Raise ``MethodNotAllowedError`` unless *verb* may call the operation."""
        if verb == "POST":
            return
        supported = self.supported(operation_name)
        if verb not in supported:
            log.error("%s not supported for %s", verb, operation_name)
            raise MethodNotAllowedError(verb, operation_name, ("POST",) + supported)
