"""Invocation executor.

One pass per request, with no state kept between calls::

    Resolving ──► Coercing ──► Invoking ──► Serializing ──► JSON text
        │            │            │              │
        └────────────┴────────────┴──────────────┴──► classified failure

Each formal parameter is bound by looking up the raw value with the same
name and surface:

* absent: ``None`` (the zero value for non-optional primitives)
* text for a ``str`` parameter: passed through untouched
* text for anything else: the coercion cascade, then the structured
  mapper (the text may be a JSON document in its own right)
* a number, boolean or array of scalars: the coercion cascade, then
  the structured mapper
* several values for a non-sequence type, an object or other composite
  node: the structured mapper
"""

from __future__ import annotations

import functools
import json
import logging
from typing import Any, Iterable

import anyio
from pydantic import ValidationError

from bridge.coercion import Target, TypeConverter
from bridge.config import BridgeConfig
from bridge.descriptors import (
    OperationDescriptor,
    ParameterDescriptor,
    RawParameter,
    describe_operations,
)
from bridge.errors import (
    BridgeError,
    ConversionError,
    InvocationError,
    StructuralDecodeError,
)
from bridge.mapper import StructuredMapper
from bridge.resolver import resolve
from bridge.scalars import zero_value

log = logging.getLogger(__name__)


class Executor:
    """Resolve, bind, call and serialise one operation invocation."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        converter: TypeConverter | None = None,
        mapper: StructuredMapper | None = None,
    ) -> None:
        config = config or BridgeConfig()
        self.converter = converter or TypeConverter(
            config.locale,
            stray_dot_languages=config.stray_dot_grouping_languages,
            class_modules=config.class_modules,
        )
        self.mapper = mapper or StructuredMapper()

    # ── Public API ───────────────────────────────────────────────────

    def invoke(
        self,
        service: Any,
        operation_name: str,
        raw_parameters: Iterable[RawParameter],
        operations: Iterable[OperationDescriptor] | None = None,
    ) -> str:
        """Run *operation_name* on *service* and return the JSON result text.

        ``operations`` defaults to the descriptor table of the service's
        class.
        """
        raw = list(raw_parameters)
        if operations is None:
            operations = describe_operations(type(service))

        descriptor = resolve(operation_name, raw, operations)
        log.info("invoking %s", descriptor.method_name)
        if log.isEnabledFor(logging.DEBUG):
            log.debug("raw parameters for %s: %s", operation_name, [(p.name, p.value) for p in raw])

        arguments = self.bind(descriptor, raw)
        result = self._call(service, descriptor, arguments)
        return self.mapper.encode(result)

    async def invoke_async(
        self,
        service: Any,
        operation_name: str,
        raw_parameters: Iterable[RawParameter],
        operations: Iterable[OperationDescriptor] | None = None,
    ) -> str:
        """:meth:`invoke` on a worker thread, for use from an event loop."""
        call = functools.partial(self.invoke, service, operation_name, raw_parameters, operations)
        return await anyio.to_thread.run_sync(call)

    # ── Coercing ─────────────────────────────────────────────────────

    def bind(self, descriptor: OperationDescriptor, raw: list[RawParameter]) -> dict[str, Any]:
        """Turn raw parameters into keyword arguments for the method."""
        supplied = {(p.name, p.is_header): p.value for p in raw}
        arguments: dict[str, Any] = {}
        for param in descriptor.parameters:
            key = (param.public_name, param.is_header)
            if key not in supplied:
                arguments[param.argument_name] = self._absent(param)
                continue
            arguments[param.argument_name] = self.bind_value(param, supplied[key])
        return arguments

    def bind_value(self, param: ParameterDescriptor, value: Any) -> Any:
        target = Target.of(param.declared_type)
        if isinstance(value, str):
            if target.is_textual:
                return value
            return self._bind_text(param, target, value)
        if isinstance(value, list) and len(value) > 1 and target.container is None:
            return self._decode(param, value)
        if _is_scalar_node(value) or (isinstance(value, list) and all(map(_is_scalar_node, value))):
            return self._bind_scalar(param, target, value)
        return self._decode(param, value)

    def _decode(self, param: ParameterDescriptor, value: Any) -> Any:
        try:
            return self.mapper.decode(value, param.declared_type)
        except ValidationError as exc:
            log.warning("cannot decode %s: %s", param.public_name, exc.errors(include_url=False))
            raise StructuralDecodeError(param.public_name, _summary(exc)) from exc

    def _bind_text(self, param: ParameterDescriptor, target: Target, text: str) -> Any:
        try:
            return self.converter.convert_target(text, target)
        except ConversionError as exc:
            exc.parameter = param.public_name
            if target.is_scalar:
                log.info("cannot convert %s: %s", param.public_name, exc.message)
                raise
            failure = exc

        try:
            return self.mapper.decode_text(text, param.declared_type)
        except ValidationError:
            pass
        try:
            return self.mapper.decode(text, param.declared_type)
        except ValidationError as exc:
            if _is_composite_document(text):
                raise StructuralDecodeError(param.public_name, _summary(exc)) from exc

        log.info("cannot convert %s: %s", param.public_name, failure.message)
        raise failure

    def _bind_scalar(self, param: ParameterDescriptor, target: Target, value: Any) -> Any:
        try:
            return self.converter.convert_target(value, target)
        except ConversionError as exc:
            exc.parameter = param.public_name
            if target.is_scalar:
                log.info("cannot convert %s: %s", param.public_name, exc.message)
                raise
            failure = exc
        try:
            return self.mapper.decode(value, param.declared_type)
        except ValidationError:
            log.info("cannot convert %s: %s", param.public_name, failure.message)
            raise failure from None

    def _absent(self, param: ParameterDescriptor) -> Any:
        target = Target.of(param.declared_type)
        return zero_value(target.tp) if target.is_primitive else None

    # ── Invoking ─────────────────────────────────────────────────────

    def _call(self, service: Any, descriptor: OperationDescriptor, arguments: dict[str, Any]) -> Any:
        method = getattr(service, descriptor.method_name)
        try:
            return method(**arguments)
        except BridgeError:
            raise
        except Exception as exc:
            log.exception("error produced within invocation of %s", descriptor.method_name)
            raise InvocationError(descriptor.declared_name, exc) from exc


def _is_scalar_node(value: Any) -> bool:
    return value is None or isinstance(value, (str, bool, int, float))


def _is_composite_document(text: str) -> bool:
    try:
        node = json.loads(text)
    except ValueError:
        return False
    return isinstance(node, (dict, list))


def _summary(exc: ValidationError) -> str:
    errors = exc.errors(include_url=False)
    if not errors:
        return str(exc)
    first = errors[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"{where}: {first['msg']}" if where else first["msg"]
