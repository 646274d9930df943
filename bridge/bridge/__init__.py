"""Typed operations over loosely-typed JSON input.

Resolve a request to one declared operation, coerce its raw parameters
to the declared types, invoke it and render the result as JSON.
"""

from bridge.coercion import NOT_APPLICABLE, TypeConverter
from bridge.config import BridgeConfig
from bridge.descriptors import (
    OperationDescriptor,
    ParameterDescriptor,
    RawParameter,
    WebParam,
    describe_operations,
    web_method,
)
from bridge.errors import (
    AmbiguousOperationError,
    BridgeError,
    ConversionError,
    InvocationError,
    MalformedRequestError,
    MethodNotAllowedError,
    OperationNotFoundError,
    SerializationError,
    StructuralDecodeError,
    UnknownServiceError,
    UnrecoverableStateError,
)
from bridge.executor import Executor
from bridge.mapper import StructuredMapper
from bridge.resolver import Ambiguous, NotFound, Resolved, resolve, resolve_operation
from bridge.scalars import Byte, Char, Long, Short

__all__ = [
    "NOT_APPLICABLE",
    "Ambiguous",
    "AmbiguousOperationError",
    "BridgeConfig",
    "BridgeError",
    "Byte",
    "Char",
    "ConversionError",
    "Executor",
    "InvocationError",
    "Long",
    "MalformedRequestError",
    "MethodNotAllowedError",
    "NotFound",
    "OperationDescriptor",
    "OperationNotFoundError",
    "ParameterDescriptor",
    "RawParameter",
    "Resolved",
    "SerializationError",
    "Short",
    "StructuralDecodeError",
    "StructuredMapper",
    "TypeConverter",
    "UnknownServiceError",
    "UnrecoverableStateError",
    "WebParam",
    "describe_operations",
    "resolve",
    "resolve_operation",
    "web_method",
]
