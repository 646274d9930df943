"""wire: error-body model and failure codes shared over HTTP."""

from wire.messages import (
    ALL_CODES,
    AMBIGUOUS_OPERATION,
    CONVERSION_FAILED,
    INVOCATION_FAILED,
    MALFORMED_REQUEST,
    METHOD_NOT_ALLOWED,
    OPERATION_NOT_FOUND,
    SERIALIZATION_FAILED,
    STRUCTURAL_DECODE_FAILED,
    UNKNOWN_SERVICE,
    UNRECOVERABLE_STATE,
    ErrorMessage,
)

__all__ = [
    "ErrorMessage",
    "ALL_CODES",
    "OPERATION_NOT_FOUND",
    "AMBIGUOUS_OPERATION",
    "CONVERSION_FAILED",
    "STRUCTURAL_DECODE_FAILED",
    "INVOCATION_FAILED",
    "UNRECOVERABLE_STATE",
    "SERIALIZATION_FAILED",
    "UNKNOWN_SERVICE",
    "METHOD_NOT_ALLOWED",
    "MALFORMED_REQUEST",
]
