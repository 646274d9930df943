"""Failure taxonomy for resolution, coercion and invocation.

Every failure the engine raises derives from :class:`BridgeError` and
carries a wire code from :mod:`wire.messages`.  Mapping a failure to an
HTTP status is left to the transport (see ``gateway.policy``).
"""

from __future__ import annotations

from typing import Any

from wire.messages import (
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
)


class BridgeError(Exception):
    """Base class for every classified failure."""

    code: str = INVOCATION_FAILED

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    @property
    def data(self) -> dict[str, Any] | None:
        """Extra context rendered into the error body, if any."""
        return None


# ── Resolution ───────────────────────────────────────────────────────


class OperationNotFoundError(BridgeError):
    """No exposed operation matches the name and parameter-name set."""

    code = OPERATION_NOT_FOUND

    def __init__(self, operation_name: str, parameter_names: frozenset[str] = frozenset()) -> None:
        self.operation_name = operation_name
        self.parameter_names = parameter_names
        super().__init__(f"Operation not found: {operation_name}")

    @property
    def data(self) -> dict[str, Any]:
        return {"operation": self.operation_name, "parameters": sorted(self.parameter_names)}


class AmbiguousOperationError(BridgeError):
    """More than one exposed operation matches the request.

    Attributes:
        operation_name: Name that was requested.
        candidates: Internal method names of every matching declaration.
    """

    code = AMBIGUOUS_OPERATION

    def __init__(self, operation_name: str, candidates: tuple[str, ...]) -> None:
        self.operation_name = operation_name
        self.candidates = candidates
        super().__init__(f"Unable to distinguish operations named {operation_name!r}")

    @property
    def data(self) -> dict[str, Any]:
        return {"operation": self.operation_name, "candidates": list(self.candidates)}


# ── Coercion ─────────────────────────────────────────────────────────


class ConversionError(BridgeError):
    """A scalar value could not be coerced to its declared type.

    Attributes:
        value: The offending raw value.
        offset: Character offset of the problem within ``value``, if known.
        parameter: Public name of the parameter being bound, filled in by
            the executor.
    """

    code = CONVERSION_FAILED

    def __init__(self, message: str, value: Any = None, offset: int = 0) -> None:
        self.value = value
        self.offset = offset
        self.parameter: str | None = None
        super().__init__(message)

    @property
    def data(self) -> dict[str, Any]:
        d: dict[str, Any] = {"value": _printable(self.value), "offset": self.offset}
        if self.parameter is not None:
            d["parameter"] = self.parameter
        return d


class StructuralDecodeError(BridgeError):
    """A composite raw value did not decode into its declared type."""

    code = STRUCTURAL_DECODE_FAILED

    def __init__(self, parameter: str, detail: str = "") -> None:
        self.parameter = parameter
        self.detail = detail
        message = f"Unable to decode parameter {parameter!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def data(self) -> dict[str, Any]:
        return {"parameter": self.parameter}


class UnrecoverableStateError(BridgeError):
    """A declaration or programming defect, never the caller's fault."""

    code = UNRECOVERABLE_STATE


# ── Invocation ───────────────────────────────────────────────────────


class InvocationError(BridgeError):
    """The underlying operation raised during execution.

    The original exception is kept on ``cause`` (and chained) so the
    exception-translation policy can inspect it.
    """

    code = INVOCATION_FAILED

    def __init__(self, operation_name: str, cause: BaseException) -> None:
        self.operation_name = operation_name
        self.cause = cause
        super().__init__(f"Error produced within invocation of {operation_name}")


class SerializationError(BridgeError):
    """The operation's return value could not be rendered as JSON."""

    code = SERIALIZATION_FAILED


# ── Transport ────────────────────────────────────────────────────────


class UnknownServiceError(BridgeError):
    """No service class is mapped to the request path."""

    code = UNKNOWN_SERVICE

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No service mapped for {path!r}")


class MethodNotAllowedError(BridgeError):
    """The HTTP verb is not permitted for the requested operation."""

    code = METHOD_NOT_ALLOWED

    def __init__(self, verb: str, operation_name: str, allowed: tuple[str, ...]) -> None:
        self.verb = verb
        self.operation_name = operation_name
        self.allowed = allowed
        super().__init__(f"{verb} not supported for {operation_name}")

    @property
    def data(self) -> dict[str, Any]:
        return {"allowed": list(self.allowed)}


class MalformedRequestError(BridgeError):
    """The request could not be turned into raw parameters."""

    code = MALFORMED_REQUEST


def _printable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)
