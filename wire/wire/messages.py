"""Error-body wire format shared by the gateway and its clients.

Pure data with no I/O and no business logic.  The gateway renders failures
with these models and ``caller`` parses them back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ── Failure codes ────────────────────────────────────────────────────
OPERATION_NOT_FOUND = "OPERATION_NOT_FOUND"
AMBIGUOUS_OPERATION = "AMBIGUOUS_OPERATION"
CONVERSION_FAILED = "CONVERSION_FAILED"
STRUCTURAL_DECODE_FAILED = "STRUCTURAL_DECODE_FAILED"
INVOCATION_FAILED = "INVOCATION_FAILED"
UNRECOVERABLE_STATE = "UNRECOVERABLE_STATE"
SERIALIZATION_FAILED = "SERIALIZATION_FAILED"
UNKNOWN_SERVICE = "UNKNOWN_SERVICE"
METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
MALFORMED_REQUEST = "MALFORMED_REQUEST"

ALL_CODES = frozenset(
    {
        OPERATION_NOT_FOUND,
        AMBIGUOUS_OPERATION,
        CONVERSION_FAILED,
        STRUCTURAL_DECODE_FAILED,
        INVOCATION_FAILED,
        UNRECOVERABLE_STATE,
        SERIALIZATION_FAILED,
        UNKNOWN_SERVICE,
        METHOD_NOT_ALLOWED,
        MALFORMED_REQUEST,
    }
)


# ── Models ───────────────────────────────────────────────────────────
@dataclass(slots=True)
class ErrorMessage:
    """Body of every non-2xx response.

    ``data`` carries optional machine-readable context, e.g. the
    offending parameter name or the character offset of a bad number.
    """

    message: str
    code: str | None = None
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"message": self.message}
        if self.code is not None:
            d["code"] = self.code
        if self.data is not None:
            d["data"] = self.data
        return d

    @classmethod
    def from_dict(cls, raw: Any) -> "ErrorMessage":
        """Parse a raw error body; raises ``ValueError`` on bad input."""
        if not isinstance(raw, dict):
            raise ValueError("error body must be a JSON object")
        message = raw.get("message")
        if not isinstance(message, str):
            raise ValueError("missing or invalid 'message' field")
        code = raw.get("code")
        if code is not None and not isinstance(code, str):
            raise ValueError("'code' must be a string")
        return cls(message=message, code=code, data=raw.get("data"))
