"""Error taxonomy for the ownership network builder.

Only `InvalidIdentifier` ever reaches a caller as an error. A missing record is
not an error (lookups return None). Store failures are caught where a node is
processed and turned into "skip and continue".
"""
from typing import Any, Dict, Optional


class NetworkError(Exception):
    """Base exception for network building."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            out["details"] = self.details
        return out


class InvalidIdentifier(NetworkError, ValueError):
    """Raised when a CNPJ/CPF is malformed; rejected before any lookup."""

    status_code = 400


class LookupTransientFailure(NetworkError):
    """Raised when the record store could not be reached or answered badly."""

    status_code = 502

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"{operation} failed for {key}",
            details=repr(cause) if cause is not None else None,
        )
        self.operation = operation
        self.key = key
        self.cause = cause
