"""
Engine Errors

Structured error taxonomy for the pattern engine. Every error carries a
stable code so the request boundary can turn it into a
{success: false, error} response without crashing.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base engine error with structured details."""
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class EngineDisabledError(EngineError):
    def __init__(self, action: str):
        super().__init__(
            code="ENGINE_DISABLED",
            message="Pattern engine is disabled",
            details={"action": action},
        )


class NotFoundError(EngineError):
    def __init__(self, kind: str, identifier: str):
        super().__init__(
            code="NOT_FOUND",
            message=f"{kind} '{identifier}' not found",
            details={"kind": kind, "id": identifier},
        )


class PersistenceError(EngineError):
    def __init__(self, message: str, pattern_name: Optional[str] = None, error: Optional[str] = None):
        details: Dict[str, Any] = {}
        if pattern_name is not None:
            details["pattern_name"] = pattern_name
        if error is not None:
            details["error"] = error
        super().__init__(code="PERSISTENCE_FAILED", message=message, details=details)


class UnknownActionError(EngineError):
    def __init__(self, action: Any):
        super().__init__(
            code="UNKNOWN_ACTION",
            message=f"Unknown action: {action}",
            details={"action": action},
        )


class InvalidRequestError(EngineError):
    def __init__(self, message: str, code: str = "INVALID_REQUEST", details: Optional[Dict[str, Any]] = None):
        super().__init__(code=code, message=message, details=details)


class ExtractionSkipped(Exception):
    """
    A category produced no pattern for this batch.

    Not an error. Raised and caught inside the extractor only.
    """
    def __init__(self, category: str, reason: str):
        self.category = category
        self.reason = reason
        super().__init__(f"{category}: {reason}")
