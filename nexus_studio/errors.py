"""Error taxonomy for the Nexus Studio web service.

Every failure that can cross a request or WebSocket frame boundary is a
``NexusError`` carrying a stable code, a human-readable message and the HTTP
status it maps to. Handlers turn these into JSON bodies or ``error`` frames.

USAGE:
    from nexus_studio.errors import EngineLoadError

    raise EngineLoadError("Model file not found", details={"path": "/models/phi3.gguf"})
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Engine
    ENGINE_UNAVAILABLE = "ENGINE_001"
    ENGINE_LOAD_FAILED = "ENGINE_002"
    ENGINE_CONFIG_INVALID = "ENGINE_003"

    # Request
    REQUEST_MALFORMED = "REQUEST_001"

    # Transport
    TRANSPORT_FAILED = "TRANSPORT_001"

    # System
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class NexusError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode enum value
        message: Human-readable error message
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code for API responses
    """

    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        ErrorCode.ENGINE_UNAVAILABLE: 503,     # Service Unavailable
        ErrorCode.ENGINE_LOAD_FAILED: 500,
        ErrorCode.ENGINE_CONFIG_INVALID: 500,
        ErrorCode.REQUEST_MALFORMED: 400,      # Bad Request
        ErrorCode.TRANSPORT_FAILED: 500,
        ErrorCode.SYSTEM_INTERNAL_ERROR: 500,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for JSON responses."""
        return {
            "code": self.code.value,
            "message": self.message,
        }


class EngineUnavailable(NexusError):
    """No generation engine is configured for this process."""

    def __init__(self, message: str = "AI model not available", details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.ENGINE_UNAVAILABLE, message, details)


class EngineLoadError(NexusError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.ENGINE_LOAD_FAILED, message, details)


class EngineConfigError(NexusError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.ENGINE_CONFIG_INVALID, message, details)


class MalformedRequest(NexusError):
    """Invalid JSON, or a payload missing required fields."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.REQUEST_MALFORMED, message, details)


class TransportError(NexusError):
    """The WebSocket could not be read from or written to."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.TRANSPORT_FAILED, message, details)


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> NexusError:
    """
    Convert a generic exception to a NexusError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while generating code")

    Returns:
        The error itself if it is already a NexusError, otherwise a
        SYSTEM_INTERNAL_ERROR wrapping it.
    """
    if isinstance(error, NexusError):
        return error

    message = str(error)
    if context:
        message = f"{context}: {message}"

    return NexusError(
        ErrorCode.SYSTEM_INTERNAL_ERROR,
        message,
        details={"original_type": type(error).__name__},
    )


__all__ = [
    "ErrorCode",
    "NexusError",
    "EngineUnavailable",
    "EngineLoadError",
    "EngineConfigError",
    "MalformedRequest",
    "TransportError",
    "handle_error",
]
