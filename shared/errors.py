"""
Shared error handling for the GraphQL extension service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for the service and its extensions."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class StartupFailure(AccessLayerException):
    """Extension activation failed; nothing was registered."""

    status_code = 500

    def __init__(self, message: str = "Extension startup failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("STARTUP_FAILURE", message, details)


class ModuleLoadError(StartupFailure):
    """A resolver, cache or plugin module could not be loaded."""

    def __init__(self, path: str, message: str = "Module could not be loaded", details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{path}: {message}", {"path": path, **(details or {})})
        self.path = path


class SchemaCompositionError(StartupFailure):
    """A matched schema file could not be read."""

    def __init__(self, path: str, message: str = "Schema file could not be read", details: Optional[Dict[str, Any]] = None):
        super().__init__(f"{path}: {message}", {"path": path, **(details or {})})
        self.path = path


class ClientRequestError(AccessLayerException):
    """Failures attributable to the caller's input."""

    status_code = 400

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__("CLIENT_REQUEST_ERROR", message, details)


class TransportError(AccessLayerException):
    """The request body stream failed before it was fully read."""

    status_code = 400

    def __init__(self, message: str = "Request body could not be read", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class BackingStoreError(AccessLayerException):
    """Record store errors."""

    status_code = 503

    def __init__(self, store: str, message: str = "Backing store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("BACKING_STORE_ERROR", f"{store}: {message}", details)
