"""
Error Taxonomy for tts-gateway.

Every failure that can reach the HTTP boundary is a TTSError subclass. Each
class knows its HTTP status and wire code, so the API layer only has to call
``to_dict()`` to build an OpenAI-style error envelope:

    {
        "error": {
            "message": "Edge TTS API error: 429 Too Many Requests - ...",
            "type": "api_error",
            "param": null,
            "code": "tts_generation_error"
        }
    }

Hierarchy:
    TTSError
    ├── ClientInputError          400  invalid_request_error
    ├── AuthorizationError        401  invalid_api_key
    ├── RouteError                404/405
    └── BackendError              500  tts_generation_error
        ├── CredentialAcquisitionError
        ├── SynthesisCallError
        ├── StreamWriteError
        └── PipelineCancelledError

Only the credential manager recovers from an error on its own (stale token
fallback). Everything else propagates to the boundary.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Wire codes used in the ``error.code`` field."""
    INVALID_REQUEST = "invalid_request_error"
    INVALID_API_KEY = "invalid_api_key"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    TTS_GENERATION_ERROR = "tts_generation_error"
    INTERNAL_ERROR = "internal_server_error"


class TTSError(Exception):
    """
    Base exception for gateway errors.

    Attributes:
        message: Human-readable error message.
        code: Wire code from ErrorCode.
        details: Optional dictionary with extra context (logged, not returned).
        status_code: HTTP status used by the API layer.
    """
    status_code: int = 500
    error_type: str = "api_error"

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Build the OpenAI-compatible error envelope."""
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "param": None,
                "code": self.code,
            }
        }


class ClientInputError(TTSError):
    """Missing or invalid request fields."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details)


class AuthorizationError(TTSError):
    """Caller-facing API key mismatch."""
    status_code = 401

    def __init__(self, message: str = "Invalid API key."):
        super().__init__(message, ErrorCode.INVALID_API_KEY)


class RouteError(TTSError):
    """Unknown path (404) or wrong method (405)."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        if status_code == 405:
            code, default = ErrorCode.METHOD_NOT_ALLOWED, "Method Not Allowed"
        else:
            code, default = ErrorCode.NOT_FOUND, "Not Found"
        super().__init__(message or default, code)
        self.status_code = status_code


class BackendError(TTSError):
    """Failure talking to the speech backend or running the pipeline."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.TTS_GENERATION_ERROR, details)


class CredentialAcquisitionError(BackendError):
    """No backend token could be obtained and no cached one exists."""


class SynthesisCallError(BackendError):
    """
    One backend synthesis call failed.

    Attributes:
        status: HTTP status returned by the backend (None for transport errors).
        reason: Backend reason phrase.
        body: Error body returned by the backend.
        chunk_index: Index of the chunk that failed, when known.
    """

    def __init__(
        self,
        status: Optional[int],
        reason: str = "",
        body: str = "",
        chunk_index: Optional[int] = None,
    ):
        self.status = status
        self.reason = reason
        self.body = body
        self.chunk_index = chunk_index
        if status is None:
            message = f"Edge TTS transport error: {reason}"
        else:
            message = f"Edge TTS API error: {status} {reason} - {body}"
        super().__init__(message, {"status": status, "chunk_index": chunk_index})


class StreamWriteError(BackendError):
    """The downstream consumer is gone or the stream is already closed."""


class PipelineCancelledError(BackendError):
    """The request was cancelled before all batches were dispatched."""
