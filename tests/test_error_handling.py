"""
Tests for the error taxonomy.

Tests cover:
- ErrorCode wire values
- HTTP status per error class
- OpenAI error envelope (to_dict)
- SynthesisCallError message format
- Exception inheritance
"""
import pytest

from tts_gateway.core.errors import (
    AuthorizationError,
    BackendError,
    ClientInputError,
    CredentialAcquisitionError,
    ErrorCode,
    PipelineCancelledError,
    RouteError,
    StreamWriteError,
    SynthesisCallError,
    TTSError,
)


class TestErrorCode:
    """Tests for ErrorCode constants."""

    def test_wire_codes(self):
        assert ErrorCode.INVALID_REQUEST == "invalid_request_error"
        assert ErrorCode.INVALID_API_KEY == "invalid_api_key"
        assert ErrorCode.NOT_FOUND == "not_found"
        assert ErrorCode.METHOD_NOT_ALLOWED == "method_not_allowed"
        assert ErrorCode.TTS_GENERATION_ERROR == "tts_generation_error"
        assert ErrorCode.INTERNAL_ERROR == "internal_server_error"


class TestEnvelope:
    """Tests for to_dict()."""

    def test_envelope_shape(self):
        """Every error renders as {error: {message, type, param, code}}."""
        err = ClientInputError("'input' is a required parameter.")
        assert err.to_dict() == {
            "error": {
                "message": "'input' is a required parameter.",
                "type": "api_error",
                "param": None,
                "code": "invalid_request_error",
            }
        }

    def test_details_not_in_envelope(self):
        """details are for logs only."""
        err = BackendError("boom", details={"secret": "x"})
        assert "secret" not in str(err.to_dict())
        assert err.details == {"secret": "x"}


class TestStatusCodes:

    @pytest.mark.parametrize("error, status, code", [
        (ClientInputError("bad"), 400, "invalid_request_error"),
        (AuthorizationError(), 401, "invalid_api_key"),
        (RouteError(404), 404, "not_found"),
        (RouteError(405), 405, "method_not_allowed"),
        (BackendError("x"), 500, "tts_generation_error"),
        (CredentialAcquisitionError("x"), 500, "tts_generation_error"),
        (StreamWriteError("x"), 500, "tts_generation_error"),
        (PipelineCancelledError("x"), 500, "tts_generation_error"),
        (TTSError("x"), 500, "internal_server_error"),
    ])
    def test_status_and_code(self, error, status, code):
        assert error.status_code == status
        assert error.code == code

    def test_route_error_messages(self):
        assert RouteError(404).message == "Not Found"
        assert RouteError(405).message == "Method Not Allowed"

    def test_authorization_default_message(self):
        assert AuthorizationError().message == "Invalid API key."


class TestSynthesisCallError:
    """Tests for SynthesisCallError."""

    def test_http_failure_message(self):
        err = SynthesisCallError(429, reason="Too Many Requests", body="slow down", chunk_index=3)
        assert err.message == "Edge TTS API error: 429 Too Many Requests - slow down"
        assert err.status == 429
        assert err.chunk_index == 3
        assert err.details["chunk_index"] == 3

    def test_transport_failure_message(self):
        err = SynthesisCallError(None, reason="connection refused")
        assert err.message == "Edge TTS transport error: connection refused"
        assert err.status is None


class TestInheritance:

    def test_backend_family(self):
        for cls in (CredentialAcquisitionError, SynthesisCallError, StreamWriteError, PipelineCancelledError):
            assert issubclass(cls, BackendError)
            assert issubclass(cls, TTSError)

    def test_errors_are_exceptions(self):
        with pytest.raises(TTSError) as exc_info:
            raise CredentialAcquisitionError("Failed to get endpoint: down")
        assert str(exc_info.value) == "Failed to get endpoint: down"
