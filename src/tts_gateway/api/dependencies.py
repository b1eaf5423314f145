"""
FastAPI Dependency Injection Providers.

    get_settings()     loads and caches settings (config/settings.yaml or
                       $TTS_GATEWAY_SETTINGS; missing file = defaults)
    get_tts_service()  returns the singleton TTSService
    verify_api_key()   gate for the OpenAI routes, active only when an API
                       key is configured (settings ``auth.api_key`` or
                       $TTS_GATEWAY_API_KEY)

Tests swap the service with ``app.dependency_overrides[get_tts_service]``.
"""
from __future__ import annotations

import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from tts_gateway.core.config import AuthConfig, Settings, load_settings
from tts_gateway.core.errors import AuthorizationError
from tts_gateway.core.logging import get_logger, warn
from tts_gateway.services.tts_service import TTSService, get_service

_LOG = get_logger("tts-gateway.auth")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process."""
    return load_settings()


def get_tts_service() -> TTSService:
    """Get the singleton TTSService instance."""
    return get_service(get_settings())


def get_auth_config(settings: Settings = Depends(get_settings)) -> AuthConfig:
    return settings.get_gateway_config().auth


def verify_api_key(
    authorization: Optional[str] = Header(default=None),
    auth: AuthConfig = Depends(get_auth_config),
) -> None:
    """
    Require ``Authorization: Bearer <key>`` when a key is configured.

    Raises:
        AuthorizationError: Header missing or key mismatch (401).
    """
    if not auth.enabled:
        return
    expected = f"Bearer {auth.api_key}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        warn(_LOG, "auth_rejected", header_present=authorization is not None)
        raise AuthorizationError()
