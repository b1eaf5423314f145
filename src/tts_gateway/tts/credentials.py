"""
Backend Credential Manager.

The read-aloud backend accepts a short-lived JWT issued by the translator
app's identity endpoint. The response looks like::

    {"r": "southeastasia", "t": "<header>.<payload>.<signature>", ...}

``r`` names the regional speech endpoint and ``t`` is the bearer token.
Expiry is read from the token's own ``exp`` claim.

Lifecycle:
    - ``acquire()`` returns the cached credential while
      ``now < expires_at - refresh_margin`` (no network access).
    - Otherwise one refresh runs under an asyncio.Lock. Callers that queued
      behind it share its outcome instead of starting a second exchange.
    - If the refresh fails and a credential was cached before, that stale
      credential is returned anyway. This is logged as
      ``credential_stale_fallback`` and counted in
      ``tts_gateway_credential_stale_total``.
    - If the refresh fails with nothing cached, CredentialAcquisitionError.

Request signing (X-MT-Signature)::

    MSTranslatorAndroidApp::<b64 hmac-sha256>::<RFC 1123 date>::<uuid hex>

The HMAC input is ``"MSTranslatorAndroidApp" + urlencode(url without scheme)
+ date + uuid``, lower-cased.
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass
from email.utils import formatdate
from typing import Callable, Optional
from urllib.parse import quote

import httpx
from jose import JWTError, jwt

from tts_gateway.core.config import BackendConfig
from tts_gateway.core.errors import CredentialAcquisitionError
from tts_gateway.core.logging import debug, fail, get_logger, success, warn
from tts_gateway.core.metrics import metrics

_LOG = get_logger("tts-gateway.credentials")

_APP_ID = "MSTranslatorAndroidApp"

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class Credential:
    """
    A backend access token and the region it is valid for.

    Attributes:
        region: Speech endpoint region (e.g. "southeastasia").
        token: Bearer token sent verbatim in the Authorization header.
        expires_at: Expiry as epoch seconds (JWT ``exp`` claim).
    """
    region: str
    token: str
    expires_at: float

    def is_fresh(self, now: float, margin: float) -> bool:
        return now < self.expires_at - margin


def sign_request(
    url: str,
    signing_key: str,
    now: Optional[float] = None,
    trace_id: Optional[str] = None,
) -> str:
    """
    Build the X-MT-Signature header value for ``url``.

    Args:
        url: Full endpoint URL, scheme included.
        signing_key: Base64 HMAC key.
        now: Epoch seconds for the date field (default: current time).
        trace_id: Hex uuid (default: a fresh uuid4).
    """
    path = url.split("://", 1)[-1]
    date = formatdate(now, usegmt=True)
    nonce = trace_id or uuid.uuid4().hex
    message = f"{_APP_ID}{quote(path, safe=_URI_COMPONENT_SAFE)}{date}{nonce}".lower()
    digest = hmac.new(base64.b64decode(signing_key), message.encode("utf-8"), hashlib.sha256).digest()
    return f"{_APP_ID}::{base64.b64encode(digest).decode('ascii')}::{date}::{nonce}"


def decode_jwt_exp(token: str) -> float:
    """
    Read the ``exp`` claim from a JWT without verifying it.

    The signing key belongs to the backend, so only the claims are read.

    Raises:
        JWTError: If the token cannot be decoded.
        KeyError: If the token carries no ``exp``.
    """
    claims = jwt.get_unverified_claims(token)
    return float(claims["exp"])


class CredentialManager:
    """
    Owns the cached backend credential.

    Share one instance per process; it is safe for concurrent ``acquire()``
    calls from the same event loop.

    Example:
        async with httpx.AsyncClient() as http:
            manager = CredentialManager(BackendConfig(), http)
            credential = await manager.acquire()
    """

    def __init__(
        self,
        config: BackendConfig,
        http: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._http = http
        self._clock = clock
        self._lock = asyncio.Lock()
        self._credential: Optional[Credential] = None
        self._refresh_count = 0
        # Bumped after every finished refresh attempt
        self._generation = 0
        self._last_error: Optional[BaseException] = None

    @property
    def cached(self) -> Optional[Credential]:
        return self._credential

    @property
    def refresh_count(self) -> int:
        """Number of network refresh attempts made so far."""
        return self._refresh_count

    async def acquire(self) -> Credential:
        """
        Return a usable credential, refreshing it when close to expiry.

        Raises:
            CredentialAcquisitionError: Refresh failed and nothing is cached.
        """
        margin = self._config.refresh_margin_s
        cached = self._credential
        if cached is not None and cached.is_fresh(self._clock(), margin):
            return cached

        generation = self._generation
        async with self._lock:
            # Another caller may have refreshed while we waited
            now = self._clock()
            cached = self._credential
            if cached is not None and cached.is_fresh(now, margin):
                return cached
            if self._generation != generation:
                # ...or tried and failed; share that outcome
                return self._shared_failure(cached)

            try:
                credential = await self._refresh()
            except (httpx.HTTPError, JWTError, ValueError, KeyError, TypeError) as e:
                self._generation += 1
                self._last_error = e
                metrics.record_credential_refresh("failure")
                if cached is None:
                    fail(_LOG, "credential_refresh_failed", error=str(e))
                    raise CredentialAcquisitionError(
                        f"Failed to get endpoint: {e}",
                        details={"error_type": type(e).__name__},
                    ) from e
                metrics.record_stale_credential()
                warn(
                    _LOG, "credential_stale_fallback",
                    error=str(e),
                    region=cached.region,
                    expired=not cached.is_fresh(now, 0),
                    stale=True,
                )
                return cached

            self._generation += 1
            self._last_error = None
            self._credential = credential
            metrics.record_credential_refresh("success")
            success(
                _LOG, "credential_refreshed",
                region=credential.region,
                valid_minutes=round((credential.expires_at - now) / 60, 1),
            )
            return credential

    async def _refresh(self) -> Credential:
        self._refresh_count += 1
        cfg = self._config
        trace_id = uuid.uuid4().hex
        headers = {
            "Accept-Language": cfg.accept_language,
            "X-ClientVersion": cfg.client_version,
            "X-UserId": cfg.user_id,
            "X-HomeGeographicRegion": cfg.home_region,
            "X-ClientTraceId": trace_id,
            "X-MT-Signature": sign_request(cfg.endpoint_url, cfg.signing_key),
            "User-Agent": cfg.user_agent,
            "Content-Type": "application/json; charset=utf-8",
            "Accept-Encoding": "gzip",
        }
        debug(_LOG, "credential_request", url=cfg.endpoint_url)
        response = await self._http.post(cfg.endpoint_url, headers=headers, content=b"")
        response.raise_for_status()
        data = response.json()
        token = data["t"]
        return Credential(region=data["r"], token=token, expires_at=decode_jwt_exp(token))

    def _shared_failure(self, cached: Optional[Credential]) -> Credential:
        """Outcome for a caller that queued behind a refresh which did not produce a fresh credential."""
        if cached is not None:
            if self._last_error is not None:
                metrics.record_stale_credential()
            return cached
        raise CredentialAcquisitionError(
            f"Failed to get endpoint: {self._last_error}",
            details={"error_type": type(self._last_error).__name__},
        ) from self._last_error
