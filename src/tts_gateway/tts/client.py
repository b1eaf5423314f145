"""
Synthesis Client for the Edge read-aloud backend.

One call = one chunk. The chunk text is wrapped in SSML::

    <speak xmlns="http://www.w3.org/2001/10/synthesis"
           xmlns:mstts="http://www.w3.org/2001/mstts" version="1.0" xml:lang="en-US">
      <voice name="zh-CN-XiaoxiaoNeural">
        <mstts:express-as style="general">
          <prosody rate="0%" pitch="0%">...</prosody>
        </mstts:express-as>
      </voice>
    </speak>

and POSTed to ``https://{region}.tts.speech.microsoft.com/cognitiveservices/v1``
with the current credential. A non-2xx answer raises SynthesisCallError
carrying status, reason and body; transport errors raise it with
``status=None``. Nothing is retried here.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import httpx

from tts_gateway.core.config import BackendConfig, Defaults
from tts_gateway.core.errors import SynthesisCallError
from tts_gateway.core.logging import debug, get_logger
from tts_gateway.core.metrics import metrics
from tts_gateway.tts.chunker import Chunk
from tts_gateway.tts.credentials import CredentialManager

_LOG = get_logger("tts-gateway.client")

_SSML_TEMPLATE = (
    '<speak xmlns="http://www.w3.org/2001/10/synthesis" '
    'xmlns:mstts="http://www.w3.org/2001/mstts" version="1.0" xml:lang="en-US">'
    '<voice name="{voice}"><mstts:express-as style="{style}">'
    '<prosody rate="{rate}%" pitch="{pitch}%">{text}</prosody>'
    "</mstts:express-as></voice></speak>"
)


def prosody_offset(value: float) -> int:
    """
    Convert a 1.0-centred multiplier into a signed percent (1.25 -> 25).

    Halves round away from zero (1.125 -> 13, 0.875 -> -13).
    """
    return int(Decimal((value - 1.0) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class VoiceParams:
    """
    Voice and prosody shared by every chunk of one request.

    ``rate`` and ``pitch`` are signed percent offsets, not multipliers.
    """
    voice: str = Defaults.VOICE_DEFAULT
    rate: int = 0
    pitch: int = 0
    style: str = Defaults.VOICE_DEFAULT_STYLE
    output_format: str = Defaults.BACKEND_OUTPUT_FORMAT

    @classmethod
    def from_multipliers(
        cls,
        voice: str,
        speed: float = 1.0,
        pitch: float = 1.0,
        style: str = Defaults.VOICE_DEFAULT_STYLE,
        output_format: str = Defaults.BACKEND_OUTPUT_FORMAT,
    ) -> "VoiceParams":
        return cls(
            voice=voice,
            rate=prosody_offset(speed),
            pitch=prosody_offset(pitch),
            style=style,
            output_format=output_format,
        )


@dataclass(frozen=True)
class SynthesisRequest:
    chunk: Chunk
    voice: VoiceParams


def escape_ssml_text(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_ssml(text: str, voice: VoiceParams) -> str:
    return _SSML_TEMPLATE.format(
        voice=voice.voice,
        style=voice.style,
        rate=voice.rate,
        pitch=voice.pitch,
        text=escape_ssml_text(text),
    )


class SynthesisClient:
    """
    Performs single backend synthesis calls.

    Args:
        config: Backend settings (URL template, user agent).
        credentials: Shared credential manager.
        http: Shared AsyncClient; the caller owns and closes it.
    """

    def __init__(self, config: BackendConfig, credentials: CredentialManager, http: httpx.AsyncClient):
        self._config = config
        self._credentials = credentials
        self._http = http

    async def synthesize(self, request: SynthesisRequest) -> bytes:
        """
        Synthesize one chunk.

        Returns:
            Raw audio bytes in ``request.voice.output_format``.

        Raises:
            CredentialAcquisitionError: No usable credential.
            SynthesisCallError: Backend answered non-2xx or the transport failed.
        """
        credential = await self._credentials.acquire()
        url = self._config.tts_url_template.format(region=credential.region)
        headers = {
            "Authorization": credential.token,
            "Content-Type": "application/ssml+xml",
            "User-Agent": self._config.user_agent,
            "X-Microsoft-OutputFormat": request.voice.output_format,
        }
        ssml = build_ssml(request.chunk.text, request.voice)
        index = request.chunk.index

        try:
            response = await self._http.post(url, headers=headers, content=ssml.encode("utf-8"))
        except httpx.HTTPError as e:
            metrics.record_synthesis_call("error")
            raise SynthesisCallError(None, reason=str(e) or type(e).__name__, chunk_index=index) from e

        if not response.is_success:
            metrics.record_synthesis_call("error")
            raise SynthesisCallError(
                response.status_code,
                reason=response.reason_phrase,
                body=response.text,
                chunk_index=index,
            )

        audio = response.content
        metrics.record_synthesis_call("success")
        debug(_LOG, "chunk_synthesized", chunk=index, chars=len(request.chunk.text), bytes=len(audio))
        return audio
