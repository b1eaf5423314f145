"""
TTSService - Speech Request Orchestration.

The single entry point used by both the HTTP layer and the CLI.

Architecture:
    Request → Clean → Segment → Batch Pipeline → Sink → Response
                                     │
                     CredentialManager + SynthesisClient (per chunk)

Two consumption modes:
    synthesize()   buffered: waits for every batch, returns one payload
    open_stream()  streaming: starts the pipeline in a task, waits for the
                   first audio, then hands back an async iterator that
                   yields each batch as soon as it lands

Error Handling:
    - ClientInputError: bad concurrency/chunk_size values (400)
    - BackendError family: credential, synthesis, stream and cancellation
      failures (500, tts_generation_error)
    - anything else is wrapped into BackendError("Unexpected error: ...")

Example:
    >>> service = TTSService(load_settings())
    >>> result = await service.synthesize(SynthesizeRequest(text="你好，世界。"), request_id="r1")
    >>> len(result.audio) > 0
    True
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from tts_gateway import __version__
from tts_gateway.core.config import GatewayConfig, Settings
from tts_gateway.core.errors import BackendError, ClientInputError, TTSError
from tts_gateway.core.logging import debug, fail, get_logger, info, success
from tts_gateway.core.metrics import metrics
from tts_gateway.tts.chunker import Chunk, make_chunks
from tts_gateway.tts.client import SynthesisClient, VoiceParams
from tts_gateway.tts.credentials import CredentialManager
from tts_gateway.tts.pipeline import BatchPipeline, BufferedSink, PipelineStats, StreamingSink
from tts_gateway.utils.text import CleaningOptions, clean_text
from tts_gateway.utils.timeit import timeit

_LOG = get_logger("tts-gateway.service")

_MEDIA_TYPES = (
    ("mp3", "audio/mpeg"),
    ("webm", "audio/webm"),
    ("ogg", "audio/ogg"),
    ("riff", "audio/wav"),
    ("pcm", "audio/pcm"),
)


def media_type_for(output_format: str) -> str:
    """MIME type for a backend output format name."""
    for marker, media_type in _MEDIA_TYPES:
        if marker in output_format:
            return media_type
    return "application/octet-stream"


def resolve_voice(model: Optional[str], voice: Optional[str], aliases: Dict[str, str], default: str) -> str:
    """
    Pick the backend voice for a request.

    The alias of ``model`` (with its ``tts-1-`` prefix dropped) wins, then
    the alias of ``voice``, then ``voice`` itself, then ``default``.
    ``model="tts-1-alloy", voice="nova"`` therefore resolves to the alloy voice.
    """
    model_key = (model or "").replace("tts-1-", "", 1)
    if model_key in aliases:
        return aliases[model_key]
    if voice and voice in aliases:
        return aliases[voice]
    return voice or default


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass
class SynthesizeRequest:
    """
    Request for speech synthesis.

    Attributes:
        text: Raw input (required).
        voice: Voice name or OpenAI alias (optional, uses default).
        model: OpenAI model id; ``tts-1-<alias>`` selects a voice.
        speed: Rate multiplier around 1.0.
        pitch: Pitch multiplier around 1.0.
        style: Speaking style (optional, uses default).
        concurrency: Batch size (optional, uses default).
        chunk_size: Max characters per chunk (optional, uses default).
        cleaning: Text cleaning switches.
    """
    text: str
    voice: Optional[str] = None
    model: str = "tts-1"
    speed: float = 1.0
    pitch: float = 1.0
    style: Optional[str] = None
    concurrency: Optional[int] = None
    chunk_size: Optional[int] = None
    cleaning: CleaningOptions = field(default_factory=CleaningOptions)


@dataclass
class SynthesisPlan:
    """Cleaned, segmented request ready for the pipeline."""
    chunks: List[Chunk]
    voice: VoiceParams
    concurrency: int
    chunk_size: int
    cleaned_chars: int

    @property
    def batches(self) -> int:
        return -(-len(self.chunks) // self.concurrency)


@dataclass
class SynthesizeResult:
    """
    Result of buffered synthesis.

    Attributes:
        audio: Concatenated audio for all chunks, in order.
        media_type: MIME type matching the output format.
        voice: Backend voice actually used.
        chunks: Number of chunks synthesized.
        total_seconds: Total processing time.
        request_id: Request ID for tracing.
        stats: Pipeline statistics.
    """
    audio: bytes
    media_type: str
    voice: str
    chunks: int
    total_seconds: float
    request_id: str
    stats: PipelineStats


@dataclass
class AudioStream:
    """
    An already-started streaming synthesis.

    ``body`` yields audio bytes in chunk order and raises if the pipeline
    fails later on. Closing it (client disconnect) cancels the pipeline.
    """
    body: AsyncIterator[bytes]
    media_type: str
    voice: str
    chunks: int
    request_id: str


def _retrieve_exception(task: asyncio.Task) -> None:
    # The error reaches the consumer through the sink
    if not task.cancelled():
        task.exception()


# =============================================================================
# Main Service Class
# =============================================================================

class TTSService:
    """
    Owns the shared backend resources: one httpx.AsyncClient, one
    CredentialManager and one SynthesisClient. A BatchPipeline is created
    per request, since concurrency is a per-request parameter.

    Usage:
        service = TTSService(load_settings())
        result = await service.synthesize(SynthesizeRequest(text="..."), request_id="abc")
        await service.aclose()
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._config = GatewayConfig.from_settings(settings)

        backend = self._config.backend
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=backend.timeout_s)

        self._credentials = CredentialManager(backend, self._http, clock=clock)
        self._client = SynthesisClient(backend, self._credentials, self._http)
        self._media_type = media_type_for(backend.output_format)
        self._text_preview_chars = self._config.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> GatewayConfig:
        return self._config

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    @property
    def voice_aliases(self) -> Dict[str, str]:
        return dict(self._config.voices.aliases)

    @property
    def media_type(self) -> str:
        return self._media_type

    # =========================================================================
    # Planning
    # =========================================================================

    def prepare(self, request: SynthesizeRequest) -> SynthesisPlan:
        """
        Validate limits, clean and segment the text, resolve the voice.

        Raises:
            ClientInputError: concurrency or chunk_size out of range.
        """
        pipeline_cfg = self._config.pipeline
        voices = self._config.voices

        concurrency = request.concurrency if request.concurrency is not None else pipeline_cfg.default_concurrency
        if not 1 <= concurrency <= pipeline_cfg.max_concurrency:
            raise ClientInputError(
                f"'concurrency' must be between 1 and {pipeline_cfg.max_concurrency}.",
                details={"concurrency": concurrency},
            )
        chunk_size = request.chunk_size if request.chunk_size is not None else pipeline_cfg.default_chunk_size
        if chunk_size < 1:
            raise ClientInputError("'chunk_size' must be a positive integer.")

        voice = VoiceParams.from_multipliers(
            voice=resolve_voice(request.model, request.voice, voices.aliases, voices.default_voice),
            speed=request.speed,
            pitch=request.pitch,
            style=request.style or voices.default_style,
            output_format=self._config.backend.output_format,
        )

        cleaned = clean_text(request.text, request.cleaning)
        chunks = make_chunks(cleaned, chunk_size)

        preview = request.text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(
            _LOG, "request",
            chars=len(request.text),
            chunks=len(chunks),
            voice=voice.voice,
            concurrency=concurrency,
            text_preview=preview,
        )
        debug(_LOG, "voice_params", rate=voice.rate, pitch=voice.pitch, style=voice.style)

        return SynthesisPlan(
            chunks=chunks,
            voice=voice,
            concurrency=concurrency,
            chunk_size=chunk_size,
            cleaned_chars=len(cleaned),
        )

    # =========================================================================
    # Public API: synthesize()
    # =========================================================================

    async def synthesize(self, request: SynthesizeRequest, request_id: str) -> SynthesizeResult:
        """
        Synthesize the whole input and return one payload.

        Raises:
            ClientInputError: Invalid limits.
            BackendError: Any backend or pipeline failure; nothing is returned.
        """
        plan = self.prepare(request)
        sink = BufferedSink()
        pipeline = BatchPipeline(self._client, plan.concurrency)

        t0 = time.perf_counter()
        try:
            with timeit("request_total") as total_t:
                stats = await pipeline.run(plan.chunks, plan.voice, sink)
            audio = sink.getvalue()
        except TTSError as e:
            metrics.record_request("buffered", "error", time.perf_counter() - t0)
            fail(_LOG, "request_failed", error=e.message, code=e.code)
            raise
        except Exception as e:
            metrics.record_request("buffered", "error", time.perf_counter() - t0)
            fail(_LOG, "request_failed", error=str(e), error_type=type(e).__name__)
            raise BackendError(
                f"Unexpected error: {e}",
                {"error_type": type(e).__name__},
            ) from e

        total_s = total_t.seconds
        metrics.record_request("buffered", "success", total_s, audio_bytes=len(audio))
        success(
            _LOG, "done",
            bytes=len(audio),
            chunks=stats.chunks,
            batches=stats.batches,
            peak_in_flight=stats.peak_in_flight,
            seconds=round(total_s, 3),
        )
        return SynthesizeResult(
            audio=audio,
            media_type=self._media_type,
            voice=plan.voice.voice,
            chunks=len(plan.chunks),
            total_seconds=total_s,
            request_id=request_id,
            stats=stats,
        )

    # =========================================================================
    # Public API: open_stream()
    # =========================================================================

    async def open_stream(self, request: SynthesizeRequest, request_id: str) -> AudioStream:
        """
        Start streaming synthesis and wait for the first audio.

        A failure before any audio exists is raised here, so the caller can
        still answer with a structured error. Later failures surface while
        iterating ``AudioStream.body``.
        """
        plan = self.prepare(request)
        sink = StreamingSink()
        cancel = asyncio.Event()
        pipeline = BatchPipeline(self._client, plan.concurrency)

        t0 = time.perf_counter()
        task = asyncio.create_task(pipeline.run(plan.chunks, plan.voice, sink, cancel))
        task.add_done_callback(_retrieve_exception)

        iterator = sink.__aiter__()
        try:
            first = await anext(iterator, None)
        except asyncio.CancelledError:
            cancel.set()
            task.cancel()
            raise
        except TTSError as e:
            task.cancel()
            metrics.record_request("stream", "error", time.perf_counter() - t0)
            fail(_LOG, "stream_failed", error=e.message, code=e.code, bytes=0)
            raise
        except Exception as e:
            task.cancel()
            metrics.record_request("stream", "error", time.perf_counter() - t0)
            fail(_LOG, "stream_failed", error=str(e), error_type=type(e).__name__, bytes=0)
            raise BackendError(f"Unexpected error: {e}", {"error_type": type(e).__name__}) from e

        body = self._drain(first, iterator, sink, cancel, task, t0)
        return AudioStream(
            body=body,
            media_type=self._media_type,
            voice=plan.voice.voice,
            chunks=len(plan.chunks),
            request_id=request_id,
        )

    async def _drain(
        self,
        first: Optional[bytes],
        iterator: AsyncIterator[bytes],
        sink: StreamingSink,
        cancel: asyncio.Event,
        task: asyncio.Task,
        t0: float,
    ) -> AsyncIterator[bytes]:
        status = "error"
        try:
            if first is not None:
                yield first
            async for data in iterator:
                yield data
            status = "success"
        finally:
            if not task.done():
                # Consumer went away mid-stream
                sink.disconnect()
                cancel.set()
                task.cancel()
            seconds = time.perf_counter() - t0
            metrics.record_request("stream", status, seconds, audio_bytes=sink.bytes_written)
            if status == "success":
                success(_LOG, "stream_done", bytes=sink.bytes_written, seconds=round(seconds, 3))
            else:
                fail(_LOG, "stream_failed", bytes=sink.bytes_written, seconds=round(seconds, 3))

    # =========================================================================
    # Health / lifecycle
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """Service, pipeline and credential status for /health."""
        cfg = self._config
        credential = self._credentials.cached
        credential_info: Dict[str, Any] = {"cached": credential is not None}
        if credential is not None:
            credential_info["region"] = credential.region
            credential_info["expires_in_s"] = round(credential.expires_at - time.time(), 1)

        return {
            "ok": True,
            "service": "tts-gateway",
            "version": __version__,
            "default_voice": cfg.voices.default_voice,
            "output_format": cfg.backend.output_format,
            "pipeline": {
                "default_concurrency": cfg.pipeline.default_concurrency,
                "max_concurrency": cfg.pipeline.max_concurrency,
                "default_chunk_size": cfg.pipeline.default_chunk_size,
            },
            "credential": credential_info,
            "auth_enabled": cfg.auth.enabled,
        }

    async def aclose(self) -> None:
        """Close the shared HTTP client if this service created it."""
        if self._owns_http:
            await self._http.aclose()


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[TTSService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> TTSService:
    """
    Get or create the global TTSService instance.

    Thread-safe lazy singleton, created on first call.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = TTSService(settings)
    return _service


def peek_service() -> Optional[TTSService]:
    """The singleton if it was created, without creating it."""
    return _service


def reset_service() -> None:
    """Drop the global service instance (tests)."""
    global _service
    with _service_lock:
        _service = None
