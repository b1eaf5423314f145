"""
tts-gateway: OpenAI-compatible speech gateway for the Edge read-aloud backend.

Long input is cleaned, split into bounded chunks and synthesized in
sequential batches of concurrent backend calls. Audio comes back either
as one payload or as a stream that grows batch by batch.

Key Features:
    - OpenAI-compatible endpoint (/v1/audio/speech, /v1/models)
    - Bounded outbound concurrency with strict chunk ordering
    - Cached, proactively refreshed backend credential with stale fallback
    - Markdown/emoji/URL cleaning tuned for LLM output
    - Prometheus metrics and structured logging

Example Usage:
    >>> from tts_gateway.core.config import load_settings
    >>> from tts_gateway.services import TTSService, SynthesizeRequest
    >>>
    >>> service = TTSService(load_settings())
    >>> result = await service.synthesize(SynthesizeRequest(text="你好"), request_id="demo")
    >>> open("out.mp3", "wb").write(result.audio)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
