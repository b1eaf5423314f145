"""
tts-gateway Services Layer.

Sits between the API/CLI and the backend layer: cleans and segments the
input, resolves the voice and runs the batch pipeline in buffered or
streaming mode.
"""
from .tts_service import (
    AudioStream,
    SynthesisPlan,
    SynthesizeRequest,
    SynthesizeResult,
    TTSService,
    get_service,
    reset_service,
    resolve_voice,
)

__all__ = [
    "TTSService",
    "SynthesizeRequest",
    "SynthesizeResult",
    "SynthesisPlan",
    "AudioStream",
    "get_service",
    "reset_service",
    "resolve_voice",
]
