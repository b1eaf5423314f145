"""
API Request/Response Schemas.

Pydantic models for the OpenAI-compatible endpoints. They validate and
document the wire format only; defaults that depend on configuration
(voice, concurrency, chunk size) are resolved by the service.

Example Request:
    {
        "model": "tts-1",
        "input": "你好，世界。",
        "voice": "zh-CN-XiaoxiaoNeural",
        "speed": 1.1,
        "pitch": 1.0,
        "style": "cheerful",
        "stream": true,
        "concurrency": 5,
        "chunk_size": 200,
        "cleaning_options": {"remove_emoji": false, "custom_keywords": "foo,bar"}
    }
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from tts_gateway.core.config import Defaults
from tts_gateway.services.tts_service import SynthesizeRequest
from tts_gateway.utils.text import CleaningOptions


class CleaningOptionsModel(BaseModel):
    """Partial overrides; omitted switches keep their default (on)."""
    remove_markdown: Optional[bool] = None
    remove_emoji: Optional[bool] = None
    remove_urls: Optional[bool] = None
    remove_line_breaks: Optional[bool] = None
    remove_citation_numbers: Optional[bool] = None
    custom_keywords: Optional[str] = Field(
        default=None,
        description="Comma-separated literals removed from the input",
    )

    def to_options(self) -> CleaningOptions:
        return CleaningOptions.from_overrides(self.model_dump(exclude_none=True))


class SpeechRequest(BaseModel):
    """
    OpenAI-compatible speech request with gateway extensions.

    Attributes:
        model: ``tts-1``, ``tts-1-hd`` or ``tts-1-<alias>`` (alias selects the voice).
        input: Text to synthesize. Required and non-empty.
        voice: Backend voice name or OpenAI alias (alloy, echo, ...).
        speed: Rate multiplier; 1.0 is normal.
        pitch: Pitch multiplier; 1.0 is normal.
        style: Backend speaking style.
        stream: Stream audio batch by batch instead of one payload.
        concurrency: Batch size, i.e. simultaneous backend calls.
        chunk_size: Max characters per backend call.
        response_format: Accepted for OpenAI clients; output is always the
            configured backend format.
        cleaning_options: Text cleaning overrides.
    """
    model: str = Field(default="tts-1", description="Model id; tts-1-<alias> picks a voice.")
    input: str = Field(..., min_length=1, description="The text to generate audio for.")
    voice: Optional[str] = Field(default=None, description=f"Voice name or alias (default {Defaults.VOICE_DEFAULT}).")
    speed: float = Field(default=1.0, ge=0.25, le=4.0, description="Speaking rate multiplier.")
    pitch: float = Field(default=1.0, ge=0.0, le=2.0, description="Pitch multiplier.")
    style: Optional[str] = Field(default=None, description="Speaking style (default general).")
    stream: bool = Field(default=False, description="Stream the audio.")
    concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description=f"Simultaneous backend calls per batch (default {Defaults.PIPELINE_DEFAULT_CONCURRENCY}).",
    )
    chunk_size: Optional[int] = Field(
        default=None,
        ge=1,
        description=f"Maximum characters per chunk (default {Defaults.PIPELINE_DEFAULT_CHUNK_SIZE}).",
    )
    response_format: Optional[str] = Field(default=None, description="Ignored; always mp3.")
    cleaning_options: Optional[CleaningOptionsModel] = None

    def to_synthesize_request(self) -> SynthesizeRequest:
        cleaning = self.cleaning_options.to_options() if self.cleaning_options else CleaningOptions()
        return SynthesizeRequest(
            text=self.input,
            voice=self.voice,
            model=self.model,
            speed=self.speed,
            pitch=self.pitch,
            style=self.style,
            concurrency=self.concurrency,
            chunk_size=self.chunk_size,
            cleaning=cleaning,
        )


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str = "openai"


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelCard]
