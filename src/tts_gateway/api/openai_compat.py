"""
OpenAI-Compatible Speech Endpoints.

    POST /v1/audio/speech   synthesize (buffered or streamed MP3)
    GET  /v1/models         static model listing

Works with the OpenAI Python client:

    from openai import OpenAI
    client = OpenAI(base_url="http://localhost:8000/v1", api_key="my-key")
    client.audio.speech.create(model="tts-1-alloy", voice="alloy", input="你好")

Gateway extensions to the request body: ``pitch``, ``style``, ``stream``,
``concurrency``, ``chunk_size`` and ``cleaning_options``.

Error Responses:
    {"error": {"message": "...", "type": "api_error", "param": null, "code": "..."}}

Streaming:
    The first audio batch is awaited before the response starts. A failure
    before any audio exists therefore still yields a JSON 500; a failure
    after that ends the chunked response abruptly.
"""
from __future__ import annotations

import time
import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse, StreamingResponse

from tts_gateway.api.dependencies import get_tts_service, verify_api_key
from tts_gateway.api.schemas import ModelCard, ModelList, SpeechRequest
from tts_gateway.core.errors import TTSError
from tts_gateway.core.logging import debug, get_logger, set_request_id, warn
from tts_gateway.services.tts_service import TTSService

router = APIRouter(dependencies=[Depends(verify_api_key)])

_LOG = get_logger("tts-gateway.openai")


def openai_error_response(error: TTSError) -> JSONResponse:
    """Render a TTSError as an OpenAI-style JSON error with its status."""
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@router.post("/v1/audio/speech", response_class=Response)
async def openai_speech(
    req: SpeechRequest,
    service: TTSService = Depends(get_tts_service),
):
    """
    OpenAI-compatible text-to-speech endpoint.

    Returns:
        Audio with headers:
            - X-Request-Id: request identifier (also in the logs)
            - X-Voice: backend voice used
            - X-Chunks: number of chunks synthesized

    Raises (as JSON errors):
        400: invalid_request_error
        401: invalid_api_key
        500: tts_generation_error
    """
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    debug(_LOG, "openai_request_full", text=req.input, model=req.model, voice=req.voice)

    if req.response_format and req.response_format != "mp3":
        warn(_LOG, "format_unsupported", requested=req.response_format, using="mp3")

    synth_request = req.to_synthesize_request()
    try:
        if req.stream:
            stream = await service.open_stream(synth_request, rid)
            return StreamingResponse(
                stream.body,
                media_type=stream.media_type,
                headers={
                    "X-Request-Id": rid,
                    "X-Voice": stream.voice,
                    "X-Chunks": str(stream.chunks),
                },
            )

        result = await service.synthesize(synth_request, rid)
        return Response(
            content=result.audio,
            media_type=result.media_type,
            headers={
                "X-Request-Id": rid,
                "X-Voice": result.voice,
                "X-Chunks": str(result.chunks),
            },
        )
    except TTSError as e:
        return openai_error_response(e)


@router.get("/v1/models", response_model=ModelList)
def list_models(service: TTSService = Depends(get_tts_service)) -> ModelList:
    """tts-1, tts-1-hd and one ``tts-1-<alias>`` per voice alias."""
    created = int(time.time())
    ids = ["tts-1", "tts-1-hd"] + [f"tts-1-{alias}" for alias in service.voice_aliases]
    return ModelList(data=[ModelCard(id=model_id, created=created) for model_id in ids])
