import os

import pytest

pytestmark = [
    pytest.mark.slow,
    pytest.mark.skipif(os.getenv("TTS_GATEWAY_LIVE") != "1", reason="set TTS_GATEWAY_LIVE=1 to call the real backend"),
]


def test_live_credential_and_synthesize():
    import asyncio

    from tts_gateway.core.config import load_settings
    from tts_gateway.core.logging import set_request_id
    from tts_gateway.services.tts_service import SynthesizeRequest, TTSService

    set_request_id("live-smoke")

    async def run():
        service = TTSService(load_settings("config/settings.yaml"))
        try:
            result = await service.synthesize(
                SynthesizeRequest(text="你好，世界。今天天气很好！", concurrency=2, chunk_size=8),
                "live-smoke",
            )
            return result, service.credentials.cached
        finally:
            await service.aclose()

    result, credential = asyncio.run(run())

    assert result.chunks == 2
    assert len(result.audio) > 1000
    # MP3 frames start with an ID3 tag or a frame sync
    assert result.audio[:3] == b"ID3" or result.audio[0] == 0xFF
    assert credential is not None
    assert credential.region
