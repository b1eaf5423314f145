"""
Test doubles shared by the test modules.

FakeBackend is an httpx.MockTransport handler that plays both sides of
the Edge backend: the translator identity endpoint (hands out a JWT and a
region) and the regional synthesis endpoint (answers with the chunk text
as "audio", so ordering is easy to assert).
"""
from __future__ import annotations

import asyncio
import html
import re
import time
from typing import Callable, List, Optional, Sequence

import httpx
from jose import jwt

IDENTITY_HOST = "dev.microsofttranslator.com"

_PROSODY_RE = re.compile(r"<prosody[^>]*>(.*)</prosody>", re.S)


def make_jwt(exp: float, extra: Optional[dict] = None) -> str:
    """JWT carrying an ``exp`` claim, signed with a key the gateway never sees."""
    claims = {"exp": int(exp)}
    claims.update(extra or {})
    return jwt.encode(claims, "backend-secret", algorithm="HS256")


def ssml_text(ssml: str) -> str:
    match = _PROSODY_RE.search(ssml)
    assert match, ssml
    return html.unescape(match.group(1))


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeBackend:
    """
    Args:
        region: Region returned by the identity endpoint.
        token_ttl: Seconds until the issued JWT expires.
        clock: Time source for the JWT ``exp`` claim.
        delay: Seconds to sleep per synthesis call, by chunk text.
        fail: Predicate on chunk text; True answers ``fail_status``.
        fail_status: Status used for failing synthesis calls.
        identity_status: Status of the identity endpoint (200 = healthy).
    """

    def __init__(
        self,
        region: str = "eastus",
        token_ttl: float = 600,
        clock: Callable[[], float] = time.time,
        delay: Optional[Callable[[str], float]] = None,
        fail: Optional[Callable[[str], bool]] = None,
        fail_status: int = 503,
        identity_status: int = 200,
    ):
        self.region = region
        self.token_ttl = token_ttl
        self.clock = clock
        self.delay = delay
        self.fail = fail
        self.fail_status = fail_status
        self.identity_status = identity_status

        self.identity_calls = 0
        self.identity_requests: List[httpx.Request] = []
        self.synth_requests: List[httpx.Request] = []
        self.synth_texts: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == IDENTITY_HOST:
            self.identity_calls += 1
            self.identity_requests.append(request)
            await asyncio.sleep(0)
            if self.identity_status != 200:
                return httpx.Response(self.identity_status, text="identity unavailable")
            return httpx.Response(
                200,
                json={"r": self.region, "t": make_jwt(self.clock() + self.token_ttl)},
            )

        text = ssml_text(request.content.decode("utf-8"))
        self.synth_requests.append(request)
        self.synth_texts.append(text)

        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            seconds = self.delay(text) if self.delay else 0
            if seconds:
                await asyncio.sleep(seconds)
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

        if self.fail is not None and self.fail(text):
            return httpx.Response(self.fail_status, text="backend unavailable")
        return httpx.Response(200, content=text.encode("utf-8"))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def numbered_sentences(count: int, width: int = 48) -> str:
    """``count`` distinct sentences of ``width`` chars plus a period, space separated."""
    return " ".join(f"Sentence {i:02d} ".ljust(width, "z") + "." for i in range(1, count + 1))


class FakeSynth:
    """In-memory synthesizer: audio for chunk i is b"<i>"."""

    def __init__(self, delays=None, fail=(), on_call=None):
        self.delays = delays or {}
        self.fail = set(fail)
        self.on_call = on_call
        self.dispatched: List[int] = []
        self.cancelled: List[int] = []
        self.in_flight = 0
        self.peak = 0

    async def synthesize(self, request) -> bytes:
        from tts_gateway.core.errors import SynthesisCallError

        index = request.chunk.index
        self.dispatched.append(index)
        if self.on_call:
            self.on_call(index)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(index, 0))
            if index in self.fail:
                raise SynthesisCallError(503, "Service Unavailable", "down", chunk_index=index)
            return f"<{index}>".encode()
        except asyncio.CancelledError:
            self.cancelled.append(index)
            raise
        finally:
            self.in_flight -= 1


def chunks_of(n: int):
    from tts_gateway.tts.chunker import Chunk

    return [Chunk(index=i, text=f"chunk {i}.") for i in range(n)]


def default_voice():
    from tts_gateway.tts.client import VoiceParams

    return VoiceParams()


def recording_sink():
    from tts_gateway.tts.pipeline import AudioSink

    class RecordingSink(AudioSink):
        def __init__(self):
            self.writes: List[List[bytes]] = []
            self.close_calls = 0
            self.aborted_with: Optional[BaseException] = None

        async def write(self, payloads: Sequence[bytes]) -> None:
            self.writes.append(list(payloads))

        async def close(self) -> None:
            self.close_calls += 1

        async def abort(self, exc: BaseException) -> None:
            self.aborted_with = exc

    return RecordingSink()
