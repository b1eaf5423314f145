"""
Bounded-Concurrency Ordered Batch Pipeline.

Chunks are cut into consecutive batches of ``concurrency`` members. Batches
run strictly one after another; the members of one batch are synthesized
concurrently and awaited together, so at most ``concurrency`` backend
calls are ever in flight for a run, whatever the input length.

    chunks:   0 1 2 3 4 5 6
    batches: [0 1 2] [3 4 5] [6]          concurrency=3
    sink:     write([a0 a1 a2]) write([a3 a4 a5]) write([a6]) close()

Ordering:
    Each batch's audio is handed to the sink ordered by Chunk.index, no
    matter in which order the calls completed.

Failure (fail-fast):
    The first failing call cancels its still-running siblings. The sink is
    aborted (never cleanly closed), the error is re-raised and no later
    batch is dispatched. Batches already written to a streaming sink stay
    written.

Cancellation:
    An ``asyncio.Event`` is checked before every batch; once set, the run
    stops with PipelineCancelledError. Cancelling the task running the
    pipeline aborts the sink the same way.

The sink is closed on every exit path.

Sinks:
    BufferedSink   collects payloads, ``getvalue()`` concatenates them
    StreamingSink  async-iterable queue drained by the HTTP response
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence

from tts_gateway.core.errors import PipelineCancelledError, StreamWriteError
from tts_gateway.core.logging import get_logger, verbose, warn
from tts_gateway.core.metrics import metrics
from tts_gateway.tts.chunker import Chunk
from tts_gateway.tts.client import SynthesisRequest, VoiceParams
from tts_gateway.utils.timeit import timeit

_LOG = get_logger("tts-gateway.pipeline")


class Synthesizer(Protocol):
    async def synthesize(self, request: SynthesisRequest) -> bytes: ...


def make_batches(chunks: Sequence[Chunk], size: int) -> List[List[Chunk]]:
    """Consecutive slices of at most ``size`` chunks."""
    if size <= 0:
        raise ValueError(f"batch size must be positive, got {size}")
    return [list(chunks[i:i + size]) for i in range(0, len(chunks), size)]


# =============================================================================
# Sinks
# =============================================================================

class AudioSink(ABC):
    """Consumer of ordered batch payloads."""

    @abstractmethod
    async def write(self, payloads: Sequence[bytes]) -> None:
        """Accept one batch of audio, already in chunk order."""

    @abstractmethod
    async def close(self) -> None:
        """Finish the output. Must be safe to call more than once."""

    @abstractmethod
    async def abort(self, exc: BaseException) -> None:
        """Mark the output as truncated because of ``exc``."""


class BufferedSink(AudioSink):
    """Collect everything, hand out one payload at the end."""

    def __init__(self) -> None:
        self._parts: List[bytes] = []
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def aborted(self) -> bool:
        return self._error is not None

    async def write(self, payloads: Sequence[bytes]) -> None:
        if self._closed:
            raise StreamWriteError("buffered sink is already closed")
        self._parts.extend(payloads)

    async def close(self) -> None:
        self._closed = True

    async def abort(self, exc: BaseException) -> None:
        self._error = exc
        self._parts.clear()
        self._closed = True

    def getvalue(self) -> bytes:
        """
        Concatenated audio.

        Raises:
            StreamWriteError: The run was aborted, no payload exists.
        """
        if self._error is not None:
            raise StreamWriteError("buffered sink was aborted") from self._error
        return b"".join(self._parts)


_EOF = object()
_ABORT = object()


class StreamingSink(AudioSink):
    """
    Write-through sink backed by an asyncio.Queue.

    Iterating the sink yields audio as batches complete. An aborted sink
    re-raises the failure to the iterating consumer after the bytes that
    were written before it. ``disconnect()`` is called when the consumer
    goes away; later writes then raise StreamWriteError.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._error: Optional[BaseException] = None
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._error is not None

    async def write(self, payloads: Sequence[bytes]) -> None:
        if self._closed:
            raise StreamWriteError("stream consumer is gone or the stream is closed")
        for payload in payloads:
            self._queue.put_nowait(payload)
            self.bytes_written += len(payload)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_EOF)

    async def abort(self, exc: BaseException) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = exc
        self._queue.put_nowait(_ABORT)

    def disconnect(self) -> None:
        """Consumer stopped reading; refuse further writes."""
        self._closed = True

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            if item is _ABORT:
                assert self._error is not None
                raise self._error
            yield item


# =============================================================================
# Pipeline
# =============================================================================

@dataclass
class PipelineStats:
    """
    Outcome of one pipeline run.

    Attributes:
        chunks: Chunks in the run.
        batches: Batches fully written to the sink.
        bytes_written: Audio bytes handed to the sink.
        peak_in_flight: Highest number of simultaneous synthesis calls.
        seconds: Wall time of the run.
    """
    chunks: int = 0
    batches: int = 0
    bytes_written: int = 0
    peak_in_flight: int = 0
    seconds: float = 0.0
    in_flight: int = 0


class BatchPipeline:
    """
    Drive chunks through a synthesizer in sequential, concurrent batches.

    Args:
        client: Anything with ``async synthesize(SynthesisRequest) -> bytes``.
        concurrency: Batch size, i.e. the in-flight ceiling. Must be > 0.
    """

    def __init__(self, client: Synthesizer, concurrency: int):
        if concurrency <= 0:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._client = client
        self.concurrency = concurrency

    async def run(
        self,
        chunks: Sequence[Chunk],
        voice: VoiceParams,
        sink: AudioSink,
        cancel: Optional[asyncio.Event] = None,
    ) -> PipelineStats:
        """
        Synthesize ``chunks`` into ``sink``.

        Zero chunks is a successful, empty run.

        Raises:
            PipelineCancelledError: ``cancel`` was set before a batch.
            SynthesisCallError / CredentialAcquisitionError: A call failed.
            StreamWriteError: The sink refused a write.
        """
        stats = PipelineStats(chunks=len(chunks))
        batches = make_batches(chunks, self.concurrency)

        try:
            with timeit("pipeline") as t:
                for number, batch in enumerate(batches, start=1):
                    if cancel is not None and cancel.is_set():
                        raise PipelineCancelledError(
                            f"Request cancelled before batch {number} of {len(batches)}",
                            details={"batch": number},
                        )
                    with timeit("batch") as bt:
                        payloads = await self._run_batch(batch, voice, stats)
                    await sink.write(payloads)

                    size = sum(len(p) for p in payloads)
                    stats.batches += 1
                    stats.bytes_written += size
                    metrics.record_batch(len(batch))
                    verbose(
                        _LOG, "batch_done",
                        batch=number,
                        batches=len(batches),
                        size=len(batch),
                        bytes=size,
                        seconds=round(bt.seconds, 3),
                    )
            stats.seconds = t.seconds
        except (Exception, asyncio.CancelledError) as e:
            warn(
                _LOG, "pipeline_aborted",
                error=type(e).__name__,
                batches_done=stats.batches,
                batches=len(batches),
            )
            await sink.abort(e)
            raise
        finally:
            await sink.close()

        return stats

    async def _run_batch(
        self,
        batch: Sequence[Chunk],
        voice: VoiceParams,
        stats: PipelineStats,
    ) -> List[bytes]:
        tasks = [
            asyncio.create_task(self._call(SynthesisRequest(chunk=chunk, voice=voice), stats))
            for chunk in batch
        ]
        try:
            results = await asyncio.gather(*tasks)
        except (Exception, asyncio.CancelledError):
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        ordered = sorted(zip(batch, results), key=lambda pair: pair[0].index)
        return [audio for _, audio in ordered]

    async def _call(self, request: SynthesisRequest, stats: PipelineStats) -> bytes:
        stats.in_flight += 1
        stats.peak_in_flight = max(stats.peak_in_flight, stats.in_flight)
        metrics.inflight_inc()
        try:
            return await self._client.synthesize(request)
        finally:
            stats.in_flight -= 1
            metrics.inflight_dec()
