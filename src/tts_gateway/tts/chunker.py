"""
Text Segmentation for Batch Synthesis.

One backend call accepts a limited amount of text, so cleaned input is cut
into ordered chunks of at most ``max_length`` characters.

Strategy:
    1. Split at sentence/clause markers, Latin and CJK alike:
           . ? ! , ; : \\n \\r 。 ？ ！ ， ； ：
       A run of markers stays attached to the piece before it.
    2. Greedily accumulate pieces while ``len(buffer) + len(piece) <= max_length``;
       otherwise flush the trimmed buffer and start over with the piece.
    3. A piece that alone exceeds ``max_length`` (no markers in a long run of
       text) is hard-sliced into ``max_length`` windows. This fallback always
       terminates and keeps every chunk within the limit.

Guarantees:
    - empty or whitespace-only input gives no chunks
    - otherwise at least one chunk, every chunk non-empty and <= max_length
    - chunk order follows input order; only whitespace at chunk edges is lost

Example:
    >>> segment_text("First sentence. Second one! Third?", max_length=20).chunks
    ['First sentence.', 'Second one! Third?']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from tts_gateway.core.logging import get_logger, verbose
from tts_gateway.utils.timeit import timeit

_LOG = get_logger("tts-gateway.chunker")

# Capturing group so re.split keeps the markers
_BOUNDARY_SPLIT = re.compile(r"([.?!,;:\n。？！，；：\r]+)")


@dataclass(frozen=True)
class Chunk:
    """One unit of synthesis work. ``index`` is its position in the output."""
    index: int
    text: str


@dataclass
class ChunkResult:
    """
    Result of text segmentation.

    Attributes:
        chunks: Ordered, non-empty chunk texts.
        timings_s: Timing measurements in seconds.
        used_fallback: True when at least one piece had to be hard-sliced.
    """
    chunks: List[str]
    timings_s: Dict[str, float]
    used_fallback: bool = False


def _split_pieces(text: str) -> List[str]:
    """Split on markers, gluing each marker run to the text before it."""
    parts = _BOUNDARY_SPLIT.split(text)
    pieces: List[str] = []
    for i in range(0, len(parts), 2):
        piece = parts[i]
        if i + 1 < len(parts):
            piece += parts[i + 1]
        if piece:
            pieces.append(piece)
    return pieces


def segment_text(text: str, max_length: int = 300) -> ChunkResult:
    """
    Split text into ordered chunks of at most ``max_length`` characters.

    Args:
        text: Cleaned input text.
        max_length: Maximum characters per chunk, must be positive.

    Returns:
        ChunkResult with chunk texts and the fallback flag.

    Raises:
        ValueError: If max_length is not positive.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    out: List[str] = []
    used_fallback = False

    def flush(buf: str) -> None:
        stripped = buf.strip()
        if stripped:
            out.append(stripped)

    with timeit("segment") as t:
        buffer = ""
        for piece in _split_pieces(text):
            if len(buffer) + len(piece) <= max_length:
                buffer += piece
                continue

            flush(buffer)
            buffer = piece

            if len(piece) > max_length:
                used_fallback = True
                windows = [piece[i:i + max_length] for i in range(0, len(piece), max_length)]
                for window in windows[:-1]:
                    flush(window)
                # The tail may still share a chunk with what follows
                buffer = windows[-1]

        flush(buffer)

    timings = {"segment": t.seconds}
    verbose(
        _LOG, "segmented",
        chars=len(text),
        chunks=len(out),
        max_length=max_length,
        fallback=used_fallback,
        seconds=round(timings["segment"], 4),
    )
    return ChunkResult(chunks=out, timings_s=timings, used_fallback=used_fallback)


def make_chunks(text: str, max_length: int = 300) -> List[Chunk]:
    """Segment text and number the pieces 0..n-1."""
    result = segment_text(text, max_length)
    return [Chunk(index=i, text=c) for i, c in enumerate(result.chunks)]
