"""
Command-Line Interface for tts-gateway.

Serverless synthesis through the same service the HTTP API uses.

Usage Examples:
    # Synthesize to a file
    tts-gateway --text "你好，世界。" --out hello.mp3

    # Positional text, OpenAI alias as voice
    tts-gateway "Hello there." --voice alloy --out hello.mp3

    # Long input from a file, smaller chunks, 4 calls at a time
    tts-gateway --file chapter.txt --chunk-size 200 --concurrency 4 --out chapter.mp3

    # Dry-run: show the chunk/batch plan, no network access
    tts-gateway --file chapter.txt --dry-run --json

Exit codes: 0 on success, 1 when synthesis fails.

Environment Variables:
    TTS_GATEWAY_SETTINGS: Settings file (default config/settings.yaml)
    TTS_GATEWAY_LOG_LEVEL: Log level 1-4
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from tts_gateway.core.config import load_settings
from tts_gateway.core.errors import TTSError
from tts_gateway.core.logging import configure_logging, fail, get_logger, info, set_request_id
from tts_gateway.services.tts_service import SynthesisPlan, SynthesizeRequest, TTSService
from tts_gateway.tts.pipeline import make_batches


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-gateway CLI (serverless synth)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Read the whole input from a UTF-8 file")
    parser.add_argument("--out", default="out.mp3", help="Output audio path (default out.mp3)")

    parser.add_argument("--voice", help="Voice name or OpenAI alias")
    parser.add_argument("--model", default="tts-1", help="Model id (tts-1-<alias> picks a voice)")
    parser.add_argument("--speed", type=float, default=1.0, help="Rate multiplier")
    parser.add_argument("--pitch", type=float, default=1.0, help="Pitch multiplier")
    parser.add_argument("--style", help="Speaking style")
    parser.add_argument("--concurrency", type=int, help="Backend calls per batch")
    parser.add_argument("--chunk-size", type=int, help="Max characters per chunk")

    parser.add_argument("--dry-run", action="store_true", help="Plan chunks and batches without synthesis")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    """
    Raises:
        SystemExit: No input, or both a file and inline text.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        text = Path(args.file).read_text(encoding="utf-8")
    if not text or not text.strip():
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _plan_summary(plan: SynthesisPlan) -> Dict[str, Any]:
    batches = make_batches(plan.chunks, plan.concurrency)
    return {
        "voice": plan.voice.voice,
        "rate": plan.voice.rate,
        "pitch": plan.voice.pitch,
        "style": plan.voice.style,
        "cleaned_chars": plan.cleaned_chars,
        "chunk_size": plan.chunk_size,
        "concurrency": plan.concurrency,
        "chunks": [len(c.text) for c in plan.chunks],
        "batches": [[c.index for c in batch] for batch in batches],
    }


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


async def _run(args: argparse.Namespace, request: SynthesizeRequest, request_id: str) -> int:
    log = get_logger("tts-gateway.cli")
    service = TTSService(load_settings())
    try:
        try:
            if args.dry_run:
                plan = service.prepare(request)
                info(log, "dry_run", chunks=len(plan.chunks), batches=plan.batches)
                _emit({"ok": True, "dry_run": True, **_plan_summary(plan)}, args.json)
                print("DRY_RUN_OK")
                return 0
            result = await service.synthesize(request, request_id)
        except TTSError as e:
            fail(log, "cli_failed", error=e.message, code=e.code)
            _emit({"ok": False, "error": e.to_dict()["error"]}, args.json)
            return 1

        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(result.audio)

        _emit(
            {
                "ok": True,
                "dry_run": False,
                "out": str(out_path),
                "bytes": len(result.audio),
                "voice": result.voice,
                "chunks": result.chunks,
                "batches": result.stats.batches,
                "seconds": round(result.total_seconds, 3),
            },
            args.json,
        )
        print("CLI_OK")
        return 0
    finally:
        await service.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 for success, 1 for synthesis errors).
    """
    args = _parse_args(argv)

    configure_logging()
    request_id = uuid4().hex[:12]
    set_request_id(request_id)

    request = SynthesizeRequest(
        text=_load_text(args),
        voice=args.voice,
        model=args.model,
        speed=args.speed,
        pitch=args.pitch,
        style=args.style,
        concurrency=args.concurrency,
        chunk_size=args.chunk_size,
    )
    return asyncio.run(_run(args, request, request_id))


if __name__ == "__main__":
    raise SystemExit(main())
