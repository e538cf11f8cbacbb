"""
Command-Line Interface for aurora-tts.

Runs a synthesis job in-process (no HTTP server): submit, poll with
progress, write the MP3.

Usage Examples:
    # Text to MP3
    aurora-tts "Olá, mundo." --voice fem-soft --out ola.mp3

    # A whole file as one script
    aurora-tts --file capitulo1.txt --voice masc-narrator --emotion épico --out cap1.mp3

    # Show chunking without synthesis
    aurora-tts --file capitulo1.txt --dry-run --json

    # List voices
    aurora-tts --voices

Environment Variables:
    AURORA_TTS_SETTINGS: Settings file (default config/settings.yaml)
    AURORA_TTS_ENGINE: Backend to use (piper, mock)
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from aurora_tts.core.config import Settings, load_settings_or_defaults
from aurora_tts.core.logging import configure_logging, get_logger, info, set_request_id
from aurora_tts.services.errors import TTSError
from aurora_tts.services.job_manager import JobManager, JobStatusView
from aurora_tts.services.validators import EMOTIONS, SynthesisRequest, validate_request
from aurora_tts.tts.backend import get_backend
from aurora_tts.tts.chunker import chunk_text
from aurora_tts.tts.voices import VoiceCatalog
from aurora_tts.utils.text import normalize_text

DEFAULT_VOICE = "masc-deep"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="aurora-tts", description="aurora-tts CLI (in-process synthesis job)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Read the whole script from a UTF-8 file")
    parser.add_argument("--out", help="Output MP3 path (default out.mp3)")

    parser.add_argument("--voice", default=DEFAULT_VOICE, help=f"Voice id (default {DEFAULT_VOICE})")
    parser.add_argument("--speed", type=float, default=1.0, help="Speaking rate 0.5-2.0")
    parser.add_argument("--pitch", type=float, default=0.0, help="Pitch shift in semitones, -10..10")
    parser.add_argument("--emotion", default="neutro", help=f"One of: {', '.join(EMOTIONS)}")

    parser.add_argument("--settings", help="Settings file (default AURORA_TTS_SETTINGS or config/settings.yaml)")
    parser.add_argument("--engine", help="Backend override (piper, mock)")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")

    parser.add_argument("--voices", action="store_true", help="List voices and exit")
    parser.add_argument("--dry-run", action="store_true", help="Validate and chunk without synthesis")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    """
    Read input text from --file, --text or the positional argument.

    Raises:
        SystemExit: No input, or conflicting inputs.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        return Path(args.file).read_text(encoding="utf-8")
    if not text:
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _list_voices(catalog: VoiceCatalog, as_json: bool) -> int:
    voices = [v.to_dict() for v in catalog.voices()]
    if as_json:
        print(json.dumps({"ok": True, "voices": voices, "emotions": list(EMOTIONS)}, ensure_ascii=False))
        return 0
    for v in voices:
        print(f"{v['id']:<16} {v['gender']:<10} {v['tone']:<12} {v['description']}")
    return 0


def _dry_run(settings: Settings, request: SynthesisRequest, as_json: bool) -> int:
    config = settings.get_service_config()
    backend = get_backend(settings)
    max_chars = min(config.chunking.max_chars, backend.max_input_chars)
    chunks = chunk_text(normalize_text(request.text), max_chars).chunks
    _emit({
        "ok": True,
        "dry_run": True,
        "engine": backend.name,
        "text_len": len(request.text),
        "chunks": len(chunks),
        "max_chars": max_chars,
        "voice": request.voice_id,
        "speed": request.speed,
        "pitch": request.pitch,
        "emotion": request.emotion,
    }, as_json)
    print("DRY_RUN_OK")
    return 0


def _show_progress(view: JobStatusView) -> None:
    print(f"\r{view.status:<10} {view.progress:3d}%", end="", file=sys.stderr, flush=True)


def _synthesize(settings: Settings, request: SynthesisRequest, out_path: Path, args: argparse.Namespace) -> int:
    log = get_logger("aurora-tts.cli")
    manager = JobManager(settings)
    try:
        manager.warmup()
        job_id = manager.submit(request)
        info(log, "cli_job", job_id=job_id, chars=len(request.text), out=str(out_path))

        try:
            view = manager.wait(job_id, timeout=args.timeout, poll_interval=0.25,
                                on_poll=None if args.json else _show_progress)
        except TimeoutError as e:
            _emit({"ok": False, "job_id": job_id, "error": str(e), "error_code": "TIMEOUT"}, args.json)
            return 1
        if not args.json:
            print(file=sys.stderr)

        if view.status != "completed":
            _emit({"ok": False, "job_id": job_id, "error": view.error, "error_code": view.error_code}, args.json)
            return 1

        payload = manager.fetch_audio(job_id)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(payload.data)
    finally:
        manager.shutdown(wait=False)

    _emit({
        "ok": True,
        "dry_run": False,
        "job_id": job_id,
        "out": str(out_path),
        "bytes": payload.length,
        "duration": view.duration,
    }, args.json)
    print("CLI_OK")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        0 on success, 1 if the job failed, 2 for an invalid request.
    """
    args = _parse_args(argv)

    if args.engine:
        os.environ["AURORA_TTS_ENGINE"] = args.engine

    configure_logging()
    set_request_id(str(uuid4())[:12])

    settings = load_settings_or_defaults(args.settings)
    catalog = VoiceCatalog.from_settings(settings.raw.get("voices"))

    if args.voices:
        return _list_voices(catalog, args.json)

    text = _load_text(args)
    try:
        request = validate_request(
            {"text": text, "voice_id": args.voice, "speed": args.speed, "pitch": args.pitch, "emotion": args.emotion},
            catalog,
            settings.get_service_config().request,
        )
    except TTSError as e:
        _emit(e.to_dict(), args.json)
        return 2

    if args.dry_run:
        return _dry_run(settings, request, args.json)

    return _synthesize(settings, request, Path(args.out or "out.mp3"), args)


if __name__ == "__main__":
    raise SystemExit(main())
