"""
JobPipeline - One Job From Text to MP3.

Architecture:
    Resolve voice → Normalize → Chunk → Synthesize (worker pool) →
    Decode + Join → Encode → Commit

Progress written to the store:
    1        processing started
    5        text chunked
    5..90    floor(5 + 85 * chunks_done / chunks_total)
    90..99   encoder progress
    100      audio committed (attach_audio)

The pipeline is the only writer of its job. It never raises to whoever
dispatched it: every failure ends as a failed job carrying a message
and one of SYNTHESIS_FAILED, ENCODING_FAILED, TIMEOUT or INTERNAL_ERROR.
Nothing is committed unless every stage succeeded.
"""
from __future__ import annotations

import contextvars
import io
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Tuple

import numpy as np

from aurora_tts.core.config import ServiceConfig
from aurora_tts.core.logging import debug, fail, get_logger, info, set_request_id, success, verbose
from aurora_tts.core.metrics import metrics
from aurora_tts.services.errors import EncodingFailure, ErrorCode, SynthesisFailure, TTSError
from aurora_tts.services.job_store import Job, JobStatus, JobStore
from aurora_tts.services.validators import SynthesisRequest
from aurora_tts.tts.backend import SynthesisBackend, SynthResult
from aurora_tts.tts.chunker import chunk_text
from aurora_tts.tts.encoder import AudioEncoder, EncodeOptions, EncoderError, EncoderEvent
from aurora_tts.tts.voices import VoiceCatalog, VoiceParams
from aurora_tts.utils.audio import concat_with_gaps, duration_seconds, wav_bytes_to_pcm16
from aurora_tts.utils.text import normalize_text, preview
from aurora_tts.utils.timeit import timeit

_LOG = get_logger("aurora-tts.pipeline")

PROGRESS_STARTED = 1
PROGRESS_CHUNKED = 5
PROGRESS_SYNTHESIZED = 90
PROGRESS_ENCODED = 99


def synthesis_progress(done: int, total: int) -> int:
    """Progress after done of total chunks: 5 at none, 90 at all."""
    if total <= 0:
        return PROGRESS_CHUNKED
    return PROGRESS_CHUNKED + ((PROGRESS_SYNTHESIZED - PROGRESS_CHUNKED) * done) // total


def encoding_progress(percent: float) -> int:
    """Map encoder percent [0, 100] onto job progress [90, 99]."""
    percent = max(0.0, min(100.0, percent))
    return PROGRESS_SYNTHESIZED + int((PROGRESS_ENCODED - PROGRESS_SYNTHESIZED) * percent // 100)


class JobPipeline:
    """
    Drives jobs end to end. One instance is shared by all jobs; per-job
    state lives in run() and in the store.

    Args:
        store: Job registry to write progress and results into.
        backend: Synthesis backend.
        encoder: PCM to MP3 encoder.
        catalog: Voice catalog.
        config: Validated service configuration.
    """

    def __init__(
        self,
        store: JobStore,
        backend: SynthesisBackend,
        encoder: AudioEncoder,
        catalog: VoiceCatalog,
        config: ServiceConfig,
    ):
        self._store = store
        self._backend = backend
        self._encoder = encoder
        self._catalog = catalog
        self._config = config

    # =========================================================================
    # Entry point
    # =========================================================================

    def run(self, job_id: str, request: SynthesisRequest) -> None:
        """Process one job. Never raises."""
        set_request_id(job_id)
        try:
            self._run(job_id, request)
        except TTSError as exc:
            self._fail(job_id, exc.message, exc.code, exc.details)
        except Exception as exc:
            self._fail(job_id, f"Internal error: {exc}", ErrorCode.INTERNAL_ERROR, {"type": type(exc).__name__})
        finally:
            set_request_id("-")

    def _run(self, job_id: str, request: SynthesisRequest) -> None:
        timings: Dict[str, float] = {}

        voice = self._catalog.resolve(request.voice_id)
        if voice is None:
            raise SynthesisFailure(f"Voice is no longer available: {request.voice_id}")

        if not self._set(job_id, status=JobStatus.PROCESSING, progress=PROGRESS_STARTED):
            debug(_LOG, "job_already_finished")
            return

        info(
            _LOG, "job_started",
            voice=voice.voice_id,
            chars=len(request.text),
            emotion=request.emotion,
            text=preview(request.text, self._config.logging.text_preview_chars),
        )

        # ─────────────────────────────────────────────────────────────────────
        # Stage: Normalize + Chunk
        # ─────────────────────────────────────────────────────────────────────
        with timeit("chunk") as t:
            text = normalize_text(request.text)
            max_chars = min(self._config.chunking.max_chars, self._backend.max_input_chars)
            chunks = chunk_text(text, max_chars).chunks
        timings["chunk"] = t.seconds
        if not chunks:
            raise SynthesisFailure("Nothing to synthesize after normalization")

        self._set(job_id, progress=PROGRESS_CHUNKED, chunks_total=len(chunks))
        verbose(_LOG, "stage", stage="chunk", chunks=len(chunks), max_chars=max_chars, seconds=round(t.seconds, 4))

        # ─────────────────────────────────────────────────────────────────────
        # Stage: Synthesize
        # ─────────────────────────────────────────────────────────────────────
        with timeit("synth") as t:
            results = self._synthesize_all(job_id, chunks, voice, request)
        timings["synth"] = t.seconds
        verbose(_LOG, "stage", stage="synth", chunks=len(chunks), seconds=round(t.seconds, 4))

        # ─────────────────────────────────────────────────────────────────────
        # Stage: Decode + Join
        # ─────────────────────────────────────────────────────────────────────
        pcm, sample_rate = self._assemble(results)
        duration = duration_seconds(int(pcm.size), sample_rate)

        # ─────────────────────────────────────────────────────────────────────
        # Stage: Encode
        # ─────────────────────────────────────────────────────────────────────
        with timeit("encode") as t:
            audio = self._encode(job_id, pcm, sample_rate, duration, request)
        timings["encode"] = t.seconds
        verbose(_LOG, "stage", stage="encode", bytes=len(audio), seconds=round(t.seconds, 4))

        # ─────────────────────────────────────────────────────────────────────
        # Commit
        # ─────────────────────────────────────────────────────────────────────
        if not self._store.attach_audio(job_id, audio, duration):
            debug(_LOG, "job_already_finished")
            return

        success(
            _LOG, "job_completed",
            duration=round(duration, 2),
            bytes=len(audio),
            chunks=len(chunks),
            seconds=round(sum(timings.values()), 3),
        )
        self._record_finished(job_id, JobStatus.COMPLETED.value, audio_bytes=len(audio))

    # =========================================================================
    # Stages
    # =========================================================================

    def _synthesize_all(
        self,
        job_id: str,
        chunks: List[str],
        voice: VoiceParams,
        request: SynthesisRequest,
    ) -> List[SynthResult]:
        """
        Synthesize every chunk on a per-job pool, keeping index order.

        At most chunk_workers calls are in flight, so each call's deadline
        starts when it is handed to a free worker. A call that misses its
        deadline fails the job; its thread is abandoned, not interrupted.
        """
        total = len(chunks)
        workers = max(1, min(self._config.synthesis.chunk_workers, total))
        timeout_s = self._config.synthesis.timeout_s
        results: List[Optional[SynthResult]] = [None] * total
        pending: Dict[Future, Tuple[int, float]] = {}
        next_index = 0
        done = 0

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"chunk-{job_id[:8]}")
        try:
            while next_index < total or pending:
                while next_index < total and len(pending) < workers:
                    # Copied context carries the job id into worker log lines
                    ctx = contextvars.copy_context()
                    future = pool.submit(ctx.run, self._synthesize_chunk, chunks[next_index], voice, request)
                    pending[future] = (next_index, time.monotonic() + timeout_s)
                    next_index += 1

                nearest = min(deadline for _, deadline in pending.values())
                finished, _ = wait(
                    list(pending),
                    timeout=max(0.0, nearest - time.monotonic()),
                    return_when=FIRST_COMPLETED,
                )

                if not finished:
                    now = time.monotonic()
                    for index, deadline in pending.values():
                        if deadline <= now:
                            raise SynthesisFailure(
                                f"Chunk {index + 1}/{total} timed out after {timeout_s:g}s",
                                {"chunk": index},
                                code=ErrorCode.TIMEOUT,
                            )
                    continue

                for future in finished:
                    index, _ = pending.pop(future)
                    try:
                        result = future.result()
                    except Exception as exc:
                        raise SynthesisFailure(
                            f"Chunk {index + 1}/{total} failed: {exc}",
                            {"chunk": index, "type": type(exc).__name__},
                        ) from exc
                    if not result.wav_bytes:
                        raise SynthesisFailure(f"Chunk {index + 1}/{total} returned no audio", {"chunk": index})

                    results[index] = result
                    done += 1
                    metrics.inc_chunks()
                    self._set(job_id, progress=synthesis_progress(done, total), chunks_done=done)
                    debug(_LOG, "chunk_done", index=index, done=done, total=total)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return [r for r in results if r is not None]

    def _synthesize_chunk(self, text: str, voice: VoiceParams, request: SynthesisRequest) -> SynthResult:
        return self._backend.synthesize(
            text,
            voice,
            speed=request.speed,
            pitch=request.pitch if self._backend.capabilities.pitch else 0.0,
            emotion=request.emotion,
        )

    def _assemble(self, results: List[SynthResult]) -> Tuple[np.ndarray, int]:
        """Decode every chunk to PCM16 and join them with gap_ms of silence."""
        parts: List[np.ndarray] = []
        sample_rate: Optional[int] = None
        for index, result in enumerate(results):
            try:
                samples, sr = wav_bytes_to_pcm16(result.wav_bytes)
            except RuntimeError as exc:
                raise SynthesisFailure(f"Chunk {index + 1} returned unreadable audio: {exc}", {"chunk": index}) from exc
            if sample_rate is None:
                sample_rate = sr
            elif sr != sample_rate:
                raise SynthesisFailure(
                    f"Chunk {index + 1} sample rate {sr} differs from {sample_rate}",
                    {"chunk": index},
                )
            parts.append(samples)

        if sample_rate is None:
            raise SynthesisFailure("Backend produced no audio")

        pcm = concat_with_gaps(parts, sample_rate, self._config.chunking.gap_ms)
        if pcm.size == 0:
            raise SynthesisFailure("Backend produced no audio")
        return pcm, sample_rate

    def _encode(
        self,
        job_id: str,
        pcm: np.ndarray,
        sample_rate: int,
        duration: float,
        request: SynthesisRequest,
    ) -> bytes:
        cfg = self._config.encoder
        options = EncodeOptions(
            sample_rate=sample_rate,
            total_seconds=duration,
            bitrate=cfg.bitrate,
            output_sample_rate=cfg.sample_rate,
            normalize=cfg.normalize,
            pitch_semitones=0.0 if self._backend.capabilities.pitch else request.pitch,
        )

        def on_event(event: EncoderEvent) -> None:
            if event.kind == "progress":
                self._set(job_id, progress=encoding_progress(event.percent))
            elif event.kind == "start":
                debug(_LOG, "encoder_started", bitrate=options.bitrate)
            elif event.kind == "error":
                debug(_LOG, "encoder_error", error=event.message)

        stream = io.BytesIO(pcm.astype("<i2").tobytes())
        try:
            audio = self._encoder.encode(stream, options, on_event)
        except EncoderError as exc:
            code = ErrorCode.TIMEOUT if exc.timed_out else ErrorCode.ENCODING_FAILED
            raise EncodingFailure(str(exc), code=code) from exc

        if not audio:
            raise EncodingFailure("Encoder produced no audio")
        return audio

    # =========================================================================
    # Store helpers
    # =========================================================================

    def _set(self, job_id: str, **fields) -> bool:
        def _apply(job: Job) -> None:
            for key, value in fields.items():
                setattr(job, key, value)

        return self._store.mutate(job_id, _apply)

    def _fail(self, job_id: str, message: str, code: str, details: Optional[Dict] = None) -> None:
        committed = self._store.fail(job_id, message, code)
        if committed:
            fail(_LOG, "job_failed", error_code=code, error=message, **(details or {}))
            self._record_finished(job_id, JobStatus.FAILED.value, error_code=code)

    def _record_finished(self, job_id: str, status: str, error_code: str = "", audio_bytes: int = 0) -> None:
        job = self._store.get(job_id)
        elapsed = time.time() - job.created_at if job else 0.0
        metrics.record_finished(status, duration=max(0.0, elapsed), error_code=error_code, audio_bytes=audio_bytes)
