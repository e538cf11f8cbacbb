"""
In-Memory Job Store.

The store owns every job record and its audio. Callers never hold a live
record: get() returns a snapshot copy, and all changes go through
mutate(), attach_audio() or fail(), each of which runs under the job's
own lock.

Locking:
    - One lock per job guards that job's fields.
    - A registry lock guards only the id -> record map and the
      retention queue. It is never held while a mutator runs.
    - Lock order is registry, then job. Nothing acquires the registry
      lock while holding a job lock.

Lifecycle enforced here:
    queued -> processing -> completed | failed
    queued -> failed
    Terminal records never change again; progress never decreases.

Retention:
    Terminal jobs are dropped ttl_seconds after they finish, and
    oldest-finished first once more than max_retained are held. Jobs
    still queued or processing are never dropped. Eviction runs on
    create() and purge_expired().
"""
from __future__ import annotations

import enum
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from aurora_tts.core.config import JobsConfig
from aurora_tts.core.logging import debug, get_logger, verbose

_LOG = get_logger("aurora-tts.store")

# Highest progress a job can report before its audio is committed
_MAX_PENDING_PROGRESS = 99


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobNotFound(LookupError):
    """Raised by mutating operations for an unknown job id."""

    def __init__(self, job_id: str):
        super().__init__(f"job not found: {job_id}")
        self.job_id = job_id


class InvalidTransition(Exception):
    """Raised when a change would break the job lifecycle; nothing is written."""


@dataclass
class Job:
    """
    One synthesis job.

    Attributes:
        job_id: UUID4 string.
        status: Lifecycle state.
        progress: Integer percentage, non-decreasing.
        error: Human-readable failure message; set iff failed.
        error_code: Machine-readable failure code; set iff failed.
        duration: Audio length in seconds; set on completion.
        audio: MP3 bytes; set on completion.
        voice_id: Voice the job was submitted with.
        chars: Submitted text length.
        chunks_total: Number of chunks, once known.
        chunks_done: Chunks synthesized so far.
        created_at: Unix time of submission.
        updated_at: Unix time of the last change.
        finished_at: Unix time the job became terminal.
    """
    job_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    duration: Optional[float] = None
    audio: Optional[bytes] = None
    voice_id: Optional[str] = None
    chars: int = 0
    chunks_total: int = 0
    chunks_done: int = 0
    created_at: float = 0.0
    updated_at: float = 0.0
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.terminal


class _Entry:
    __slots__ = ("lock", "job")

    def __init__(self, job: Job):
        self.lock = threading.Lock()
        self.job = job


Mutator = Callable[[Job], None]


class JobStore:
    """
    Concurrency-safe registry of jobs keyed by id.

    Args:
        config: Retention settings (ttl_seconds, max_retained).
        clock: Time source, replaceable in tests.
    """

    def __init__(self, config: Optional[JobsConfig] = None, clock: Callable[[], float] = time.time):
        self._config = config or JobsConfig()
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._finished: "OrderedDict[str, float]" = OrderedDict()
        self._registry_lock = threading.Lock()

    # =========================================================================
    # Registry
    # =========================================================================

    def create(self, voice_id: Optional[str] = None, chars: int = 0) -> str:
        """Register a new queued job and return its id."""
        self.purge_expired()

        now = self._clock()
        job_id = str(uuid.uuid4())
        job = Job(job_id=job_id, voice_id=voice_id, chars=chars, created_at=now, updated_at=now)

        with self._registry_lock:
            while job_id in self._entries:
                job_id = str(uuid.uuid4())
                job.job_id = job_id
            self._entries[job_id] = _Entry(job)

        debug(_LOG, "job_created", job_id=job_id)
        return job_id

    def _entry(self, job_id: str) -> Optional[_Entry]:
        with self._registry_lock:
            return self._entries.get(job_id)

    def get(self, job_id: str) -> Optional[Job]:
        """Return a snapshot of the job, or None when the id is unknown."""
        entry = self._entry(job_id)
        if entry is None:
            return None
        with entry.lock:
            return replace(entry.job)

    def __contains__(self, job_id: object) -> bool:
        with self._registry_lock:
            return job_id in self._entries

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)

    # =========================================================================
    # Mutation
    # =========================================================================

    def mutate(self, job_id: str, fn: Mutator) -> bool:
        """
        Apply fn to a draft of the job and commit it atomically.

        fn receives a copy; the copy is checked and written back only
        if fn returns normally and the change is legal.

        Returns:
            True if committed, False if the job was already terminal.

        Raises:
            JobNotFound: Unknown id.
            InvalidTransition: The change breaks the lifecycle (moving
                backwards, completing without attach_audio, failing
                without an error message, touching audio or identity).
        """
        entry = self._entry(job_id)
        if entry is None:
            raise JobNotFound(job_id)

        with entry.lock:
            current = entry.job
            if current.is_terminal:
                return False

            draft = replace(current)
            fn(draft)
            self._check(current, draft)

            draft.progress = max(current.progress, min(_MAX_PENDING_PROGRESS, max(0, int(draft.progress))))
            draft.updated_at = self._clock()
            if draft.status is JobStatus.FAILED:
                draft.finished_at = draft.updated_at
            entry.job = draft
            finished = draft.is_terminal

        if finished:
            self._mark_finished(job_id, draft.finished_at or self._clock())
        return True

    @staticmethod
    def _check(current: Job, draft: Job) -> None:
        try:
            draft.status = JobStatus(draft.status)
        except ValueError:
            raise InvalidTransition(f"unknown status: {draft.status!r}") from None
        if draft.job_id != current.job_id or draft.created_at != current.created_at:
            raise InvalidTransition("job identity cannot change")
        if draft.audio is not current.audio or draft.duration != current.duration:
            raise InvalidTransition("audio and duration are set only by attach_audio")
        if draft.status is JobStatus.COMPLETED:
            raise InvalidTransition("jobs complete only through attach_audio")
        if current.status is JobStatus.PROCESSING and draft.status is JobStatus.QUEUED:
            raise InvalidTransition("job cannot return to queued")
        if draft.status is JobStatus.FAILED:
            if not draft.error:
                raise InvalidTransition("failed jobs need an error message")
        elif draft.error is not None or draft.error_code is not None:
            raise InvalidTransition("error is set only when failing a job")

    def attach_audio(self, job_id: str, audio: bytes, duration: float) -> bool:
        """
        Commit the finished audio: status completed, progress 100.

        Returns:
            True if committed, False if the job was already terminal.

        Raises:
            JobNotFound: Unknown id.
            InvalidTransition: Empty audio, negative duration, or the
                job has not started processing.
        """
        if not audio:
            raise InvalidTransition("cannot complete a job with empty audio")
        if duration < 0:
            raise InvalidTransition(f"duration must be non-negative, got {duration}")

        entry = self._entry(job_id)
        if entry is None:
            raise JobNotFound(job_id)

        with entry.lock:
            current = entry.job
            if current.is_terminal:
                return False
            if current.status is not JobStatus.PROCESSING:
                raise InvalidTransition(f"cannot complete a {current.status.value} job")
            now = self._clock()
            entry.job = replace(
                current,
                status=JobStatus.COMPLETED,
                progress=100,
                audio=bytes(audio),
                duration=float(duration),
                updated_at=now,
                finished_at=now,
            )

        self._mark_finished(job_id, now)
        return True

    def fail(self, job_id: str, message: str, code: str) -> bool:
        """Mark the job failed with message and code; False if already terminal."""
        def _apply(job: Job) -> None:
            job.status = JobStatus.FAILED
            job.error = message or "unknown error"
            job.error_code = code

        return self.mutate(job_id, _apply)

    # =========================================================================
    # Retention
    # =========================================================================

    def _mark_finished(self, job_id: str, finished_at: float) -> None:
        with self._registry_lock:
            if job_id in self._entries:
                self._finished[job_id] = finished_at

    def purge_expired(self) -> int:
        """
        Drop terminal jobs past their TTL or beyond the retention cap.

        Returns:
            Number of jobs dropped.
        """
        now = self._clock()
        ttl = self._config.ttl_seconds
        evicted = 0
        with self._registry_lock:
            while self._finished:
                job_id, finished_at = next(iter(self._finished.items()))
                if finished_at + ttl > now and len(self._finished) <= self._config.max_retained:
                    break
                self._finished.popitem(last=False)
                self._entries.pop(job_id, None)
                evicted += 1
        if evicted:
            verbose(_LOG, "jobs_evicted", count=evicted)
        return evicted

    def stats(self) -> Dict[str, int]:
        """Count jobs per status."""
        with self._registry_lock:
            entries = list(self._entries.values())
        counts = {status.value: 0 for status in JobStatus}
        for entry in entries:
            with entry.lock:
                counts[entry.job.status.value] += 1
        counts["total"] = len(entries)
        return counts
