"""
PCM to MP3 Encoding.

The encoder reads raw PCM (16-bit signed little-endian, mono) from a
stream and produces a constant-bitrate MP3. While it runs it reports
ordered events to an optional callback:

    start -> progress(percent)* -> end
                               \\-> error(message)

Exactly one terminal event (end or error) is emitted per encode() call.

FFmpegEncoder pipes PCM into the ffmpeg binary and reads MP3 back:

    ffmpeg -f s16le -ar 22050 -ac 1 -i pipe:0 \\
        -af loudnorm=I=-14:TP=-1:LRA=11 \\
        -codec:a libmp3lame -b:a 320k -ar 44100 -ac 1 \\
        -progress pipe:2 -f mp3 pipe:1

Progress comes from ffmpeg's ``-progress`` key=value output
(``out_time_us``) measured against the known input duration.

Backends without native pitch control get their pitch shift here, as an
``asetrate,aresample,atempo`` filter chain that changes pitch but keeps
duration.
"""
from __future__ import annotations

import shutil
import subprocess
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable, List, Optional

from aurora_tts.core.config import EncoderConfig
from aurora_tts.core.logging import debug, get_logger, verbose

_LOG = get_logger("aurora-tts.encoder")

_PIPE_BLOCK = 64 * 1024

# Loudness target for spoken content (EBU R128)
LOUDNORM_FILTER = "loudnorm=I=-14:TP=-1:LRA=11"


class EncoderError(RuntimeError):
    """
    Encoding failed.

    Attributes:
        timed_out: True when the encoder was stopped by its timeout.
    """

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


@dataclass(frozen=True)
class EncoderEvent:
    """
    One encoder lifecycle event.

    Attributes:
        kind: "start", "progress", "end" or "error".
        percent: Completion in [0, 100] for progress events.
        message: Error text for error events.
    """
    kind: str
    percent: float = 0.0
    message: str = ""


@dataclass(frozen=True)
class EncodeOptions:
    """
    Input format and output settings for one encode.

    Attributes:
        sample_rate: Input PCM sample rate.
        total_seconds: Input duration, used to compute progress.
        channels: Input channel count.
        bitrate: MP3 bitrate ("320k").
        output_sample_rate: MP3 sample rate.
        normalize: Apply loudness normalization.
        pitch_semitones: Pitch shift applied by the encoder.
    """
    sample_rate: int
    total_seconds: float = 0.0
    channels: int = 1
    bitrate: str = "320k"
    output_sample_rate: int = 44100
    normalize: bool = True
    pitch_semitones: float = 0.0


EventCallback = Callable[[EncoderEvent], None]


class AudioEncoder:
    """Base class: PCM stream in, MP3 bytes out."""

    name: str = "base"

    def encode(
        self,
        stream: BinaryIO,
        options: EncodeOptions,
        on_event: Optional[EventCallback] = None,
    ) -> bytes:
        """
        Encode PCM read from stream.

        Returns:
            MP3 bytes, after an "end" event.

        Raises:
            EncoderError: After an "error" event.
        """
        raise NotImplementedError


def pitch_filter(semitones: float, sample_rate: int) -> Optional[str]:
    """
    Build a duration-preserving pitch shift filter, or None for no shift.

    Resampling by 2^(s/12) moves pitch and tempo together; atempo then
    restores the original tempo.
    """
    if abs(semitones) < 1e-6:
        return None
    factor = 2.0 ** (semitones / 12.0)
    return (
        f"asetrate={int(round(sample_rate * factor))},"
        f"aresample={sample_rate},"
        f"atempo={1.0 / factor:.6f}"
    )


def build_command(ffmpeg_path: str, options: EncodeOptions) -> List[str]:
    """Build the ffmpeg argument list for options."""
    cmd = [
        ffmpeg_path,
        "-hide_banner",
        "-nostdin",
        "-loglevel", "error",
        "-f", "s16le",
        "-ar", str(options.sample_rate),
        "-ac", str(options.channels),
        "-i", "pipe:0",
    ]

    filters = []
    shift = pitch_filter(options.pitch_semitones, options.sample_rate)
    if shift:
        filters.append(shift)
    if options.normalize:
        filters.append(LOUDNORM_FILTER)
    if filters:
        cmd.extend(["-af", ",".join(filters)])

    cmd.extend([
        "-codec:a", "libmp3lame",
        "-b:a", options.bitrate,
        "-ar", str(options.output_sample_rate),
        "-ac", "1",
        "-progress", "pipe:2",
        "-f", "mp3",
        "pipe:1",
    ])
    return cmd


def parse_progress_line(line: str, total_seconds: float) -> Optional[float]:
    """
    Convert one ``-progress`` line into a percentage.

    Returns None for lines that carry no position. ``out_time_ms`` is in
    microseconds despite its name, same as ``out_time_us``.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key not in ("out_time_us", "out_time_ms") or total_seconds <= 0:
        return None
    try:
        position_us = int(value)
    except ValueError:
        return None
    if position_us < 0:
        return None
    return max(0.0, min(100.0, position_us / (total_seconds * 1_000_000) * 100.0))


class FFmpegEncoder(AudioEncoder):
    """
    Encoder driving the ffmpeg binary over pipes.

    PCM is written from a feeder thread and MP3 is drained by a reader
    thread, so neither pipe can fill up and stall the process. The
    calling thread parses progress from stderr.
    """

    name = "ffmpeg"

    def __init__(self, config: Optional[EncoderConfig] = None):
        self.config = config or EncoderConfig()

    def resolve_binary(self) -> Optional[str]:
        """Absolute path of the configured ffmpeg, or None when not installed."""
        return shutil.which(self.config.ffmpeg_path)

    def encode(
        self,
        stream: BinaryIO,
        options: EncodeOptions,
        on_event: Optional[EventCallback] = None,
    ) -> bytes:
        emit = on_event or (lambda event: None)

        ffmpeg = self.resolve_binary()
        if ffmpeg is None:
            message = f"ffmpeg not found: {self.config.ffmpeg_path}"
            emit(EncoderEvent("error", message=message))
            raise EncoderError(message)

        cmd = build_command(ffmpeg, options)
        debug(_LOG, "ffmpeg_command", cmd=" ".join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            message = f"could not start ffmpeg: {exc}"
            emit(EncoderEvent("error", message=message))
            raise EncoderError(message) from exc

        emit(EncoderEvent("start"))

        output = bytearray()
        write_errors: List[BaseException] = []
        timed_out = threading.Event()

        def feed() -> None:
            try:
                while True:
                    block = stream.read(_PIPE_BLOCK)
                    if not block:
                        break
                    proc.stdin.write(block)
            except (BrokenPipeError, OSError, ValueError) as exc:
                # ffmpeg exited early; its exit code reports why
                write_errors.append(exc)
            finally:
                try:
                    proc.stdin.close()
                except OSError:
                    pass

        def drain() -> None:
            while True:
                block = proc.stdout.read(_PIPE_BLOCK)
                if not block:
                    break
                output.extend(block)

        def kill() -> None:
            timed_out.set()
            proc.kill()

        feeder = threading.Thread(target=feed, name="ffmpeg-feed", daemon=True)
        reader = threading.Thread(target=drain, name="ffmpeg-drain", daemon=True)
        timer = threading.Timer(self.config.timeout_s, kill)
        timer.daemon = True

        feeder.start()
        reader.start()
        timer.start()

        stderr_lines: List[str] = []
        last_percent = 0.0
        try:
            for raw in iter(proc.stderr.readline, b""):
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                percent = parse_progress_line(line, options.total_seconds)
                if percent is not None:
                    if percent > last_percent:
                        last_percent = percent
                        emit(EncoderEvent("progress", percent=percent))
                elif "=" not in line:
                    stderr_lines.append(line)
            returncode = proc.wait()
        except BaseException:
            # Nobody reads stderr any more; stop ffmpeg so the pipe threads finish
            proc.kill()
            proc.wait()
            raise
        finally:
            timer.cancel()
            feeder.join()
            reader.join()
            proc.stderr.close()
            proc.stdout.close()

        if timed_out.is_set():
            message = f"ffmpeg timed out after {self.config.timeout_s:.0f}s"
            emit(EncoderEvent("error", message=message))
            raise EncoderError(message, timed_out=True)

        if returncode != 0:
            detail = stderr_lines[-1] if stderr_lines else f"exit code {returncode}"
            message = f"ffmpeg failed: {detail}"
            emit(EncoderEvent("error", message=message))
            raise EncoderError(message)

        if not output:
            message = "ffmpeg produced no audio"
            emit(EncoderEvent("error", message=message))
            raise EncoderError(message)

        verbose(_LOG, "encoded", bytes=len(output), bitrate=options.bitrate, write_errors=len(write_errors))
        emit(EncoderEvent("end", percent=100.0))
        return bytes(output)
