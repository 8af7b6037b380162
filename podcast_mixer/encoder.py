"""Self-validating MP3 encoding.

PCM is pushed to the ffmpeg binary pydub is configured with, frame by
frame, so a whole episode can be encoded without ever holding it in
memory. The result is checked before anyone gets to see it: an MP3
encoder fed valid PCM is deterministic, so a bad result means a bug, not
bad input.
"""

import logging
import os
import subprocess
import tempfile

import numpy as np
from pydub import AudioSegment

from podcast_mixer.errors import EncodeError
from podcast_mixer.settings import MixConfig

logger = logging.getLogger(__name__)

BYTES_PER_FRAME = 4  # two int16 channels


def float_to_int16(pcm: np.ndarray) -> np.ndarray:
    """Clamp float PCM to [-1, 1] and scale to int16."""
    return np.round(np.clip(pcm, -1.0, 1.0) * 32767.0).astype(np.int16)


def validate_mp3(data: bytes, raw_pcm_bytes: int, config: MixConfig) -> None:
    """Raise EncodeError unless data looks like a real, compressed MP3."""
    if raw_pcm_bytes <= 0:
        raise EncodeError("No audio was written to the encoder")
    if not data:
        raise EncodeError("Encoder produced no output")
    if raw_pcm_bytes / len(data) < config.min_compression_ratio:
        raise EncodeError(
            f"Compression ratio {raw_pcm_bytes / len(data):.2f} below "
            f"{config.min_compression_ratio:.1f} ({len(data)} bytes for {raw_pcm_bytes} bytes of PCM)"
        )
    has_id3 = data[:3] == b"ID3"
    has_sync = len(data) >= 2 and data[0] == 0xFF and (data[1] & 0xE0) == 0xE0
    if not (has_id3 or has_sync):
        raise EncodeError(f"Output does not start with an MP3 frame sync or ID3 tag: {data[:4]!r}")


class Mp3StreamEncoder:
    """Incremental MP3 encoder.

    Usage:
        with Mp3StreamEncoder(config) as encoder:
            encoder.write(first_pcm)
            encoder.write(more_pcm)
            mp3_bytes = encoder.close()
    """

    def __init__(self, config: MixConfig):
        self.config = config
        self.samples_written = 0
        self._closed = False
        self._result = None

        fd, self._out_path = tempfile.mkstemp(suffix=".mp3")
        os.close(fd)
        self._log = tempfile.TemporaryFile()

        cmd = [
            AudioSegment.converter,
            "-hide_banner", "-loglevel", "error", "-y",
            "-f", "s16le", "-ar", str(config.sample_rate), "-ac", "2",
            "-i", "pipe:0",
            "-codec:a", "libmp3lame", "-b:a", f"{config.bitrate_kbps}k",
            "-f", "mp3", self._out_path,
        ]
        try:
            self._proc = subprocess.Popen(
                cmd, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL, stderr=self._log,
            )
        except OSError as e:
            self._cleanup()
            raise EncodeError(f"Could not start encoder {AudioSegment.converter!r}: {e}") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.abort()
        return False

    def write(self, pcm: np.ndarray) -> None:
        """Append a (2, n) float PCM block to the stream."""
        if self._closed:
            raise EncodeError("Encoder already closed")
        interleaved = np.ascontiguousarray(float_to_int16(pcm).T)
        frame = self.config.frame_samples
        try:
            for start in range(0, interleaved.shape[0], frame):
                self._proc.stdin.write(interleaved[start:start + frame].tobytes())
        except (BrokenPipeError, OSError) as e:
            raise EncodeError(f"Encoder stopped accepting data: {self._stderr() or e}") from e
        self.samples_written += interleaved.shape[0]

    def close(self) -> bytes:
        """Flush the encoder and return the validated MP3 bytes."""
        if self._closed:
            return self._result
        self._closed = True
        try:
            try:
                self._proc.stdin.close()
            except OSError:
                pass
            returncode = self._proc.wait()
            if returncode != 0:
                raise EncodeError(f"Encoder exited with status {returncode}: {self._stderr()}")
            with open(self._out_path, "rb") as f:
                data = f.read()
        finally:
            self._cleanup()

        validate_mp3(data, self.samples_written * BYTES_PER_FRAME, self.config)
        logger.info(
            "Encoded %.1fs of audio to %d KB MP3",
            self.samples_written / self.config.sample_rate, len(data) // 1024,
        )
        self._result = data
        return data

    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._proc.kill()
        self._proc.wait()
        self._cleanup()

    def _stderr(self) -> str:
        try:
            self._log.seek(0)
            return self._log.read().decode("utf-8", errors="replace").strip()
        except (OSError, ValueError):
            return ""

    def _cleanup(self) -> None:
        try:
            if self._proc_stdin_open():
                try:
                    self._proc.stdin.close()
                except OSError:
                    # Encoder already killed; buffered PCM has nowhere to go
                    logger.debug("Discarded unsent PCM while closing encoder input")
        finally:
            self._log.close()
            if os.path.exists(self._out_path):
                os.remove(self._out_path)

    def _proc_stdin_open(self) -> bool:
        proc = getattr(self, "_proc", None)
        return proc is not None and proc.stdin is not None and not proc.stdin.closed


def encode_mp3(pcm: np.ndarray, config: MixConfig) -> bytes:
    """Encode a complete (2, n) buffer in one go."""
    with Mp3StreamEncoder(config) as encoder:
        encoder.write(pcm)
        return encoder.close()
