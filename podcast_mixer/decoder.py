"""Decode MP3/WAV buffers into stereo float32 PCM at the mixing sample rate."""

import io
import logging

import numpy as np
import soundfile as sf
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from podcast_mixer.errors import DecodeError
from podcast_mixer.settings import MixConfig

logger = logging.getLogger(__name__)

WAV_SUBTYPES = ("PCM_16", "PCM_24", "FLOAT")


def detect_format(buffer: bytes) -> str:
    """Return "wav" for a RIFF/WAVE header, otherwise "mp3"."""
    if len(buffer) >= 12 and buffer[:4] == b"RIFF" and buffer[8:12] == b"WAVE":
        return "wav"
    return "mp3"


def decode(buffer: bytes, config: MixConfig) -> np.ndarray:
    """Decode an encoded buffer to a (2, n) float32 array at config.sample_rate."""
    if not buffer:
        raise DecodeError("Empty audio buffer")

    if detect_format(buffer) == "wav":
        channels, native_rate = _decode_wav(buffer)
    else:
        channels, native_rate = _decode_mp3(buffer)

    pcm = to_stereo(channels)
    if native_rate <= 0:
        raise DecodeError(f"Invalid sample rate {native_rate}")
    if native_rate != config.sample_rate:
        logger.debug("Resampling %d Hz -> %d Hz", native_rate, config.sample_rate)
        pcm = np.stack([resample_linear(ch, native_rate, config.sample_rate) for ch in pcm])
    return np.ascontiguousarray(pcm, dtype=np.float32)


def to_stereo(channels: np.ndarray) -> np.ndarray:
    """Duplicate mono into two identical channels; keep the first two otherwise."""
    if channels.ndim != 2 or channels.shape[0] == 0:
        raise DecodeError("Decoded audio has no channels")
    if channels.shape[0] == 1:
        return np.vstack([channels[0], channels[0].copy()])
    return channels[:2]


def resample_linear(samples: np.ndarray, native_rate: int, target_rate: int) -> np.ndarray:
    """Linear-interpolation resampler.

    Output length is floor(n / ratio) with ratio = native / target; each
    output sample is blended between its two nearest source samples by the
    fractional source position.
    """
    if native_rate <= 0 or target_rate <= 0:
        raise ValueError(f"Sample rates must be positive, got {native_rate} -> {target_rate}")
    ratio = native_rate / target_rate
    out_len = int(np.floor(len(samples) / ratio))
    if out_len <= 0 or len(samples) == 0:
        return np.zeros(0, dtype=np.float32)

    pos = np.arange(out_len, dtype=np.float64) * ratio
    idx = np.floor(pos).astype(np.int64)
    frac = pos - idx
    nxt = np.minimum(idx + 1, len(samples) - 1)
    src = samples.astype(np.float64)
    return (src[idx] * (1.0 - frac) + src[nxt] * frac).astype(np.float32)


# --- WAV ---

def _decode_wav(buffer: bytes) -> tuple[np.ndarray, int]:
    try:
        info = sf.info(io.BytesIO(buffer))
        if info.subtype not in WAV_SUBTYPES:
            raise DecodeError(f"Unsupported WAV encoding: {info.subtype}")
        if info.samplerate <= 0 or info.channels < 1:
            raise DecodeError(
                f"WAV file declares {info.samplerate} Hz with {info.channels} channels"
            )
        samples, sample_rate = sf.read(io.BytesIO(buffer), dtype="float32", always_2d=True)
    except (sf.LibsndfileError, RuntimeError) as e:
        raise DecodeError(f"Could not decode WAV: {e}") from e

    if samples.shape[0] == 0:
        raise DecodeError("WAV file holds no audio frames")
    return samples.T, sample_rate


# --- MP3 ---

def _decode_mp3(buffer: bytes) -> tuple[np.ndarray, int]:
    try:
        audio = AudioSegment.from_file(io.BytesIO(buffer), format="mp3")
    except (CouldntDecodeError, IndexError, OSError) as e:
        raise DecodeError(f"Could not decode MP3: {e}") from e

    if len(audio.raw_data) == 0:
        raise DecodeError("MP3 decoded to zero samples")

    samples = np.array(audio.get_array_of_samples(), dtype=np.float32)
    samples /= float(1 << (8 * audio.sample_width - 1))
    channels = samples.reshape((-1, audio.channels)).T
    return channels, audio.frame_rate
