"""Shared fixtures for podcast mixer tests."""

import io

import numpy as np
import pytest
import soundfile as sf
from pydub import AudioSegment

from podcast_mixer.models import ScriptSegment
from podcast_mixer.settings import MixConfig, MixingSettings

SR = 44100


def _tone(duration_sec, freq=220.0, amp=0.5, sr=SR, channels=1):
    """Sine tone as a (channels, n) float32 array."""
    n = int(round(duration_sec * sr))
    t = np.arange(n, dtype=np.float64) / sr
    mono = (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return np.vstack([mono] * channels)


WAV_SUBTYPE_BY_BITS = {16: "PCM_16", 24: "PCM_24", 32: "FLOAT"}


def _wav_bytes(pcm, sr=SR, bits=16, extensible=False):
    """Encode a (channels, n) float array as a RIFF/WAVE buffer."""
    buf = io.BytesIO()
    sf.write(
        buf, np.asarray(pcm, dtype=np.float32).T, sr,
        format="WAVEX" if extensible else "WAV",
        subtype=WAV_SUBTYPE_BY_BITS[bits],
    )
    return buf.getvalue()


def _mp3_bytes(pcm, sr=SR):
    """Encode a (channels, n) float array to MP3 through pydub."""
    channels = pcm.shape[0]
    ints = (np.clip(pcm, -1, 1) * 32767).astype(np.int16).T.reshape(-1)
    audio = AudioSegment(data=ints.tobytes(), sample_width=2, frame_rate=sr, channels=channels)
    buf = io.BytesIO()
    audio.export(buf, format="mp3", bitrate="128k")
    return buf.getvalue()


@pytest.fixture
def config():
    return MixConfig()


@pytest.fixture
def settings():
    return MixingSettings()


@pytest.fixture
def tone():
    """Factory: tone(duration_sec, freq=220, amp=0.5, sr=44100, channels=1)."""
    return _tone


@pytest.fixture
def wav_bytes():
    """Factory: wav_bytes(pcm, sr=44100, bits=16, extensible=False)."""
    return _wav_bytes


@pytest.fixture
def mp3_bytes():
    """Factory: mp3_bytes(pcm, sr=44100)."""
    return _mp3_bytes


@pytest.fixture
def make_segment():
    """Factory for a ScriptSegment holding a WAV tone of the given length."""
    def _make(speaker, text, duration_sec, freq=220.0, overlapping=False):
        return ScriptSegment(
            buffer=_wav_bytes(_tone(duration_sec, freq=freq)),
            speaker=speaker,
            text=text,
            overlapping=overlapping,
        )
    return _make


@pytest.fixture
def example_segments(make_segment):
    """Three-line exchange: statement, interruption trailing off, reply."""
    return [
        make_segment("HOST", "Welcome to the show!", 2.0),
        make_segment("GUEST", "[interrupting] Wait, actually...", 1.5, freq=330.0),
        make_segment("HOST", "Sure, go ahead", 1.0),
    ]


@pytest.fixture
def music_file(tmp_path):
    """A 20s MP3 music asset on disk."""
    path = tmp_path / "music.mp3"
    path.write_bytes(_mp3_bytes(_tone(20.0, freq=110.0, amp=0.4, channels=2)))
    return str(path)
