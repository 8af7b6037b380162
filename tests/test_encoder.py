"""Tests for MP3 encoding (Layer 2)."""

import io
import os
from unittest.mock import patch

import numpy as np
import pytest
from pydub import AudioSegment

from podcast_mixer.decoder import decode
from podcast_mixer.encoder import Mp3StreamEncoder, encode_mp3, float_to_int16, validate_mp3
from podcast_mixer.errors import EncodeError

FRAME_SEC = 1152 / 44100


def _duration(mp3):
    return len(AudioSegment.from_file(io.BytesIO(mp3), format="mp3")) / 1000


# --- Conversion ---

def test_float_to_int16_clamps():
    out = float_to_int16(np.array([[-2.0, -1.0, 0.0, 0.5, 1.0, 3.0]]))
    assert out.tolist() == [[-32767, -32767, 0, 16384, 32767, 32767]]
    assert out.dtype == np.int16


# --- Validation ---

def test_validate_accepts_frame_sync(config):
    validate_mp3(b"\xff\xfb" + b"\x00" * 100, 10_000, config)


def test_validate_accepts_id3(config):
    validate_mp3(b"ID3" + b"\x00" * 100, 10_000, config)


def test_validate_rejects_empty(config):
    with pytest.raises(EncodeError, match="no output"):
        validate_mp3(b"", 10_000, config)


def test_validate_rejects_poor_compression(config):
    with pytest.raises(EncodeError, match="Compression ratio"):
        validate_mp3(b"\xff\xfb" + b"\x00" * 998, 1000, config)


def test_validate_rejects_missing_sync(config):
    with pytest.raises(EncodeError, match="frame sync"):
        validate_mp3(b"RIFF" + b"\x00" * 100, 10_000, config)


# --- Encoding ---

def test_round_trip_duration(config):
    """Silent stereo in, MP3 out, duration within one encoder frame."""
    pcm = np.zeros((2, int(2.0 * 44100)), dtype=np.float32)
    mp3 = encode_mp3(pcm, config)
    assert mp3[:3] == b"ID3" or mp3[0] == 0xFF
    assert abs(_duration(mp3) - 2.0) <= FRAME_SEC + 0.001


def test_round_trip_through_decoder(config, tone):
    mp3 = encode_mp3(tone(1.0, channels=2), config)
    pcm = decode(mp3, config)
    assert abs(pcm.shape[1] / 44100 - 1.0) <= 2 * FRAME_SEC
    assert np.max(np.abs(pcm)) > 0.3


def test_streamed_writes_equal_one_shot_duration(config, tone):
    pcm = tone(3.0, channels=2)
    with Mp3StreamEncoder(config) as encoder:
        for start in range(0, pcm.shape[1], 10_000):
            encoder.write(pcm[:, start:start + 10_000])
        streamed = encoder.close()
    assert encoder.samples_written == pcm.shape[1]
    assert abs(_duration(streamed) - _duration(encode_mp3(pcm, config))) <= FRAME_SEC


def test_close_is_idempotent(config):
    with Mp3StreamEncoder(config) as encoder:
        encoder.write(np.zeros((2, 44100), dtype=np.float32))
        first = encoder.close()
    assert encoder.close() is first


def test_write_after_close_raises(config):
    encoder = Mp3StreamEncoder(config)
    encoder.write(np.zeros((2, 44100), dtype=np.float32))
    encoder.close()
    with pytest.raises(EncodeError, match="closed"):
        encoder.write(np.zeros((2, 10), dtype=np.float32))


def test_exception_inside_block_aborts(config):
    """The original error propagates even with PCM still buffered for ffmpeg."""
    with pytest.raises(RuntimeError, match="boom"):
        with Mp3StreamEncoder(config) as encoder:
            encoder.write(np.zeros((2, 1000), dtype=np.float32))
            raise RuntimeError("boom")
    assert not os.path.exists(encoder._out_path)
    with pytest.raises(EncodeError):
        encoder.write(np.zeros((2, 10), dtype=np.float32))


def test_abort_after_encoder_died(config):
    encoder = Mp3StreamEncoder(config)
    encoder.write(np.zeros((2, 1000), dtype=np.float32))
    encoder._proc.kill()
    encoder._proc.wait()
    encoder.abort()
    assert not os.path.exists(encoder._out_path)


def test_missing_encoder_binary(config):
    with patch("podcast_mixer.encoder.AudioSegment.converter", "/nonexistent/ffmpeg"):
        with pytest.raises(EncodeError, match="Could not start"):
            Mp3StreamEncoder(config)


def test_empty_stream_fails_validation(config):
    """Nothing written means nothing encoded; that is an error, not b""."""
    encoder = Mp3StreamEncoder(config)
    with pytest.raises(EncodeError):
        encoder.close()
