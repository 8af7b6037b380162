"""Constant-power stereo positioning of a speaker."""

import math

import numpy as np


def pan_gains(pan: float) -> tuple[float, float]:
    """Left/right gains for pan in [0, 1] (0 = left, 1 = right).

    cos/sin keeps left² + right² = 1, so perceived loudness does not change
    as a voice moves across the stereo field.
    """
    pan = min(1.0, max(0.0, pan))
    angle = pan * math.pi / 2
    return math.cos(angle), math.sin(angle)


def apply_pan(pcm: np.ndarray, pan: float) -> np.ndarray:
    """Position a (mono-sourced) stereo buffer at pan.

    TTS clips are mono duplicated to two channels, so the first channel is
    the source signal.
    """
    left_gain, right_gain = pan_gains(pan)
    source = pcm[0]
    return np.vstack([source * left_gain, source * right_gain]).astype(np.float32)
