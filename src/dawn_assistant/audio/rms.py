"""Loudness estimation over signed 16-bit PCM."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import numpy as np

from dawn_assistant.errors import AudioDeviceError

if TYPE_CHECKING:
    from dawn_assistant.audio.source import AudioSource

logger = logging.getLogger(__name__)

FULL_SCALE = 32768.0


def calculate_rms(pcm: bytes | bytearray | np.ndarray) -> float:
    """Root mean square of the samples normalized to [-1.0, 1.0).

    Returns 0.0 for an empty buffer.
    """
    samples = np.frombuffer(pcm, dtype=np.int16) if isinstance(pcm, bytes | bytearray) else pcm
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean((samples.astype(np.float32) / FULL_SCALE) ** 2)))


def measure_ambient(source: AudioSource, seconds: float) -> float:
    """Record ``seconds`` of audio and return its RMS as the ambient baseline.

    A capture failure yields 0.0 so the assistant still starts, with a
    threshold equal to the talking offset alone.
    """
    frames_needed = max(1, math.ceil(seconds / source.frame_seconds))
    recorded = bytearray()
    try:
        for _ in range(frames_needed):
            recorded.extend(source.read())
    except AudioDeviceError as err:
        logger.error("Ambient capture failed, using a zero baseline: %s", err)
        return 0.0
    baseline = calculate_rms(recorded)
    logger.info("Ambient baseline RMS: %.5f over %.1f s", baseline, seconds)
    return baseline
