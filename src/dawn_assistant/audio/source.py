"""Microphone capture in fixed-size PCM frames."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from dawn_assistant.audio.backend import BYTES_PER_SAMPLE, open_input_stream
from dawn_assistant.errors import AudioDeviceError

logger = logging.getLogger(__name__)

StreamFactory = Callable[[str | None, int, int, int], Any]


class AudioSource:
    """Blocking frame reader over one capture device.

    ``read`` opens the stream on demand. After a read failure the stream is
    closed and the next ``read`` re-opens it.
    """

    def __init__(
        self,
        device: str | None,
        sample_rate: int,
        channels: int = 1,
        frame_seconds: float = 0.5,
        stream_factory: StreamFactory = open_input_stream,
    ) -> None:
        self.device = device
        self.sample_rate = sample_rate
        self.channels = channels
        self.frame_seconds = frame_seconds
        self.frames_per_read = int(sample_rate * frame_seconds)
        self._stream_factory = stream_factory
        self._stream: Any = None

    @property
    def frame_bytes(self) -> int:
        return self.frames_per_read * self.channels * BYTES_PER_SAMPLE

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self, device: str | None = None) -> None:
        """Open the capture stream, switching device first when one is given."""
        if device is not None:
            self.device = device
        self.close()
        try:
            self._stream = self._stream_factory(self.device, self.sample_rate, self.channels, self.frames_per_read)
        except Exception as err:
            raise AudioDeviceError(f"Cannot open capture device {self.device!r}: {err}") from err
        logger.debug("Capture stream open on %s at %d Hz", self.device or "default device", self.sample_rate)

    def read(self) -> bytes:
        """Block until one frame is available and return it."""
        if self._stream is None:
            self.open()
        try:
            data, overflowed = self._stream.read(self.frames_per_read)
        except Exception as err:
            self.close()
            raise AudioDeviceError(f"Capture read failed on {self.device!r}: {err}") from err
        if overflowed:
            logger.debug("Capture overflow, some audio was dropped")
        return bytes(data)

    def flush(self) -> None:
        """Drop buffered audio so the next read only sees sound captured from now on."""
        self.open()

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
            stream.close()
        except Exception as err:
            logger.warning("Error closing capture stream: %s", err)
