"""Microphone pass-through to a loudspeaker."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from dawn_assistant.audio.backend import open_input_stream, open_output_stream

logger = logging.getLogger(__name__)


class VoiceAmplifier:
    """Copies capture blocks to a playback device on a worker thread.

    One worker at most; ``disable`` signals it and waits for it to exit.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        channels: int = 2,
        block_frames: int = 1024,
        input_factory: Callable[..., Any] = open_input_stream,
        output_factory: Callable[..., Any] = open_output_stream,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_frames = block_frames
        self._input_factory = input_factory
        self._output_factory = output_factory
        self._running = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def enable(self, capture_device: str | None, playback_device: str | None) -> bool:
        """Start the pass-through. Returns False when it is already running."""
        with self._lock:
            if self.running:
                logger.info("Voice amplifier already running")
                return False
            self._running.set()
            self._thread = threading.Thread(
                target=self._run, args=(capture_device, playback_device), name="voice-amplifier", daemon=True
            )
            self._thread.start()
            logger.info("Voice amplifier on: %s -> %s", capture_device or "default", playback_device or "default")
            return True

    def disable(self) -> bool:
        """Stop the pass-through. Returns False when it was not running."""
        with self._lock:
            if self._thread is None:
                return False
            self._running.clear()
            self._thread.join()
            self._thread = None
            logger.info("Voice amplifier off")
            return True

    def _run(self, capture_device: str | None, playback_device: str | None) -> None:
        source = sink = None
        try:
            source = self._input_factory(capture_device, self.sample_rate, self.channels, self.block_frames)
            sink = self._output_factory(playback_device, self.sample_rate, self.channels, self.block_frames)
            while self._running.is_set():
                data, _overflowed = source.read(self.block_frames)
                sink.write(data)
        except Exception:
            logger.exception("Voice amplifier stopped on an audio error")
        finally:
            for stream in (source, sink):
                if stream is not None:
                    stream.stop()
                    stream.close()
            self._running.clear()
