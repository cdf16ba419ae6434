"""Text-to-speech with Piper, spoken from a background thread."""

from __future__ import annotations

import io
import logging
import queue
import threading
import wave
from collections.abc import Callable
from typing import Any

import numpy as np
import soundfile as sf

from dawn_assistant.assistant_config import TTSConfig
from dawn_assistant.audio.backend import play_blocking
from dawn_assistant.audio.devices import DeviceRegistry

logger = logging.getLogger(__name__)

Synthesizer = Callable[[str], tuple[np.ndarray, int]]
Player = Callable[[np.ndarray, int, str | None], None]


class PiperSynthesizer:
    """Render a sentence to int16 samples with a Piper voice."""

    def __init__(self, config: TTSConfig) -> None:
        from piper import PiperVoice
        from piper.config import SynthesisConfig

        self._voice = PiperVoice.load(config.voice_model)
        self._syn_config = SynthesisConfig(length_scale=config.length_scale, normalize_audio=True)

    def __call__(self, text: str) -> tuple[np.ndarray, int]:
        wav_buffer = io.BytesIO()
        with wave.open(wav_buffer, "wb") as wav_file:
            self._voice.synthesize_wav(text, wav_file, syn_config=self._syn_config)
        wav_buffer.seek(0)
        audio, sample_rate = sf.read(wav_buffer, dtype="int16")
        return audio, sample_rate


class TextToSpeech:
    """Queue of sentences played one after another on the active playback device.

    ``speak`` never blocks and never calls back into the dispatcher.
    """

    _STOP = object()

    def __init__(
        self,
        registry: DeviceRegistry,
        synthesizer: Synthesizer,
        player: Player = play_blocking,
    ) -> None:
        self.registry = registry
        self._synthesize = synthesizer
        self._play = player
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="tts", daemon=True)
        self._thread.start()

    def speak(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        logger.info("Speaking: %s", text)
        self._queue.put(text)

    def discard(self) -> int:
        """Drop sentences that have not started playing yet."""
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return dropped
            self._queue.task_done()
            if item is self._STOP:
                self._queue.put(item)
                return dropped
            dropped += 1

    @property
    def busy(self) -> bool:
        """True while a sentence is queued or playing."""
        return self._queue.unfinished_tasks > 0

    def wait_until_idle(self) -> None:
        self._queue.join()

    def stop(self, timeout: float | None = 10.0) -> None:
        """Finish the queued sentences, then end the worker."""
        if self._thread is None:
            return
        self._queue.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                self._say(item)
            finally:
                self._queue.task_done()

    def _say(self, text: str) -> None:
        try:
            samples, sample_rate = self._synthesize(text)
        except Exception:
            logger.exception("Speech synthesis failed for %r", text)
            return
        # Snapshot: a device switch applies from the next sentence
        device = self.registry.active_playback
        try:
            self._play(samples, sample_rate, device)
        except Exception:
            logger.exception("Speech playback failed on %s", device or "default device")
