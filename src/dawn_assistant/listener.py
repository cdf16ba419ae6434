"""The wake/silence state machine driving capture, recognition and dispatch.

Silence waits for a frame louder than the ambient baseline plus a fixed
offset. WakewordListen and CommandRecording feed frames to the recognizer
until the utterance ends: a frame counts towards the end when it is quiet
or when the partial transcript did not grow. After ``timeout_frames`` such
frames the transcript is finalized. ProcessCommand is transient: it routes
the command, flushes the microphone and returns to Silence.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from enum import Enum

from dawn_assistant.audio.devices import DeviceRegistry
from dawn_assistant.audio.rms import calculate_rms
from dawn_assistant.audio.source import AudioSource
from dawn_assistant.command_router import CommandRouter, normalize_utterance
from dawn_assistant.errors import AudioDeviceError
from dawn_assistant.metrics import MetricsCollector
from dawn_assistant.speech.recognizer import SpeechRecognizer
from dawn_assistant.speech.tts import TextToSpeech

logger = logging.getLogger(__name__)

# Pause after a capture failure before the stream is re-opened
CAPTURE_RETRY_SECONDS = 1.0
WAKE_TAIL_SEPARATORS = " \t,.!?"


class ListeningState(Enum):
    SILENCE = "silence"
    WAKEWORD_LISTEN = "wakeword_listen"
    COMMAND_RECORDING = "command_recording"
    PROCESS_COMMAND = "process_command"


class ListeningStateMachine:
    """One instance per session; owns the capture handle.

    ``step`` advances the machine by one frame and is what the tests drive.
    ``run`` reads frames until ``quit_event`` is set.
    """

    def __init__(
        self,
        source: AudioSource,
        recognizer: SpeechRecognizer,
        router: CommandRouter,
        tts: TextToSpeech,
        ambient_baseline: float,
        wake_words: list[str],
        goodbye_words: list[str],
        wake_responses: list[str],
        farewell: str,
        talking_offset: float = 0.015,
        timeout_frames: int = 4,
        registry: DeviceRegistry | None = None,
        quit_event: threading.Event | None = None,
        metrics: MetricsCollector | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self.recognizer = recognizer
        self.router = router
        self.tts = tts
        self.ambient_baseline = ambient_baseline
        self.threshold = ambient_baseline + talking_offset
        self.wake_words = [word.lower() for word in wake_words]
        self.goodbye_words = {normalize_utterance(word) for word in goodbye_words}
        self.wake_responses = wake_responses
        self.farewell = farewell
        self.timeout_frames = timeout_frames
        self.registry = registry
        self.quit_event = quit_event or threading.Event()
        self.metrics = metrics
        self._rng = rng or random.Random()

        self.state = ListeningState.SILENCE
        self.next_after_silence = ListeningState.WAKEWORD_LISTEN
        self.timeout_counter = 0
        self._partial_length = 0
        self._capture_generation = registry.capture_generation if registry else 0

    @property
    def finished(self) -> bool:
        return self.quit_event.is_set()

    async def run(self) -> None:
        logger.info("Listening; speech threshold %.4f", self.threshold)
        while not self.finished:
            frame = await self._read_frame()
            if frame is not None:
                await self.step(frame)
        logger.info("Listening stopped")

    async def _read_frame(self) -> bytes | None:
        self._follow_capture_switch()
        try:
            return await asyncio.to_thread(self.source.read)
        except AudioDeviceError as err:
            logger.error("%s; abandoning the current utterance", err)
            self._abandon_utterance()
            await asyncio.sleep(CAPTURE_RETRY_SECONDS)
            return None

    def _follow_capture_switch(self) -> None:
        if self.registry is None:
            return
        generation = self.registry.capture_generation
        if generation != self._capture_generation:
            self._capture_generation = generation
            logger.info("Re-opening capture on %s", self.registry.active_capture)
            try:
                self.source.open(self.registry.active_capture)
            except AudioDeviceError as err:
                logger.error("%s", err)

    def _abandon_utterance(self) -> None:
        self.recognizer.reset()
        self.timeout_counter = 0
        self._partial_length = 0
        self.state = ListeningState.SILENCE
        self.next_after_silence = ListeningState.WAKEWORD_LISTEN

    async def step(self, frame: bytes) -> None:
        loud = calculate_rms(frame) >= self.threshold
        match self.state:
            case ListeningState.SILENCE:
                if loud and self.tts.busy:
                    # Speech queued by a bus message, e.g. the time; drop its echo
                    logger.debug("Assistant is speaking, discarding captured audio")
                    await self._flush_audio()
                elif loud:
                    self.recognizer.accept(frame)
                    self._partial_length = len(self.recognizer.partial_result() or "")
                    self.timeout_counter = 0
                    self.state = self.next_after_silence
                    logger.debug("Speech detected, now %s", self.state.value)
            case ListeningState.WAKEWORD_LISTEN | ListeningState.COMMAND_RECORDING:
                if self._speech_continues(frame, loud):
                    self.timeout_counter = 0
                else:
                    self.timeout_counter += 1
                if self.timeout_counter >= self.timeout_frames:
                    await self._finalize()
            case ListeningState.PROCESS_COMMAND:
                # Only entered from _finalize, which leaves it before returning
                logger.warning("Frame received while processing a command")

    def _speech_continues(self, frame: bytes, loud: bool) -> bool:
        """Feed a loud frame; True only when it also grew the partial transcript."""
        if not loud:
            return False
        self.recognizer.accept(frame)
        partial = self.recognizer.partial_result()
        if partial is None:
            return False
        grew = len(partial) > self._partial_length
        self._partial_length = len(partial)
        return grew

    async def _finalize(self) -> None:
        recording_state = self.state
        transcript = self.recognizer.final_result()
        self.timeout_counter = 0
        self._partial_length = 0
        logger.info("Heard: %r", transcript)

        if transcript is None:
            self._to_silence(recording_state)
            return
        if recording_state is ListeningState.WAKEWORD_LISTEN:
            await self._evaluate_wake(transcript)
        else:
            await self._process_command(transcript)

    def _is_goodbye(self, text: str) -> bool:
        return normalize_utterance(text) in self.goodbye_words

    async def _evaluate_wake(self, transcript: str) -> None:
        if self._is_goodbye(transcript):
            self._say_goodbye()
            return

        lowered = transcript.lower()
        for wake_word in self.wake_words:
            index = lowered.find(wake_word)
            if index == -1:
                continue
            tail = transcript[index + len(wake_word) :].lstrip(WAKE_TAIL_SEPARATORS)
            if tail:
                await self._process_command(tail)
            else:
                logger.info("Wake phrase heard, waiting for a command")
                self.tts.speak(self._rng.choice(self.wake_responses))
                await self._flush_audio()
                self._to_silence(ListeningState.COMMAND_RECORDING)
            return

        self._to_silence(ListeningState.WAKEWORD_LISTEN)

    async def _process_command(self, command: str) -> None:
        self.state = ListeningState.PROCESS_COMMAND
        if self._is_goodbye(command):
            self._say_goodbye()
            return

        try:
            outcome = await self.router.route(command)
            if self.metrics:
                self.metrics.record_utterance(outcome.value)
        finally:
            await self._flush_audio()
            self._to_silence(ListeningState.WAKEWORD_LISTEN)

    async def _flush_audio(self) -> None:
        # Let our own speech finish first so its echo is discarded too
        await asyncio.to_thread(self.tts.wait_until_idle)
        try:
            self.source.flush()
        except AudioDeviceError as err:
            logger.error("Flush failed, capture will re-open on the next read: %s", err)

    def _to_silence(self, next_state: ListeningState) -> None:
        self.state = ListeningState.SILENCE
        self.next_after_silence = next_state

    def _say_goodbye(self) -> None:
        logger.info("Goodbye phrase heard, shutting down")
        self.tts.speak(self.farewell)
        self.state = ListeningState.SILENCE
        self.quit_event.set()
