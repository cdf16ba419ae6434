"""Builds the components from configuration and runs a listening session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import threading
from collections.abc import Callable
from datetime import datetime

from dawn_assistant.assistant_config import AssistantConfig
from dawn_assistant.audio.devices import DeviceRegistry
from dawn_assistant.audio.music import MusicPlayer
from dawn_assistant.audio.rms import measure_ambient
from dawn_assistant.audio.source import AudioSource
from dawn_assistant.audio.voice_amplifier import VoiceAmplifier
from dawn_assistant.bus import BusAdapter
from dawn_assistant.catalog.compiler import load_catalog
from dawn_assistant.catalog.matching import CommandMatcher
from dawn_assistant.command_router import CommandRouter
from dawn_assistant.dispatcher import Dispatcher
from dawn_assistant.errors import BusError
from dawn_assistant.listener import ListeningStateMachine
from dawn_assistant.llm_client import ConversationHistory, LLMClient
from dawn_assistant.metrics import MetricsCollector
from dawn_assistant.speech.recognizer import SpeechRecognizer
from dawn_assistant.speech.tts import PiperSynthesizer, Synthesizer, TextToSpeech

logger = logging.getLogger(__name__)


def greeting_for(now: datetime) -> str:
    if 3 <= now.hour < 12:
        return "Good morning boss."
    if 12 <= now.hour < 18:
        return "Good day Sir."
    return "Good evening Sir."


class Assistant:
    """Owns every long-lived component of one session.

    Construction loads the command catalog and fails fast on a bad one;
    ``run`` opens the hardware, connects the bus and listens until a
    goodbye phrase or a signal ends the session.
    """

    def __init__(
        self,
        config: AssistantConfig,
        capture_device: str | None = None,
        playback_device: str | None = None,
        synthesizer_factory: Callable[[], Synthesizer] | None = None,
        recognizer_factory: Callable[[], SpeechRecognizer] | None = None,
    ) -> None:
        self.config = config
        self.metrics = MetricsCollector(config.client_id)
        self.quit_event = threading.Event()

        catalog = load_catalog(config.commands_config_path, config.max_commands)
        self.registry = DeviceRegistry(catalog.capture_devices, catalog.playback_devices)
        self.registry.use_devices(
            capture_device or config.default_capture_device, playback_device or config.default_playback_device
        )
        self.matcher = CommandMatcher(catalog.commands)

        self.history = ConversationHistory(config.persona)
        self.llm = LLMClient(config.llm, self.metrics)
        self._synthesizer_factory = synthesizer_factory or (lambda: PiperSynthesizer(config.tts))
        self._recognizer_factory = recognizer_factory or (
            lambda: SpeechRecognizer.from_model(config.vosk_model_path, config.sample_rate)
        )
        self.tts: TextToSpeech | None = None
        self.bus = BusAdapter(config, self.on_bus_message, self.metrics)
        self.dispatcher: Dispatcher | None = None

    def on_bus_message(self, payload: str) -> None:
        if self.dispatcher is None:
            logger.warning("Dispatcher not ready, dropping %s", payload)
            return
        self.dispatcher.dispatch(payload)

    def _build_dispatcher(self, tts: TextToSpeech) -> Dispatcher:
        music = MusicPlayer(
            self.config.music_path,
            self.registry,
            post=self.bus.post,
            max_tracks=self.config.max_playlist_length,
            channels=self.config.music_channels,
        )
        amplifier = VoiceAmplifier(
            sample_rate=self.config.voice_amplifier_sample_rate, channels=self.config.voice_amplifier_channels
        )
        return Dispatcher(self.config, self.registry, tts, music, amplifier, self.llm, self.history, self.metrics)

    async def run(self) -> None:
        source = AudioSource(
            self.registry.active_capture,
            self.config.sample_rate,
            self.config.channels,
            self.config.frame_seconds,
        )
        try:
            await self._run_session(source)
        finally:
            source.close()
            if self.dispatcher is not None:
                self.dispatcher.shutdown()
            if self.tts is not None:
                self.tts.stop()
            logger.info("Session summary: %s", self.metrics.get_metrics_summary())

    async def _run_session(self, source: AudioSource) -> None:
        logger.info("Measuring ambient noise for %.0f seconds", self.config.background_capture_seconds)
        baseline = await asyncio.to_thread(measure_ambient, source, self.config.background_capture_seconds)
        recognizer = await asyncio.to_thread(self._recognizer_factory)
        self.tts = TextToSpeech(self.registry, await asyncio.to_thread(self._synthesizer_factory))
        self.dispatcher = self._build_dispatcher(self.tts)

        router = CommandRouter(
            self.matcher,
            self.bus.publish,
            self.tts,
            self.llm,
            self.history,
            self.config.ignore_words,
            self.config.llm_apology,
        )
        machine = ListeningStateMachine(
            source,
            recognizer,
            router,
            self.tts,
            ambient_baseline=baseline,
            wake_words=self.config.wake_words,
            goodbye_words=self.config.goodbye_words,
            wake_responses=self.config.wake_responses,
            farewell=self.config.farewell,
            talking_offset=self.config.talking_threshold_offset,
            timeout_frames=self.config.command_timeout_frames,
            registry=self.registry,
            quit_event=self.quit_event,
            metrics=self.metrics,
        )

        self.tts.start()
        self.tts.speak(greeting_for(datetime.now()))
        self._install_signal_handlers()
        try:
            async with asyncio.TaskGroup() as tg:
                bus_task = tg.create_task(self.bus.run())
                await machine.run()
                bus_task.cancel()
        except* BusError as group:
            raise group.exceptions[0] from None

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self._request_quit, sig)

    def _request_quit(self, sig: signal.Signals) -> None:
        logger.info("Received %s, finishing the session", sig.name)
        self.quit_event.set()
