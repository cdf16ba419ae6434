"""Routes device command payloads to their local handlers."""

from __future__ import annotations

import base64
import logging
import random
import shlex
import subprocess
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from dawn_assistant.assistant_config import AssistantConfig
from dawn_assistant.audio.devices import DeviceRegistry
from dawn_assistant.audio.music import MusicPlayer
from dawn_assistant.audio.voice_amplifier import VoiceAmplifier
from dawn_assistant.errors import LLMError
from dawn_assistant.llm_client import ConversationHistory, LLMClient
from dawn_assistant.messages import DeviceCommand, DeviceType
from dawn_assistant.metrics import MetricsCollector
from dawn_assistant.speech.tts import TextToSpeech
from dawn_assistant.speech.word_to_number import words_to_number

logger = logging.getLogger(__name__)

DATE_PHRASES = (
    "Today's date, dear Sir, is %A, %B %d, %Y. You're welcome.",
    "In case you've forgotten, Sir, it's %A, %B %d, %Y today.",
    "The current date is %A, %B %d, %Y.",
)

TIME_PHRASES = (
    "The current time, in case your wristwatch has failed you, is %I:%M %p.",
    "I trust you have something important planned, Sir? It's %I:%M %p.",
    "Oh, you want to know the time again? It's %I:%M %p, not that I'm keeping track.",
    "The time is %I:%M %p.",
)

Handler = Callable[[DeviceCommand], None]


class Dispatcher:
    """Maps the ``device`` token of a payload to a handler.

    Payloads arrive one at a time from the bus. Date and time answers go
    straight to the speech queue.
    """

    def __init__(
        self,
        config: AssistantConfig,
        registry: DeviceRegistry,
        tts: TextToSpeech,
        music: MusicPlayer,
        voice_amplifier: VoiceAmplifier,
        llm: LLMClient,
        history: ConversationHistory,
        metrics: MetricsCollector | None = None,
        run_command: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.tts = tts
        self.music = music
        self.voice_amplifier = voice_amplifier
        self.llm = llm
        self.history = history
        self.metrics = metrics
        self._run_command = run_command
        self._clock = clock
        self._rng = rng or random.Random()
        self.handlers: dict[str, Handler] = {
            DeviceType.AUDIO_PLAYBACK_DEVICE.value: self._switch_playback_device,
            DeviceType.AUDIO_CAPTURE_DEVICE.value: self._switch_capture_device,
            DeviceType.TEXT_TO_SPEECH.value: self._say,
            DeviceType.DATE.value: self._tell_date,
            DeviceType.TIME.value: self._tell_time,
            DeviceType.MUSIC.value: self._music,
            DeviceType.VOICE_AMPLIFIER.value: self._voice_amplifier,
            DeviceType.VIEWING.value: self._viewing,
            DeviceType.VOLUME.value: self._volume,
            config.shutdown_device: self._shutdown,
        }

    def dispatch(self, payload: str | bytes) -> bool:
        """Validate a raw payload and run its handler. Returns True when a handler ran."""
        try:
            command = DeviceCommand.model_validate_json(payload)
        except ValidationError as err:
            logger.error("Error validating device command: %s", err)
            self._record(accepted=False)
            return False
        return self.execute(command)

    def execute(self, command: DeviceCommand) -> bool:
        handler = self.handlers.get(command.device)
        if handler is None:
            logger.debug("No local handler for device '%s'", command.device)
            self._record(accepted=False)
            return False
        logger.info("Dispatching %s/%s value=%r", command.device, command.action, command.value)
        handler(command)
        self._record(accepted=True)
        return True

    def shutdown(self) -> None:
        """Stop and join the workers."""
        self.music.stop()
        self.voice_amplifier.disable()

    def _record(self, accepted: bool) -> None:
        if self.metrics:
            self.metrics.record_dispatch(accepted)

    def _switch_playback_device(self, command: DeviceCommand) -> None:
        if not command.value:
            logger.warning("Playback device switch without a device name")
            return
        entry = self.registry.select_playback(command.value)
        if entry is None:
            self.tts.speak(f"Sorry sir. A playback device called {command.value} was not found.")
        else:
            self.tts.speak(f"Switching playback device to {entry.name}.")

    def _switch_capture_device(self, command: DeviceCommand) -> None:
        if not command.value:
            logger.warning("Capture device switch without a device name")
            return
        entry = self.registry.select_capture(command.value)
        if entry is None:
            self.tts.speak(f"Sorry sir. A capture device called {command.value} was not found.")
        else:
            self.tts.speak(f"Switching capture device to {entry.name}.")

    def _say(self, command: DeviceCommand) -> None:
        if command.value:
            self.tts.speak(command.value)

    def _tell_date(self, command: DeviceCommand) -> None:
        self.tts.speak(self._clock().strftime(self._rng.choice(DATE_PHRASES)))

    def _tell_time(self, command: DeviceCommand) -> None:
        self.tts.speak(self._clock().strftime(self._rng.choice(TIME_PHRASES)))

    def _music(self, command: DeviceCommand) -> None:
        match command.action:
            case "play":
                if not command.value:
                    logger.warning("Music play without a search term")
                    return
                if self.music.play(command.value) == 0:
                    self.tts.speak(f"Sorry sir, I found no music matching {command.value}.")
            case "stop":
                self.music.stop()
            case "next":
                # End-of-track requests carry the playlist generation they were posted for
                self.music.next((command.model_extra or {}).get("playlist"))
            case "previous":
                self.music.previous()
            case _:
                logger.warning("Unknown music action '%s'", command.action)

    def _voice_amplifier(self, command: DeviceCommand) -> None:
        match command.action:
            case "enable":
                playback = self.registry.find_playback(self.config.voice_amplifier_output)
                if playback is None:
                    logger.warning(
                        "No playback device named '%s' for the voice amplifier, using the active one",
                        self.config.voice_amplifier_output,
                    )
                    playback = self.registry.active_playback
                self.voice_amplifier.enable(self.registry.active_capture, playback)
            case "disable":
                self.voice_amplifier.disable()
            case _:
                logger.warning("Unknown voice amplifier action '%s'", command.action)

    def _shutdown(self, command: DeviceCommand) -> None:
        logger.critical("Shutdown requested over the bus")
        self.tts.speak("Emergency shutdown initiated.")
        try:
            result = self._run_command(shlex.split(self.config.shutdown_command), check=False)
        except OSError as err:
            logger.error("Cannot run '%s': %s", self.config.shutdown_command, err)
            return
        if result.returncode != 0:
            logger.error("'%s' exited with status %d", self.config.shutdown_command, result.returncode)

    def _viewing(self, command: DeviceCommand) -> None:
        if not command.value:
            logger.warning("Viewing request without an image path")
            return
        try:
            image = base64.b64encode(Path(command.value).read_bytes()).decode("ascii")
        except OSError as err:
            logger.error("Cannot read image %s: %s", command.value, err)
            self.tts.speak("Sorry sir, I could not open that image.")
            return
        try:
            answer = self.llm.request(self.history, self.config.llm.vision_prompt, image)
        except LLMError as err:
            logger.error("Vision request failed: %s", err)
            self.tts.speak(self.config.llm_apology)
            return
        self.tts.speak(answer)

    def _volume(self, command: DeviceCommand) -> None:
        if not command.value:
            logger.warning("Volume change without a value")
            return
        volume = words_to_number(command.value)
        if not self.music.gain.set(volume):
            logger.warning("Rejected volume %s from '%s'", volume, command.value)
            self.tts.speak("Sorry sir, the volume must be between zero and two.")
            return
        logger.info("Music volume set to %.2f", volume)
