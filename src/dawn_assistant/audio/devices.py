"""Named audio devices and the currently selected capture/playback pair."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AudioDeviceKind(str, Enum):
    CAPTURE = "audio capture device"
    PLAYBACK = "audio playback device"


@dataclass(frozen=True)
class AudioDeviceEntry:
    """Spoken name and aliases for a backend device identifier."""

    name: str
    aliases: tuple[str, ...]
    identifier: str
    kind: AudioDeviceKind

    def answers_to(self, name: str) -> bool:
        wanted = name.strip().lower()
        return wanted == self.name.lower() or any(wanted == alias.lower() for alias in self.aliases)


class DeviceRegistry:
    """Process-wide audio device selection.

    The dispatcher changes the active devices; workers read a snapshot
    when they start. A ``None`` identifier means the backend default.
    """

    def __init__(
        self,
        capture_devices: list[AudioDeviceEntry] | None = None,
        playback_devices: list[AudioDeviceEntry] | None = None,
        active_capture: str | None = None,
        active_playback: str | None = None,
    ) -> None:
        self.capture_devices = list(capture_devices or [])
        self.playback_devices = list(playback_devices or [])
        self._lock = threading.Lock()
        self._active_capture = active_capture
        self._active_playback = active_playback
        self._capture_generation = 0

    @staticmethod
    def _find(entries: list[AudioDeviceEntry], name: str) -> AudioDeviceEntry | None:
        return next((entry for entry in entries if entry.answers_to(name)), None)

    def find_capture(self, name: str) -> str | None:
        entry = self._find(self.capture_devices, name)
        return entry.identifier if entry else None

    def find_playback(self, name: str) -> str | None:
        entry = self._find(self.playback_devices, name)
        return entry.identifier if entry else None

    def resolve_capture(self, name: str | None) -> str | None:
        """Map a registry name to its identifier; unknown names pass through as raw identifiers."""
        if name is None:
            return None
        return self.find_capture(name) or name

    def resolve_playback(self, name: str | None) -> str | None:
        if name is None:
            return None
        return self.find_playback(name) or name

    def use_devices(self, capture: str | None, playback: str | None) -> None:
        """Set the startup devices from registry names or raw backend identifiers."""
        with self._lock:
            self._active_capture = self.resolve_capture(capture)
            self._active_playback = self.resolve_playback(playback)

    @property
    def active_capture(self) -> str | None:
        with self._lock:
            return self._active_capture

    @property
    def active_playback(self) -> str | None:
        with self._lock:
            return self._active_playback

    @property
    def capture_generation(self) -> int:
        """Bumped on every capture switch so the listening loop knows to re-open."""
        with self._lock:
            return self._capture_generation

    def select_capture(self, name: str) -> AudioDeviceEntry | None:
        entry = self._find(self.capture_devices, name)
        if entry is None:
            logger.warning("No capture device named '%s'", name)
            return None
        with self._lock:
            self._active_capture = entry.identifier
            self._capture_generation += 1
        logger.info("Capture device is now '%s' (%s)", entry.name, entry.identifier)
        return entry

    def select_playback(self, name: str) -> AudioDeviceEntry | None:
        entry = self._find(self.playback_devices, name)
        if entry is None:
            logger.warning("No playback device named '%s'", name)
            return None
        with self._lock:
            self._active_playback = entry.identifier
        logger.info("Playback device is now '%s' (%s)", entry.name, entry.identifier)
        return entry
