"""FLAC music playback: playlist search, volume gain and the playback worker."""

from __future__ import annotations

import fnmatch
import functools
import logging
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import soundfile as sf

from dawn_assistant.audio.backend import open_output_stream
from dawn_assistant.audio.devices import DeviceRegistry

logger = logging.getLogger(__name__)

MUSIC_EXTENSION = ".flac"
INT16_MIN = -32768
INT16_MAX = 32767


def build_playlist(music_dir: Path, query: str, limit: int = 100) -> list[Path]:
    """Find ``*query*.flac`` below ``music_dir``, case-insensitively.

    Spaces in the query match anything, so "moonlight sonata" finds
    "Beethoven - Moonlight_Sonata.flac". Results are sorted by path and
    capped at ``limit``.
    """
    pattern = f"*{query.strip().replace(' ', '*')}*{MUSIC_EXTENSION}".lower()
    if not music_dir.is_dir():
        logger.warning("Music directory %s does not exist", music_dir)
        return []
    matches = sorted(
        str(path) for path in music_dir.rglob("*") if path.is_file() and fnmatch.fnmatchcase(path.name.lower(), pattern)
    )
    if len(matches) > limit:
        logger.info("Playlist truncated from %d to %d tracks", len(matches), limit)
    return [Path(match) for match in matches[:limit]]


@dataclass
class Playlist:
    tracks: list[Path] = field(default_factory=list)
    index: int = 0

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def current(self) -> Path | None:
        return self.tracks[self.index] if self.tracks else None

    def advance(self, step: int) -> Path | None:
        """Move the cursor by ``step`` tracks, wrapping at both ends."""
        if not self.tracks:
            return None
        self.index = (self.index + step) % len(self.tracks)
        return self.current


class PlaybackGain:
    """Volume multiplier shared between the dispatcher and the music worker.

    A float attribute store is atomic, so the worker reads it once per
    block without locking.
    """

    MINIMUM = 0.0
    MAXIMUM = 2.0

    def __init__(self, value: float = 1.0) -> None:
        self._value = value

    @property
    def value(self) -> float:
        return self._value

    def set(self, value: float) -> bool:
        """Apply ``value`` if it is a finite number within [0, 2]."""
        if not math.isfinite(value) or not self.MINIMUM <= value <= self.MAXIMUM:
            return False
        self._value = value
        return True


def apply_gain(block: np.ndarray, gain: float) -> np.ndarray:
    """Scale int16 samples and clamp them to the int16 range."""
    if gain == 1.0:
        return block
    return np.clip(block.astype(np.float32) * gain, INT16_MIN, INT16_MAX).astype(np.int16)


def to_channels(block: np.ndarray, channels: int) -> np.ndarray:
    """Fit a (frames, n) block to the output channel count."""
    if block.shape[1] == channels:
        return block
    if block.shape[1] == 1:
        return np.repeat(block, channels, axis=1)
    return block[:, :channels]


class MusicWorker:
    """Plays one file on its own thread until the end or until stopped.

    ``on_finished(failed)`` runs on the worker thread when playback ends by
    itself, either at the end of the file or because of an error. It is not
    called after ``stop``.
    """

    def __init__(
        self,
        path: Path,
        device: str | None,
        gain: PlaybackGain,
        on_finished: Callable[[bool], None],
        channels: int = 2,
        block_frames: int = 4096,
        stream_factory: Callable[..., Any] = open_output_stream,
    ) -> None:
        self.path = path
        self.device = device
        self.gain = gain
        self.channels = channels
        self.block_frames = block_frames
        self._on_finished = on_finished
        self._stream_factory = stream_factory
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"music-{path.stem}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _run(self) -> None:
        logger.info("Playing %s", self.path)
        failed = False
        try:
            with sf.SoundFile(str(self.path)) as sound_file:
                stream = self._stream_factory(self.device, sound_file.samplerate, self.channels, self.block_frames)
                try:
                    for block in sound_file.blocks(blocksize=self.block_frames, dtype="int16", always_2d=True):
                        if self._stop.is_set():
                            break
                        stream.write(apply_gain(to_channels(block, self.channels), self.gain.value).tobytes())
                finally:
                    stream.stop()
                    stream.close()
        except Exception:
            logger.exception("Playback of %s failed", self.path)
            failed = True

        if self._stop.is_set():
            logger.debug("Playback of %s stopped", self.path)
            return
        self._on_finished(failed)


class MusicPlayer:
    """At most one music worker at a time, replaced only after the previous one has joined.

    ``post`` sends a payload to the dispatcher through the bus; the worker
    uses it to ask for the next track at the end of a file.
    """

    def __init__(
        self,
        music_dir: Path,
        registry: DeviceRegistry,
        post: Callable[[dict[str, Any]], None],
        gain: PlaybackGain | None = None,
        max_tracks: int = 100,
        channels: int = 2,
        worker_factory: Callable[..., MusicWorker] = MusicWorker,
    ) -> None:
        self.music_dir = music_dir
        self.registry = registry
        self.gain = gain or PlaybackGain()
        self.max_tracks = max_tracks
        self.channels = channels
        self.playlist = Playlist()
        self._post = post
        self._worker_factory = worker_factory
        self._worker: MusicWorker | None = None
        self._failures = 0
        self._generation = 0
        self._lock = threading.RLock()

    @property
    def worker(self) -> MusicWorker | None:
        return self._worker

    @property
    def generation(self) -> int:
        """Bumped by every `play`; end-of-track requests carry the value they were posted with."""
        return self._generation

    def play(self, query: str) -> int:
        """Search for ``query``, then start the first track. Returns the playlist length."""
        with self._lock:
            self._stop_worker()
            self.playlist = Playlist(build_playlist(self.music_dir, query, self.max_tracks))
            self._generation += 1
            self._failures = 0
            if not self.playlist:
                logger.warning("No music matching '%s' in %s", query, self.music_dir)
                return 0
            logger.info("Playlist for '%s' has %d tracks", query, len(self.playlist))
            self._start_current()
            return len(self.playlist)

    def stop(self) -> None:
        with self._lock:
            self._stop_worker()

    def next(self, generation: int | None = None) -> Path | None:
        """Skip forward. A ``generation`` from an older playlist is ignored."""
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.info("Ignoring next for playlist %d, current is %d", generation, self._generation)
                return None
            return self._skip(1)

    def previous(self) -> Path | None:
        return self._skip(-1)

    def _skip(self, step: int) -> Path | None:
        with self._lock:
            self._stop_worker()
            track = self.playlist.advance(step)
            if track is None:
                logger.info("Playlist is empty, nothing to skip to")
                return None
            self._start_current()
            return track

    def _start_current(self) -> None:
        track = self.playlist.current
        if track is None:
            return
        self._worker = self._worker_factory(
            path=track,
            device=self.registry.active_playback,
            gain=self.gain,
            on_finished=functools.partial(self._track_finished, self._generation),
            channels=self.channels,
        )
        self._worker.start()

    def _stop_worker(self) -> None:
        if self._worker is None:
            return
        self._worker.stop()
        self._worker.join()
        self._worker = None

    def _track_finished(self, generation: int, failed: bool) -> None:
        # Runs on the worker thread, so it only posts a message
        if failed:
            self._failures += 1
            if self._failures >= len(self.playlist):
                logger.error("Every track in the playlist failed, stopping music")
                return
        else:
            self._failures = 0
        self._post({"device": "music", "action": "next", "playlist": generation})
