"""Audio capture, loudness, device selection and the playback workers."""

from .devices import AudioDeviceEntry, AudioDeviceKind, DeviceRegistry
from .music import MusicPlayer, MusicWorker, PlaybackGain, Playlist, build_playlist
from .rms import calculate_rms, measure_ambient
from .source import AudioSource
from .voice_amplifier import VoiceAmplifier

__all__ = [
    "AudioDeviceEntry",
    "AudioDeviceKind",
    "AudioSource",
    "DeviceRegistry",
    "MusicPlayer",
    "MusicWorker",
    "PlaybackGain",
    "Playlist",
    "VoiceAmplifier",
    "build_playlist",
    "calculate_rms",
    "measure_ambient",
]
