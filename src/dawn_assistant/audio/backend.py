"""sounddevice stream constructors used by the capture, music, voice amplifier and TTS paths.

sounddevice loads PortAudio when imported, so the import happens when a
stream is opened rather than when the package is imported.
"""

from __future__ import annotations

from typing import Any

SAMPLE_FORMAT = "int16"
BYTES_PER_SAMPLE = 2


def open_input_stream(device: str | None, sample_rate: int, channels: int, blocksize: int) -> Any:
    """Open and start a blocking-read int16 capture stream."""
    import sounddevice as sd

    stream = sd.RawInputStream(
        device=device,
        samplerate=sample_rate,
        channels=channels,
        dtype=SAMPLE_FORMAT,
        blocksize=blocksize,
    )
    stream.start()
    return stream


def open_output_stream(device: str | None, sample_rate: int, channels: int, blocksize: int = 0) -> Any:
    """Open and start a blocking-write int16 playback stream."""
    import sounddevice as sd

    stream = sd.RawOutputStream(
        device=device,
        samplerate=sample_rate,
        channels=channels,
        dtype=SAMPLE_FORMAT,
        blocksize=blocksize,
    )
    stream.start()
    return stream


def play_blocking(samples: Any, sample_rate: int, device: str | None) -> None:
    """Play a whole numpy buffer and wait until it has finished."""
    import sounddevice as sd

    sd.play(samples, samplerate=sample_rate, device=device, blocking=True)
