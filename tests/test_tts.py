import threading
from unittest.mock import Mock

import numpy as np

from dawn_assistant.audio.devices import DeviceRegistry
from dawn_assistant.speech.tts import TextToSpeech

SAMPLES = np.zeros(10, dtype=np.int16)


def make_tts(player, synthesizer=None, playback="alsa_output.speakers"):
    registry = DeviceRegistry(active_playback=playback)
    synthesizer = synthesizer or Mock(return_value=(SAMPLES, 22050))
    return TextToSpeech(registry, synthesizer, player=player), registry


def test_sentences_play_in_order():
    played = []
    synthesizer = Mock(side_effect=lambda text: (SAMPLES, len(text)))
    tts, _ = make_tts(lambda samples, rate, device: played.append(rate), synthesizer)

    tts.start()
    tts.speak("one")
    tts.speak("three")
    tts.wait_until_idle()
    tts.stop()

    assert played == [3, 5]


def test_blank_text_is_not_queued():
    player = Mock()
    tts, _ = make_tts(player)
    tts.speak("   ")
    tts.start()
    tts.wait_until_idle()
    tts.stop()
    player.assert_not_called()


def test_device_is_read_per_sentence():
    devices = []
    tts, registry = make_tts(lambda samples, rate, device: devices.append(device))
    tts.start()
    tts.speak("first")
    tts.wait_until_idle()
    registry.use_devices(None, "alsa_output.headphones")
    tts.speak("second")
    tts.wait_until_idle()
    tts.stop()

    assert devices == ["alsa_output.speakers", "alsa_output.headphones"]


def test_failures_do_not_stop_the_worker():
    played = []
    synthesizer = Mock(side_effect=[RuntimeError("bad voice"), (SAMPLES, 22050)])
    tts, _ = make_tts(lambda samples, rate, device: played.append(rate), synthesizer)

    tts.start()
    tts.speak("broken")
    tts.speak("fine")
    tts.wait_until_idle()
    tts.stop()

    assert played == [22050]


def test_discard_drops_pending_sentences():
    player = Mock()
    tts, _ = make_tts(player)
    tts.speak("a")
    tts.speak("b")

    assert tts.discard() == 2

    tts.start()
    tts.wait_until_idle()
    tts.stop()
    player.assert_not_called()


def test_busy_while_a_sentence_plays():
    playing = threading.Event()
    release = threading.Event()

    def player(samples, rate, device):
        playing.set()
        release.wait(5)

    tts, _ = make_tts(player)
    assert not tts.busy

    tts.start()
    tts.speak("It is half past two.")
    assert playing.wait(5)
    assert tts.busy

    release.set()
    tts.wait_until_idle()
    assert not tts.busy
    tts.stop()


def test_stop_without_start():
    tts, _ = make_tts(Mock())
    tts.stop()
