"""Speech in (vosk), speech out (piper) and spoken-number parsing."""

from .recognizer import SpeechRecognizer
from .tts import PiperSynthesizer, TextToSpeech
from .word_to_number import words_to_number

__all__ = ["PiperSynthesizer", "SpeechRecognizer", "TextToSpeech", "words_to_number"]
