import logging
import os
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("config")

T = TypeVar("T", bound=BaseModel)


class LLMConfig(BaseModel):
    base_url: str = Field(default="https://api.openai.com", description="Scheme and host of the chat completions API")
    chat_path: str = "/v1/chat/completions"
    model: str = "gpt-4o"
    max_tokens: int = Field(default=1024, gt=0)
    api_key: str | None = Field(default=None, description="Falls back to the OPENAI_API_KEY environment variable")
    probe_timeout: float = Field(default=4.0, gt=0, description="Seconds allowed for the TCP reachability probe")
    request_timeout: float = Field(default=60.0, gt=0)
    vision_prompt: str = "Describe what you see in this image, briefly."

    @property
    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.chat_path}"

    @property
    def resolved_api_key(self) -> str | None:
        return self.api_key or os.getenv("OPENAI_API_KEY")


class TTSConfig(BaseModel):
    voice_model: str = "en_GB-alba-medium.onnx"
    length_scale: float = Field(default=0.85, gt=0)


class AssistantConfig(BaseModel):
    ai_name: str = "friday"
    app_topic: str = Field(default="dawn", description="The single topic the assistant subscribes to")
    mqtt_server_host: str = "127.0.0.1"
    mqtt_server_port: int = 1883
    mqtt_keepalive: int = 60
    mqtt_retry_interval: int = 5
    client_id: str = "dawn"

    commands_config_path: Path = Path("config/commands_config.json")
    max_commands: int = Field(default=1000, gt=0)

    vosk_model_path: Path = Path("model")
    sample_rate: int = 16000
    channels: int = 1
    frame_seconds: float = Field(default=0.5, gt=0)
    background_capture_seconds: float = Field(default=6.0, gt=0)
    talking_threshold_offset: float = 0.015
    command_timeout_frames: int = Field(default=4, gt=0)
    default_capture_device: str | None = None
    default_playback_device: str | None = None

    wake_words: list[str] = Field(default_factory=list)
    goodbye_words: list[str] = ["good bye", "goodbye", "good night", "bye", "quit", "exit"]
    wake_responses: list[str] = [
        "Hello Sir.",
        "At your service Sir.",
        "Yes Sir?",
        "How may I assist you Sir?",
        "Listening Sir.",
    ]
    ignore_words: list[str] = ["", "the", "cancel", "never mind", "nevermind", "ignore"]
    farewell: str = "Goodbye sir."
    llm_apology: str = "I'm sorry but I'm currently unavailable boss."
    persona: str = (
        "You are FRIDAY, an Iron Man style personal assistant. Keep your answers short, witty and helpful. "
        "Address the user as Sir. Your replies are spoken aloud, so avoid lists, markup and emoji."
    )

    music_dir: Path = Path("~/Music")
    max_playlist_length: int = Field(default=100, gt=0)
    music_channels: int = 2

    voice_amplifier_output: str = "speakers"
    voice_amplifier_sample_rate: int = 44100
    voice_amplifier_channels: int = 2

    shutdown_device: str = "shutdown alpha bravo charlie"
    shutdown_command: str = "sudo shutdown -h now"

    llm: LLMConfig = Field(default_factory=LLMConfig)
    tts: TTSConfig = Field(default_factory=TTSConfig)

    @model_validator(mode="after")
    def _default_wake_words(self) -> "AssistantConfig":
        if not self.wake_words:
            self.wake_words = [f"{greeting} {self.ai_name}" for greeting in ("hello", "okay", "alright", "hey", "hi")]
        return self

    @property
    def music_path(self) -> Path:
        return self.music_dir.expanduser()


def combine_yaml_files(file_paths: list[Path]) -> dict:
    """Merge YAML documents; keys in later files win."""
    combined_data: dict = {}
    for file_path in file_paths:
        with file_path.open("r") as file:
            data = yaml.safe_load(file) or {}
            combined_data.update(data)
    return combined_data


def load_config(config_path: str | Path, config_class: type[T]) -> T:
    """
    Load and validate configuration from YAML files.

    Args:
        config_path (Union[str, Path]): A YAML file or a directory whose *.yaml files are merged in sorted order.
        config_class (Type[T]): Pydantic model to validate against.

    Returns:
        T: The validated configuration.

    Raises:
        FileNotFoundError: If the path does not exist or the directory holds no YAML files.
        ValidationError: If the merged data does not fit the model.
    """
    config_path = Path(config_path)

    yaml_files = sorted(config_path.glob("*.yaml")) if config_path.is_dir() else [config_path]

    if not yaml_files:
        raise FileNotFoundError(f"No YAML files found in the directory: {config_path}")

    try:
        combined_data = combine_yaml_files(yaml_files)
        return config_class.model_validate(combined_data)
    except FileNotFoundError as err:
        logger.error("Config file not found: %s", config_path)
        raise err
    except ValidationError as err_v:
        logger.error("Validation error: %s", err_v)
        raise err_v


def load_assistant_config(config_path: str | Path | None) -> AssistantConfig:
    """Load the settings file or directory.

    Without a path, ``config/`` in the working directory is used when it
    exists; otherwise the built-in defaults apply.
    """
    if config_path is None:
        if DEFAULT_CONFIG_DIR.is_dir():
            logger.info("No settings path given, loading %s", DEFAULT_CONFIG_DIR)
            return load_config(DEFAULT_CONFIG_DIR, AssistantConfig)
        logger.info("No settings file given, using defaults")
        return AssistantConfig()
    return load_config(config_path, AssistantConfig)
