"""Configuration management for Neural CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Literal
import yaml

# Default paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "neural"

# Default server settings
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_MODEL = "qwen2.5:3b"

# Local inference is slow, so translation gets a multi-minute bound
DEFAULT_TIMEOUT = 300.0
DEFAULT_HEALTH_TIMEOUT = 5.0

# Sampling options sent with every generate request
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TOP_P = 0.9
DEFAULT_NUM_PREDICT = 4096

# Languages
DEFAULT_SOURCE_LANGUAGE = "English"
DEFAULT_TARGET_LANGUAGE = "Japanese"
AUTO_LANGUAGE = "Auto"
SESSION_LANGUAGES = (
    AUTO_LANGUAGE,
    "English",
    "Japanese",
    "Chinese",
    "Korean",
    "Spanish",
    "French",
    "German",
)

# Prompt styles
PromptStyle = Literal["document", "text"]
PROMPT_TEMPLATES = {
    "document": (
        "Translate the following markdown document from {source} to {target}. "
        "Preserve all markdown formatting, code blocks, links, and structure. "
        "Only provide the translated content without explanations:\n\n{text}"
    ),
    "text": (
        "Translate the following text from {source} to {target}. "
        "Only provide the translation without any explanations or additional text:\n\n{text}"
    ),
}

# Key binding that pastes the clipboard into the session and translates it
DEFAULT_SHORTCUT = "c-t"

# Seconds between clipboard polls while watching
WATCH_INTERVAL = 1.0


def get_default_config_data() -> dict:
    """Return the default configuration as a dictionary."""
    return {
        "ollama": {
            "url": DEFAULT_OLLAMA_URL,
            "model": DEFAULT_MODEL,
            "timeout": DEFAULT_TIMEOUT,
            "health_timeout": DEFAULT_HEALTH_TIMEOUT,
        },
        "generation": {
            "temperature": DEFAULT_TEMPERATURE,
            "top_p": DEFAULT_TOP_P,
            "num_predict": DEFAULT_NUM_PREDICT,
        },
        "translation": {
            "source_language": DEFAULT_SOURCE_LANGUAGE,
            "target_language": DEFAULT_TARGET_LANGUAGE,
        },
        "ui": {
            "shortcut": DEFAULT_SHORTCUT,
        },
    }


def create_default_config(config_path: Path | None = None) -> Path:
    """
    Create the default config file if it doesn't exist.

    Args:
        config_path: Path to config file. Defaults to ~/.config/neural/config.yaml

    Returns:
        Path to the config file
    """
    path = config_path or (DEFAULT_CONFIG_DIR / "config.yaml")

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(get_default_config_data(), f, default_flow_style=False, sort_keys=False)

    return path


class Config:
    """Configuration for Neural CLI."""

    def __init__(self, config_path: Path | None = None, auto_create: bool = True):
        self.config_path = config_path or (DEFAULT_CONFIG_DIR / "config.yaml")

        # Auto-create config file with defaults on first run
        if auto_create and not self.config_path.exists():
            create_default_config(self.config_path)

        self._data = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file or return defaults."""
        if self.config_path.exists():
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Invalid config file {self.config_path}: expected a mapping at the top level")
            return data
        return get_default_config_data()

    def _section(self, name: str) -> dict:
        if name not in self._data or not isinstance(self._data[name], dict):
            self._data[name] = {}
        return self._data[name]

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w") as f:
            yaml.dump(self._data, f, default_flow_style=False, sort_keys=False)

    @property
    def ollama_url(self) -> str:
        """Ollama server URL."""
        return self._data.get("ollama", {}).get("url", DEFAULT_OLLAMA_URL)

    @ollama_url.setter
    def ollama_url(self, value: str) -> None:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Invalid Ollama URL: {value}. Must start with http:// or https://")
        self._section("ollama")["url"] = value

    @property
    def model(self) -> str:
        """Model name passed to the inference server."""
        return self._data.get("ollama", {}).get("model", DEFAULT_MODEL)

    @model.setter
    def model(self, value: str) -> None:
        if not value.strip():
            raise ValueError("Model name must not be empty")
        self._section("ollama")["model"] = value

    @property
    def timeout(self) -> float:
        """Translation request timeout in seconds."""
        return float(self._data.get("ollama", {}).get("timeout", DEFAULT_TIMEOUT))

    @timeout.setter
    def timeout(self, value: float) -> None:
        if value <= 0:
            raise ValueError("Timeout must be positive")
        self._section("ollama")["timeout"] = value

    @property
    def health_timeout(self) -> float:
        """Health check timeout in seconds."""
        return float(self._data.get("ollama", {}).get("health_timeout", DEFAULT_HEALTH_TIMEOUT))

    @property
    def temperature(self) -> float:
        """Sampling temperature."""
        return float(self._data.get("generation", {}).get("temperature", DEFAULT_TEMPERATURE))

    @property
    def top_p(self) -> float:
        """Nucleus sampling threshold."""
        return float(self._data.get("generation", {}).get("top_p", DEFAULT_TOP_P))

    @property
    def num_predict(self) -> int | None:
        """Maximum tokens to generate, or None to let the server decide."""
        generation = self._data.get("generation", {})
        if "num_predict" not in generation:
            return DEFAULT_NUM_PREDICT
        value = generation["num_predict"]
        return int(value) if value is not None else None

    @num_predict.setter
    def num_predict(self, value: int | None) -> None:
        if value is not None and value <= 0:
            raise ValueError("num_predict must be positive or None")
        self._section("generation")["num_predict"] = value

    @property
    def source_language(self) -> str:
        """Default source language."""
        return self._data.get("translation", {}).get("source_language", DEFAULT_SOURCE_LANGUAGE)

    @source_language.setter
    def source_language(self, value: str) -> None:
        self._section("translation")["source_language"] = value

    @property
    def target_language(self) -> str:
        """Default target language for the interactive session."""
        return self._data.get("translation", {}).get("target_language", DEFAULT_TARGET_LANGUAGE)

    @target_language.setter
    def target_language(self, value: str) -> None:
        if value == AUTO_LANGUAGE:
            raise ValueError("Target language cannot be 'Auto'")
        self._section("translation")["target_language"] = value

    @property
    def shortcut(self) -> str:
        """Key binding that translates the clipboard."""
        return self._data.get("ui", {}).get("shortcut", DEFAULT_SHORTCUT)


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
