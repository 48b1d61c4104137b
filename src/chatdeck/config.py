import os
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_DATA_PATH = ".chatdeck/sessions.json"
NEW_CHAT_TITLE = "New Chat"
GREETING = "Hello! How can I help you today?"
ERROR_MESSAGE = "Sorry, something went wrong while getting a reply. Please try again."

MODEL_ALIASES = {
    "mini": "gpt-4o-mini",
    "4o": "gpt-4o",
    "4": "gpt-4-turbo",
    "sonnet": "claude-sonnet-4-20250514",
    "haiku": "claude-3-5-haiku-20241022",
    "flash": "gemini/gemini-2.5-flash",
    "deepseek": "deepseek/deepseek-chat",
}


class ConfigError(Exception):
    pass


def resolve_model_alias(name: str) -> str:
    return MODEL_ALIASES.get(name.lower(), name)


def get_optional_env(name: str, default: str) -> str:
    return os.environ.get(name, default)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class ChatConfig:
    default_model: str = field(
        default_factory=lambda: resolve_model_alias(
            get_optional_env("CHATDECK_MODEL", DEFAULT_MODEL)
        )
    )
    data_path: str = field(
        default_factory=lambda: get_optional_env("CHATDECK_DATA_PATH", DEFAULT_DATA_PATH)
    )
    api_key: str | None = field(
        default_factory=lambda: os.environ.get("CHATDECK_API_KEY") or None
    )
    temperature: float = 0.7
    max_tokens: int = 1024
    request_timeout_s: float = field(
        default_factory=lambda: _env_float("CHATDECK_TIMEOUT", 60.0)
    )
    max_retries: int = 2
    greeting: str = GREETING
    error_message: str = ERROR_MESSAGE
    title_max_chars: int = 50

    @classmethod
    def from_env(cls, model: str | None = None, data_path: str | None = None) -> "ChatConfig":
        config = cls()
        if model:
            config.default_model = resolve_model_alias(model)
        if data_path:
            config.data_path = data_path
        return config

    def validate(self) -> None:
        if not self.default_model.strip():
            raise ConfigError("default_model must not be empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigError("temperature must be between 0 and 2")
        if self.max_tokens < 1:
            raise ConfigError("max_tokens must be at least 1")
        if self.request_timeout_s <= 0:
            raise ConfigError("request_timeout_s must be > 0")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.title_max_chars < 1:
            raise ConfigError("title_max_chars must be at least 1")
        if not self.greeting.strip():
            raise ConfigError("greeting must not be empty")
        if not self.error_message.strip():
            raise ConfigError("error_message must not be empty")
        logger.debug("Configuration validated successfully")
