"""Service configuration: YAML file, environment overrides, pydantic models.

The first file found wins:
1. --config <path> on the CLI, or CHATBRIDGE_CONFIG_PATH
2. chatbridge.yaml / chatbridge.yml in the working directory
3. ~/.chatbridge/config.yaml
With no file, the model defaults apply.

On top of the file, CHATBRIDGE_<SECTION>_<FIELD> environment variables
set individual fields, and ${VAR} inside YAML strings expands from the
environment (unset variables become "").
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")

ENV_PREFIX = "CHATBRIDGE_"

_SEARCH_PATHS = (
    Path("chatbridge.yaml"),
    Path("chatbridge.yml"),
    Path("~/.chatbridge/config.yaml"),
    Path("~/.chatbridge/config.yml"),
)


def resolve_env_vars(value: str) -> str:
    """Expand ${VAR} placeholders; unset variables expand to ""."""
    return _PLACEHOLDER.sub(lambda m: os.environ.get(m.group(1), ""), value)


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return resolve_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


class ServerConfig(BaseModel):
    """Configuration for the HTTP server process."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class GuestConfig(BaseModel):
    """Guest session lifetime."""

    ttl_days: int = Field(default=30, ge=1)


class ChatConfig(BaseModel):
    """Conversation defaults.

    title_length: characters of the first user message used as the
        default conversation title.
    history_window: number of prior messages sent to the LLM with each
        new prompt.
    """

    title_length: int = Field(default=50, ge=1, le=255)
    history_window: int = Field(default=10, ge=0)


class ShareConfig(BaseModel):
    """Share snapshot expiry bounds."""

    default_expires_days: int = Field(default=7, ge=1)
    max_expires_days: int = Field(default=365, ge=1)


class LLMConfig(BaseModel):
    """Sampling parameters and timeout for the hosted LLM."""

    model: str = "claude-haiku-4-5-20251001"
    max_tokens: int = Field(default=2048, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=30.0, gt=0)


class UtilitiesConfig(BaseModel):
    """Third-party utility API credentials and lookup defaults."""

    openweather_api_key: str = Field(
        default_factory=lambda: os.environ.get("OPENWEATHER_API_KEY", "")
    )
    news_api_key: str = Field(
        default_factory=lambda: os.environ.get("NEWS_API_KEY", "")
    )
    timeout_seconds: float = Field(default=8.0, gt=0)
    primary_timezone: str = "Asia/Kolkata"
    news_country: str = "in"

    @field_validator("news_country")
    @classmethod
    def _lower_country(cls, value: str) -> str:
        return value.strip().lower()


class AppConfig(BaseModel):
    """Top-level configuration for the chatbridge service."""

    server: ServerConfig = ServerConfig()
    guest: GuestConfig = GuestConfig()
    chat: ChatConfig = ChatConfig()
    share: ShareConfig = ShareConfig()
    llm: LLMConfig = LLMConfig()
    utilities: UtilitiesConfig = Field(default_factory=UtilitiesConfig)


def _find_config_file() -> Path | None:
    for candidate in _SEARCH_PATHS:
        path = candidate.expanduser()
        if path.is_file():
            return path
    return None


def _coerce(raw: str) -> Any:
    if raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    try:
        return int(raw)
    except ValueError:
        return raw


def _split_override(name: str, sections: list[str]) -> tuple[str, str] | None:
    """Map CHATBRIDGE_SHARE_MAX_EXPIRES_DAYS to ("share", "max_expires_days").

    Longer section names are tried first so one section name that
    prefixes another cannot capture its fields.
    """
    rest = name[len(ENV_PREFIX):].lower()
    for section in sections:
        head = f"{section}_"
        if rest.startswith(head) and len(rest) > len(head):
            return section, rest[len(head):]
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    sections = sorted(AppConfig.model_fields, key=len, reverse=True)
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        target = _split_override(name, sections)
        if target is None:
            continue
        section, field = target
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][field] = _coerce(raw)
    return data


def load_config(config_path: str | None = None) -> AppConfig:
    """Build an AppConfig from file, environment and defaults.

    Args:
        config_path: Explicit file. Falls back to CHATBRIDGE_CONFIG_PATH,
            then the search paths.

    Raises:
        FileNotFoundError: An explicitly named file does not exist.
        pydantic.ValidationError: A value is out of range.
    """
    explicit = config_path or os.environ.get("CHATBRIDGE_CONFIG_PATH")
    if explicit:
        path: Path | None = Path(explicit)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
    else:
        path = _find_config_file()

    raw: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        raw = yaml.safe_load(path.read_text()) or {}

    return AppConfig(**_apply_env_overrides(_expand(raw)))


@lru_cache()
def get_config() -> AppConfig:
    """Process-wide configuration, loaded once.

    Routes take it through Depends so tests can swap in their own
    AppConfig with dependency_overrides.
    """
    return load_config()
