from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    StrictInt,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

ENV_BOT_TOKEN = "COMMUNITYBOT_BOT_TOKEN"

CONFIG_NAME = "communitybot.toml"
LOCAL_CONFIG_PATH = Path(CONFIG_NAME)
HOME_CONFIG_PATH = Path.home() / ".communitybot" / CONFIG_NAME

DEFAULT_CHATS_FILENAME = "chats.json"
DEFAULT_COMMAND_PREFIX = "/"
DEFAULT_INVITE_LINK_PREFIXES = ("https://t.me/joinchat/", "https://t.me/+")
DEFAULT_DEBOUNCE_S = 0.5
DEFAULT_TTL_S = 30.0
DEFAULT_SWEEP_INTERVAL_S = 5.0


class ConfigError(RuntimeError):
    pass


def normalize_handle(value: str) -> str:
    return value.strip().lstrip("@").lower()


def _window(default: float) -> Any:
    return Field(default=default, gt=0, allow_inf_nan=False, strict=True)


class MediaGroupSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    debounce_s: float = _window(DEFAULT_DEBOUNCE_S)
    ttl_s: float = _window(DEFAULT_TTL_S)
    sweep_interval_s: float = _window(DEFAULT_SWEEP_INTERVAL_S)

    @model_validator(mode="after")
    def _ttl_outlasts_debounce(self) -> MediaGroupSettings:
        if self.ttl_s <= self.debounce_s:
            raise ValueError("ttl_s must be greater than debounce_s")
        return self


class BotSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    bot_token: SecretStr
    config_path: Path
    chats_path: Path = Field(
        default=Path(DEFAULT_CHATS_FILENAME), validate_default=True
    )
    admins: frozenset[str] = frozenset()
    command_prefix: str = Field(default=DEFAULT_COMMAND_PREFIX, pattern=r"^\S$")
    invite_link_prefixes: tuple[str, ...] = Field(
        default=DEFAULT_INVITE_LINK_PREFIXES, min_length=1
    )
    forward_albums_to: StrictInt | None = None
    media_groups: MediaGroupSettings = Field(default_factory=MediaGroupSettings)

    @field_validator("bot_token")
    @classmethod
    def _token_not_blank(cls, value: SecretStr) -> SecretStr:
        token = value.get_secret_value().strip()
        if not token:
            raise ValueError("bot token must not be blank")
        return SecretStr(token)

    @field_validator("chats_path", mode="before")
    @classmethod
    def _chats_path_not_blank(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                raise ValueError("chats_path must not be blank")
            return value.strip()
        return value

    @field_validator("chats_path")
    @classmethod
    def _chats_path_beside_config(cls, value: Path, info: ValidationInfo) -> Path:
        path = value.expanduser()
        config_path = info.data.get("config_path")
        if not path.is_absolute() and config_path is not None:
            path = config_path.parent / path
        return path

    @field_validator("admins")
    @classmethod
    def _normalize_admins(cls, value: frozenset[str]) -> frozenset[str]:
        handles = (normalize_handle(item) for item in value)
        return frozenset(handle for handle in handles if handle)

    @field_validator("invite_link_prefixes", mode="before")
    @classmethod
    def _single_prefix(cls, value: Any) -> Any:
        return [value] if isinstance(value, str) else value

    @field_validator("invite_link_prefixes")
    @classmethod
    def _prefixes_not_blank(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        prefixes = tuple(item.strip() for item in value)
        if not all(prefixes):
            raise ValueError("invite link prefixes must not be blank")
        return prefixes

def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_PATH, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config(path: str | Path | None = None) -> tuple[dict, Path]:
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate

    raise ConfigError(
        f"Missing communitybot config. Create {LOCAL_CONFIG_PATH} "
        f"or {HOME_CONFIG_PATH}."
    )


def get_bot_token(config: dict, config_path: Path) -> str:
    """Get bot token from environment variable or config file.

    Environment variable COMMUNITYBOT_BOT_TOKEN takes precedence over config file.
    """
    env_token = os.environ.get(ENV_BOT_TOKEN)
    if env_token and env_token.strip():
        return env_token.strip()

    try:
        token = config["bot_token"]
    except KeyError:
        raise ConfigError(
            f"Missing bot token. Set {ENV_BOT_TOKEN} environment variable "
            f"or add `bot_token` to {config_path}."
        ) from None

    if not isinstance(token, str) or not token.strip():
        raise ConfigError(
            f"Invalid `bot_token` in {config_path}; expected a non-empty string."
        )
    return token.strip()


def parse_settings(config: dict, config_path: Path) -> BotSettings:
    data = {
        **config,
        "bot_token": get_bot_token(config, config_path),
        "config_path": config_path,
    }
    try:
        return BotSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc


def load_settings(path: str | Path | None = None) -> BotSettings:
    config, config_path = load_config(path)
    return parse_settings(config, config_path)
