"""Telegram-specific clients and adapters."""

from .client import (
    BotClient,
    TelegramClient,
    TelegramRetryAfter,
    TelegramTransportError,
)
from .parsing import parse_incoming_update, poll_incoming
from .types import TelegramIncomingMessage, TelegramUpdate

__all__ = [
    "BotClient",
    "TelegramClient",
    "TelegramIncomingMessage",
    "TelegramRetryAfter",
    "TelegramTransportError",
    "TelegramUpdate",
    "parse_incoming_update",
    "poll_incoming",
]
