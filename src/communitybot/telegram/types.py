from __future__ import annotations

from dataclasses import dataclass

from ..model import MediaItem, UpdateKind

PRIVATE_CHAT_TYPE = "private"
GROUP_CHAT_TYPES = frozenset({"group", "supergroup"})


@dataclass(frozen=True, slots=True)
class TelegramIncomingMessage:
    chat_id: int
    chat_type: str
    message_id: int
    text: str
    sender_username: str | None = None
    chat_title: str | None = None
    chat_invite_link: str | None = None
    media: MediaItem | None = None
    media_group_id: str | None = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == PRIVATE_CHAT_TYPE

    @property
    def is_group(self) -> bool:
        return self.chat_type in GROUP_CHAT_TYPES


@dataclass(frozen=True, slots=True)
class TelegramUpdate:
    update_id: int
    kind: UpdateKind
    message: TelegramIncomingMessage | None = None
