"""Community bot domain types (update kinds, commands, saved chats, media)."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Literal, TypeAlias

UNKNOWN_CHAT_ID = -1

MediaType: TypeAlias = Literal["photo", "video", "document", "audio"]


class UpdateKind(enum.StrEnum):
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    CALLBACK_QUERY = "callback_query"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Command:
    name: str
    argument: str


@dataclass(frozen=True, slots=True)
class SavedChat:
    """A chat in the community list.

    ``id`` is ``UNKNOWN_CHAT_ID`` when the chat was added by name and link
    only and Telegram has not told us its numeric id yet.
    """

    id: int
    name: str
    invite_link: str

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("saved chat name must not be blank")

    @property
    def has_known_id(self) -> bool:
        return self.id != UNKNOWN_CHAT_ID


@dataclass(frozen=True, slots=True)
class MediaItem:
    type: MediaType
    file_id: str
    caption: str | None = None
