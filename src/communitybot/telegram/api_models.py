from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "Audio",
    "CallbackQuery",
    "Chat",
    "Document",
    "Message",
    "PhotoSize",
    "Update",
    "User",
    "Video",
]


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    is_bot: bool | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class Chat(msgspec.Struct, forbid_unknown_fields=False):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    invite_link: str | None = None


class PhotoSize(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    width: int
    height: int
    file_size: int | None = None


class Document(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    file_name: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


class Video(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    width: int | None = None
    height: int | None = None
    duration: int | None = None
    mime_type: str | None = None
    file_size: int | None = None


class Audio(msgspec.Struct, forbid_unknown_fields=False):
    file_id: str
    duration: int | None = None
    title: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    message_id: int
    chat: Chat
    date: int | None = None
    from_: User | None = msgspec.field(default=None, name="from")
    text: str | None = None
    caption: str | None = None
    media_group_id: str | None = None
    photo: list[PhotoSize] | None = None
    video: Video | None = None
    document: Document | None = None
    audio: Audio | None = None


class CallbackQuery(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    from_: User | None = msgspec.field(default=None, name="from")
    data: str | None = None
    message: Message | None = None


class Update(msgspec.Struct, forbid_unknown_fields=False):
    update_id: int
    message: Message | None = None
    edited_message: Message | None = None
    channel_post: Message | None = None
    edited_channel_post: Message | None = None
    callback_query: CallbackQuery | None = None
    my_chat_member: dict[str, Any] | None = None
    chat_member: dict[str, Any] | None = None
