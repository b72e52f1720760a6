from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

import anyio
import msgspec

from ..logging import get_logger
from ..model import MediaItem, UpdateKind
from .api_models import Message, PhotoSize, Update
from .client import BotClient, TelegramRetryAfter
from .types import TelegramIncomingMessage, TelegramUpdate

logger = get_logger(__name__)
T = TypeVar("T")

ALLOWED_UPDATES = [
    UpdateKind.MESSAGE.value,
    UpdateKind.EDITED_MESSAGE.value,
    UpdateKind.CHANNEL_POST.value,
    UpdateKind.EDITED_CHANNEL_POST.value,
]

_MESSAGE_FIELDS = (
    (UpdateKind.MESSAGE, "message"),
    (UpdateKind.EDITED_MESSAGE, "edited_message"),
    (UpdateKind.CHANNEL_POST, "channel_post"),
    (UpdateKind.EDITED_CHANNEL_POST, "edited_channel_post"),
)
_OTHER_FIELDS = (
    (UpdateKind.CALLBACK_QUERY, "callback_query"),
    (UpdateKind.MY_CHAT_MEMBER, "my_chat_member"),
    (UpdateKind.CHAT_MEMBER, "chat_member"),
)


def parse_incoming_update(update: Update | dict[str, Any]) -> TelegramUpdate | None:
    """Classify a raw update and pull out the message it carries, if any.

    Returns ``None`` only when the payload is not a Telegram update at all.
    Kinds this bot does not model come back as ``UpdateKind.UNKNOWN``.
    """
    if isinstance(update, dict):
        try:
            update = msgspec.convert(update, type=Update)
        except msgspec.ValidationError:
            logger.debug("telegram.update.invalid", payload=update)
            return None

    for kind, field in _MESSAGE_FIELDS:
        payload = _coerce_payload(getattr(update, field), Message)
        if payload is None:
            continue
        return TelegramUpdate(
            update_id=update.update_id,
            kind=kind,
            message=_parse_incoming_message(payload),
        )

    kind = UpdateKind.UNKNOWN
    for candidate, field in _OTHER_FIELDS:
        if getattr(update, field) is not None:
            kind = candidate
            break
    return TelegramUpdate(update_id=update.update_id, kind=kind)


def _parse_incoming_message(msg: Message) -> TelegramIncomingMessage:
    chat = msg.chat
    sender = msg.from_
    return TelegramIncomingMessage(
        chat_id=chat.id,
        chat_type=chat.type,
        message_id=msg.message_id,
        text=msg.text or "",
        sender_username=sender.username if sender is not None else None,
        chat_title=chat.title,
        chat_invite_link=chat.invite_link,
        media=_media_from_message(msg),
        media_group_id=msg.media_group_id,
    )


def _media_from_message(msg: Message) -> MediaItem | None:
    caption = msg.caption
    best = _best_photo(msg.photo)
    if best is not None:
        return MediaItem(type="photo", file_id=best.file_id, caption=caption)
    if msg.video is not None:
        return MediaItem(type="video", file_id=msg.video.file_id, caption=caption)
    if msg.document is not None:
        return MediaItem(
            type="document", file_id=msg.document.file_id, caption=caption
        )
    if msg.audio is not None:
        return MediaItem(type="audio", file_id=msg.audio.file_id, caption=caption)
    return None


def _coerce_payload(payload: Any | None, kind: type[T]) -> T | None:
    if payload is None:
        return None
    if isinstance(payload, kind):
        return payload
    if isinstance(payload, dict):
        try:
            return msgspec.convert(payload, type=kind)
        except msgspec.ValidationError:
            return None
    return None


def _best_photo(photos: list[PhotoSize] | None) -> PhotoSize | None:
    if not photos:
        return None
    best = None
    best_score = -1
    for item in photos:
        size = item.file_size
        score = size if size is not None else item.width * item.height
        if score > best_score:
            best_score = score
            best = item
    return best


async def poll_incoming(
    bot: BotClient,
    *,
    offset: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
) -> AsyncIterator[TelegramUpdate]:
    while True:
        try:
            updates = await bot.get_updates(
                offset=offset,
                timeout_s=50,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TelegramRetryAfter as exc:
            await sleep(exc.retry_after)
            continue
        if updates is None:
            logger.info("loop.get_updates.failed")
            await sleep(2)
            continue
        logger.debug("loop.updates", count=len(updates))
        for upd in updates:
            update_id = upd.get("update_id") if isinstance(upd, dict) else None
            if isinstance(update_id, int):
                offset = update_id + 1
            parsed = parse_incoming_update(upd)
            if parsed is not None:
                yield parsed
