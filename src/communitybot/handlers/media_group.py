from __future__ import annotations

from typing import Any

from ..logging import get_logger
from ..media_groups import MediaGroupDebouncer
from ..model import UpdateKind
from ..telegram.client import BotClient, TelegramTransportError
from ..telegram.types import TelegramIncomingMessage, TelegramUpdate

logger = get_logger(__name__)

# sendMediaGroup accepts between 2 and 10 items
MIN_ALBUM_ITEMS = 2
MAX_ALBUM_ITEMS = 10


class MediaGroupHandler:
    """Collects album items and hands each complete album to the debouncer.

    ``handle`` only buffers the item and re-arms the group's timer, so the
    dispatch of the update returns immediately.
    """

    name = "media_group"
    accepted_kinds = frozenset({UpdateKind.MESSAGE, UpdateKind.CHANNEL_POST})

    def __init__(self, debouncer: MediaGroupDebouncer[TelegramIncomingMessage]) -> None:
        self._debouncer = debouncer

    def can_handle(self, update: TelegramUpdate) -> bool:
        msg = update.message
        return (
            msg is not None
            and msg.media_group_id is not None
            and msg.media is not None
        )

    async def handle(self, update: TelegramUpdate) -> None:
        msg = update.message
        if msg is None or msg.media_group_id is None:
            return
        self._debouncer.add(msg.media_group_id, msg)


def album_input_media(
    messages: tuple[TelegramIncomingMessage, ...],
) -> list[dict[str, Any]]:
    """Build the ``media`` payload of sendMediaGroup, keeping arrival order.

    Telegram shows the caption of the first item as the album caption, so
    the first caption found is moved onto the first item.
    """
    items = [msg.media for msg in messages if msg.media is not None]
    caption = next((item.caption for item in items if item.caption), None)
    media: list[dict[str, Any]] = []
    for index, item in enumerate(items[:MAX_ALBUM_ITEMS]):
        entry: dict[str, Any] = {"type": item.type, "media": item.file_id}
        if index == 0 and caption:
            entry["caption"] = caption
        media.append(entry)
    return media


class AlbumForwarder:
    """Re-sends each completed album to one chat as a single media group."""

    def __init__(self, *, bot: BotClient, chat_id: int | None) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def __call__(
        self, group_id: str, messages: tuple[TelegramIncomingMessage, ...]
    ) -> None:
        source_chat = messages[0].chat_id if messages else None
        logger.info(
            "media_group.album",
            group_id=group_id,
            chat_id=source_chat,
            items=len(messages),
        )
        if self._chat_id is None:
            return
        media = album_input_media(messages)
        if len(media) < MIN_ALBUM_ITEMS:
            logger.info(
                "media_group.album_too_small", group_id=group_id, items=len(media)
            )
            return
        if len(messages) > MAX_ALBUM_ITEMS:
            logger.warning(
                "media_group.album_truncated",
                group_id=group_id,
                items=len(messages),
                limit=MAX_ALBUM_ITEMS,
            )
        try:
            sent = await self._bot.send_media_group(self._chat_id, media)
        except TelegramTransportError as exc:
            logger.warning(
                "media_group.forward_failed",
                group_id=group_id,
                chat_id=self._chat_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return
        if sent is None:
            logger.warning(
                "media_group.forward_failed", group_id=group_id, chat_id=self._chat_id
            )
