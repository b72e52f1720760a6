from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import partial

from ..logging import get_logger
from ..telegram.client import BotClient, TelegramTransportError
from ..telegram.types import TelegramIncomingMessage

logger = get_logger(__name__)


async def send_plain(
    bot: BotClient,
    *,
    chat_id: int,
    user_msg_id: int,
    text: str,
) -> None:
    try:
        sent = await bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_to_message_id=user_msg_id,
        )
    except TelegramTransportError as exc:
        logger.warning(
            "reply.send_failed",
            chat_id=chat_id,
            reply_to=user_msg_id,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return
    if sent is None:
        logger.warning("reply.send_failed", chat_id=chat_id, reply_to=user_msg_id)


def make_reply(
    bot: BotClient, msg: TelegramIncomingMessage
) -> Callable[..., Awaitable[None]]:
    """Bind a reply function threaded under ``msg``; call it as ``reply(text=...)``."""
    return partial(
        send_plain,
        bot,
        chat_id=msg.chat_id,
        user_msg_id=msg.message_id,
    )
