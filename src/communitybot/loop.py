from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio

from .chats import ChatRepository, ChatStore
from .config import BotSettings
from .handlers import AlbumForwarder, ChatManageHandler, MediaGroupHandler
from .logging import get_logger
from .media_groups import MediaGroupAggregator, MediaGroupDebouncer
from .router import UpdateRouter
from .telegram.client import BotClient, TelegramClient, TelegramTransportError
from .telegram.parsing import poll_incoming
from .telegram.types import TelegramIncomingMessage, TelegramUpdate

if TYPE_CHECKING:
    from anyio.abc import TaskGroup
else:
    TaskGroup = object

logger = get_logger(__name__)

__all__ = ["BotRuntime", "build_router", "build_runtime", "run_main_loop"]


@dataclass(frozen=True, slots=True)
class BotRuntime:
    router: UpdateRouter
    debouncer: MediaGroupDebouncer[TelegramIncomingMessage]


def build_router(
    settings: BotSettings,
    *,
    bot: BotClient,
    repository: ChatRepository,
    debouncer: MediaGroupDebouncer[TelegramIncomingMessage],
    bot_username: str | None = None,
) -> UpdateRouter:
    return UpdateRouter(
        [
            ChatManageHandler(
                bot=bot,
                repository=repository,
                admins=settings.admins,
                prefix=settings.command_prefix,
                bot_username=bot_username,
                invite_link_prefixes=settings.invite_link_prefixes,
            ),
            MediaGroupHandler(debouncer),
        ]
    )


def build_runtime(
    settings: BotSettings,
    *,
    bot: BotClient,
    repository: ChatRepository,
    task_group: TaskGroup,
    bot_username: str | None = None,
) -> BotRuntime:
    aggregator: MediaGroupAggregator[TelegramIncomingMessage] = MediaGroupAggregator(
        debounce_s=settings.media_groups.debounce_s,
        ttl_s=settings.media_groups.ttl_s,
    )
    debouncer = MediaGroupDebouncer(
        task_group=task_group,
        aggregator=aggregator,
        on_complete=AlbumForwarder(bot=bot, chat_id=settings.forward_albums_to),
    )
    router = build_router(
        settings,
        bot=bot,
        repository=repository,
        debouncer=debouncer,
        bot_username=bot_username,
    )
    return BotRuntime(router=router, debouncer=debouncer)


async def _resolve_bot_username(bot: BotClient) -> str | None:
    try:
        me = await bot.get_me()
    except TelegramTransportError as exc:
        logger.warning("loop.get_me.failed", error=str(exc))
        return None
    if me is None:
        logger.warning("loop.get_me.failed")
        return None
    username = me.get("username")
    return username if isinstance(username, str) and username else None


async def run_main_loop(
    settings: BotSettings,
    *,
    bot: BotClient | None = None,
    repository: ChatRepository | None = None,
    updates: AsyncIterable[TelegramUpdate] | None = None,
) -> None:
    """Poll updates and dispatch each one in its own task.

    When ``updates`` is a finite stream the loop returns once the stream is
    exhausted and every in-flight update and pending album has settled.
    """
    owns_bot = bot is None
    if bot is None:
        bot = TelegramClient(settings.bot_token.get_secret_value())
    if repository is None:
        repository = ChatStore(settings.chats_path)
    try:
        bot_username = await _resolve_bot_username(bot)
        async with anyio.create_task_group() as tg:
            runtime = build_runtime(
                settings,
                bot=bot,
                repository=repository,
                task_group=tg,
                bot_username=bot_username,
            )
            sweeper_scope = anyio.CancelScope()

            async def _run_sweeper() -> None:
                with sweeper_scope:
                    await runtime.debouncer.run_sweeper(
                        settings.media_groups.sweep_interval_s
                    )

            tg.start_soon(_run_sweeper)
            logger.info(
                "loop.started",
                bot_username=bot_username,
                handlers=[handler.name for handler in runtime.router.handlers],
                admins=len(settings.admins),
            )
            stream = updates if updates is not None else poll_incoming(bot)
            async for update in stream:
                tg.start_soon(runtime.router.dispatch, update)
            sweeper_scope.cancel()
    finally:
        if owns_bot:
            await bot.close()
        logger.info("loop.stopped")
