from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from ..chats import ChatRepository
from ..commands import (
    DEFAULT_PREFIX,
    CommandError,
    CommandPermissionError,
    CommandValidationError,
    parse_command,
    split_lines,
)
from ..config import DEFAULT_INVITE_LINK_PREFIXES, normalize_handle
from ..logging import get_logger
from ..model import UNKNOWN_CHAT_ID, Command, SavedChat, UpdateKind
from ..telegram.client import BotClient, TelegramTransportError
from ..telegram.types import TelegramIncomingMessage, TelegramUpdate
from .reply import make_reply

logger = get_logger(__name__)

ADD_CHAT_COMMAND = "add_chat"
ADD_THIS_CHAT_COMMAND = "add_this_chat"
REMOVE_CHAT_COMMAND = "remove_chat"
GET_ID_OF_THIS_CHAT_COMMAND = "get_id_of_this_chat"

CHAT_COMMANDS = frozenset(
    {
        ADD_CHAT_COMMAND,
        ADD_THIS_CHAT_COMMAND,
        REMOVE_CHAT_COMMAND,
        GET_ID_OF_THIS_CHAT_COMMAND,
    }
)

ADD_CHAT_USAGE = (
    "couldn't read that command. send the chat name and its invite link on "
    "separate lines, or ask the admins for help."
)
INVALID_INVITE_LINK = (
    "invalid invite link: it must start with {prefixes}. "
    "public chats don't need to be added."
)
CHAT_SAVED = "chat added/updated. thanks for helping the bot!"
PRIVATE_CHAT_REFUSAL = (
    "why are you trying to add our private chat to the chat list? >_>"
)
INVITE_LINK_REQUIRED = (
    "either send an invite link with the command, or make me an admin so I "
    "can create one myself."
)
THIS_CHAT_SAVED = "chat added. thanks for helping the bot!"
REMOVE_NOT_ALLOWED = "if you want a chat removed from my list, ask the admins."
REMOVE_NAME_REQUIRED = "write the full name of the chat to remove next to the command."
CHAT_REMOVED = "if a chat named {name} was in my list, it's gone now."
CHAT_ID = "id of this chat: {chat_id}"
ACTION_FAILED = "something went wrong on my side, try again later or ask the admins."


class ChatManageHandler:
    """Maintains the community chat list through four text commands."""

    name = "chat_manage"
    accepted_kinds = frozenset({UpdateKind.MESSAGE})

    def __init__(
        self,
        *,
        bot: BotClient,
        repository: ChatRepository,
        admins: Iterable[str] = (),
        prefix: str = DEFAULT_PREFIX,
        bot_username: str | None = None,
        invite_link_prefixes: tuple[str, ...] = DEFAULT_INVITE_LINK_PREFIXES,
    ) -> None:
        self._bot = bot
        self._repository = repository
        self._admins = frozenset(normalize_handle(admin) for admin in admins)
        self._prefix = prefix
        self._bot_username = bot_username
        self._invite_link_prefixes = invite_link_prefixes
        self._actions: dict[
            str, Callable[[Command, TelegramIncomingMessage], Awaitable[str | None]]
        ] = {
            ADD_CHAT_COMMAND: self._add_chat,
            ADD_THIS_CHAT_COMMAND: self._add_this_chat,
            REMOVE_CHAT_COMMAND: self._remove_chat,
            GET_ID_OF_THIS_CHAT_COMMAND: self._get_id_of_this_chat,
        }

    def _command(self, update: TelegramUpdate) -> Command | None:
        msg = update.message
        if msg is None:
            return None
        return parse_command(
            msg.text, prefix=self._prefix, bot_username=self._bot_username
        )

    def can_handle(self, update: TelegramUpdate) -> bool:
        command = self._command(update)
        return command is not None and command.name in CHAT_COMMANDS

    async def handle(self, update: TelegramUpdate) -> None:
        msg = update.message
        command = self._command(update)
        if msg is None or command is None:
            return
        action = self._actions.get(command.name)
        if action is None:
            return
        reply = make_reply(self._bot, msg)
        try:
            text = await action(command, msg)
        except CommandError as exc:
            logger.info(
                "chat_manage.rejected",
                command=command.name,
                chat_id=msg.chat_id,
                sender=msg.sender_username,
                reason=exc.__class__.__name__,
            )
            await reply(text=str(exc))
            return
        except Exception:
            logger.exception(
                "chat_manage.failed",
                command=command.name,
                chat_id=msg.chat_id,
                sender=msg.sender_username,
            )
            await reply(text=ACTION_FAILED)
            return
        if text is not None:
            await reply(text=text)

    def is_admin(self, username: str | None) -> bool:
        if not username:
            return False
        return normalize_handle(username) in self._admins

    def _is_invite_link(self, link: str) -> bool:
        return link.startswith(self._invite_link_prefixes)

    async def _add_chat(self, command: Command, msg: TelegramIncomingMessage) -> str:
        lines = split_lines(command.argument)
        if len(lines) < 2:
            raise CommandValidationError(ADD_CHAT_USAGE)
        chat_name, invite_link = lines[0], lines[1]
        if not self._is_invite_link(invite_link):
            prefixes = " or ".join(f"'{p}'" for p in self._invite_link_prefixes)
            raise CommandValidationError(INVALID_INVITE_LINK.format(prefixes=prefixes))
        await self._repository.add_or_update(
            SavedChat(id=UNKNOWN_CHAT_ID, name=chat_name, invite_link=invite_link)
        )
        return CHAT_SAVED

    async def _add_this_chat(
        self, command: Command, msg: TelegramIncomingMessage
    ) -> str | None:
        if msg.is_private:
            raise CommandValidationError(PRIVATE_CHAT_REFUSAL)
        if not msg.is_group:
            return None
        lines = split_lines(command.argument)
        invite_link = lines[0] if lines else msg.chat_invite_link
        if not invite_link:
            invite_link = await self._export_invite_link(msg.chat_id)
        if not invite_link:
            raise CommandValidationError(INVITE_LINK_REQUIRED)
        title = (msg.chat_title or "").strip() or str(msg.chat_id)
        await self._repository.add_or_update(
            SavedChat(id=msg.chat_id, name=title, invite_link=invite_link)
        )
        return THIS_CHAT_SAVED

    async def _export_invite_link(self, chat_id: int) -> str | None:
        try:
            return await self._bot.export_chat_invite_link(chat_id)
        except TelegramTransportError as exc:
            logger.warning(
                "chat_manage.invite_link_failed",
                chat_id=chat_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return None

    async def _remove_chat(self, command: Command, msg: TelegramIncomingMessage) -> str:
        if not self.is_admin(msg.sender_username):
            raise CommandPermissionError(REMOVE_NOT_ALLOWED)
        chat_name = command.argument.strip()
        if not chat_name:
            raise CommandValidationError(REMOVE_NAME_REQUIRED)
        await self._repository.remove_by_name(chat_name)
        return CHAT_REMOVED.format(name=chat_name)

    async def _get_id_of_this_chat(
        self, command: Command, msg: TelegramIncomingMessage
    ) -> str:
        return CHAT_ID.format(chat_id=msg.chat_id)
