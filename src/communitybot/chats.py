from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import msgspec

from .logging import get_logger
from .model import UNKNOWN_CHAT_ID, SavedChat
from .state_store import JsonStateStore

logger = get_logger(__name__)

STATE_VERSION = 1


@runtime_checkable
class ChatRepository(Protocol):
    async def add_or_update(self, chat: SavedChat) -> None: ...

    async def remove_by_name(self, name: str) -> bool: ...

    async def list_chats(self) -> list[SavedChat]: ...


class _ChatState(msgspec.Struct, forbid_unknown_fields=False):
    name: str
    invite_link: str
    id: int = UNKNOWN_CHAT_ID


class _ChatsState(msgspec.Struct, forbid_unknown_fields=False):
    version: int
    chats: list[_ChatState] = msgspec.field(default_factory=list)


def _new_state() -> _ChatsState:
    return _ChatsState(version=STATE_VERSION, chats=[])


def _same_chat(entry: _ChatState, chat: SavedChat) -> bool:
    if entry.name == chat.name:
        return True
    return chat.has_known_id and entry.id == chat.id


class ChatStore(JsonStateStore[_ChatsState]):
    """File-backed chat list.

    A chat is identified by its name, or by its numeric id once known.
    Upserting a chat removes every other record with the same identity so
    one chat never appears twice.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(
            path,
            version=STATE_VERSION,
            state_type=_ChatsState,
            state_factory=_new_state,
            log_prefix="chats.state",
            logger=logger,
        )

    async def add_or_update(self, chat: SavedChat) -> None:
        async with self._lock:
            self._reload_locked_if_needed()
            matches = [entry for entry in self._state.chats if _same_chat(entry, chat)]
            known_id = chat.id
            if not chat.has_known_id:
                known_id = next(
                    (e.id for e in matches if e.id != UNKNOWN_CHAT_ID),
                    UNKNOWN_CHAT_ID,
                )
            record = _ChatState(
                name=chat.name, invite_link=chat.invite_link, id=known_id
            )
            updated: list[_ChatState] = []
            replaced = False
            for entry in self._state.chats:
                if not _same_chat(entry, chat):
                    updated.append(entry)
                elif not replaced:
                    updated.append(record)
                    replaced = True
            if not replaced:
                updated.append(record)
            self._state.chats = updated
            self._save_locked()
        logger.info(
            "chats.upserted", name=chat.name, chat_id=known_id, updated=bool(matches)
        )

    async def remove_by_name(self, name: str) -> bool:
        async with self._lock:
            self._reload_locked_if_needed()
            before = len(self._state.chats)
            self._state.chats = [e for e in self._state.chats if e.name != name]
            removed = len(self._state.chats) != before
            if removed:
                self._save_locked()
        logger.info("chats.removed", name=name, removed=removed)
        return removed

    async def list_chats(self) -> list[SavedChat]:
        async with self._lock:
            self._reload_locked_if_needed()
            chats = [
                SavedChat(id=entry.id, name=entry.name, invite_link=entry.invite_link)
                for entry in self._state.chats
            ]
        return sorted(chats, key=lambda chat: chat.name.casefold())
