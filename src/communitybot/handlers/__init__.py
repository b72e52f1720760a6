"""Update handlers registered with the router."""

from .chat_manage import CHAT_COMMANDS, ChatManageHandler
from .media_group import AlbumForwarder, MediaGroupHandler

__all__ = [
    "CHAT_COMMANDS",
    "AlbumForwarder",
    "ChatManageHandler",
    "MediaGroupHandler",
]
