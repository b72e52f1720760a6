from __future__ import annotations

from .model import Command

DEFAULT_PREFIX = "/"


class CommandError(Exception):
    """A command that cannot be carried out; the message is shown to the user."""


class CommandValidationError(CommandError):
    pass


class CommandPermissionError(CommandError):
    pass


def strip_mention(name: str) -> str:
    """Drop a ``@botname`` suffix from a command name."""
    head, _, _ = name.partition("@")
    return head


def parse_command(
    text: str | None,
    *,
    prefix: str = DEFAULT_PREFIX,
    bot_username: str | None = None,
) -> Command | None:
    """Extract the leading bot command from message text.

    The command token must open the text. The argument is everything after
    the token and the whitespace that follows it, left as-is so callers can
    split it by lines. When ``bot_username`` is given, commands addressed to
    another bot (``/cmd@otherbot``) are not ours and yield ``None``.
    """
    if not text or not text.startswith(prefix):
        return None
    token, *rest = text.split(maxsplit=1)
    body = token[len(prefix) :]
    name = strip_mention(body)
    if not name:
        return None
    mention = body[len(name) + 1 :]
    if mention and bot_username is not None:
        if mention.lower() != bot_username.lstrip("@").lower():
            return None
    argument = rest[0] if rest else ""
    return Command(name=name, argument=argument)


def split_lines(argument: str) -> list[str]:
    """Split a command argument into its non-blank lines."""
    return [line.strip() for line in argument.splitlines() if line.strip()]
