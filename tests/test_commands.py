import pytest

from communitybot.commands import parse_command, split_lines, strip_mention
from communitybot.model import Command


def test_parse_command_with_mention_and_multiline_argument() -> None:
    command = parse_command("/add_chat@mybot foo\nbar")
    assert command == Command(name="add_chat", argument="foo\nbar")


def test_parse_command_without_argument() -> None:
    assert parse_command("/get_id_of_this_chat") == Command(
        name="get_id_of_this_chat", argument=""
    )


@pytest.mark.parametrize(
    "text",
    ["hello", "", None, "say /add_chat", " /add_chat", "/", "/ add_chat", "/@mybot"],
)
def test_parse_command_returns_none_for_non_commands(text: str | None) -> None:
    assert parse_command(text) is None


def test_parse_command_keeps_argument_raw() -> None:
    command = parse_command("/remove_chat   My  Chat  ")
    assert command is not None
    assert command.argument == "My  Chat  "


def test_parse_command_argument_after_newline() -> None:
    command = parse_command("/add_chat\nTest Chat\nhttps://t.me/joinchat/ABC")
    assert command == Command(
        name="add_chat", argument="Test Chat\nhttps://t.me/joinchat/ABC"
    )


def test_parse_command_custom_prefix() -> None:
    assert parse_command("!add_chat x", prefix="!") == Command(
        name="add_chat", argument="x"
    )
    assert parse_command("/add_chat x", prefix="!") is None


def test_parse_command_ignores_commands_for_other_bots() -> None:
    assert parse_command("/add_chat@otherbot x", bot_username="mybot") is None
    assert parse_command("/add_chat@MyBot x", bot_username="mybot") == Command(
        name="add_chat", argument="x"
    )
    assert parse_command("/add_chat x", bot_username="mybot") == Command(
        name="add_chat", argument="x"
    )


@pytest.mark.parametrize("name", ["add_chat", "add_chat@mybot", "add_chat@a@b", ""])
def test_strip_mention_is_idempotent(name: str) -> None:
    once = strip_mention(name)
    assert strip_mention(once) == once
    assert "@" not in once


def test_split_lines_drops_blank_lines() -> None:
    assert split_lines("  Test Chat \n\n https://t.me/joinchat/x \n") == [
        "Test Chat",
        "https://t.me/joinchat/x",
    ]


def test_parse_command_with_empty_mention() -> None:
    assert parse_command("/add_chat@ x", bot_username="mybot") == Command(
        name="add_chat", argument="x"
    )
