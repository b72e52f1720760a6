from __future__ import annotations

import pytest

from communitybot.handlers.chat_manage import (
    ACTION_FAILED,
    ADD_CHAT_USAGE,
    CHAT_ID,
    CHAT_SAVED,
    INVITE_LINK_REQUIRED,
    PRIVATE_CHAT_REFUSAL,
    REMOVE_NAME_REQUIRED,
    REMOVE_NOT_ALLOWED,
    THIS_CHAT_SAVED,
    ChatManageHandler,
)
from communitybot.model import UNKNOWN_CHAT_ID, SavedChat, UpdateKind
from tests.fakes import FakeBot, FakeChatRepository, make_update


def _handler(
    bot: FakeBot,
    repo: FakeChatRepository,
    *,
    admins: tuple[str, ...] = ("@Boss",),
    bot_username: str | None = "communitybot",
) -> ChatManageHandler:
    return ChatManageHandler(
        bot=bot, repository=repo, admins=admins, bot_username=bot_username
    )


@pytest.mark.parametrize(
    "text",
    [
        "/add_chat",
        "/add_this_chat",
        "/remove_chat Foo",
        "/get_id_of_this_chat",
        "/add_chat@communitybot\nFoo\nhttps://t.me/joinchat/x",
    ],
)
def test_can_handle_chat_commands(
    fake_bot: FakeBot, fake_repo: FakeChatRepository, text: str
) -> None:
    assert _handler(fake_bot, fake_repo).can_handle(make_update(text)) is True


@pytest.mark.parametrize(
    "text",
    ["hello", "/start", "/add_chat@otherbot Foo", "add_chat Foo", ""],
)
def test_ignores_other_messages(
    fake_bot: FakeBot, fake_repo: FakeChatRepository, text: str
) -> None:
    assert _handler(fake_bot, fake_repo).can_handle(make_update(text)) is False


def test_accepts_only_messages(fake_bot: FakeBot, fake_repo: FakeChatRepository) -> None:
    assert _handler(fake_bot, fake_repo).accepted_kinds == frozenset(
        {UpdateKind.MESSAGE}
    )


@pytest.mark.anyio
async def test_add_chat_saves_chat_with_unknown_id(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    handler = _handler(fake_bot, fake_repo)

    await handler.handle(
        make_update("/add_chat\nTest Chat\nhttps://t.me/joinchat/ABC123")
    )

    assert fake_repo.upserts == [
        SavedChat(
            id=UNKNOWN_CHAT_ID,
            name="Test Chat",
            invite_link="https://t.me/joinchat/ABC123",
        )
    ]
    assert fake_bot.texts == [CHAT_SAVED]
    assert fake_bot.sent[0]["reply_to_message_id"] == 10


@pytest.mark.anyio
async def test_add_chat_accepts_plus_links_and_extra_whitespace(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    handler = _handler(fake_bot, fake_repo)

    await handler.handle(
        make_update("/add_chat   \n\n  Rust Talk  \n https://t.me/+AbCdEf \n")
    )

    assert fake_repo.upserts == [
        SavedChat(id=UNKNOWN_CHAT_ID, name="Rust Talk", invite_link="https://t.me/+AbCdEf")
    ]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "text",
    ["/add_chat", "/add_chat Test Chat", "/add_chat\nTest Chat"],
)
async def test_add_chat_without_link_replies_usage(
    fake_bot: FakeBot, fake_repo: FakeChatRepository, text: str
) -> None:
    await _handler(fake_bot, fake_repo).handle(make_update(text))

    assert fake_repo.touched is False
    assert fake_bot.texts == [ADD_CHAT_USAGE]


@pytest.mark.anyio
async def test_add_chat_rejects_public_link(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_chat\nTest Chat\nhttps://t.me/testchat")
    )

    assert fake_repo.touched is False
    assert len(fake_bot.texts) == 1
    assert fake_bot.texts[0].startswith("invalid invite link")
    assert "https://t.me/joinchat/" in fake_bot.texts[0]


@pytest.mark.anyio
async def test_add_this_chat_refuses_private_chat(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_this_chat", chat_id=42, chat_type="private", chat_title=None)
    )

    assert fake_repo.touched is False
    assert fake_bot.texts == [PRIVATE_CHAT_REFUSAL]


@pytest.mark.anyio
async def test_add_this_chat_ignores_channels(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_this_chat", chat_type="channel")
    )

    assert fake_repo.touched is False
    assert fake_bot.sent == []
    assert fake_bot.export_calls == []


@pytest.mark.anyio
async def test_add_this_chat_prefers_argument_link(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    fake_bot.invite_link = "https://t.me/+exported"

    await _handler(fake_bot, fake_repo).handle(
        make_update(
            "/add_this_chat https://t.me/+given",
            chat_invite_link="https://t.me/+known",
        )
    )

    assert fake_repo.upserts == [
        SavedChat(id=-100123, name="Test Group", invite_link="https://t.me/+given")
    ]
    assert fake_bot.export_calls == []
    assert fake_bot.texts == [THIS_CHAT_SAVED]


@pytest.mark.anyio
async def test_add_this_chat_uses_known_chat_link(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_this_chat", chat_invite_link="https://t.me/+known")
    )

    assert fake_repo.upserts[0].invite_link == "https://t.me/+known"
    assert fake_bot.export_calls == []


@pytest.mark.anyio
async def test_add_this_chat_exports_link(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    fake_bot.invite_link = "https://t.me/+exported"

    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_this_chat", chat_type="group")
    )

    assert fake_bot.export_calls == [-100123]
    assert fake_repo.upserts == [
        SavedChat(id=-100123, name="Test Group", invite_link="https://t.me/+exported")
    ]
    assert fake_bot.texts == [THIS_CHAT_SAVED]


@pytest.mark.anyio
async def test_add_this_chat_without_rights_asks_for_link(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(make_update("/add_this_chat"))

    assert fake_bot.export_calls == [-100123]
    assert fake_repo.touched is False
    assert fake_bot.texts == [INVITE_LINK_REQUIRED]


@pytest.mark.anyio
async def test_remove_chat_requires_admin(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/remove_chat Test Chat", sender_username="mallory")
    )

    assert fake_repo.removals == []
    assert fake_bot.texts == [REMOVE_NOT_ALLOWED]


@pytest.mark.anyio
async def test_remove_chat_refuses_sender_without_username(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/remove_chat Test Chat", sender_username=None)
    )

    assert fake_repo.removals == []
    assert fake_bot.texts == [REMOVE_NOT_ALLOWED]


@pytest.mark.anyio
async def test_admin_removes_chat_by_name(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    fake_repo.chats["Test Chat"] = SavedChat(
        id=UNKNOWN_CHAT_ID, name="Test Chat", invite_link="https://t.me/+x"
    )

    await _handler(fake_bot, fake_repo).handle(
        make_update("/remove_chat  Test Chat ", sender_username="boss")
    )

    assert fake_repo.removals == ["Test Chat"]
    assert fake_repo.chats == {}
    assert fake_bot.texts == [
        "if a chat named Test Chat was in my list, it's gone now."
    ]


@pytest.mark.anyio
async def test_remove_missing_chat_still_confirms(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    handler = _handler(fake_bot, fake_repo)

    await handler.handle(make_update("/remove_chat Ghost", sender_username="BOSS"))
    await handler.handle(make_update("/remove_chat Ghost", sender_username="BOSS"))

    assert fake_repo.removals == ["Ghost", "Ghost"]
    assert len(fake_bot.texts) == 2


@pytest.mark.anyio
async def test_remove_chat_requires_name(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/remove_chat   ", sender_username="boss")
    )

    assert fake_repo.removals == []
    assert fake_bot.texts == [REMOVE_NAME_REQUIRED]


@pytest.mark.anyio
@pytest.mark.parametrize("chat_type", ["private", "group", "supergroup", "channel"])
async def test_get_id_of_this_chat(
    fake_bot: FakeBot, fake_repo: FakeChatRepository, chat_type: str
) -> None:
    await _handler(fake_bot, fake_repo).handle(
        make_update("/get_id_of_this_chat", chat_id=-1005, chat_type=chat_type)
    )

    assert fake_bot.texts == [CHAT_ID.format(chat_id=-1005)]
    assert fake_repo.touched is False


@pytest.mark.anyio
async def test_failed_reply_does_not_raise(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    fake_bot.fail_send = True

    await _handler(fake_bot, fake_repo).handle(
        make_update("/add_chat\nTest Chat\nhttps://t.me/joinchat/ABC123")
    )

    assert len(fake_repo.upserts) == 1
    assert fake_bot.sent == []


def test_is_admin_normalizes_handles(
    fake_bot: FakeBot, fake_repo: FakeChatRepository
) -> None:
    handler = _handler(fake_bot, fake_repo, admins=("@Boss", " second "))

    assert handler.is_admin("boss")
    assert handler.is_admin("@BOSS")
    assert handler.is_admin("Second")
    assert not handler.is_admin("mallory")
    assert not handler.is_admin(None)


class _FailingRepository(FakeChatRepository):
    async def add_or_update(self, chat: SavedChat) -> None:
        raise OSError("disk full")

    async def remove_by_name(self, name: str) -> bool:
        raise OSError("disk full")


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("text", "sender"),
    [
        ("/add_chat Foo\nhttps://t.me/joinchat/abc", "alice"),
        ("/add_this_chat https://t.me/+given", "alice"),
        ("/remove_chat Foo", "boss"),
    ],
)
async def test_repository_failure_is_reported_to_user(
    fake_bot: FakeBot, text: str, sender: str
) -> None:
    handler = _handler(fake_bot, _FailingRepository())

    await handler.handle(make_update(text, sender_username=sender))

    assert fake_bot.texts == [ACTION_FAILED]
