import pytest

from tests.fakes import FakeBot, FakeChatRepository


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def fake_repo() -> FakeChatRepository:
    return FakeChatRepository()
