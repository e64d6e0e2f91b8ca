import os

os.environ.setdefault("CHAT_STORE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "warning")

import pytest

from guard_comms.core.models import ChatUser
from guard_comms.core.service import ChatService
from guard_comms.core.store import MemoryConversationStore


@pytest.fixture
def store():
    """Fresh in-memory store per test (no shared module state)."""
    return MemoryConversationStore(teams={"team-7": "Alpha"})


@pytest.fixture
def service(store):
    return ChatService(store)


@pytest.fixture
def guard():
    return ChatUser(id="g1", display_name="J. Rivera", role="guard", badge_number="1234")


@pytest.fixture
def staff():
    return ChatUser(id="s1", display_name="M. Chen", role="dispatch")
