"""Tests for channel provisioning."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from guard_comms.core.channels import SUPPORT_LEVELS
from guard_comms.core.models import ChatType, ChatUser, ConversationSubType, MessageType
from guard_comms.core.service import ChatService
from guard_comms.core.store import MemoryConversationStore


async def _support_channels(store, guard_id):
    conversations = await store.list_conversations(ChatType.TEAM_CHAT)
    return [
        c for c in conversations
        if c.subkind == ConversationSubType.SUPPORT_CHANNEL
        and c.metadata.get("guard_id") == guard_id
    ]


@pytest.mark.asyncio
async def test_repeated_provisioning_is_idempotent(service, store, guard):
    for _ in range(5):
        await service.ensure_channels_for_user(guard)

    channels = await _support_channels(store, "g1")
    assert len(channels) == 6
    assert [c.display_name for c in channels] == list(SUPPORT_LEVELS)


@pytest.mark.asyncio
async def test_support_channel_seeded_once(service, store, guard):
    await service.ensure_channels_for_user(guard)
    await service.ensure_channels_for_user(guard)

    messages = await store.list_messages("support-dispatch-g1")
    assert len(messages) == 1
    assert messages[0].kind == MessageType.SYSTEM
    assert messages[0].sender_id == "system"
    assert messages[0].body == "Support channel created. You are now connected to Dispatch."

    conversation = await store.get_conversation("support-dispatch-g1")
    assert conversation.last_message_summary == "Connected to Dispatch."
    assert conversation.last_message_at is not None


@pytest.mark.asyncio
async def test_same_ids_across_sessions(store, guard):
    # two sessions share the store but have separate working sets
    first = ChatService(store)
    second = ChatService(store)
    await first.ensure_channels_for_user(guard)
    await second.ensure_channels_for_user(guard)

    assert len(await _support_channels(store, "g1")) == 6


@pytest.mark.asyncio
async def test_concurrent_provisioning_does_not_duplicate(service, store, guard):
    await asyncio.gather(*(service.ensure_channels_for_user(guard) for _ in range(3)))

    assert len(await _support_channels(store, "g1")) == 6
    for level_id in ("support-owners-g1", "support-training-team-g1"):
        assert len(await store.list_messages(level_id)) == 1


@pytest.mark.asyncio
async def test_staff_share_company_channels(service, store):
    await service.ensure_channels_for_user(ChatUser(id="s1", role="dispatch"))
    await service.ensure_channels_for_user(ChatUser(id="s2", role="owner"))

    conversations = await store.list_conversations(ChatType.TEAM_CHAT)
    company = [c for c in conversations if c.subkind == ConversationSubType.COMPANY_CHANNEL]
    assert len(company) == 8
    assert {c.id for c in company} >= {"comp-owners", "comp-all-guards"}
    assert all(c.participants == [] for c in company)
    assert await store.list_messages("comp-owners") == []


@pytest.mark.asyncio
async def test_peer_channel_shared_by_team(service, store):
    await service.ensure_channels_for_user(ChatUser(id="g1", role="guard", team_id="team-7"))
    await service.ensure_channels_for_user(ChatUser(id="g2", role="guard", team_id="team-7"))
    await service.ensure_channels_for_user(ChatUser(id="s1", role="supervisor", team_id="team-7"))

    conversations = await store.list_conversations(ChatType.TEAM_CHAT)
    peer = [c for c in conversations if c.subkind == ConversationSubType.PEER_CHANNEL]
    assert len(peer) == 1
    # team name resolved from the teams collection
    assert peer[0].display_name == "Guards – Alpha"
    assert peer[0].related_entity_id == "team-7"


@pytest.mark.asyncio
async def test_store_failure_degrades_to_session_memory(store, guard):
    service = ChatService(store)

    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)
        await service.ensure_channels_for_user(guard)

    assert await store.list_conversations(ChatType.TEAM_CHAT) == []
    local = await _support_channels(service.working_set, "g1")
    assert len(local) == 6
    assert len(await service.working_set.list_messages("support-dispatch-g1")) == 1


@pytest.mark.asyncio
async def test_store_recovery_does_not_reseed(store, guard):
    service = ChatService(store)

    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)

    await service.ensure_channels_for_user(guard)

    assert len(await _support_channels(store, "g1")) == 6
    messages = await service.get_messages("support-dispatch-g1")
    assert len(messages) == 1


@pytest.mark.asyncio
async def test_store_recovery_moves_seed_to_store(store, guard):
    service = ChatService(store)

    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)

    await service.ensure_channels_for_user(guard)

    # a later session with its own empty working set still sees the welcome message
    later = ChatService(store)
    messages = await later.get_messages("support-dispatch-g1")
    assert len(messages) == 1
    assert messages[0].kind == MessageType.SYSTEM
    assert messages[0].body == "Support channel created. You are now connected to Dispatch."
    assert await _support_channels(service.working_set, "g1") == []
    assert await service.working_set.list_messages("support-dispatch-g1") == []


@pytest.mark.asyncio
async def test_store_recovery_moves_unsent_messages(store, guard):
    service = ChatService(store)

    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ), patch.object(
        store, "append_message", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)
        await service.send_message("support-dispatch-g1", guard, "Need backup at gate 3")

    await service.ensure_channels_for_user(guard)

    stored = await store.list_messages("support-dispatch-g1")
    assert [m.kind for m in stored] == [MessageType.SYSTEM, MessageType.TEXT]
    assert stored[1].body == "Need backup at gate 3"
    assert await service.working_set.list_messages("support-dispatch-g1") == []


@pytest.mark.asyncio
async def test_recovery_after_other_session_seeded_keeps_single_seed(store, guard):
    offline = ChatService(store)
    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await offline.ensure_channels_for_user(guard)

    # another session creates and seeds the channels while the first was degraded
    await ChatService(store).ensure_channels_for_user(guard)
    await offline.ensure_channels_for_user(guard)

    assert len(await store.list_messages("support-dispatch-g1")) == 1
    assert len(await offline.get_messages("support-dispatch-g1")) == 1
    assert await offline.working_set.list_messages("support-dispatch-g1") == []


@pytest.mark.asyncio
async def test_store_recovery_keeps_messages_that_fail_to_move(store, guard):
    service = ChatService(store)

    with patch.object(
        store, "create_conversation", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)

    with patch.object(
        store, "append_message", new=AsyncMock(side_effect=ConnectionError("offline"))
    ):
        await service.ensure_channels_for_user(guard)

    assert len(await service.working_set.list_messages("support-dispatch-g1")) == 1
    assert await service.working_set.get_conversation("support-dispatch-g1") is not None
    assert len(await service.get_messages("support-dispatch-g1")) == 1

    # next login retries the move; the stored channel has no seed yet
    await service.ensure_channels_for_user(guard)

    assert len(await store.list_messages("support-dispatch-g1")) == 1
    assert await service.working_set.list_messages("support-dispatch-g1") == []


@pytest.mark.asyncio
async def test_provisioning_never_raises(store, guard):
    service = ChatService(store)

    failing = AsyncMock(side_effect=RuntimeError("boom"))
    with patch.object(store, "create_conversation", new=failing), patch.object(
        service.working_set, "create_conversation", new=failing
    ):
        await service.ensure_channels_for_user(guard)


def test_working_set_must_be_separate_from_store(store):
    with pytest.raises(ValueError):
        ChatService(store, working_set=store)


@pytest.mark.asyncio
async def test_mission_channel_is_idempotent(service, store):
    first = await service.ensure_mission_channel("204", "Mission #204 – Safeway Overnight Patrol")
    second = await service.ensure_mission_channel("204", "Mission #204 – Safeway Overnight Patrol")

    assert first.id == second.id == "mission-204"
    missions = await store.list_conversations(ChatType.MISSION_CHAT)
    assert [c.id for c in missions] == ["mission-204"]
