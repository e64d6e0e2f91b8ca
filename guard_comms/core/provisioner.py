"""채널 프로비저너

로그인(세션 시작) 시 사용자 역할에 필요한 채널이 모두 존재하도록 보장합니다.
- 멱등: 여러 번 실행해도 채널이 중복 생성되지 않음
- 생성은 ID 기준 insert-or-ignore (동시 로그인 경쟁에도 안전)
- 저장소 장애 시 세션 메모리(working set)로 강등, 로그인은 실패시키지 않음
"""
from datetime import datetime, timezone
from typing import Optional

import structlog

from guard_comms.core.channels import ChannelSpec, mission_channel, required_channels
from guard_comms.core.messages import system_message
from guard_comms.core.models import (
    ChatParticipant,
    ChatUser,
    Conversation,
    Message,
    MessageType,
)
from guard_comms.core.store import ConversationStore, MemoryConversationStore
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)


class ChannelProvisioner:
    """필수 채널 보장"""

    def __init__(self, store: ConversationStore, working_set: MemoryConversationStore):
        self.store = store
        self.working_set = working_set

    async def ensure_channels_for_user(self, user: ChatUser) -> None:
        """
        사용자 역할에 필요한 채널 보장

        Args:
            user: 세션 사용자 (id, role 필수, team_id 선택)
        """
        with structlog.contextvars.bound_contextvars(user_id=user.id):
            logger.info("Checking chat integrity", role=user.role)

            if user.team_id and not user.team_name:
                team_name = await self._lookup_team_name(user.team_id)
                if team_name:
                    user = user.model_copy(update={"team_name": team_name})

            created = 0
            for spec in required_channels(user):
                try:
                    if await self.ensure_channel(spec):
                        created += 1
                except Exception as e:
                    logger.error(
                        "Failed to ensure channel",
                        conversation_id=spec.id,
                        error=str(e),
                    )

            logger.info("Chat integrity checked", created=created)

    async def ensure_mission_channel(
        self,
        mission_id: str,
        title: str,
        participants: Optional[list[ChatParticipant]] = None,
    ) -> Conversation:
        """미션 채널 보장 (미션 서브시스템에서 호출)"""
        spec = mission_channel(mission_id, title, participants)
        await self.ensure_channel(spec)
        return spec.to_conversation()

    async def ensure_channel(self, spec: ChannelSpec) -> bool:
        """
        채널 하나를 보장

        Returns:
            이번 호출로 생성되었는지 여부
        """
        conversation = spec.to_conversation()
        conversation.last_message_at = datetime.now(timezone.utc)

        target = self.store
        try:
            created = await self.store.create_conversation(conversation)
        except Exception as e:
            logger.warning(
                "Store unavailable, provisioning in session memory",
                conversation_id=spec.id,
                error=str(e),
            )
            target = self.working_set
            created = await self.working_set.create_conversation(conversation)
        else:
            # 강등 모드에서 세션 메모리에 만들어 둔 채널은 로컬 메시지를 저장소로 옮기고 새 시드는 남기지 않음
            if await self.working_set.get_conversation(spec.id):
                await self._move_to_store(spec.id, created)
                return created

        if not created:
            return False

        logger.info(
            "Provisioned channel",
            conversation_id=spec.id,
            subkind=spec.subkind.value if spec.subkind else None,
            backend=target.name,
        )

        if spec.seed_message:
            await self._seed(target, system_message(spec.id, spec.seed_message))

        return True

    async def _seed(self, target: ConversationStore, message: Message) -> None:
        """생성 직후 시스템 메시지 기록"""
        try:
            await target.append_message(message)
        except Exception as e:
            logger.warning(
                "Failed to store seed message, keeping it in session memory",
                conversation_id=message.conversation_id,
                error=str(e),
            )
            await self.working_set.append_message(message)

    async def _move_to_store(self, conversation_id: str, created: bool) -> None:
        """
        세션 메모리에만 있던 채널의 메시지를 저장소로 이동

        저장소 채널을 이번에 만들었으면 로컬 시드까지 옮기고,
        저장소에 이미 시스템 메시지가 있으면 로컬 시스템 메시지는 버립니다.
        옮기지 못한 메시지는 세션 메모리에 남겨 둡니다 (다음 로그인 때 다시 시도).
        """
        seeded = False
        if not created:
            try:
                stored = await self.store.list_messages(conversation_id)
            except Exception as e:
                logger.warning(
                    "Failed to fetch stored messages, keeping session channel",
                    conversation_id=conversation_id,
                    error=str(e),
                )
                return
            seeded = any(m.kind == MessageType.SYSTEM for m in stored)

        moved = 0
        pending = 0
        for message in await self.working_set.list_messages(conversation_id):
            if seeded and message.kind == MessageType.SYSTEM:
                await self.working_set.discard_message(conversation_id, message.id)
                continue
            try:
                await self.store.append_message(message)
            except Exception as e:
                logger.warning(
                    "Failed to move session message to store",
                    conversation_id=conversation_id,
                    message_id=message.id,
                    error=str(e),
                )
                pending += 1
                continue
            await self.working_set.discard_message(conversation_id, message.id)
            moved += 1

        if not pending:
            await self.working_set.discard_conversation(conversation_id)

        logger.info(
            "Moved session channel to store",
            conversation_id=conversation_id,
            moved=moved,
            pending=pending,
        )

    async def _lookup_team_name(self, team_id: str) -> Optional[str]:
        try:
            return await self.store.get_team_name(team_id)
        except Exception as e:
            logger.warning("Failed to look up team name", team_id=team_id, error=str(e))
            return None
