"""대화 디렉터리

탭별 대화 목록 조회 및 조회자 기준 표시 이름 계산.
표시 이름은 조회 시점에만 계산하며 저장하지 않습니다
(가드 이름/배지가 바뀌어도 최신 값으로 표시).
"""
from typing import Optional

from guard_comms.core.channels import DEFAULT_BADGE
from guard_comms.core.models import (
    ChatParticipant,
    ChatType,
    Conversation,
    ConversationStatus,
    ConversationSubType,
)
from guard_comms.core.store import ConversationStore, MemoryConversationStore
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)


def display_name_for(conversation: Conversation, viewer_id: str) -> str:
    """
    조회자 기준 표시 이름

    지원 채널은 소유 가드 본인에게는 레벨 이름("Dispatch")으로,
    그 외 조회자(스태프)에게는 "#<배지> <가드 이름> – <레벨>"로 보입니다.
    """
    if conversation.subkind != ConversationSubType.SUPPORT_CHANNEL:
        return conversation.display_name

    metadata = conversation.metadata or {}
    guard_id = metadata.get("guard_id")
    if not guard_id or guard_id == viewer_id:
        return conversation.display_name

    badge = metadata.get("guard_badge") or DEFAULT_BADGE
    name = metadata.get("guard_display_name") or guard_id
    level = metadata.get("level") or conversation.display_name
    return f"#{badge} {name} – {level}"


class ConversationDirectory:
    """대화 목록/조회"""

    def __init__(self, store: ConversationStore, working_set: MemoryConversationStore):
        self.store = store
        self.working_set = working_set

    async def list_conversations(self, user_id: str, kind: ChatType) -> list[Conversation]:
        """
        탭별 대화 목록

        Args:
            user_id: 조회자 ID (표시 이름 계산용)
            kind: 탭 (direct_message/team_chat/group_chat/mission_chat)

        Returns:
            저장소 순서의 대화 목록 + 세션 메모리에만 있는 대화
        """
        try:
            stored = await self.store.list_conversations(kind)
        except Exception as e:
            logger.warning(
                "Failed to list conversations, using session memory",
                kind=kind.value,
                error=str(e),
            )
            stored = []

        seen = {c.id for c in stored}
        local = [
            c for c in await self.working_set.list_conversations(kind)
            if c.id not in seen
        ]

        return [
            c.model_copy(update={"display_name": display_name_for(c, user_id)})
            for c in stored + local
        ]

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """대화 조회 (저장소 → 세션 메모리)"""
        try:
            conversation = await self.store.get_conversation(conversation_id)
        except Exception as e:
            logger.warning(
                "Failed to fetch conversation, using session memory",
                conversation_id=conversation_id,
                error=str(e),
            )
            conversation = None
        return conversation or await self.working_set.get_conversation(conversation_id)

    async def get_participants(self, conversation_id: str) -> list[ChatParticipant]:
        """대화 참여자 목록 (없는 대화는 빈 목록)"""
        conversation = await self.get_conversation(conversation_id)
        return list(conversation.participants) if conversation else []

    async def archive_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """
        대화 보관 처리 (삭제하지 않음)

        Returns:
            보관된 대화 또는 None (없는 대화)
        """
        conversation = await self.get_conversation(conversation_id)
        if not conversation:
            return None

        try:
            await self.store.set_status(conversation_id, ConversationStatus.ARCHIVED)
        except Exception as e:
            logger.warning(
                "Failed to archive conversation in store, archiving in session memory",
                conversation_id=conversation_id,
                error=str(e),
            )
            # 저장소 반영 실패 시 세션 메모리에 보관 상태를 남김 (없으면 먼저 추가)
            await self.working_set.create_conversation(conversation)
        await self.working_set.set_status(conversation_id, ConversationStatus.ARCHIVED)

        logger.info("Archived conversation", conversation_id=conversation_id)
        return conversation.model_copy(update={"status": ConversationStatus.ARCHIVED})
