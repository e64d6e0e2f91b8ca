"""메시지 로그

대화별 추가 전용(append-only) 메시지 로그
- 전송: 세션 메모리에 먼저 추가(낙관적) → 원격 저장은 best-effort
- 원격 저장에 성공한 메시지는 세션 메모리에서 제거
- 원격 저장 실패는 로그만 남기고 호출자에게 전달하지 않음
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from guard_comms.core.models import Attachment, ChatUser, Message, MessageType
from guard_comms.core.store import ConversationStore, MemoryConversationStore
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_SENDER_ID = "system"
SYSTEM_SENDER_NAME = "System"


def system_message(conversation_id: str, text: str) -> Message:
    """시스템 메시지 생성"""
    return Message(
        id=str(uuid.uuid4()),
        conversation_id=conversation_id,
        sender_id=SYSTEM_SENDER_ID,
        sender_display_name=SYSTEM_SENDER_NAME,
        body=text,
        sent_at=datetime.now(timezone.utc),
        kind=MessageType.SYSTEM,
        read_flag=True,
    )


def message_type_for(attachments: list[Attachment]) -> MessageType:
    """첨부파일 구성에 따른 메시지 타입"""
    if not attachments:
        return MessageType.TEXT
    if all(a.mime_type.startswith("image/") for a in attachments):
        return MessageType.IMAGE
    return MessageType.FILE


class MessageLog:
    """대화별 메시지 조회/전송"""

    def __init__(self, store: ConversationStore, working_set: MemoryConversationStore):
        self.store = store
        self.working_set = working_set
        # 대화별 마지막 전송 시각 (로컬 메시지가 정리된 뒤에도 순서 유지)
        self._last_sent_at: dict[str, datetime] = {}

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """
        메시지 목록 (오래된 순)

        저장소의 메시지 뒤에 아직 저장소에 없는 로컬 메시지를 합칩니다.
        메시지가 없거나 저장소에 접근할 수 없으면 로컬 메시지(없으면 빈 목록)를 반환합니다.
        """
        try:
            stored = await self.store.list_messages(conversation_id)
        except Exception as e:
            logger.warning(
                "Failed to fetch messages, using session memory",
                conversation_id=conversation_id,
                error=str(e),
            )
            stored = []

        seen = {m.id for m in stored}
        local = [
            m for m in await self.working_set.list_messages(conversation_id)
            if m.id not in seen
        ]
        if not local:
            return stored
        if not stored:
            return local
        # 안정 정렬이므로 같은 시각의 메시지는 추가 순서를 유지
        return sorted(stored + local, key=lambda m: m.sent_at)

    async def send_message(
        self,
        conversation_id: str,
        sender: ChatUser,
        body: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> Message:
        """
        메시지 전송

        Args:
            conversation_id: 대화 ID
            sender: 보낸 사람
            body: 본문
            attachments: 첨부파일 목록

        Returns:
            생성된 메시지 (원격 저장 성공 여부와 무관)
        """
        attachments = list(attachments or [])
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            sender_id=sender.id,
            sender_display_name=sender.name,
            body=body,
            sent_at=self._next_sent_at(conversation_id),
            kind=message_type_for(attachments),
            read_flag=False,
            attachments=attachments,
        )
        summary = body or (attachments[0].name if attachments else "")

        # 1. 낙관적 로컬 추가 (원격 저장이 끝날 때까지만 보관)
        await self.working_set.append_message(message)
        await self.working_set.update_last_message(conversation_id, summary, message.sent_at)

        # 2. 원격 저장 (best-effort)
        try:
            await self.store.append_message(message)
        except Exception as e:
            logger.warning(
                "DB insert failed, using session memory only",
                conversation_id=conversation_id,
                message_id=message.id,
                error=str(e),
            )
            return message

        await self.working_set.discard_message(conversation_id, message.id)
        try:
            await self.store.update_last_message(conversation_id, summary, message.sent_at)
        except Exception as e:
            logger.warning(
                "Failed to update conversation summary",
                conversation_id=conversation_id,
                error=str(e),
            )

        return message

    def _next_sent_at(self, conversation_id: str) -> datetime:
        """로컬 추가 순서대로 시각이 증가하도록 보정 (시계 역행/동일 시각 대비)"""
        now = datetime.now(timezone.utc)
        last = self._last_sent_at.get(conversation_id)
        sent_at = last + timedelta(microseconds=1) if last and last >= now else now
        self._last_sent_at[conversation_id] = sent_at
        return sent_at
