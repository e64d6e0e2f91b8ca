"""대화/메시지 저장소

두 가지 교체 가능한 백엔드
- SupabaseConversationStore: 백오피스 공용 Supabase DB
- MemoryConversationStore: 프로세스 메모리 (강등 모드/테스트)

백엔드 선택은 설정(chat_store_backend)으로만 결정합니다.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from guard_comms.config import get_settings
from guard_comms.core.models import (
    ChatType,
    ChatUser,
    Conversation,
    ConversationStatus,
    Message,
)
from guard_comms.database import Database
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)


class ConversationStore(ABC):
    """대화 저장소 추상 인터페이스"""

    name: str = "abstract"

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """대화 조회 (없으면 None)"""

    @abstractmethod
    async def list_conversations(self, kind: ChatType) -> list[Conversation]:
        """탭별 대화 목록 (저장소의 안정적인 순서)"""

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> bool:
        """
        대화 생성 (ID 중복 시 무시)

        Returns:
            이번 호출로 생성되었는지 여부
        """

    @abstractmethod
    async def update_last_message(
        self, conversation_id: str, summary: str, at: datetime
    ) -> None:
        """대화의 마지막 메시지 요약 갱신"""

    @abstractmethod
    async def set_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> None:
        """대화 상태 변경"""

    @abstractmethod
    async def list_messages(self, conversation_id: str) -> list[Message]:
        """메시지 목록 (오래된 순)"""

    @abstractmethod
    async def append_message(self, message: Message) -> None:
        """메시지 추가"""

    @abstractmethod
    async def get_team_name(self, team_id: str) -> Optional[str]:
        """팀 이름 조회"""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[ChatUser]:
        """사용자 프로필 조회"""


class SupabaseConversationStore(ConversationStore):
    """Supabase 백엔드

    Database 클라이언트는 첫 사용 시 lazy 로드합니다
    (Supabase 미설정 환경에서도 서버가 기동될 수 있도록).
    """

    name = "supabase"

    def __init__(self, db: Optional[Database] = None):
        self._db = db

    @property
    def db(self) -> Database:
        """Database (Supabase) 클라이언트"""
        if self._db is None:
            self._db = Database()
        return self._db

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        row = await self.db.get_conversation(conversation_id)
        return Conversation.from_row(row) if row else None

    async def list_conversations(self, kind: ChatType) -> list[Conversation]:
        rows = await self.db.list_conversations(kind.value)
        return [Conversation.from_row(row) for row in rows]

    async def create_conversation(self, conversation: Conversation) -> bool:
        return await self.db.insert_conversation_if_absent(conversation.to_row())

    async def update_last_message(
        self, conversation_id: str, summary: str, at: datetime
    ) -> None:
        await self.db.update_conversation(
            conversation_id,
            {"last_message": summary, "last_message_time": at.isoformat()},
        )

    async def set_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> None:
        await self.db.update_conversation(conversation_id, {"status": status.value})

    async def list_messages(self, conversation_id: str) -> list[Message]:
        rows = await self.db.list_messages(conversation_id)
        return [Message.from_row(row) for row in rows]

    async def append_message(self, message: Message) -> None:
        await self.db.insert_message(message.to_row())

    async def get_team_name(self, team_id: str) -> Optional[str]:
        row = await self.db.get_team(team_id)
        return row.get("name") if row else None

    async def get_user(self, user_id: str) -> Optional[ChatUser]:
        row = await self.db.get_profile(user_id)
        return ChatUser.from_profile(row) if row else None


class MemoryConversationStore(ConversationStore):
    """메모리 백엔드

    인스턴스마다 독립된 상태를 가지며, 반환값은 모두 복사본입니다.
    """

    name = "memory"

    def __init__(
        self,
        teams: Optional[dict[str, str]] = None,
        users: Optional[list[ChatUser]] = None,
    ):
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._teams: dict[str, str] = dict(teams or {})
        self._users: dict[str, ChatUser] = {u.id: u for u in users or []}

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def list_conversations(self, kind: ChatType) -> list[Conversation]:
        return [
            c.model_copy(deep=True)
            for c in self._conversations.values()
            if c.kind == kind
        ]

    async def create_conversation(self, conversation: Conversation) -> bool:
        if conversation.id in self._conversations:
            return False
        self._conversations[conversation.id] = conversation.model_copy(deep=True)
        return True

    async def update_last_message(
        self, conversation_id: str, summary: str, at: datetime
    ) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation:
            conversation.last_message_summary = summary
            conversation.last_message_at = at

    async def set_status(
        self, conversation_id: str, status: ConversationStatus
    ) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation:
            conversation.status = status

    async def list_messages(self, conversation_id: str) -> list[Message]:
        return list(self._messages.get(conversation_id, []))

    async def append_message(self, message: Message) -> None:
        self._messages.setdefault(message.conversation_id, []).append(message)

    async def discard_message(self, conversation_id: str, message_id: str) -> None:
        """메시지 제거 (원격 저장이 끝난 로컬 메시지 정리용)"""
        messages = self._messages.get(conversation_id)
        if messages is None:
            return
        remaining = [m for m in messages if m.id != message_id]
        if remaining:
            self._messages[conversation_id] = remaining
        else:
            del self._messages[conversation_id]

    async def discard_conversation(self, conversation_id: str) -> None:
        """대화와 그 메시지 제거"""
        self._conversations.pop(conversation_id, None)
        self._messages.pop(conversation_id, None)

    async def get_team_name(self, team_id: str) -> Optional[str]:
        return self._teams.get(team_id)

    async def get_user(self, user_id: str) -> Optional[ChatUser]:
        return self._users.get(user_id)


# ===== 팩토리 =====

_conversation_store: Optional[ConversationStore] = None


def get_conversation_store() -> ConversationStore:
    """설정된 백엔드의 ConversationStore 싱글톤 반환"""
    global _conversation_store
    if _conversation_store is None:
        backend = get_settings().chat_store_backend
        if backend == "memory":
            _conversation_store = MemoryConversationStore()
        else:
            _conversation_store = SupabaseConversationStore()
        logger.info("Conversation store selected", backend=_conversation_store.name)
    return _conversation_store
