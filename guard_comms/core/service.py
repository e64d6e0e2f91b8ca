"""채팅 서비스

프로비저너/디렉터리/메시지 로그를 하나의 저장소 + 세션 메모리(working set) 위에 묶은 진입점.
외부에 노출하는 연산:
- ensure_channels_for_user
- list_conversations
- get_messages
- send_message
(+ 미션 채널 보장, 참여자 조회, 보관, 사용자 로드)
"""
from typing import Optional

from guard_comms.core.directory import ConversationDirectory
from guard_comms.core.messages import MessageLog
from guard_comms.core.models import (
    Attachment,
    ChatParticipant,
    ChatType,
    ChatUser,
    Conversation,
    Message,
)
from guard_comms.core.provisioner import ChannelProvisioner
from guard_comms.core.store import (
    ConversationStore,
    MemoryConversationStore,
    get_conversation_store,
)
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)


class ChatService:
    """채팅 서비스"""

    def __init__(
        self,
        store: ConversationStore,
        working_set: Optional[MemoryConversationStore] = None,
    ):
        if working_set is not None and working_set is store:
            # 원격 저장이 끝난 로컬 메시지를 정리하므로 같은 인스턴스면 저장된 메시지까지 사라짐
            raise ValueError("working_set must be separate from the conversation store")
        self.store = store
        self.working_set = working_set or MemoryConversationStore()
        self.provisioner = ChannelProvisioner(self.store, self.working_set)
        self.directory = ConversationDirectory(self.store, self.working_set)
        self.messages = MessageLog(self.store, self.working_set)

    @property
    def backend(self) -> str:
        return self.store.name

    async def load_user(self, user_id: str) -> Optional[ChatUser]:
        """profiles에서 세션 사용자 로드"""
        try:
            return await self.store.get_user(user_id)
        except Exception as e:
            logger.error("Failed to load user profile", user_id=user_id, error=str(e))
            return None

    async def ensure_channels_for_user(self, user: ChatUser) -> None:
        try:
            await self.provisioner.ensure_channels_for_user(user)
        except Exception as e:
            logger.error("Chat provisioning failed", user_id=user.id, error=str(e))

    async def ensure_mission_channel(
        self,
        mission_id: str,
        title: str,
        participants: Optional[list[ChatParticipant]] = None,
    ) -> Conversation:
        return await self.provisioner.ensure_mission_channel(mission_id, title, participants)

    async def list_conversations(self, user_id: str, kind: ChatType) -> list[Conversation]:
        return await self.directory.list_conversations(user_id, kind)

    async def get_participants(self, conversation_id: str) -> list[ChatParticipant]:
        return await self.directory.get_participants(conversation_id)

    async def archive_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.directory.archive_conversation(conversation_id)

    async def get_messages(self, conversation_id: str) -> list[Message]:
        return await self.messages.get_messages(conversation_id)

    async def send_message(
        self,
        conversation_id: str,
        sender: ChatUser,
        body: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> Message:
        return await self.messages.send_message(conversation_id, sender, body, attachments)


# ===== 싱글톤 인스턴스 =====

_chat_service: Optional[ChatService] = None


def get_chat_service() -> ChatService:
    """ChatService 싱글톤 인스턴스 반환"""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(get_conversation_store())
    return _chat_service
