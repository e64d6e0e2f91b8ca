"""채팅 공통 데이터 모델"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatType(str, Enum):
    """대화 탭 분류"""
    DIRECT_MESSAGE = "direct_message"
    TEAM_CHAT = "team_chat"
    GROUP_CHAT = "group_chat"
    MISSION_CHAT = "mission_chat"


class ConversationSubType(str, Enum):
    """team_chat 세부 분류 (표시/주소 규칙 결정)"""
    SUPPORT_CHANNEL = "support_channel"
    PEER_CHANNEL = "peer_channel"
    COMPANY_CHANNEL = "company_channel"
    TEAM_CHANNEL = "team_channel"


class ConversationStatus(str, Enum):
    """대화 상태"""
    ACTIVE = "active"
    ARCHIVED = "archived"


class MessageType(str, Enum):
    """메시지 타입"""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class UserRole(str, Enum):
    """백오피스 역할"""
    GUARD = "guard"
    OWNER = "owner"
    MANAGEMENT = "management"
    OPERATIONS = "operations"
    DISPATCH = "dispatch"
    SUPERVISOR = "supervisor"
    SECRETARY = "secretary"
    CLIENT = "client"


STAFF_ROLES = frozenset({
    UserRole.OWNER.value,
    UserRole.MANAGEMENT.value,
    UserRole.OPERATIONS.value,
    UserRole.DISPATCH.value,
    UserRole.SUPERVISOR.value,
    UserRole.SECRETARY.value,
})


class ChatUser(BaseModel):
    """세션 사용자 (로그인 시점의 currentUser)"""
    id: str
    display_name: Optional[str] = None
    role: str
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    badge_number: Optional[str] = None
    email: Optional[str] = None

    @property
    def name(self) -> str:
        """표시 이름 (이름 → 이메일 → ID 순)"""
        return self.display_name or self.email or self.id

    @classmethod
    def from_profile(cls, row: dict) -> "ChatUser":
        """profiles 행에서 생성"""
        return cls(
            id=row["id"],
            display_name=row.get("full_name"),
            role=row.get("role") or "",
            team_id=row.get("team_id"),
            badge_number=row.get("badge_number"),
            email=row.get("email"),
        )


class ChatParticipant(BaseModel):
    """대화 참여자"""
    user_id: str
    name: str
    role: str
    rank: Optional[str] = None


class Attachment(BaseModel):
    """첨부파일"""
    url: str
    name: str
    mime_type: str = "application/octet-stream"


class Conversation(BaseModel):
    """대화 (채널)"""
    id: str
    kind: ChatType
    subkind: Optional[ConversationSubType] = None
    display_name: str
    related_entity_id: Optional[str] = None
    participants: list[ChatParticipant] = Field(default_factory=list)
    last_message_summary: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = Field(default=0, ge=0)
    status: ConversationStatus = ConversationStatus.ACTIVE
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_row(self) -> dict:
        """DB 저장용 행으로 변환"""
        return {
            "id": self.id,
            "type": self.kind.value,
            "sub_type": self.subkind.value if self.subkind else None,
            "name": self.display_name,
            "related_id": self.related_entity_id,
            "participants": [p.model_dump() for p in self.participants],
            "last_message": self.last_message_summary,
            "last_message_time": (
                self.last_message_at.isoformat() if self.last_message_at else None
            ),
            "unread_count": self.unread_count,
            "status": self.status.value,
            "metadata": self.metadata,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Conversation":
        """DB 행에서 생성"""
        return cls(
            id=row["id"],
            kind=ChatType(row["type"]),
            subkind=ConversationSubType(row["sub_type"]) if row.get("sub_type") else None,
            display_name=row.get("name") or "",
            related_entity_id=row.get("related_id"),
            participants=row.get("participants") or [],
            last_message_summary=row.get("last_message"),
            last_message_at=row.get("last_message_time"),
            unread_count=row.get("unread_count") or 0,
            status=ConversationStatus(row.get("status") or "active"),
            metadata=row.get("metadata") or {},
        )


class Message(BaseModel):
    """메시지 (생성 후 불변)"""

    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    sender_id: str
    sender_display_name: str
    body: str = ""
    sent_at: datetime
    kind: MessageType = MessageType.TEXT
    read_flag: bool = False
    attachments: list[Attachment] = Field(default_factory=list)

    @field_validator("sent_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        """timezone 없는 시각은 UTC로 간주"""
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    def to_row(self) -> dict:
        """DB 저장용 행으로 변환"""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_display_name,
            "content": self.body,
            "created_at": self.sent_at.isoformat(),
            "type": self.kind.value,
            "is_read": self.read_flag,
            "attachments": [a.model_dump() for a in self.attachments],
        }

    @classmethod
    def from_row(cls, row: dict) -> "Message":
        """DB 행에서 생성"""
        return cls(
            id=str(row["id"]),
            conversation_id=row["conversation_id"],
            sender_id=row.get("sender_id") or "",
            sender_display_name=row.get("sender_name") or "User",
            body=row.get("content") or "",
            sent_at=row["created_at"],
            kind=MessageType(row.get("type") or "text"),
            read_flag=bool(row.get("is_read")),
            attachments=row.get("attachments") or [],
        )
