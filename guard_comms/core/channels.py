"""역할별 필수 채널 정의

역할 → 채널 규칙 테이블. 각 규칙은 세션 사용자를 받아 ChannelSpec 목록을 반환합니다.
채널 ID는 (채널 종류, 범위 키)에서 결정적으로 계산되므로 재실행해도 같은 ID가 나옵니다.

주의: 아래 고정 목록의 이름/순서는 채널 ID 계산에 사용되므로 변경하면 안 됩니다.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from guard_comms.core.models import (
    STAFF_ROLES,
    ChatParticipant,
    ChatType,
    ChatUser,
    Conversation,
    ConversationSubType,
    UserRole,
)

# 가드 → 조직 계층 지원 채널 (가드 1명당 레벨별 1개)
SUPPORT_LEVELS: tuple[str, ...] = (
    "Owners",
    "Management Team",
    "Dispatch",
    "Operations Team",
    "Supervision Team",
    "Training Team",
)

# 스태프 공용 회사 채널
COMPANY_CHANNELS: tuple[str, ...] = (
    "Owners",
    "Dispatch",
    "Management",
    "Operations",
    "Supervision",
    "Training",
    "Lead",
    "All Guards",
)

DEFAULT_BADGE = "0000"


def slugify(value: str) -> str:
    """채널 ID용 슬러그 (소문자, 공백 → '-')"""
    return re.sub(r"\s+", "-", value.strip()).lower()


def support_channel_id(level: str, user_id: str) -> str:
    return f"support-{slugify(level)}-{user_id}"


def company_channel_id(name: str) -> str:
    return f"comp-{slugify(name)}"


def peer_channel_id(team_id: str) -> str:
    return f"peer-{slugify(team_id)}"


def mission_channel_id(mission_id: str) -> str:
    return f"mission-{slugify(mission_id)}"


@dataclass
class ChannelSpec:
    """보장해야 할 채널 하나"""
    id: str
    kind: ChatType
    name: str
    subkind: Optional[ConversationSubType] = None
    related_entity_id: Optional[str] = None
    participants: list[ChatParticipant] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    summary: Optional[str] = None
    # 새로 생성된 경우에만 남기는 시스템 메시지
    seed_message: Optional[str] = None

    def to_conversation(self) -> Conversation:
        return Conversation(
            id=self.id,
            kind=self.kind,
            subkind=self.subkind,
            display_name=self.name,
            related_entity_id=self.related_entity_id,
            participants=list(self.participants),
            last_message_summary=self.summary,
            metadata=dict(self.metadata),
        )


ChannelRule = Callable[[ChatUser], list[ChannelSpec]]


def support_channels(user: ChatUser) -> list[ChannelSpec]:
    """가드 지원 채널 (계층 레벨별)"""
    participant = ChatParticipant(user_id=user.id, name=user.name, role=UserRole.GUARD.value)
    return [
        ChannelSpec(
            id=support_channel_id(level, user.id),
            kind=ChatType.TEAM_CHAT,
            subkind=ConversationSubType.SUPPORT_CHANNEL,
            name=level,
            participants=[participant],
            metadata={
                "level": level,
                "guard_id": user.id,
                "guard_display_name": user.name,
                "guard_badge": user.badge_number or DEFAULT_BADGE,
            },
            summary=f"Connected to {level}.",
            seed_message=f"Support channel created. You are now connected to {level}.",
        )
        for level in SUPPORT_LEVELS
    ]


def company_channels(user: ChatUser) -> list[ChannelSpec]:
    """스태프 공용 회사 채널 (브로드캐스트, 참여자 없음)"""
    return [
        ChannelSpec(
            id=company_channel_id(name),
            kind=ChatType.TEAM_CHAT,
            subkind=ConversationSubType.COMPANY_CHANNEL,
            name=name,
            summary=f"Welcome to {name} channel.",
        )
        for name in COMPANY_CHANNELS
    ]


def peer_channels(user: ChatUser) -> list[ChannelSpec]:
    """팀 동료 채널 (팀 소속일 때만)"""
    if not user.team_id:
        return []
    team_name = user.team_name or user.team_id
    return [
        ChannelSpec(
            id=peer_channel_id(user.team_id),
            kind=ChatType.TEAM_CHAT,
            subkind=ConversationSubType.PEER_CHANNEL,
            name=f"Guards – {team_name}",
            related_entity_id=user.team_id,
            metadata={"team_id": user.team_id, "team_name": team_name},
        )
    ]


ROLE_CHANNEL_RULES: dict[str, tuple[ChannelRule, ...]] = {
    UserRole.GUARD.value: (support_channels,),
    **{role: (company_channels,) for role in STAFF_ROLES},
}

# 역할과 무관하게 적용되는 규칙
COMMON_CHANNEL_RULES: tuple[ChannelRule, ...] = (peer_channels,)


def required_channels(user: ChatUser) -> list[ChannelSpec]:
    """사용자 역할에 필요한 채널 전체 목록"""
    rules = ROLE_CHANNEL_RULES.get(user.role, ()) + COMMON_CHANNEL_RULES
    specs: list[ChannelSpec] = []
    for rule in rules:
        specs.extend(rule(user))
    return specs


def mission_channel(
    mission_id: str,
    title: str,
    participants: Optional[list[ChatParticipant]] = None,
) -> ChannelSpec:
    """미션 채널 (미션 생성/배정 시 미션 서브시스템이 보장)"""
    return ChannelSpec(
        id=mission_channel_id(mission_id),
        kind=ChatType.MISSION_CHAT,
        name=title,
        related_entity_id=mission_id,
        participants=list(participants or []),
        metadata={"mission_id": mission_id},
    )
