"""채팅 API

백오피스 대시보드(Communications 화면)에서 호출하는 API
- 세션 시작 시 필수 채널 보장
- 탭별 대화 목록
- 메시지 조회/전송
- 참여자 조회, 보관
- 미션 채널 보장 (미션 서브시스템용)
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from guard_comms.core.models import (
    Attachment,
    ChatParticipant,
    ChatType,
    ChatUser,
    Conversation,
    Message,
)
from guard_comms.core.service import ChatService, get_chat_service
from guard_comms.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


# ===== Request/Response Models =====

class SessionResponse(BaseModel):
    """세션 시작 응답"""
    user_id: str
    role: str
    backend: str


class SendMessageRequest(BaseModel):
    """메시지 전송 요청"""
    sender: ChatUser
    body: str = Field(default="", description="메시지 본문")
    attachments: list[Attachment] = Field(default_factory=list)


class MissionChannelRequest(BaseModel):
    """미션 채널 보장 요청"""
    title: str = Field(..., description="채널 이름 (예: Mission #204 – Safeway Overnight Patrol)")
    participants: list[ChatParticipant] = Field(default_factory=list)


# ===== API Endpoints =====

async def get_session_user(
    user: Optional[ChatUser] = Body(None),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    service: ChatService = Depends(get_chat_service),
) -> ChatUser:
    """세션 사용자 확인

    우선순위:
    1. 요청 본문의 사용자 정보
    2. X-User-ID 헤더 → profiles 조회
    """
    if user is not None:
        return user

    if x_user_id:
        loaded = await service.load_user(x_user_id)
        if loaded:
            return loaded
        raise HTTPException(status_code=404, detail="User profile not found")

    raise HTTPException(
        status_code=401,
        detail="User not found. Provide a user body or X-User-ID header.",
    )


@router.post("/session", response_model=SessionResponse)
async def start_session(
    user: ChatUser = Depends(get_session_user),
    service: ChatService = Depends(get_chat_service),
) -> SessionResponse:
    """세션 시작: 역할별 필수 채널 보장 (실패해도 로그인은 진행)"""
    await service.ensure_channels_for_user(user)
    return SessionResponse(user_id=user.id, role=user.role, backend=service.backend)


@router.get("/conversations", response_model=list[Conversation])
async def list_conversations(
    user_id: str = Query(..., description="조회자 ID"),
    kind: ChatType = Query(ChatType.DIRECT_MESSAGE, description="탭"),
    service: ChatService = Depends(get_chat_service),
) -> list[Conversation]:
    """탭별 대화 목록"""
    return await service.list_conversations(user_id, kind)


@router.get("/conversations/{conversation_id}/messages", response_model=list[Message])
async def get_messages(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
) -> list[Message]:
    """메시지 목록 (오래된 순)"""
    return await service.get_messages(conversation_id)


@router.post("/conversations/{conversation_id}/messages", response_model=Message)
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> Message:
    """메시지 전송 (빈 메시지는 거부)"""
    if not request.body.strip() and not request.attachments:
        raise HTTPException(status_code=400, detail="Message body or attachments required")

    return await service.send_message(
        conversation_id,
        request.sender,
        request.body,
        request.attachments,
    )


@router.get(
    "/conversations/{conversation_id}/participants",
    response_model=list[ChatParticipant],
)
async def get_participants(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
) -> list[ChatParticipant]:
    """참여자 목록"""
    return await service.get_participants(conversation_id)


@router.post("/conversations/{conversation_id}/archive", response_model=Conversation)
async def archive_conversation(
    conversation_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Conversation:
    """대화 보관"""
    conversation = await service.archive_conversation(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.post("/missions/{mission_id}/channel", response_model=Conversation)
async def ensure_mission_channel(
    mission_id: str,
    request: MissionChannelRequest,
    service: ChatService = Depends(get_chat_service),
) -> Conversation:
    """미션 채널 보장"""
    logger.info("Ensuring mission channel", mission_id=mission_id)
    return await service.ensure_mission_channel(mission_id, request.title, request.participants)
