"""Supabase 데이터베이스 클라이언트"""
from functools import lru_cache
from typing import Any, Optional

from supabase import Client, ClientOptions, create_client

from guard_comms.config import get_settings
from guard_comms.utils.logger import get_logger

logger = get_logger(__name__)


@lru_cache
def get_supabase_client() -> Client:
    """캐시된 Supabase 클라이언트 반환"""
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError("Supabase is not configured (SUPABASE_URL/SUPABASE_SECRET_KEY)")
    return create_client(
        settings.supabase_url,
        settings.supabase_key,
        options=ClientOptions(schema=settings.supabase_schema),
    )


class Database:
    """데이터베이스 작업 클래스

    백오피스 공용 Supabase 프로젝트의 채팅 관련 테이블 접근.
    행(dict)을 그대로 반환하며 모델 변환은 호출자(store)가 담당합니다.
    """

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_client()

    # ===== Conversations =====

    async def get_conversation(self, conversation_id: str) -> Optional[dict]:
        """대화 ID로 조회"""
        result = (
            self.client.table("conversations")
            .select("*")
            .eq("id", conversation_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def list_conversations(self, conversation_type: str) -> list[dict]:
        """탭(type)별 대화 목록 조회 (생성 순)"""
        result = (
            self.client.table("conversations")
            .select("*")
            .eq("type", conversation_type)
            .order("created_at")
            .order("id")
            .execute()
        )
        return result.data or []

    async def insert_conversation_if_absent(self, data: dict) -> bool:
        """대화 생성 (동일 ID가 이미 있으면 무시)

        Returns:
            이번 호출로 실제 생성되었는지 여부
        """
        result = (
            self.client.table("conversations")
            .upsert(data, on_conflict="id", ignore_duplicates=True)
            .execute()
        )
        return bool(result.data)

    async def update_conversation(self, conversation_id: str, data: dict) -> None:
        """대화 업데이트"""
        self.client.table("conversations").update(data).eq(
            "id", conversation_id
        ).execute()

    # ===== Messages =====

    async def list_messages(self, conversation_id: str) -> list[dict]:
        """대화의 메시지 조회 (오래된 순)"""
        result = (
            self.client.table("messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=False)
            .execute()
        )
        return result.data or []

    async def insert_message(self, data: dict) -> dict:
        """메시지 저장"""
        result = self.client.table("messages").insert(data).execute()
        return result.data[0] if result.data else {}

    # ===== Profiles / Teams =====

    async def get_profile(self, user_id: str) -> Optional[dict]:
        """사용자 프로필 조회"""
        result = (
            self.client.table("profiles")
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def get_team(self, team_id: str) -> Optional[dict[str, Any]]:
        """팀 조회"""
        result = (
            self.client.table("teams")
            .select("id, name")
            .eq("id", team_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None
