"""환경변수 설정 - Pydantic Settings"""
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=(".env.local",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 8000
    public_url: str = "http://localhost:8000"

    # Supabase
    supabase_url: str = ""
    # Supabase API Key
    # - Some projects disable legacy keys (anon/service_role); use the new Secret key in that case.
    supabase_key: str = Field(
        default="",
        validation_alias="SUPABASE_SECRET_KEY",
    )
    # 백오피스 테이블이 위치한 Postgres 스키마
    supabase_schema: str = "site"

    # 채팅 저장소 백엔드
    # - supabase: 원격 DB (장애 시 세션 메모리로 강등)
    # - memory: 메모리 전용 (로컬/테스트)
    chat_store_backend: Literal["supabase", "memory"] = "supabase"

    # Logging
    log_level: str = "info"


@lru_cache
def get_settings() -> Settings:
    """캐시된 설정 인스턴스 반환"""
    return Settings()
