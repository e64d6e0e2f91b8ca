"""구조화된 로깅 설정

모든 로그 이벤트에 서비스 이름과 저장소 백엔드를 붙여
백오피스의 다른 서비스 로그와 같은 수집기에서 구분할 수 있게 합니다.
"""
import logging
import sys

import structlog

from guard_comms.config import get_settings

SERVICE_NAME = "guard-comms"

# 디버그가 아니면 요청 단위 로그가 많은 라이브러리는 경고 이상만 출력
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def service_context_processor(backend: str):
    """서비스/백엔드 키를 이벤트에 추가하는 structlog 프로세서 생성"""

    def add_service_context(logger, method_name, event_dict):
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("store_backend", backend)
        return event_dict

    return add_service_context


def setup_logging() -> None:
    """structlog 설정"""
    settings = get_settings()
    debug = settings.log_level == "debug"
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            service_context_processor(settings.chat_store_backend),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer() if debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # supabase 클라이언트(httpx) 등 표준 logging 사용 라이브러리
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    if not debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """모듈 이름이 바인딩된 로거 반환"""
    return structlog.get_logger(name, module=name)
