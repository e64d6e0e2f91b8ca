"""FastAPI 앱 진입점"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guard_comms.config import get_settings
from guard_comms.utils.logger import setup_logging, get_logger

# 로깅 설정
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 라이프사이클 관리"""
    settings = get_settings()
    logger.info(
        "Starting Guard Comms",
        port=settings.port,
        store_backend=settings.chat_store_backend,
    )
    yield
    logger.info("Shutting down Guard Comms")


app = FastAPI(
    title="Guard Comms",
    description="경비 인력 백오피스 메시징 (채널 프로비저닝, 대화 목록, 메시지)",
    version="0.1.0",
    lifespan=lifespan,
)


# API prefix
API_PREFIX = "/api"


# ===== Health Check =====

@app.get(f"{API_PREFIX}/")
async def health_check():
    """헬스 체크"""
    return {
        "status": "ok",
        "service": "guard-comms",
        "version": "0.1.0",
    }


@app.get(f"{API_PREFIX}/health")
async def health():
    """상세 헬스 체크"""
    settings = get_settings()
    return {
        "status": "healthy",
        "components": {
            "api": "ok",
            "store_backend": settings.chat_store_backend,
        },
    }


# ===== 라우터 등록 =====

from guard_comms.chat.routes import router as chat_router
app.include_router(chat_router, prefix=f"{API_PREFIX}/chat", tags=["Chat"])


# ===== 에러 핸들러 =====

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """전역 예외 핸들러"""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
