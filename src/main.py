"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.sm_admin.api.router import router as admin_router
from src.sm_bundle.api.router import router as bundle_router
from src.sm_common.database import engine
from src.sm_common.errors import AppError
from src.sm_common.redis_client import close_redis, get_redis
from src.sm_common.response import error_response
from src.sm_earnings.api.router import router as earnings_router
from src.sm_gateway.middleware.request_log import RequestLogMiddleware
from src.sm_money.api.router import router as money_router
from src.sm_payment.api.router import router as payment_router
from src.sm_pricing.api.router import router as settings_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(bundle_router, prefix="/api/v1")
app.include_router(money_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(earnings_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(settings_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
