"""sm_earnings REST API — provider balance and earnings ledger."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.database import get_db_session
from src.sm_common.principal import ProviderPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_earnings.application.service import EarningsService
from src.sm_gateway.auth.dependencies import require_provider

router = APIRouter(prefix="/earnings", tags=["earnings"])

_service = EarningsService()


@router.get("/balance")
async def get_balance(
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, provider.id)
    return respond(request, data.model_dump())


@router.get("/ledger")
async def list_ledger(
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    entry_type: str | None = Query(None, description="Filter by EarningEntryType"),
) -> ApiResponse:
    data = await _service.list_ledger(db, provider.id, cursor, limit, entry_type)
    return respond(request, data.model_dump())
