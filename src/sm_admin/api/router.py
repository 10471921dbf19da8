# src/sm_admin/api/router.py
"""Admin REST API — dispute resolution."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_admin.application.service import DisputeResolverService
from src.sm_common.database import get_db_session
from src.sm_common.enums import MoneyRequestStatus
from src.sm_common.principal import AdminPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_gateway.auth.dependencies import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])
_service = DisputeResolverService()


class ResolveDisputeRequest(BaseModel):
    resolution: str = Field(..., min_length=1, max_length=2000)
    target_status: MoneyRequestStatus
    new_amount: int | None = Field(None, gt=0, description="Replacement base amount in cents")


@router.post("/money-requests/{money_request_id}/resolve")
async def resolve_dispute(
    money_request_id: str,
    body: ResolveDisputeRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.resolve_dispute(
        db, admin, money_request_id, body.resolution, body.target_status, body.new_amount
    )
    return respond(request, data.model_dump(), "Dispute resolved")
