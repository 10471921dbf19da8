"""sm_pricing admin REST API — commission / bundle settings and commission earnings."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.database import get_db_session
from src.sm_common.principal import AdminPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_gateway.auth.dependencies import require_admin
from src.sm_pricing.application.schemas import (
    BundleSettingsRequest,
    CommissionSettingsRequest,
)
from src.sm_pricing.application.service import PricingConfigService

router = APIRouter(prefix="/admin/settings", tags=["admin"])

_service = PricingConfigService()


@router.get("")
async def get_settings(
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_settings(db)
    return respond(request, data.model_dump())


@router.get("/commission/earnings")
async def get_commission_earnings(
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    start_date: Annotated[datetime | None, Query()] = None,
    end_date: Annotated[datetime | None, Query()] = None,
) -> ApiResponse:
    data = await _service.commission_earnings(db, start_date, end_date)
    return respond(request, data.model_dump(mode="json"))


@router.put("/commission")
async def update_commission(
    body: CommissionSettingsRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_commission(db, body)
    return respond(request, data.model_dump())


@router.put("/bundle")
async def update_bundle_settings(
    body: BundleSettingsRequest,
    admin: Annotated[AdminPrincipal, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_bundle_settings(db, body)
    return respond(request, data.model_dump())
