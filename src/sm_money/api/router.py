"""sm_money REST API — money request endpoints, all require JWT authentication."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_common.database import get_db_session
from src.sm_common.principal import CustomerPrincipal, Principal, ProviderPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_gateway.auth.dependencies import (
    get_current_principal,
    require_customer,
    require_provider,
)
from src.sm_money.application.schemas import (
    AcceptMoneyRequestRequest,
    CreateMoneyRequestRequest,
    DisputeRequest,
    SetAmountRequest,
)
from src.sm_money.application.service import MoneyRequestService

router = APIRouter(prefix="/money-requests", tags=["money-requests"])

_service = MoneyRequestService()


@router.post("")
async def create_money_request(
    body: CreateMoneyRequestRequest,
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create(db, provider, body)
    return respond(request, data.model_dump(), f"{len(data.items)} money request(s) created")


@router.get("")
async def list_money_requests(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None),
    origin: Literal["bundle", "service_request"] | None = Query(None),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_for(db, principal, status, origin, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/stats")
async def money_request_stats(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.stats(db, principal)
    return respond(request, data.model_dump())


@router.get("/{money_request_id}")
async def get_money_request(
    money_request_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get(db, money_request_id, principal)
    return respond(request, data.model_dump())


@router.post("/{money_request_id}/accept")
async def accept_money_request(
    money_request_id: str,
    body: AcceptMoneyRequestRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.accept(db, money_request_id, customer, body.tip_amount)
    return respond(request, data.model_dump(), "Money request accepted")


@router.post("/{money_request_id}/accept-as-is")
async def accept_money_request_as_is(
    money_request_id: str,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.accept_as_is(db, money_request_id, customer)
    return respond(request, data.model_dump(), "Money request accepted")


@router.post("/{money_request_id}/set-amount-and-pay")
async def set_amount_and_pay(
    money_request_id: str,
    body: SetAmountRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_amount_and_pay(
        db, money_request_id, customer, body.amount, body.tip_amount
    )
    return respond(request, data.model_dump(), "Checkout session created")


@router.post("/{money_request_id}/pay")
async def initiate_payment(
    money_request_id: str,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.initiate_payment(db, money_request_id, customer)
    return respond(request, data.model_dump(), "Checkout session created")


@router.post("/{money_request_id}/cancel")
async def cancel_money_request(
    money_request_id: str,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel(db, money_request_id, customer)
    return respond(request, data.model_dump(), "Money request cancelled")


@router.post("/{money_request_id}/dispute")
async def dispute_money_request(
    money_request_id: str,
    body: DisputeRequest,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.dispute(db, money_request_id, principal, body.reason, body.description)
    return respond(request, data.model_dump(), "Dispute raised")
