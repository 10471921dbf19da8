"""sm_bundle REST API — bundle lifecycle endpoints, all require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.sm_bundle.application.schemas import (
    AcceptOfferRequest,
    CancelBundleRequest,
    CreateBundleRequest,
    JoinBundleRequest,
    OfferRequest,
    StatusUpdateRequest,
)
from src.sm_bundle.application.service import BundleLifecycleService
from src.sm_common.database import get_db_session
from src.sm_common.principal import CustomerPrincipal, Principal, ProviderPrincipal
from src.sm_common.response import ApiResponse, respond
from src.sm_gateway.auth.dependencies import (
    get_current_principal,
    require_customer,
    require_provider,
)

router = APIRouter(prefix="/bundles", tags=["bundles"])

_service = BundleLifecycleService()


@router.post("")
async def create_bundle(
    body: CreateBundleRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create(db, customer, body)
    return respond(request, data.model_dump(), "Bundle created")


@router.get("/open")
async def list_open_bundles(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    zip_code: str = Query(..., min_length=3, max_length=10),
    category: str | None = Query(None),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_open(db, zip_code, category, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/mine")
async def list_my_bundles(
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    data = await _service.list_mine(db, principal, status, cursor, limit)
    return respond(request, data.model_dump())


@router.get("/share/{share_token}")
async def get_shared_bundle(
    share_token: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_by_share_token(db, share_token)
    return respond(request, data.model_dump())


@router.post("/share/{share_token}/join")
async def join_shared_bundle(
    share_token: str,
    body: JoinBundleRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    address = body.address.to_domain() if body.address else None
    data = await _service.join_via_share_token(db, share_token, customer, address)
    return respond(request, data.model_dump(), "Successfully joined the bundle")


@router.get("/{bundle_id}")
async def get_bundle(
    bundle_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get(db, bundle_id, principal)
    return respond(request, data.model_dump())


@router.post("/{bundle_id}/join")
async def join_bundle(
    bundle_id: str,
    body: JoinBundleRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    address = body.address.to_domain() if body.address else None
    data = await _service.join(db, bundle_id, customer, address)
    return respond(request, data.model_dump(), "Successfully joined the bundle")


@router.post("/{bundle_id}/offers")
async def submit_offer(
    bundle_id: str,
    body: OfferRequest,
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.submit_offer(db, bundle_id, provider, body.message)
    return respond(request, data.model_dump(), "Offer submitted")


@router.post("/{bundle_id}/offers/accept")
async def accept_offer(
    bundle_id: str,
    body: AcceptOfferRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.accept_offer(db, bundle_id, customer, body.provider_id)
    return respond(request, data.model_dump(), "Offer accepted")


@router.post("/{bundle_id}/accept")
async def provider_accept(
    bundle_id: str,
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.provider_accept(db, bundle_id, provider)
    return respond(request, data.model_dump(), "Bundle accepted")


@router.post("/{bundle_id}/decline")
async def provider_decline(
    bundle_id: str,
    body: OfferRequest,
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.decline(db, bundle_id, provider, body.message)
    return respond(request, data.model_dump(), "Bundle declined")


@router.post("/{bundle_id}/status")
async def update_status(
    bundle_id: str,
    body: StatusUpdateRequest,
    provider: Annotated[ProviderPrincipal, Depends(require_provider)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_status(db, bundle_id, provider, body)
    return respond(request, data.model_dump(), f"Bundle {body.status}")


@router.post("/{bundle_id}/cancel")
async def cancel_bundle(
    bundle_id: str,
    body: CancelBundleRequest,
    customer: Annotated[CustomerPrincipal, Depends(require_customer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.cancel(db, bundle_id, customer, body.reason)
    return respond(request, data.model_dump(), "Bundle cancelled")
