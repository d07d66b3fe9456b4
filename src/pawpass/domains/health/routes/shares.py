"""Owner-facing share link management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pawpass.core.server.services import Services
from pawpass.core.storage.models import ShareToken
from pawpass.domains.health.routes.deps import get_services
from pawpass.domains.health.routes.models import (
    CreatedShareOut,
    CreateShareRequest,
    ShareListResponse,
    ShareOut,
    error_responses,
)

router = APIRouter(prefix="/shares", tags=["shares"])


def _share_out(share: ShareToken, services: Services) -> ShareOut:
    data = share.without_token().to_dict(services.clock())
    return ShareOut(**data)


@router.post(
    "",
    status_code=201,
    response_model=CreatedShareOut,
    responses=error_responses(400, 404, 409, 503),
)
async def create_share(
    body: CreateShareRequest,
    services: Services = Depends(get_services),
) -> CreatedShareOut:
    """Mint a link. The response is the only place the raw token ever appears."""
    share = await services.token_service.generate(body.entity_id, body.permissions)
    token = share.token or ""
    return CreatedShareOut(
        **_share_out(share, services).model_dump(),
        token=token,
        url=services.token_service.share_url(token),
    )


@router.get("", response_model=ShareListResponse)
async def list_shares(
    entity_id: str = Query(..., min_length=1),
    services: Services = Depends(get_services),
) -> ShareListResponse:
    shares = services.token_service.list_active(entity_id)
    return ShareListResponse(
        entity_id=entity_id,
        count=len(shares),
        shares=[_share_out(s, services) for s in shares],
    )


@router.delete("/{share_id}", response_model=ShareOut, responses=error_responses(404))
async def revoke_share(
    share_id: str,
    entity_id: str | None = Query(None),
    services: Services = Depends(get_services),
) -> ShareOut:
    """Revoke a link. Revoking an already revoked link returns it unchanged."""
    share = services.token_service.revoke(share_id, entity_id=entity_id)
    return _share_out(share, services)
