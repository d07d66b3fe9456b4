"""Public share link resolution: ``GET /p/{token}``.

Every failure renders the same 404 body, so a viewer cannot tell an
unknown link from a revoked or expired one.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pawpass.core.server.services import Services
from pawpass.domains.health.routes.deps import get_services

router = APIRouter(tags=["public"])

LINK_NOT_AVAILABLE = {"status": "not_available", "detail": "This link is not available."}

_NO_STORE = {"Cache-Control": "no-store", "Referrer-Policy": "no-referrer"}


@router.get("/p/{token}")
async def resolve_share(
    token: str,
    services: Services = Depends(get_services),
) -> JSONResponse:
    view = await services.token_service.resolve(token)
    if view is None:
        return JSONResponse(status_code=404, content=LINK_NOT_AVAILABLE, headers=_NO_STORE)
    return JSONResponse(status_code=200, content=view.to_dict(), headers=_NO_STORE)
