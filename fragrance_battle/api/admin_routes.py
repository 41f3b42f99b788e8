"""Admin-only catalog reports."""

from typing import Annotated

from fastapi import APIRouter, Depends

from fragrance_battle.api.schemas import APIResponse
from fragrance_battle.core.dependencies import get_admin_service, require_admin
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.services.admin_service import AdminService

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(general_limiter), Depends(require_admin)],
)

Service = Annotated[AdminService, Depends(get_admin_service)]


@router.get("/population-stats", response_model=APIResponse[dict])
async def population_stats(admin_service: Service) -> APIResponse[dict]:
    """Catalog size and field coverage."""
    return APIResponse(data=await admin_service.population_stats())


@router.get("/market-coverage", response_model=APIResponse[dict])
async def market_coverage(admin_service: Service) -> APIResponse[dict]:
    return APIResponse(data=await admin_service.market_coverage())


@router.get("/data-quality", response_model=APIResponse[dict])
async def data_quality(admin_service: Service) -> APIResponse[dict]:
    """Quality score summary and names that repeat their brand."""
    return APIResponse(data=await admin_service.data_quality())
