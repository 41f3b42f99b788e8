"""Brand index API routes."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from fragrance_battle.api.schemas import (
    APIResponse,
    BrandDetailData,
    BrandIndexData,
    BrandSummary,
    FragranceResponse,
    Pagination,
)
from fragrance_battle.core.dependencies import get_fragrance_service
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.services.fragrance_service import FragranceService

router = APIRouter(prefix="/brands", tags=["brands"], dependencies=[Depends(general_limiter)])


@router.get("/", response_model=APIResponse[BrandIndexData])
async def list_brands(
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    letter: Annotated[Optional[str], Query(min_length=1, max_length=1)] = None,
) -> APIResponse[BrandIndexData]:
    """All brands grouped A-Z, optionally only those starting with ``letter``."""
    return APIResponse(data=BrandIndexData(**await fragrance_service.list_brands(letter)))


@router.get("/{brand_name}", response_model=APIResponse[BrandDetailData])
async def get_brand(
    brand_name: str,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> APIResponse[BrandDetailData]:
    summary, fragrances = await fragrance_service.get_brand(brand_name, page, limit)
    return APIResponse(
        data=BrandDetailData(
            brand=BrandSummary(
                **{**summary, "top_rated": [FragranceResponse.model_validate(f) for f in summary["top_rated"]]}
            ),
            fragrances=[FragranceResponse.model_validate(f) for f in fragrances.items],
            pagination=Pagination.from_page(fragrances),
        )
    )
