"""Fragrance catalog API routes (browse, search, filters, similar, admin CRUD)."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fragrance_battle.api.schemas import (
    APIResponse,
    BrandCount,
    FilterOptionsData,
    FragranceCreateRequest,
    FragranceDetailData,
    FragranceListData,
    FragranceResponse,
    FragranceSearchRequest,
    FragranceStats,
    FragranceUpdateRequest,
    MessageData,
    SimilarFragranceResponse,
    SortField,
    SortOrder,
)
from fragrance_battle.core.dependencies import (
    get_fragrance_service,
    get_similar_fragrance_service,
    require_admin,
)
from fragrance_battle.core.rate_limit import general_limiter, search_limiter
from fragrance_battle.domain.entities import User
from fragrance_battle.services.fragrance_service import FragranceService
from fragrance_battle.services.recommendation import SimilarFragranceService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/fragrances", tags=["fragrances"])


@router.get("/", response_model=APIResponse[FragranceListData], dependencies=[Depends(general_limiter)])
async def list_fragrances(
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    sort_by: SortField = "popularity",
    sort_order: SortOrder = "desc",
) -> APIResponse[FragranceListData]:
    result = await fragrance_service.list_fragrances(page, limit, sort_by, sort_order)
    return APIResponse(data=FragranceListData.from_page(result))


@router.post("/search", response_model=APIResponse[FragranceListData], dependencies=[Depends(search_limiter)])
async def search_fragrances(
    body: FragranceSearchRequest,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
) -> APIResponse[FragranceListData]:
    """Free-text and faceted search over the catalog."""
    result = await fragrance_service.search(
        body.to_filters(), body.page, body.limit, body.sort_by, body.sort_order
    )
    logger.debug("Search %r matched %d fragrances", body.query, result.total_count)
    return APIResponse(data=FragranceListData.from_page(result))


@router.get("/filters", response_model=APIResponse[FilterOptionsData], dependencies=[Depends(general_limiter)])
async def get_filter_options(
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
) -> APIResponse[FilterOptionsData]:
    return APIResponse(data=FilterOptionsData(**await fragrance_service.get_filter_options()))


@router.get("/brands/search", response_model=APIResponse[list[BrandCount]], dependencies=[Depends(general_limiter)])
async def search_brands(
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    q: Annotated[str, Query(min_length=1, max_length=100)],
    limit: Annotated[int, Query(ge=1, le=50)] = 10,
) -> APIResponse[list[BrandCount]]:
    brands = await fragrance_service.search_brands(q, limit)
    return APIResponse(data=[BrandCount(**b) for b in brands])


@router.get("/{fragrance_id}", response_model=APIResponse[FragranceDetailData], dependencies=[Depends(general_limiter)])
async def get_fragrance(
    fragrance_id: UUID,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
) -> APIResponse[FragranceDetailData]:
    fragrance, stats = await fragrance_service.get_fragrance_details(fragrance_id)
    return APIResponse(
        data=FragranceDetailData(
            fragrance=FragranceResponse.model_validate(fragrance),
            stats=FragranceStats(**stats),
        )
    )


@router.get(
    "/{fragrance_id}/similar",
    response_model=APIResponse[list[SimilarFragranceResponse]],
    dependencies=[Depends(general_limiter)],
)
async def get_similar_fragrances(
    fragrance_id: UUID,
    similar_service: Annotated[SimilarFragranceService, Depends(get_similar_fragrance_service)],
    limit: Annotated[int, Query(ge=1, le=20)] = 10,
) -> APIResponse[list[SimilarFragranceResponse]]:
    """Fragrances with the most similar note pyramids."""
    ranked = await similar_service.similar(fragrance_id, limit)
    return APIResponse(
        data=[
            SimilarFragranceResponse(
                **FragranceResponse.model_validate(fragrance).model_dump(), similarity_score=score
            )
            for fragrance, score in ranked
        ]
    )


# ---------------------------------------------------------------------------
# Admin catalog maintenance
# ---------------------------------------------------------------------------
@router.post("/", response_model=APIResponse[FragranceResponse], status_code=status.HTTP_201_CREATED)
async def create_fragrance(
    body: FragranceCreateRequest,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    admin: Annotated[User, Depends(require_admin)],
) -> APIResponse[FragranceResponse]:
    fragrance = await fragrance_service.create_fragrance(body.model_dump())
    logger.info("Admin %s created fragrance %s", admin.id, fragrance.id)
    return APIResponse(data=FragranceResponse.model_validate(fragrance))


@router.put("/{fragrance_id}", response_model=APIResponse[FragranceResponse])
async def update_fragrance(
    fragrance_id: UUID,
    body: FragranceUpdateRequest,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    admin: Annotated[User, Depends(require_admin)],
) -> APIResponse[FragranceResponse]:
    fragrance = await fragrance_service.update_fragrance(fragrance_id, body.model_dump(exclude_unset=True))
    return APIResponse(data=FragranceResponse.model_validate(fragrance))


@router.delete("/{fragrance_id}", response_model=APIResponse[MessageData])
async def delete_fragrance(
    fragrance_id: UUID,
    fragrance_service: Annotated[FragranceService, Depends(get_fragrance_service)],
    admin: Annotated[User, Depends(require_admin)],
) -> APIResponse[MessageData]:
    await fragrance_service.delete_fragrance(fragrance_id)
    logger.info("Admin %s deleted fragrance %s", admin.id, fragrance_id)
    return APIResponse(data=MessageData(message="Fragrance deleted successfully"))
