"""Collection API routes; every collection is private to its owner."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fragrance_battle.api.schemas import (
    APIResponse,
    CollectionCreateRequest,
    CollectionItemCreateRequest,
    CollectionItemResponse,
    CollectionItemUpdateRequest,
    CollectionListData,
    CollectionResponse,
    CollectionStatsData,
    CollectionUpdateRequest,
    MessageData,
    Pagination,
)
from fragrance_battle.core.dependencies import get_collection_service, get_current_user
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.domain.entities import User
from fragrance_battle.services.collection_service import CollectionService

router = APIRouter(prefix="/collections", tags=["collections"], dependencies=[Depends(general_limiter)])

CurrentUser = Annotated[User, Depends(get_current_user)]
Service = Annotated[CollectionService, Depends(get_collection_service)]


@router.get("/", response_model=APIResponse[CollectionListData])
async def list_collections(
    current_user: CurrentUser,
    collection_service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> APIResponse[CollectionListData]:
    result = await collection_service.list_collections(current_user, page, limit)
    return APIResponse(
        data=CollectionListData(
            collections=[CollectionResponse.model_validate(c) for c in result.items],
            pagination=Pagination.from_page(result),
        )
    )


@router.post("/", response_model=APIResponse[CollectionResponse], status_code=status.HTTP_201_CREATED)
async def create_collection(
    body: CollectionCreateRequest, current_user: CurrentUser, collection_service: Service
) -> APIResponse[CollectionResponse]:
    collection = await collection_service.create_collection(current_user, body.name, body.description)
    return APIResponse(data=CollectionResponse.model_validate(collection))


@router.get("/{collection_id}", response_model=APIResponse[CollectionResponse])
async def get_collection(
    collection_id: UUID, current_user: CurrentUser, collection_service: Service
) -> APIResponse[CollectionResponse]:
    collection = await collection_service.get_collection(current_user, collection_id)
    return APIResponse(data=CollectionResponse.model_validate(collection))


@router.put("/{collection_id}", response_model=APIResponse[CollectionResponse])
async def update_collection(
    collection_id: UUID,
    body: CollectionUpdateRequest,
    current_user: CurrentUser,
    collection_service: Service,
) -> APIResponse[CollectionResponse]:
    collection = await collection_service.update_collection(
        current_user, collection_id, body.model_dump(exclude_unset=True)
    )
    return APIResponse(data=CollectionResponse.model_validate(collection))


@router.delete("/{collection_id}", response_model=APIResponse[MessageData])
async def delete_collection(
    collection_id: UUID, current_user: CurrentUser, collection_service: Service
) -> APIResponse[MessageData]:
    await collection_service.delete_collection(current_user, collection_id)
    return APIResponse(data=MessageData(message="Collection deleted successfully"))


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------
@router.post(
    "/{collection_id}/items",
    response_model=APIResponse[CollectionItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    collection_id: UUID,
    body: CollectionItemCreateRequest,
    current_user: CurrentUser,
    collection_service: Service,
) -> APIResponse[CollectionItemResponse]:
    """Add a fragrance to the collection; each fragrance can be added once."""
    item = await collection_service.add_item(
        current_user,
        collection_id,
        body.fragrance_id,
        personal_rating=body.personal_rating,
        personal_notes=body.personal_notes,
        bottle_size=body.bottle_size,
    )
    return APIResponse(data=CollectionItemResponse.model_validate(item))


@router.put("/{collection_id}/items/{item_id}", response_model=APIResponse[CollectionItemResponse])
async def update_item(
    collection_id: UUID,
    item_id: UUID,
    body: CollectionItemUpdateRequest,
    current_user: CurrentUser,
    collection_service: Service,
) -> APIResponse[CollectionItemResponse]:
    item = await collection_service.update_item(
        current_user, collection_id, item_id, body.model_dump(exclude_unset=True)
    )
    return APIResponse(data=CollectionItemResponse.model_validate(item))


@router.delete("/{collection_id}/items/{item_id}", response_model=APIResponse[MessageData])
async def remove_item(
    collection_id: UUID, item_id: UUID, current_user: CurrentUser, collection_service: Service
) -> APIResponse[MessageData]:
    await collection_service.remove_item(current_user, collection_id, item_id)
    return APIResponse(data=MessageData(message="Item removed from collection"))


@router.get("/{collection_id}/stats", response_model=APIResponse[CollectionStatsData])
async def get_collection_stats(
    collection_id: UUID, current_user: CurrentUser, collection_service: Service
) -> APIResponse[CollectionStatsData]:
    stats = await collection_service.get_stats(current_user, collection_id)
    return APIResponse(data=CollectionStatsData(**stats))
