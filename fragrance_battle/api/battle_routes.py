"""Battle API routes (create, vote, complete, results)."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fragrance_battle.api.schemas import (
    APIResponse,
    BattleCreateRequest,
    BattleListData,
    BattleResponse,
    BattleResultsData,
    BattleStatsData,
    BattleUpdateRequest,
    MessageData,
    Pagination,
    VoteRequest,
    VoteResponse,
)
from fragrance_battle.core.dependencies import get_battle_service, get_current_user
from fragrance_battle.core.rate_limit import general_limiter
from fragrance_battle.domain.entities import User
from fragrance_battle.services.battle_service import BattleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/battles", tags=["battles"], dependencies=[Depends(general_limiter)])

CurrentUser = Annotated[User, Depends(get_current_user)]
Service = Annotated[BattleService, Depends(get_battle_service)]


@router.get("/", response_model=APIResponse[BattleListData])
async def list_battles(
    current_user: CurrentUser,
    battle_service: Service,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> APIResponse[BattleListData]:
    """Battles created by the caller, newest first."""
    result = await battle_service.list_battles(current_user, page, limit)
    return APIResponse(
        data=BattleListData(
            battles=[BattleResponse.model_validate(b) for b in result.items],
            pagination=Pagination.from_page(result),
        )
    )


@router.post("/", response_model=APIResponse[BattleResponse], status_code=status.HTTP_201_CREATED)
async def create_battle(
    body: BattleCreateRequest, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResponse]:
    battle = await battle_service.create_battle(
        current_user, body.title, body.fragrance_ids, body.description
    )
    return APIResponse(data=BattleResponse.model_validate(battle))


@router.get("/{battle_id}", response_model=APIResponse[BattleResponse])
async def get_battle(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResponse]:
    battle = await battle_service.get_battle(battle_id)
    return APIResponse(data=BattleResponse.model_validate(battle))


@router.get("/{battle_id}/results", response_model=APIResponse[BattleResultsData])
async def get_battle_results(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResultsData]:
    battle, votes = await battle_service.get_results(battle_id)
    return APIResponse(
        data=BattleResultsData(
            battle=BattleResponse.model_validate(battle),
            votes=[VoteResponse.model_validate(v) for v in votes],
        )
    )


@router.get("/{battle_id}/stats", response_model=APIResponse[BattleStatsData])
async def get_battle_stats(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleStatsData]:
    return APIResponse(data=BattleStatsData(**await battle_service.get_stats(battle_id)))


@router.put("/{battle_id}", response_model=APIResponse[BattleResponse])
async def update_battle(
    battle_id: UUID,
    body: BattleUpdateRequest,
    current_user: CurrentUser,
    battle_service: Service,
) -> APIResponse[BattleResponse]:
    battle = await battle_service.update_battle(current_user, battle_id, body.title, body.description)
    return APIResponse(data=BattleResponse.model_validate(battle))


@router.delete("/{battle_id}", response_model=APIResponse[MessageData])
async def delete_battle(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[MessageData]:
    await battle_service.delete_battle(current_user, battle_id)
    return APIResponse(data=MessageData(message="Battle deleted successfully"))


# ---------------------------------------------------------------------------
# Voting lifecycle
# ---------------------------------------------------------------------------
@router.post("/{battle_id}/vote", response_model=APIResponse[BattleResponse])
async def vote(
    battle_id: UUID, body: VoteRequest, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResponse]:
    """Cast the caller's single vote in an active battle."""
    battle = await battle_service.vote(current_user, battle_id, body.fragrance_id)
    return APIResponse(data=BattleResponse.model_validate(battle))


@router.patch("/{battle_id}/complete", response_model=APIResponse[BattleResponse])
async def complete_battle(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResponse]:
    battle = await battle_service.complete_battle(current_user, battle_id)
    return APIResponse(data=BattleResponse.model_validate(battle))


@router.patch("/{battle_id}/cancel", response_model=APIResponse[BattleResponse])
async def cancel_battle(
    battle_id: UUID, current_user: CurrentUser, battle_service: Service
) -> APIResponse[BattleResponse]:
    battle = await battle_service.cancel_battle(current_user, battle_id)
    logger.info("Battle %s cancelled by %s", battle_id, current_user.id)
    return APIResponse(data=BattleResponse.model_validate(battle))
