"""Battle polls: creation, voting and completion."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from fragrance_battle.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InvalidStatusError,
    NotFoundError,
)
from fragrance_battle.domain.entities import (
    Battle,
    BattleItem,
    BattleStatus,
    Page,
    User,
    Vote,
)
from fragrance_battle.domain.repositories import IBattleRepository, IFragranceRepository

logger = logging.getLogger(__name__)

MIN_BATTLE_ITEMS = 2
MAX_BATTLE_ITEMS = 10


class BattleService:

    def __init__(self, battle_repository: IBattleRepository, fragrance_repository: IFragranceRepository):
        self.battle_repository = battle_repository
        self.fragrance_repository = fragrance_repository

    async def list_battles(self, user: User, page: int = 1, limit: int = 20) -> Page[Battle]:
        items, total = await self.battle_repository.list_by_user(user.id, Page.offset(page, limit), limit)
        return Page(items=items, page=page, limit=limit, total_count=total)

    async def create_battle(
        self, user: User, title: str, fragrance_ids: list[UUID], description: Optional[str] = None
    ) -> Battle:
        if not MIN_BATTLE_ITEMS <= len(fragrance_ids) <= MAX_BATTLE_ITEMS:
            raise BadRequestError(
                f"A battle needs between {MIN_BATTLE_ITEMS} and {MAX_BATTLE_ITEMS} fragrances"
            )
        if len(set(fragrance_ids)) != len(fragrance_ids):
            raise BadRequestError("A fragrance can only appear once in a battle")
        found = await self.fragrance_repository.get_many(fragrance_ids)
        if len(found) != len(fragrance_ids):
            raise NotFoundError("One or more fragrances")

        battle_id = uuid4()
        battle = Battle(
            id=battle_id,
            user_id=user.id,
            title=title,
            description=description,
            items=[
                BattleItem(id=uuid4(), battle_id=battle_id, fragrance_id=fid, position=index + 1)
                for index, fid in enumerate(fragrance_ids)
            ],
        )
        created = await self.battle_repository.create(battle)
        logger.info("Battle %s created by %s with %d fragrances", created.id, user.id, len(fragrance_ids))
        return created

    async def get_battle(self, battle_id: UUID) -> Battle:
        battle = await self.battle_repository.get_by_id(battle_id)
        if battle is None:
            raise NotFoundError("Battle")
        return battle

    async def _get_owned(self, user: User, battle_id: UUID) -> Battle:
        battle = await self.get_battle(battle_id)
        if battle.user_id != user.id:
            raise ForbiddenError("Only the battle owner can do that")
        return battle

    @staticmethod
    def _require_active(battle: Battle, message: str = "Battle is not active") -> None:
        if battle.status is not BattleStatus.ACTIVE:
            raise InvalidStatusError(message)

    async def update_battle(
        self, user: User, battle_id: UUID, title: Optional[str] = None, description: Optional[str] = None
    ) -> Battle:
        battle = await self._get_owned(user, battle_id)
        self._require_active(battle, "Only active battles can be edited")
        if title is not None:
            battle.title = title
        if description is not None:
            battle.description = description
        return await self.battle_repository.update(battle)

    async def delete_battle(self, user: User, battle_id: UUID) -> None:
        await self._get_owned(user, battle_id)
        await self.battle_repository.delete(battle_id)
        logger.info("Battle %s deleted by %s", battle_id, user.id)

    async def vote(self, user: User, battle_id: UUID, fragrance_id: UUID) -> Battle:
        battle = await self.get_battle(battle_id)
        self._require_active(battle)
        if battle.item_for(fragrance_id) is None:
            raise BadRequestError("Fragrance is not part of this battle")
        if await self.battle_repository.get_user_vote(battle_id, user.id):
            raise ConflictError("You have already voted in this battle", code="ALREADY_VOTED")

        await self.battle_repository.record_vote(
            Vote(id=uuid4(), user_id=user.id, battle_id=battle_id, fragrance_id=fragrance_id)
        )
        logger.info("User %s voted in battle %s", user.id, battle_id)
        return await self.get_battle(battle_id)

    async def complete_battle(self, user: User, battle_id: UUID) -> Battle:
        """Close voting; the most-voted item wins, ties go to the lowest position.

        A battle nobody voted in is completed without a winner.
        """
        battle = await self._get_owned(user, battle_id)
        self._require_active(battle)
        if battle.total_votes > 0:
            winner = max(battle.items, key=lambda item: (item.vote_count, -item.position))
            for item in battle.items:
                item.winner = item.id == winner.id
        battle.status = BattleStatus.COMPLETED
        battle.completed_at = datetime.utcnow()
        completed = await self.battle_repository.update(battle)
        logger.info("Battle %s completed with %d votes", battle_id, completed.total_votes)
        return completed

    async def cancel_battle(self, user: User, battle_id: UUID) -> Battle:
        battle = await self._get_owned(user, battle_id)
        self._require_active(battle)
        battle.status = BattleStatus.CANCELLED
        return await self.battle_repository.update(battle)

    async def get_results(self, battle_id: UUID) -> tuple[Battle, list[Vote]]:
        battle = await self.get_battle(battle_id)
        return battle, await self.battle_repository.list_votes(battle_id)

    async def get_stats(self, battle_id: UUID) -> dict:
        battle = await self.get_battle(battle_id)
        votes = await self.battle_repository.list_votes(battle_id)
        total = battle.total_votes
        ranked = sorted(battle.items, key=lambda item: (-item.vote_count, item.position))
        return {
            "battle_id": battle.id,
            "status": battle.status.value,
            "total_votes": total,
            "participant_count": len({v.user_id for v in votes}),
            "item_stats": [
                {
                    "fragrance_id": item.fragrance_id,
                    "name": item.fragrance.name if item.fragrance else None,
                    "brand": item.fragrance.brand if item.fragrance else None,
                    "position": item.position,
                    "votes": item.vote_count,
                    "percentage": round(item.vote_count / total * 100, 1) if total else 0.0,
                    "winner": item.winner,
                }
                for item in ranked
            ],
        }
