"""Per-user analytics, profile and activity feed."""

from collections import Counter
from typing import Iterable

from fragrance_battle.domain.entities import User
from fragrance_battle.domain.repositories import (
    IAIFeedbackRepository,
    IBattleRepository,
    ICollectionRepository,
)

FAVORITE_RATING = 8
MAX_FEED_LIMIT = 50
RECENT_LIMIT = 5


def _top(values: Iterable[str], n: int) -> list[dict]:
    return [{"name": name, "count": count} for name, count in Counter(values).most_common(n)]


class UserService:

    def __init__(
        self,
        collection_repository: ICollectionRepository,
        battle_repository: IBattleRepository,
        feedback_repository: IAIFeedbackRepository,
    ):
        self.collection_repository = collection_repository
        self.battle_repository = battle_repository
        self.feedback_repository = feedback_repository

    async def get_analytics(self, user: User) -> dict:
        items = await self.collection_repository.list_user_items(user.id)
        fragrances = [item.fragrance for item in items if item.fragrance]
        ratings = [item.personal_rating for item in items if item.personal_rating is not None]
        return {
            "total_fragrances": len(items),
            "total_battles": await self.battle_repository.count_by_user(user.id),
            "favorite_seasons": _top((s for f in fragrances for s in f.ai_seasons), 3),
            "favorite_occasions": _top((o for f in fragrances for o in f.ai_occasions), 3),
            "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0.0,
            "most_used_brands": _top((f.brand for f in fragrances), 5),
        }

    async def get_profile(self, user: User) -> dict:
        collections, _ = await self.collection_repository.list_by_user(user.id, 0, 100)
        battles, _ = await self.battle_repository.list_by_user(user.id, 0, RECENT_LIMIT)
        feedback = await self.feedback_repository.list_by_user(user.id, limit=RECENT_LIMIT)
        return {
            "user": user,
            "collections": [
                {"id": c.id, "name": c.name, "description": c.description, "item_count": len(c.items)}
                for c in collections
            ],
            "recent_battles": battles,
            "recent_feedback": feedback,
        }

    async def get_activity(self, user: User, page: int = 1, limit: int = 20) -> dict:
        """Merged feed of collection adds, battles created and AI feedback, newest first."""
        limit = min(limit, MAX_FEED_LIMIT)
        window = page * limit
        items = await self.collection_repository.list_user_items(user.id, limit=window + 1)
        battles, _ = await self.battle_repository.list_by_user(user.id, 0, window + 1)
        feedback = await self.feedback_repository.list_by_user(user.id, limit=window + 1)

        feed = [
            {
                "type": "collection_add",
                "created_at": item.created_at,
                "data": {
                    "collection_id": item.collection_id,
                    "fragrance_id": item.fragrance_id,
                    "fragrance_name": item.fragrance.name if item.fragrance else None,
                    "brand": item.fragrance.brand if item.fragrance else None,
                    "personal_rating": item.personal_rating,
                },
            }
            for item in items
        ]
        feed += [
            {
                "type": "battle_created",
                "created_at": battle.created_at,
                "data": {"battle_id": battle.id, "title": battle.title, "status": battle.status.value},
            }
            for battle in battles
        ]
        feed += [
            {
                "type": "ai_feedback",
                "created_at": fb.created_at,
                "data": {
                    "fragrance_id": fb.fragrance_id,
                    "fragrance_name": fb.fragrance.name if fb.fragrance else None,
                    "feedback_type": fb.feedback_type,
                },
            }
            for fb in feedback
        ]
        feed.sort(key=lambda entry: entry["created_at"], reverse=True)
        start = (page - 1) * limit
        return {
            "activities": feed[start:start + limit],
            "page": page,
            "limit": limit,
            "has_more": len(feed) > window,
        }

    async def get_favorites(self, user: User, limit: int = 20):
        return await self.collection_repository.list_user_items(
            user.id, min_rating=FAVORITE_RATING, limit=min(limit, MAX_FEED_LIMIT)
        )
