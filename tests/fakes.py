"""In-memory stand-ins for the repositories, Redis and the LLM provider.

Each fake implements the matching domain interface over a shared
:class:`InMemoryDatabase`, returning copies so callers can't mutate stored
state without going through ``update``.
"""

import copy
from collections import Counter
from datetime import datetime
from typing import Optional
from uuid import UUID

from fragrance_battle.core.errors import AIServiceError, ConflictError
from fragrance_battle.domain.entities import (
    AIFeedback,
    Battle,
    Categorization,
    Collection,
    CollectionItem,
    Fragrance,
    FragranceFilters,
    FragranceProfile,
    User,
    Vote,
)
from fragrance_battle.domain.naming import search_variations
from fragrance_battle.domain.repositories import (
    IAIFeedbackRepository,
    IBattleRepository,
    ICollectionRepository,
    IFragranceRepository,
    ILLMService,
    IUserRepository,
)
from fragrance_battle.infrastructure.llm.services import MockLLMService

_SORT_KEYS = {
    "name": lambda f: f.name.lower(),
    "brand": lambda f: f.brand.lower(),
    "year": lambda f: f.year or 0,
    "rating": lambda f: f.community_rating,
    "popularity": lambda f: f.popularity_score,
    "created_at": lambda f: f.created_at,
}


class InMemoryDatabase:

    def __init__(self) -> None:
        self.users: dict[UUID, User] = {}
        self.fragrances: dict[UUID, Fragrance] = {}
        self.collections: dict[UUID, Collection] = {}
        self.items: dict[UUID, CollectionItem] = {}
        self.battles: dict[UUID, Battle] = {}
        self.votes: dict[UUID, Vote] = {}
        self.feedback: dict[UUID, AIFeedback] = {}

    def fragrance(self, fragrance_id: UUID) -> Optional[Fragrance]:
        stored = self.fragrances.get(fragrance_id)
        return copy.deepcopy(stored) if stored else None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class FakeUserRepository(IUserRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def create(self, user: User) -> User:
        for existing in self.db.users.values():
            if existing.email.lower() == user.email.lower() or existing.username == user.username:
                raise ConflictError("User with this email or username already exists")
        self.db.users[user.id] = copy.deepcopy(user)
        return copy.deepcopy(user)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        user = self.db.users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        user = next((u for u in self.db.users.values() if u.email.lower() == email.lower()), None)
        return copy.deepcopy(user) if user else None

    async def get_by_username(self, username: str) -> Optional[User]:
        user = next((u for u in self.db.users.values() if u.username == username), None)
        return copy.deepcopy(user) if user else None

    async def update(self, user: User) -> User:
        user.updated_at = datetime.utcnow()
        self.db.users[user.id] = copy.deepcopy(user)
        return copy.deepcopy(user)

    async def delete(self, user_id: UUID) -> bool:
        if self.db.users.pop(user_id, None) is None:
            return False
        owned = [c.id for c in self.db.collections.values() if c.user_id == user_id]
        for collection_id in owned:
            del self.db.collections[collection_id]
        self.db.items = {k: i for k, i in self.db.items.items() if i.collection_id not in owned}
        self.db.battles = {k: b for k, b in self.db.battles.items() if b.user_id != user_id}
        self.db.votes = {k: v for k, v in self.db.votes.items() if v.user_id != user_id}
        self.db.feedback = {k: f for k, f in self.db.feedback.items() if f.user_id != user_id}
        return True


# ---------------------------------------------------------------------------
# Fragrances
# ---------------------------------------------------------------------------
def _matches(fragrance: Fragrance, filters: FragranceFilters) -> bool:
    if filters.query:
        haystacks = (fragrance.name.lower(), fragrance.brand.lower())
        if not any(v in h for v in search_variations(filters.query) for h in haystacks):
            return False
    if filters.brand and fragrance.brand.lower() != filters.brand.lower():
        return False
    if filters.season and filters.season not in fragrance.ai_seasons:
        return False
    if filters.occasion and filters.occasion not in fragrance.ai_occasions:
        return False
    if filters.mood and filters.mood not in fragrance.ai_moods:
        return False
    if filters.year_from is not None and (fragrance.year is None or fragrance.year < filters.year_from):
        return False
    if filters.year_to is not None and (fragrance.year is None or fragrance.year > filters.year_to):
        return False
    if filters.concentration and (fragrance.concentration or "").lower() != filters.concentration.lower():
        return False
    if filters.verified is not None and fragrance.verified != filters.verified:
        return False
    return True


class FakeFragranceRepository(IFragranceRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    async def create(self, fragrance: Fragrance) -> Fragrance:
        self.db.fragrances[fragrance.id] = copy.deepcopy(fragrance)
        return copy.deepcopy(fragrance)

    async def get_by_id(self, fragrance_id: UUID) -> Optional[Fragrance]:
        return self.db.fragrance(fragrance_id)

    async def get_many(self, fragrance_ids: list[UUID]) -> list[Fragrance]:
        return [self.db.fragrance(fid) for fid in fragrance_ids if fid in self.db.fragrances]

    async def search(
        self,
        filters: FragranceFilters,
        skip: int = 0,
        limit: int = 20,
        sort_by: str = "popularity",
        sort_order: str = "desc",
    ) -> tuple[list[Fragrance], int]:
        matched = [f for f in self.db.fragrances.values() if _matches(f, filters)]
        matched.sort(key=lambda f: f.name)
        matched.sort(key=_SORT_KEYS.get(sort_by, _SORT_KEYS["popularity"]), reverse=sort_order == "desc")
        return [copy.deepcopy(f) for f in matched[skip:skip + limit]], len(matched)

    async def find_by_name_and_brand(self, name: str, brand: str) -> Optional[Fragrance]:
        for f in self.db.fragrances.values():
            if f.name.lower() == name.strip().lower() and f.brand.lower() == brand.strip().lower():
                return copy.deepcopy(f)
        return None

    async def update(self, fragrance: Fragrance) -> Fragrance:
        fragrance.updated_at = datetime.utcnow()
        self.db.fragrances[fragrance.id] = copy.deepcopy(fragrance)
        return copy.deepcopy(fragrance)

    async def delete(self, fragrance_id: UUID) -> bool:
        return self.db.fragrances.pop(fragrance_id, None) is not None

    async def brand_counts(self, letter: Optional[str] = None) -> list[tuple[str, int]]:
        counts = Counter(f.brand for f in self.db.fragrances.values())
        return sorted(
            (b, n) for b, n in counts.items() if not letter or b.lower().startswith(letter.lower())
        )

    async def top_brands(self, limit: int = 50, query: Optional[str] = None) -> list[tuple[str, int]]:
        counts = Counter(
            f.brand for f in self.db.fragrances.values()
            if not query or query.lower() in f.brand.lower()
        )
        return sorted(counts.items(), key=lambda bn: (-bn[1], bn[0]))[:limit]

    async def concentration_counts(self) -> list[tuple[str, int]]:
        counts = Counter(f.concentration for f in self.db.fragrances.values() if f.concentration)
        return counts.most_common()

    async def brand_stats(self, brand: str) -> Optional[dict]:
        matched = [f for f in self.db.fragrances.values() if f.brand.lower() == brand.lower()]
        if not matched:
            return None
        return {
            "brand": min(f.brand for f in matched),
            "fragrance_count": len(matched),
            "average_rating": sum(f.community_rating for f in matched) / len(matched),
            "average_popularity": sum(f.popularity_score for f in matched) / len(matched),
        }

    async def usage_counts(self, fragrance_id: UUID) -> tuple[int, int]:
        battles = sum(1 for b in self.db.battles.values() if b.item_for(fragrance_id))
        collections = sum(1 for i in self.db.items.values() if i.fragrance_id == fragrance_id)
        return battles, collections

    async def list_uncategorized(self, limit: int = 50) -> list[Fragrance]:
        pending = [f for f in self.db.fragrances.values() if not f.ai_seasons]
        pending.sort(key=lambda f: f.popularity_score, reverse=True)
        return [copy.deepcopy(f) for f in pending[:limit]]

    async def list_all(self, limit: int = 5000) -> list[Fragrance]:
        ordered = sorted(self.db.fragrances.values(), key=lambda f: f.popularity_score, reverse=True)
        return [copy.deepcopy(f) for f in ordered[:limit]]

    async def count_categorized(self, since: Optional[datetime] = None) -> int:
        return sum(
            1 for f in self.db.fragrances.values()
            if f.ai_seasons and (since is None or f.updated_at >= since)
        )

    async def population_stats(self) -> dict:
        fragrances = list(self.db.fragrances.values())
        return {
            "total_fragrances": len(fragrances),
            "total_brands": len({f.brand for f in fragrances}),
            "verified": sum(f.verified for f in fragrances),
            "with_year": sum(f.year is not None for f in fragrances),
            "with_notes": sum(bool(f.top_notes) for f in fragrances),
            "ai_categorized": sum(bool(f.ai_seasons) for f in fragrances),
            "trending": sum(f.trending for f in fragrances),
            "average_rating": (
                sum(f.community_rating for f in fragrances) / len(fragrances) if fragrances else 0.0
            ),
        }

    async def market_coverage(self, tier_one_threshold: float = 0.9) -> dict:
        fragrances = list(self.db.fragrances.values())
        tier_one = Counter(f.brand for f in fragrances if f.market_priority >= tier_one_threshold)
        trending = Counter(f.brand for f in fragrances if f.trending)
        demographics = Counter(f.target_demographic for f in fragrances if f.target_demographic)
        ranked = lambda counts: sorted(counts.items(), key=lambda bn: (-bn[1], bn[0]))  # noqa: E731
        return {
            "tier_one_brands": [{"brand": b, "count": n} for b, n in ranked(tier_one)],
            "tier_one_fragrances": sum(tier_one.values()),
            "trending_brands": [{"brand": b, "count": n} for b, n in ranked(trending)[:20]],
            "demographics": dict(demographics),
        }

    async def quality_stats(self, high_quality_threshold: float = 0.8) -> dict:
        scores = [f.data_quality_score for f in self.db.fragrances.values()]
        return {
            "total_fragrances": len(scores),
            "average_quality": sum(scores) / len(scores) if scores else 0.0,
            "high_quality": sum(s >= high_quality_threshold for s in scores),
        }


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
class FakeCollectionRepository(ICollectionRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def _item(self, item: CollectionItem) -> CollectionItem:
        loaded = copy.deepcopy(item)
        loaded.fragrance = self.db.fragrance(item.fragrance_id)
        return loaded

    def _collection(self, collection: Collection) -> Collection:
        loaded = copy.deepcopy(collection)
        items = [i for i in self.db.items.values() if i.collection_id == collection.id]
        loaded.items = [self._item(i) for i in sorted(items, key=lambda i: i.created_at)]
        return loaded

    async def create(self, collection: Collection) -> Collection:
        stored = copy.deepcopy(collection)
        stored.items = []
        self.db.collections[collection.id] = stored
        return self._collection(stored)

    async def get_by_id(self, collection_id: UUID) -> Optional[Collection]:
        collection = self.db.collections.get(collection_id)
        return self._collection(collection) if collection else None

    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Collection], int]:
        owned = [c for c in self.db.collections.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.created_at, reverse=True)
        return [self._collection(c) for c in owned[skip:skip + limit]], len(owned)

    async def update(self, collection: Collection) -> Collection:
        stored = self.db.collections[collection.id]
        stored.name = collection.name
        stored.description = collection.description
        stored.updated_at = datetime.utcnow()
        return self._collection(stored)

    async def delete(self, collection_id: UUID) -> bool:
        if self.db.collections.pop(collection_id, None) is None:
            return False
        self.db.items = {k: i for k, i in self.db.items.items() if i.collection_id != collection_id}
        return True

    async def add_item(self, item: CollectionItem) -> CollectionItem:
        if await self.find_item(item.collection_id, item.fragrance_id):
            raise ConflictError("Fragrance already in collection", code="DUPLICATE_ITEM")
        stored = copy.deepcopy(item)
        stored.fragrance = None
        self.db.items[item.id] = stored
        return self._item(stored)

    async def get_item(self, item_id: UUID) -> Optional[CollectionItem]:
        item = self.db.items.get(item_id)
        return self._item(item) if item else None

    async def find_item(self, collection_id: UUID, fragrance_id: UUID) -> Optional[CollectionItem]:
        for item in self.db.items.values():
            if item.collection_id == collection_id and item.fragrance_id == fragrance_id:
                return self._item(item)
        return None

    async def update_item(self, item: CollectionItem) -> CollectionItem:
        stored = self.db.items[item.id]
        stored.personal_rating = item.personal_rating
        stored.personal_notes = item.personal_notes
        stored.bottle_size = item.bottle_size
        return self._item(stored)

    async def delete_item(self, item_id: UUID) -> bool:
        return self.db.items.pop(item_id, None) is not None

    async def list_user_items(
        self, user_id: UUID, min_rating: Optional[int] = None, limit: Optional[int] = None
    ) -> list[CollectionItem]:
        owned = {c.id for c in self.db.collections.values() if c.user_id == user_id}
        items = [
            i for i in self.db.items.values()
            if i.collection_id in owned
            and (min_rating is None or (i.personal_rating is not None and i.personal_rating >= min_rating))
        ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        if limit is not None:
            items = items[:limit]
        return [self._item(i) for i in items]


# ---------------------------------------------------------------------------
# Battles
# ---------------------------------------------------------------------------
class FakeBattleRepository(IBattleRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def _battle(self, battle: Battle) -> Battle:
        loaded = copy.deepcopy(battle)
        loaded.items.sort(key=lambda i: i.position)
        for item in loaded.items:
            item.fragrance = self.db.fragrance(item.fragrance_id)
        return loaded

    def _vote(self, vote: Vote) -> Vote:
        loaded = copy.deepcopy(vote)
        user = self.db.users.get(vote.user_id)
        loaded.username = user.username if user else None
        return loaded

    async def create(self, battle: Battle) -> Battle:
        self.db.battles[battle.id] = copy.deepcopy(battle)
        return self._battle(battle)

    async def get_by_id(self, battle_id: UUID) -> Optional[Battle]:
        battle = self.db.battles.get(battle_id)
        return self._battle(battle) if battle else None

    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Battle], int]:
        owned = [b for b in self.db.battles.values() if b.user_id == user_id]
        owned.sort(key=lambda b: b.created_at, reverse=True)
        return [self._battle(b) for b in owned[skip:skip + limit]], len(owned)

    async def count_by_user(self, user_id: UUID) -> int:
        return sum(1 for b in self.db.battles.values() if b.user_id == user_id)

    async def update(self, battle: Battle) -> Battle:
        stored = self.db.battles[battle.id]
        stored.title = battle.title
        stored.description = battle.description
        stored.status = battle.status
        stored.completed_at = battle.completed_at
        stored.updated_at = datetime.utcnow()
        winners = {item.id for item in battle.items if item.winner}
        for item in stored.items:
            item.winner = item.id in winners
        return self._battle(stored)

    async def delete(self, battle_id: UUID) -> bool:
        if self.db.battles.pop(battle_id, None) is None:
            return False
        self.db.votes = {k: v for k, v in self.db.votes.items() if v.battle_id != battle_id}
        return True

    async def record_vote(self, vote: Vote) -> Vote:
        if await self.get_user_vote(vote.battle_id, vote.user_id):
            raise ConflictError("You have already voted in this battle", code="ALREADY_VOTED")
        self.db.votes[vote.id] = copy.deepcopy(vote)
        item = self.db.battles[vote.battle_id].item_for(vote.fragrance_id)
        item.vote_count += 1
        return vote

    async def get_user_vote(self, battle_id: UUID, user_id: UUID) -> Optional[Vote]:
        for vote in self.db.votes.values():
            if vote.battle_id == battle_id and vote.user_id == user_id:
                return self._vote(vote)
        return None

    async def list_votes(self, battle_id: UUID) -> list[Vote]:
        votes = [v for v in self.db.votes.values() if v.battle_id == battle_id]
        votes.sort(key=lambda v: v.created_at, reverse=True)
        return [self._vote(v) for v in votes]


# ---------------------------------------------------------------------------
# AI feedback
# ---------------------------------------------------------------------------
class FakeAIFeedbackRepository(IAIFeedbackRepository):

    def __init__(self, db: InMemoryDatabase):
        self.db = db

    def _feedback(self, feedback: AIFeedback) -> AIFeedback:
        loaded = copy.deepcopy(feedback)
        loaded.fragrance = self.db.fragrance(feedback.fragrance_id)
        return loaded

    async def create(self, feedback: AIFeedback) -> AIFeedback:
        self.db.feedback[feedback.id] = copy.deepcopy(feedback)
        return self._feedback(feedback)

    async def list_by_user(self, user_id: UUID, limit: Optional[int] = None) -> list[AIFeedback]:
        owned = [f for f in self.db.feedback.values() if f.user_id == user_id]
        owned.sort(key=lambda f: f.created_at, reverse=True)
        if limit is not None:
            owned = owned[:limit]
        return [self._feedback(f) for f in owned]

    async def count(self) -> int:
        return len(self.db.feedback)

    async def count_by_type(self) -> dict[str, int]:
        return dict(Counter(f.feedback_type for f in self.db.feedback.values()))


# ---------------------------------------------------------------------------
# LLM and Redis
# ---------------------------------------------------------------------------
class FailingLLMService(ILLMService):
    """Provider that is always down."""

    def __init__(self) -> None:
        self.calls = 0

    async def categorize(self, profile: FragranceProfile) -> Categorization:
        self.calls += 1
        raise AIServiceError("AI service is unavailable")

    async def improve_categorization(self, profile, current, corrections) -> Categorization:
        self.calls += 1
        raise AIServiceError("AI service is unavailable")

    async def health_check(self) -> bool:
        return False


class CountingLLMService(MockLLMService):
    """Mock provider that records which fragrances it was asked about."""

    def __init__(self) -> None:
        self.seen: list[str] = []

    async def categorize(self, profile: FragranceProfile) -> Categorization:
        self.seen.append(profile.name)
        return await super().categorize(profile)


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for the token blacklist."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    async def exists(self, key: str) -> int:
        return int(key in self.store)

    async def aclose(self) -> None:
        pass
