"""Repository implementations."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fragrance_battle.core.errors import ConflictError
from fragrance_battle.domain.entities import (
    AIFeedback,
    Battle,
    BattleItem,
    BattleStatus,
    Collection,
    CollectionItem,
    Fragrance,
    FragranceFilters,
    User,
    Vote,
)
from fragrance_battle.domain.naming import search_variations
from fragrance_battle.domain.repositories import (
    IAIFeedbackRepository,
    IBattleRepository,
    ICollectionRepository,
    IFragranceRepository,
    IUserRepository,
)
from fragrance_battle.infrastructure.database.models import (
    AIFeedbackModel,
    BattleItemModel,
    BattleModel,
    CollectionItemModel,
    CollectionModel,
    FragranceModel,
    UserModel,
    VoteModel,
)


# ---------------------------------------------------------------------------
# User Repository
# ---------------------------------------------------------------------------
class UserRepository(IUserRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        db_user = UserModel(
            id=user.id,
            username=user.username,
            email=user.email,
            hashed_password=user.hashed_password,
            bio=user.bio,
            is_active=user.is_active,
            is_admin=user.is_admin,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
        self.session.add(db_user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("User with this email or username already exists")
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.session.execute(select(UserModel).where(UserModel.id == user_id))
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(UserModel).where(UserModel.username == username))
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def update(self, user: User) -> User:
        result = await self.session.execute(select(UserModel).where(UserModel.id == user.id))
        db_user = result.scalar_one()
        db_user.username = user.username
        db_user.email = user.email
        db_user.hashed_password = user.hashed_password
        db_user.bio = user.bio
        db_user.is_active = user.is_active
        db_user.is_admin = user.is_admin
        db_user.updated_at = datetime.utcnow()
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("User with this email or username already exists")
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def delete(self, user_id: UUID) -> bool:
        result = await self.session.execute(sa_delete(UserModel).where(UserModel.id == user_id))
        await self.session.commit()
        return result.rowcount > 0

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            username=model.username,
            email=model.email,
            hashed_password=model.hashed_password,
            bio=model.bio,
            is_active=model.is_active,
            is_admin=model.is_admin,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Fragrance Repository
# ---------------------------------------------------------------------------
_SORT_COLUMNS = {
    "name": FragranceModel.name,
    "brand": FragranceModel.brand,
    "year": FragranceModel.year,
    "rating": FragranceModel.community_rating,
    "popularity": FragranceModel.popularity_score,
    "created_at": FragranceModel.created_at,
}


LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_pattern(term: str) -> str:
    """Substring ILIKE pattern for ``term`` with its wildcards escaped."""
    return f"%{escape_like(term)}%"


def _fragrance_conditions(filters: FragranceFilters) -> list:
    conditions = []
    if filters.query and filters.query.strip():
        matches = []
        for variation in search_variations(filters.query):
            pattern = like_pattern(variation)
            matches.append(FragranceModel.name.ilike(pattern, escape=LIKE_ESCAPE))
            matches.append(FragranceModel.brand.ilike(pattern, escape=LIKE_ESCAPE))
        conditions.append(or_(*matches))
    if filters.brand:
        conditions.append(func.lower(FragranceModel.brand) == filters.brand.lower())
    if filters.season:
        conditions.append(FragranceModel.ai_seasons.contains([filters.season]))
    if filters.occasion:
        conditions.append(FragranceModel.ai_occasions.contains([filters.occasion]))
    if filters.mood:
        conditions.append(FragranceModel.ai_moods.contains([filters.mood]))
    if filters.year_from is not None:
        conditions.append(FragranceModel.year >= filters.year_from)
    if filters.year_to is not None:
        conditions.append(FragranceModel.year <= filters.year_to)
    if filters.concentration:
        conditions.append(func.lower(FragranceModel.concentration) == filters.concentration.lower())
    if filters.verified is not None:
        conditions.append(FragranceModel.verified.is_(filters.verified))
    return conditions


class FragranceRepository(IFragranceRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, fragrance: Fragrance) -> Fragrance:
        db_fragrance = FragranceModel(id=fragrance.id, created_at=fragrance.created_at)
        self._apply(db_fragrance, fragrance)
        self.session.add(db_fragrance)
        await self.session.commit()
        await self.session.refresh(db_fragrance)
        return self._to_entity(db_fragrance)

    async def get_by_id(self, fragrance_id: UUID) -> Optional[Fragrance]:
        result = await self.session.execute(
            select(FragranceModel).where(FragranceModel.id == fragrance_id)
        )
        db_fragrance = result.scalar_one_or_none()
        return self._to_entity(db_fragrance) if db_fragrance else None

    async def get_many(self, fragrance_ids: list[UUID]) -> list[Fragrance]:
        if not fragrance_ids:
            return []
        result = await self.session.execute(
            select(FragranceModel).where(FragranceModel.id.in_(fragrance_ids))
        )
        return [self._to_entity(f) for f in result.scalars().all()]

    async def search(
        self,
        filters: FragranceFilters,
        skip: int = 0,
        limit: int = 20,
        sort_by: str = "popularity",
        sort_order: str = "desc",
    ) -> tuple[list[Fragrance], int]:
        conditions = _fragrance_conditions(filters)
        column = _SORT_COLUMNS.get(sort_by, FragranceModel.popularity_score)
        ordering = column.desc().nulls_last() if sort_order == "desc" else column.asc().nulls_last()

        total = await self.session.execute(
            select(func.count()).select_from(FragranceModel).where(*conditions)
        )
        result = await self.session.execute(
            select(FragranceModel)
            .where(*conditions)
            .order_by(ordering, FragranceModel.name, FragranceModel.id)
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(f) for f in result.scalars().all()], total.scalar_one()

    async def find_by_name_and_brand(self, name: str, brand: str) -> Optional[Fragrance]:
        result = await self.session.execute(
            select(FragranceModel)
            .where(
                func.lower(FragranceModel.name) == name.strip().lower(),
                func.lower(FragranceModel.brand) == brand.strip().lower(),
            )
            .limit(1)
        )
        db_fragrance = result.scalar_one_or_none()
        return self._to_entity(db_fragrance) if db_fragrance else None

    async def update(self, fragrance: Fragrance) -> Fragrance:
        result = await self.session.execute(
            select(FragranceModel).where(FragranceModel.id == fragrance.id)
        )
        db_fragrance = result.scalar_one()
        self._apply(db_fragrance, fragrance)
        db_fragrance.updated_at = datetime.utcnow()
        await self.session.commit()
        await self.session.refresh(db_fragrance)
        return self._to_entity(db_fragrance)

    async def delete(self, fragrance_id: UUID) -> bool:
        result = await self.session.execute(
            sa_delete(FragranceModel).where(FragranceModel.id == fragrance_id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def brand_counts(self, letter: Optional[str] = None) -> list[tuple[str, int]]:
        stmt = select(FragranceModel.brand, func.count(FragranceModel.id)).group_by(FragranceModel.brand)
        if letter:
            stmt = stmt.where(FragranceModel.brand.ilike(f"{escape_like(letter)}%", escape=LIKE_ESCAPE))
        result = await self.session.execute(stmt.order_by(FragranceModel.brand))
        return [(brand, count) for brand, count in result.all()]

    async def top_brands(self, limit: int = 50, query: Optional[str] = None) -> list[tuple[str, int]]:
        count = func.count(FragranceModel.id)
        stmt = select(FragranceModel.brand, count).group_by(FragranceModel.brand)
        if query:
            stmt = stmt.where(FragranceModel.brand.ilike(like_pattern(query), escape=LIKE_ESCAPE))
        result = await self.session.execute(stmt.order_by(count.desc(), FragranceModel.brand).limit(limit))
        return [(brand, n) for brand, n in result.all()]

    async def concentration_counts(self) -> list[tuple[str, int]]:
        count = func.count(FragranceModel.id)
        result = await self.session.execute(
            select(FragranceModel.concentration, count)
            .where(FragranceModel.concentration.is_not(None))
            .group_by(FragranceModel.concentration)
            .order_by(count.desc())
        )
        return [(c, n) for c, n in result.all()]

    async def brand_stats(self, brand: str) -> Optional[dict]:
        result = await self.session.execute(
            select(
                func.min(FragranceModel.brand),
                func.count(FragranceModel.id),
                func.avg(FragranceModel.community_rating),
                func.avg(FragranceModel.popularity_score),
            ).where(func.lower(FragranceModel.brand) == brand.lower())
        )
        name, count, avg_rating, avg_popularity = result.one()
        if not count:
            return None
        return {
            "brand": name,
            "fragrance_count": count,
            "average_rating": float(avg_rating or 0.0),
            "average_popularity": float(avg_popularity or 0.0),
        }

    async def usage_counts(self, fragrance_id: UUID) -> tuple[int, int]:
        battles = await self.session.execute(
            select(func.count(func.distinct(BattleItemModel.battle_id))).where(
                BattleItemModel.fragrance_id == fragrance_id
            )
        )
        collections = await self.session.execute(
            select(func.count(CollectionItemModel.id)).where(
                CollectionItemModel.fragrance_id == fragrance_id
            )
        )
        return battles.scalar_one(), collections.scalar_one()

    async def list_uncategorized(self, limit: int = 50) -> list[Fragrance]:
        result = await self.session.execute(
            select(FragranceModel)
            .where(func.cardinality(FragranceModel.ai_seasons) == 0)
            .order_by(FragranceModel.popularity_score.desc())
            .limit(limit)
        )
        return [self._to_entity(f) for f in result.scalars().all()]

    async def list_all(self, limit: int = 5000) -> list[Fragrance]:
        result = await self.session.execute(
            select(FragranceModel).order_by(FragranceModel.popularity_score.desc()).limit(limit)
        )
        return [self._to_entity(f) for f in result.scalars().all()]

    async def count_categorized(self, since: Optional[datetime] = None) -> int:
        stmt = select(func.count(FragranceModel.id)).where(
            func.cardinality(FragranceModel.ai_seasons) > 0
        )
        if since is not None:
            stmt = stmt.where(FragranceModel.updated_at >= since)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def population_stats(self) -> dict:
        result = await self.session.execute(
            select(
                func.count(FragranceModel.id),
                func.count(func.distinct(FragranceModel.brand)),
                func.count(FragranceModel.id).filter(FragranceModel.verified.is_(True)),
                func.count(FragranceModel.id).filter(FragranceModel.year.is_not(None)),
                func.count(FragranceModel.id).filter(func.cardinality(FragranceModel.top_notes) > 0),
                func.count(FragranceModel.id).filter(func.cardinality(FragranceModel.ai_seasons) > 0),
                func.count(FragranceModel.id).filter(FragranceModel.trending.is_(True)),
                func.avg(FragranceModel.community_rating),
            )
        )
        total, brands, verified, with_year, with_notes, categorized, trending, avg_rating = result.one()
        return {
            "total_fragrances": total,
            "total_brands": brands,
            "verified": verified,
            "with_year": with_year,
            "with_notes": with_notes,
            "ai_categorized": categorized,
            "trending": trending,
            "average_rating": float(avg_rating or 0.0),
        }

    async def market_coverage(self, tier_one_threshold: float = 0.9) -> dict:
        count = func.count(FragranceModel.id)
        tier_one = await self.session.execute(
            select(FragranceModel.brand, count)
            .where(FragranceModel.market_priority >= tier_one_threshold)
            .group_by(FragranceModel.brand)
            .order_by(count.desc(), FragranceModel.brand)
        )
        trending = await self.session.execute(
            select(FragranceModel.brand, count)
            .where(FragranceModel.trending.is_(True))
            .group_by(FragranceModel.brand)
            .order_by(count.desc(), FragranceModel.brand)
            .limit(20)
        )
        demographics = await self.session.execute(
            select(FragranceModel.target_demographic, count)
            .where(FragranceModel.target_demographic.is_not(None))
            .group_by(FragranceModel.target_demographic)
        )
        tier_one_brands = [{"brand": b, "count": n} for b, n in tier_one.all()]
        return {
            "tier_one_brands": tier_one_brands,
            "tier_one_fragrances": sum(b["count"] for b in tier_one_brands),
            "trending_brands": [{"brand": b, "count": n} for b, n in trending.all()],
            "demographics": {d: n for d, n in demographics.all()},
        }

    async def quality_stats(self, high_quality_threshold: float = 0.8) -> dict:
        result = await self.session.execute(
            select(
                func.count(FragranceModel.id),
                func.avg(FragranceModel.data_quality_score),
                func.count(FragranceModel.id).filter(
                    FragranceModel.data_quality_score >= high_quality_threshold
                ),
            )
        )
        total, avg_quality, high_quality = result.one()
        return {
            "total_fragrances": total,
            "average_quality": float(avg_quality or 0.0),
            "high_quality": high_quality,
        }

    @staticmethod
    def _apply(model: FragranceModel, fragrance: Fragrance) -> None:
        model.name = fragrance.name
        model.brand = fragrance.brand
        model.year = fragrance.year
        model.concentration = fragrance.concentration
        model.top_notes = list(fragrance.top_notes)
        model.middle_notes = list(fragrance.middle_notes)
        model.base_notes = list(fragrance.base_notes)
        model.community_rating = fragrance.community_rating
        model.popularity_score = fragrance.popularity_score
        model.ai_seasons = list(fragrance.ai_seasons)
        model.ai_occasions = list(fragrance.ai_occasions)
        model.ai_moods = list(fragrance.ai_moods)
        model.verified = fragrance.verified
        model.market_priority = fragrance.market_priority
        model.trending = fragrance.trending
        model.target_demographic = fragrance.target_demographic
        model.data_quality_score = fragrance.data_quality_score

    @staticmethod
    def _to_entity(model: FragranceModel) -> Fragrance:
        return Fragrance(
            id=model.id,
            name=model.name,
            brand=model.brand,
            year=model.year,
            concentration=model.concentration,
            top_notes=list(model.top_notes or []),
            middle_notes=list(model.middle_notes or []),
            base_notes=list(model.base_notes or []),
            community_rating=model.community_rating,
            popularity_score=model.popularity_score,
            ai_seasons=list(model.ai_seasons or []),
            ai_occasions=list(model.ai_occasions or []),
            ai_moods=list(model.ai_moods or []),
            verified=model.verified,
            market_priority=model.market_priority,
            trending=model.trending,
            target_demographic=model.target_demographic,
            data_quality_score=model.data_quality_score,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Collection Repository
# ---------------------------------------------------------------------------
class CollectionRepository(ICollectionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, collection: Collection) -> Collection:
        db_collection = CollectionModel(
            id=collection.id,
            user_id=collection.user_id,
            name=collection.name,
            description=collection.description,
            created_at=collection.created_at,
            updated_at=collection.updated_at,
        )
        self.session.add(db_collection)
        await self.session.commit()
        return await self._fetch(collection.id)

    async def get_by_id(self, collection_id: UUID) -> Optional[Collection]:
        result = await self.session.execute(
            select(CollectionModel)
            .where(CollectionModel.id == collection_id)
            .execution_options(populate_existing=True)
        )
        db_collection = result.scalar_one_or_none()
        return self._to_entity(db_collection) if db_collection else None

    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Collection], int]:
        total = await self.session.execute(
            select(func.count(CollectionModel.id)).where(CollectionModel.user_id == user_id)
        )
        result = await self.session.execute(
            select(CollectionModel)
            .where(CollectionModel.user_id == user_id)
            .order_by(CollectionModel.created_at.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(c) for c in result.scalars().all()], total.scalar_one()

    async def update(self, collection: Collection) -> Collection:
        result = await self.session.execute(
            select(CollectionModel).where(CollectionModel.id == collection.id)
        )
        db_collection = result.scalar_one()
        db_collection.name = collection.name
        db_collection.description = collection.description
        db_collection.updated_at = datetime.utcnow()
        await self.session.commit()
        return await self._fetch(collection.id)

    async def delete(self, collection_id: UUID) -> bool:
        result = await self.session.execute(
            sa_delete(CollectionModel).where(CollectionModel.id == collection_id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def add_item(self, item: CollectionItem) -> CollectionItem:
        db_item = CollectionItemModel(
            id=item.id,
            collection_id=item.collection_id,
            fragrance_id=item.fragrance_id,
            personal_rating=item.personal_rating,
            personal_notes=item.personal_notes,
            bottle_size=item.bottle_size,
            created_at=item.created_at,
        )
        self.session.add(db_item)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Fragrance already in collection", code="DUPLICATE_ITEM")
        created = await self.get_item(item.id)
        return created

    async def get_item(self, item_id: UUID) -> Optional[CollectionItem]:
        result = await self.session.execute(
            select(CollectionItemModel)
            .where(CollectionItemModel.id == item_id)
            .execution_options(populate_existing=True)
        )
        db_item = result.scalar_one_or_none()
        return self._item_to_entity(db_item) if db_item else None

    async def find_item(self, collection_id: UUID, fragrance_id: UUID) -> Optional[CollectionItem]:
        result = await self.session.execute(
            select(CollectionItemModel).where(
                CollectionItemModel.collection_id == collection_id,
                CollectionItemModel.fragrance_id == fragrance_id,
            )
        )
        db_item = result.scalar_one_or_none()
        return self._item_to_entity(db_item) if db_item else None

    async def update_item(self, item: CollectionItem) -> CollectionItem:
        result = await self.session.execute(
            select(CollectionItemModel).where(CollectionItemModel.id == item.id)
        )
        db_item = result.scalar_one()
        db_item.personal_rating = item.personal_rating
        db_item.personal_notes = item.personal_notes
        db_item.bottle_size = item.bottle_size
        await self.session.commit()
        return await self.get_item(item.id)

    async def delete_item(self, item_id: UUID) -> bool:
        result = await self.session.execute(
            sa_delete(CollectionItemModel).where(CollectionItemModel.id == item_id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def list_user_items(
        self, user_id: UUID, min_rating: Optional[int] = None, limit: Optional[int] = None
    ) -> list[CollectionItem]:
        stmt = (
            select(CollectionItemModel)
            .join(CollectionModel, CollectionItemModel.collection_id == CollectionModel.id)
            .where(CollectionModel.user_id == user_id)
            .order_by(CollectionItemModel.created_at.desc())
        )
        if min_rating is not None:
            stmt = stmt.where(CollectionItemModel.personal_rating >= min_rating)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._item_to_entity(i) for i in result.scalars().all()]

    async def _fetch(self, collection_id: UUID) -> Collection:
        collection = await self.get_by_id(collection_id)
        assert collection is not None
        return collection

    @staticmethod
    def _item_to_entity(model: CollectionItemModel) -> CollectionItem:
        return CollectionItem(
            id=model.id,
            collection_id=model.collection_id,
            fragrance_id=model.fragrance_id,
            personal_rating=model.personal_rating,
            personal_notes=model.personal_notes,
            bottle_size=model.bottle_size,
            created_at=model.created_at,
            fragrance=FragranceRepository._to_entity(model.fragrance) if model.fragrance else None,
        )

    @classmethod
    def _to_entity(cls, model: CollectionModel) -> Collection:
        return Collection(
            id=model.id,
            user_id=model.user_id,
            name=model.name,
            description=model.description,
            items=[cls._item_to_entity(i) for i in model.items],
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Battle Repository
# ---------------------------------------------------------------------------
class BattleRepository(IBattleRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, battle: Battle) -> Battle:
        db_battle = BattleModel(
            id=battle.id,
            user_id=battle.user_id,
            title=battle.title,
            description=battle.description,
            status=battle.status.value,
            created_at=battle.created_at,
            updated_at=battle.updated_at,
            items=[
                BattleItemModel(
                    id=item.id,
                    fragrance_id=item.fragrance_id,
                    position=item.position,
                    vote_count=item.vote_count,
                    winner=item.winner,
                )
                for item in battle.items
            ],
        )
        self.session.add(db_battle)
        await self.session.commit()
        return await self._fetch(battle.id)

    async def get_by_id(self, battle_id: UUID) -> Optional[Battle]:
        result = await self.session.execute(
            select(BattleModel)
            .where(BattleModel.id == battle_id)
            .execution_options(populate_existing=True)
        )
        db_battle = result.scalar_one_or_none()
        return self._to_entity(db_battle) if db_battle else None

    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Battle], int]:
        total = await self.session.execute(
            select(func.count(BattleModel.id)).where(BattleModel.user_id == user_id)
        )
        result = await self.session.execute(
            select(BattleModel)
            .where(BattleModel.user_id == user_id)
            .order_by(BattleModel.created_at.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(b) for b in result.scalars().all()], total.scalar_one()

    async def count_by_user(self, user_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(BattleModel.id)).where(BattleModel.user_id == user_id)
        )
        return result.scalar_one()

    async def update(self, battle: Battle) -> Battle:
        result = await self.session.execute(select(BattleModel).where(BattleModel.id == battle.id))
        db_battle = result.scalar_one()
        db_battle.title = battle.title
        db_battle.description = battle.description
        db_battle.status = battle.status.value
        db_battle.completed_at = battle.completed_at
        db_battle.updated_at = datetime.utcnow()
        winners = {item.id for item in battle.items if item.winner}
        for db_item in db_battle.items:
            db_item.winner = db_item.id in winners
        await self.session.commit()
        return await self._fetch(battle.id)

    async def delete(self, battle_id: UUID) -> bool:
        result = await self.session.execute(sa_delete(BattleModel).where(BattleModel.id == battle_id))
        await self.session.commit()
        return result.rowcount > 0

    async def record_vote(self, vote: Vote) -> Vote:
        self.session.add(
            VoteModel(
                id=vote.id,
                user_id=vote.user_id,
                battle_id=vote.battle_id,
                fragrance_id=vote.fragrance_id,
                created_at=vote.created_at,
            )
        )
        try:
            # Autoflush inserts the vote first; the unique constraint fails here on a double vote.
            await self.session.execute(
                update(BattleItemModel)
                .where(
                    BattleItemModel.battle_id == vote.battle_id,
                    BattleItemModel.fragrance_id == vote.fragrance_id,
                )
                .values(vote_count=BattleItemModel.vote_count + 1)
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("You have already voted in this battle", code="ALREADY_VOTED")
        return vote

    async def get_user_vote(self, battle_id: UUID, user_id: UUID) -> Optional[Vote]:
        result = await self.session.execute(
            select(VoteModel).where(VoteModel.battle_id == battle_id, VoteModel.user_id == user_id)
        )
        db_vote = result.scalar_one_or_none()
        return self._vote_to_entity(db_vote) if db_vote else None

    async def list_votes(self, battle_id: UUID) -> list[Vote]:
        result = await self.session.execute(
            select(VoteModel)
            .where(VoteModel.battle_id == battle_id)
            .order_by(VoteModel.created_at.desc())
        )
        return [self._vote_to_entity(v) for v in result.scalars().all()]

    async def _fetch(self, battle_id: UUID) -> Battle:
        battle = await self.get_by_id(battle_id)
        assert battle is not None
        return battle

    @staticmethod
    def _vote_to_entity(model: VoteModel) -> Vote:
        return Vote(
            id=model.id,
            user_id=model.user_id,
            battle_id=model.battle_id,
            fragrance_id=model.fragrance_id,
            created_at=model.created_at,
            username=model.user.username if model.user else None,
        )

    @staticmethod
    def _to_entity(model: BattleModel) -> Battle:
        return Battle(
            id=model.id,
            user_id=model.user_id,
            title=model.title,
            description=model.description,
            status=BattleStatus(model.status),
            items=[
                BattleItem(
                    id=item.id,
                    battle_id=item.battle_id,
                    fragrance_id=item.fragrance_id,
                    position=item.position,
                    vote_count=item.vote_count,
                    winner=item.winner,
                    fragrance=FragranceRepository._to_entity(item.fragrance) if item.fragrance else None,
                )
                for item in model.items
            ],
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )


# ---------------------------------------------------------------------------
# AI Feedback Repository
# ---------------------------------------------------------------------------
class AIFeedbackRepository(IAIFeedbackRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, feedback: AIFeedback) -> AIFeedback:
        db_feedback = AIFeedbackModel(
            id=feedback.id,
            user_id=feedback.user_id,
            fragrance_id=feedback.fragrance_id,
            feedback_type=feedback.feedback_type,
            ai_suggestion=feedback.ai_suggestion,
            user_correction=feedback.user_correction,
            created_at=feedback.created_at,
        )
        self.session.add(db_feedback)
        await self.session.commit()
        result = await self.session.execute(
            select(AIFeedbackModel).where(AIFeedbackModel.id == feedback.id)
        )
        return self._to_entity(result.scalar_one())

    async def list_by_user(self, user_id: UUID, limit: Optional[int] = None) -> list[AIFeedback]:
        stmt = (
            select(AIFeedbackModel)
            .where(AIFeedbackModel.user_id == user_id)
            .order_by(AIFeedbackModel.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(f) for f in result.scalars().all()]

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(AIFeedbackModel.id)))
        return result.scalar_one()

    async def count_by_type(self) -> dict[str, int]:
        result = await self.session.execute(
            select(AIFeedbackModel.feedback_type, func.count(AIFeedbackModel.id)).group_by(
                AIFeedbackModel.feedback_type
            )
        )
        return {feedback_type: n for feedback_type, n in result.all()}

    @staticmethod
    def _to_entity(model: AIFeedbackModel) -> AIFeedback:
        return AIFeedback(
            id=model.id,
            user_id=model.user_id,
            fragrance_id=model.fragrance_id,
            feedback_type=model.feedback_type,
            ai_suggestion=dict(model.ai_suggestion or {}),
            user_correction=dict(model.user_correction or {}),
            created_at=model.created_at,
            fragrance=FragranceRepository._to_entity(model.fragrance) if model.fragrance else None,
        )
