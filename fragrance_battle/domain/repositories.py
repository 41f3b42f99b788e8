"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

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


class IUserRepository(ABC):

    @abstractmethod
    async def create(self, user: User) -> User:
        pass

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        pass

    @abstractmethod
    async def delete(self, user_id: UUID) -> bool:
        """Delete a user; collections, battles, votes and feedback cascade."""
        pass


class IFragranceRepository(ABC):

    @abstractmethod
    async def create(self, fragrance: Fragrance) -> Fragrance:
        pass

    @abstractmethod
    async def get_by_id(self, fragrance_id: UUID) -> Optional[Fragrance]:
        pass

    @abstractmethod
    async def get_many(self, fragrance_ids: list[UUID]) -> list[Fragrance]:
        pass

    @abstractmethod
    async def search(
        self,
        filters: FragranceFilters,
        skip: int = 0,
        limit: int = 20,
        sort_by: str = "popularity",
        sort_order: str = "desc",
    ) -> tuple[list[Fragrance], int]:
        """Return one page of matches and the total match count."""
        pass

    @abstractmethod
    async def find_by_name_and_brand(self, name: str, brand: str) -> Optional[Fragrance]:
        """Case-insensitive exact match on both name and brand."""
        pass

    @abstractmethod
    async def update(self, fragrance: Fragrance) -> Fragrance:
        pass

    @abstractmethod
    async def delete(self, fragrance_id: UUID) -> bool:
        pass

    @abstractmethod
    async def brand_counts(self, letter: Optional[str] = None) -> list[tuple[str, int]]:
        """All brands (optionally starting with ``letter``) with counts, by name."""
        pass

    @abstractmethod
    async def top_brands(self, limit: int = 50, query: Optional[str] = None) -> list[tuple[str, int]]:
        """Brands ordered by fragrance count, optionally filtered by substring."""
        pass

    @abstractmethod
    async def concentration_counts(self) -> list[tuple[str, int]]:
        pass

    @abstractmethod
    async def brand_stats(self, brand: str) -> Optional[dict]:
        """``{brand, fragrance_count, average_rating, average_popularity}`` or None."""
        pass

    @abstractmethod
    async def usage_counts(self, fragrance_id: UUID) -> tuple[int, int]:
        """Return (battles participated, collections containing it)."""
        pass

    @abstractmethod
    async def list_uncategorized(self, limit: int = 50) -> list[Fragrance]:
        pass

    @abstractmethod
    async def list_all(self, limit: int = 5000) -> list[Fragrance]:
        pass

    @abstractmethod
    async def count_categorized(self, since: Optional[datetime] = None) -> int:
        pass

    @abstractmethod
    async def population_stats(self) -> dict:
        pass

    @abstractmethod
    async def market_coverage(self, tier_one_threshold: float = 0.9) -> dict:
        pass

    @abstractmethod
    async def quality_stats(self, high_quality_threshold: float = 0.8) -> dict:
        pass


class ICollectionRepository(ABC):

    @abstractmethod
    async def create(self, collection: Collection) -> Collection:
        pass

    @abstractmethod
    async def get_by_id(self, collection_id: UUID) -> Optional[Collection]:
        pass

    @abstractmethod
    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Collection], int]:
        pass

    @abstractmethod
    async def update(self, collection: Collection) -> Collection:
        pass

    @abstractmethod
    async def delete(self, collection_id: UUID) -> bool:
        pass

    @abstractmethod
    async def add_item(self, item: CollectionItem) -> CollectionItem:
        pass

    @abstractmethod
    async def get_item(self, item_id: UUID) -> Optional[CollectionItem]:
        pass

    @abstractmethod
    async def find_item(self, collection_id: UUID, fragrance_id: UUID) -> Optional[CollectionItem]:
        pass

    @abstractmethod
    async def update_item(self, item: CollectionItem) -> CollectionItem:
        pass

    @abstractmethod
    async def delete_item(self, item_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_user_items(
        self, user_id: UUID, min_rating: Optional[int] = None, limit: Optional[int] = None
    ) -> list[CollectionItem]:
        """Items across all of a user's collections, newest first, fragrance loaded."""
        pass


class IBattleRepository(ABC):

    @abstractmethod
    async def create(self, battle: Battle) -> Battle:
        pass

    @abstractmethod
    async def get_by_id(self, battle_id: UUID) -> Optional[Battle]:
        pass

    @abstractmethod
    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 20
    ) -> tuple[list[Battle], int]:
        pass

    @abstractmethod
    async def count_by_user(self, user_id: UUID) -> int:
        pass

    @abstractmethod
    async def update(self, battle: Battle) -> Battle:
        """Persist title, description, status, completion time and item winners."""
        pass

    @abstractmethod
    async def delete(self, battle_id: UUID) -> bool:
        pass

    @abstractmethod
    async def record_vote(self, vote: Vote) -> Vote:
        """Insert the vote and increment the matching item's count in one transaction."""
        pass

    @abstractmethod
    async def get_user_vote(self, battle_id: UUID, user_id: UUID) -> Optional[Vote]:
        pass

    @abstractmethod
    async def list_votes(self, battle_id: UUID) -> list[Vote]:
        pass


class IAIFeedbackRepository(ABC):

    @abstractmethod
    async def create(self, feedback: AIFeedback) -> AIFeedback:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: UUID, limit: Optional[int] = None) -> list[AIFeedback]:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    @abstractmethod
    async def count_by_type(self) -> dict[str, int]:
        pass


class ILLMService(ABC):

    @abstractmethod
    async def categorize(self, profile: FragranceProfile) -> Categorization:
        """Suggest seasons, occasions and moods; raises ``AIServiceError`` on failure."""
        pass

    @abstractmethod
    async def improve_categorization(
        self,
        profile: FragranceProfile,
        current: Categorization,
        corrections: dict[str, list[str]],
    ) -> Categorization:
        """Re-categorize taking user corrections into account."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass
