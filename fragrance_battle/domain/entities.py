"""Domain entities for Fragrance Battle."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar
from uuid import UUID

# Vocabularies shared by the AI categorizer, search filters and feedback.
SEASONS = ("Spring", "Summer", "Fall", "Winter")
OCCASIONS = ("Daily", "Evening", "Formal", "Casual", "Date", "Work")
MOODS = ("Fresh", "Confident", "Sophisticated", "Playful", "Romantic", "Energetic")
FEEDBACK_TYPES = ("season", "occasion", "mood")

T = TypeVar("T")


class BattleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass
class User:
    id: UUID
    username: str
    email: str
    hashed_password: str
    bio: Optional[str] = None
    is_active: bool = True
    is_admin: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Fragrance:
    id: UUID
    name: str
    brand: str
    year: Optional[int] = None
    concentration: Optional[str] = None
    top_notes: list[str] = field(default_factory=list)
    middle_notes: list[str] = field(default_factory=list)
    base_notes: list[str] = field(default_factory=list)
    community_rating: float = 0.0  # 0–5
    popularity_score: float = 0.0
    ai_seasons: list[str] = field(default_factory=list)
    ai_occasions: list[str] = field(default_factory=list)
    ai_moods: list[str] = field(default_factory=list)
    verified: bool = False
    market_priority: float = 0.0  # 0–1
    trending: bool = False
    target_demographic: Optional[str] = None
    data_quality_score: float = 0.0  # 0–1
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def notes(self) -> list[str]:
        return [*self.top_notes, *self.middle_notes, *self.base_notes]

    @property
    def is_categorized(self) -> bool:
        return bool(self.ai_seasons or self.ai_occasions or self.ai_moods)


@dataclass
class FragranceFilters:
    """Catalog search criteria; ``None`` means "don't filter"."""

    query: Optional[str] = None
    brand: Optional[str] = None
    season: Optional[str] = None
    occasion: Optional[str] = None
    mood: Optional[str] = None
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    concentration: Optional[str] = None
    verified: Optional[bool] = None


@dataclass
class CollectionItem:
    id: UUID
    collection_id: UUID
    fragrance_id: UUID
    personal_rating: Optional[int] = None  # 1–10
    personal_notes: Optional[str] = None
    bottle_size: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    fragrance: Optional[Fragrance] = None


@dataclass
class Collection:
    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    items: list[CollectionItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class BattleItem:
    id: UUID
    battle_id: UUID
    fragrance_id: UUID
    position: int
    vote_count: int = 0
    winner: bool = False
    fragrance: Optional[Fragrance] = None


@dataclass
class Battle:
    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    status: BattleStatus = BattleStatus.ACTIVE
    items: list[BattleItem] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def total_votes(self) -> int:
        return sum(item.vote_count for item in self.items)

    def item_for(self, fragrance_id: UUID) -> Optional[BattleItem]:
        return next((i for i in self.items if i.fragrance_id == fragrance_id), None)


@dataclass
class Vote:
    id: UUID
    user_id: UUID
    battle_id: UUID
    fragrance_id: UUID
    created_at: datetime = field(default_factory=datetime.utcnow)
    username: Optional[str] = None


@dataclass
class AIFeedback:
    """A user's correction to an AI categorization of a fragrance."""

    id: UUID
    user_id: UUID
    fragrance_id: UUID
    feedback_type: str  # season | occasion | mood
    ai_suggestion: dict = field(default_factory=dict)
    user_correction: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    fragrance: Optional[Fragrance] = None


@dataclass
class Categorization:
    seasons: list[str]
    occasions: list[str]
    moods: list[str]
    confidence: int  # 0–100
    reasoning: str = ""


@dataclass
class FragranceProfile:
    """What the AI categorizer is told about a fragrance."""

    name: str
    brand: str
    top_notes: list[str] = field(default_factory=list)
    middle_notes: list[str] = field(default_factory=list)
    base_notes: list[str] = field(default_factory=list)
    year: Optional[int] = None
    concentration: Optional[str] = None

    @classmethod
    def from_fragrance(cls, fragrance: Fragrance) -> "FragranceProfile":
        return cls(
            name=fragrance.name,
            brand=fragrance.brand,
            top_notes=list(fragrance.top_notes),
            middle_notes=list(fragrance.middle_notes),
            base_notes=list(fragrance.base_notes),
            year=fragrance.year,
            concentration=fragrance.concentration,
        )

    @property
    def notes(self) -> list[str]:
        return [*self.top_notes, *self.middle_notes, *self.base_notes]


@dataclass
class Page(Generic[T]):
    """One page of a larger result set."""

    items: list[T]
    page: int
    limit: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    @staticmethod
    def offset(page: int, limit: int) -> int:
        return (page - 1) * limit
