"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Annotated, Any, Generic, Literal, Optional, TypeVar
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, computed_field

from fragrance_battle.core.security import BCRYPT_MAX_PASSWORD_BYTES
from fragrance_battle.domain.entities import BattleStatus, FragranceFilters, Page
from fragrance_battle.domain.naming import analyze_fragrance_name, format_concentration

T = TypeVar("T")

SortField = Literal["name", "brand", "year", "rating", "popularity", "created_at"]
SortOrder = Literal["asc", "desc"]
USERNAME_PATTERN = r"^[A-Za-z0-9]+$"


def _fits_bcrypt(password: str) -> str:
    if len(password.encode()) > BCRYPT_MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
    return password


NewPassword = Annotated[str, Field(min_length=6), AfterValidator(_fits_bcrypt)]


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------
class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class MessageData(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def from_page(cls, page: Page) -> "Pagination":
        return cls(
            page=page.page,
            limit=page.limit,
            total_count=page.total_count,
            total_pages=page.total_pages,
            has_next_page=page.has_next_page,
            has_prev_page=page.has_prev_page,
        )


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: NewPassword


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None
    bio: Optional[str] = Field(None, max_length=500)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: NewPassword


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    bio: Optional[str] = None
    is_active: bool
    is_admin: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthData(BaseModel):
    user: UserResponse
    token: str


# ---------------------------------------------------------------------------
# Fragrances
# ---------------------------------------------------------------------------
class FragranceResponse(BaseModel):
    id: UUID
    name: str
    brand: str
    year: Optional[int] = None
    concentration: Optional[str] = None
    top_notes: list[str] = []
    middle_notes: list[str] = []
    base_notes: list[str] = []
    community_rating: float
    popularity_score: float
    ai_seasons: list[str] = []
    ai_occasions: list[str] = []
    ai_moods: list[str] = []
    verified: bool
    market_priority: float
    trending: bool
    target_demographic: Optional[str] = None
    data_quality_score: float
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def display_name(self) -> str:
        return analyze_fragrance_name(self.name, self.brand).cleaned

    @computed_field
    @property
    def has_redundant_name(self) -> bool:
        return analyze_fragrance_name(self.name, self.brand).has_redundancy

    @computed_field
    @property
    def concentration_label(self) -> str:
        return format_concentration(self.concentration)


class SimilarFragranceResponse(FragranceResponse):
    similarity_score: float = Field(..., description="Cosine similarity of note profiles (0 = brand fallback)")


class FragranceListData(BaseModel):
    fragrances: list[FragranceResponse]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: Page) -> "FragranceListData":
        return cls(
            fragrances=[FragranceResponse.model_validate(f) for f in page.items],
            pagination=Pagination.from_page(page),
        )


class FragranceStats(BaseModel):
    battles_participated: int
    in_collections: int


class FragranceDetailData(BaseModel):
    fragrance: FragranceResponse
    stats: FragranceStats


class SearchFilters(BaseModel):
    brand: Optional[str] = None
    season: Optional[str] = None
    occasion: Optional[str] = None
    mood: Optional[str] = None
    year_from: Optional[int] = Field(None, ge=1900)
    year_to: Optional[int] = Field(None, ge=1900)
    concentration: Optional[str] = None
    verified: Optional[bool] = None


class FragranceSearchRequest(BaseModel):
    query: Optional[str] = Field(None, max_length=200)
    filters: SearchFilters = SearchFilters()
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: SortField = "popularity"
    sort_order: SortOrder = "desc"

    def to_filters(self) -> FragranceFilters:
        query = self.query.strip() if self.query else None
        return FragranceFilters(query=query or None, **self.filters.model_dump())


class FragranceCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    brand: str = Field(..., min_length=1, max_length=255)
    year: Optional[int] = Field(None, ge=1700, le=2100)
    concentration: Optional[str] = Field(None, max_length=50)
    top_notes: list[str] = []
    middle_notes: list[str] = []
    base_notes: list[str] = []
    community_rating: float = Field(0.0, ge=0, le=5)
    popularity_score: float = Field(0.0, ge=0)
    verified: bool = False
    market_priority: float = Field(0.0, ge=0, le=1)
    trending: bool = False
    target_demographic: Optional[str] = Field(None, max_length=50)
    data_quality_score: float = Field(0.0, ge=0, le=1)


class FragranceUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    brand: Optional[str] = Field(None, min_length=1, max_length=255)
    year: Optional[int] = Field(None, ge=1700, le=2100)
    concentration: Optional[str] = Field(None, max_length=50)
    top_notes: Optional[list[str]] = None
    middle_notes: Optional[list[str]] = None
    base_notes: Optional[list[str]] = None
    community_rating: Optional[float] = Field(None, ge=0, le=5)
    popularity_score: Optional[float] = Field(None, ge=0)
    verified: Optional[bool] = None
    market_priority: Optional[float] = Field(None, ge=0, le=1)
    trending: Optional[bool] = None
    target_demographic: Optional[str] = Field(None, max_length=50)
    data_quality_score: Optional[float] = Field(None, ge=0, le=1)


class NamedCount(BaseModel):
    name: str
    count: int


class BrandCount(NamedCount):
    display_name: str


class FilterOptionsData(BaseModel):
    brands: list[BrandCount]
    concentrations: list[NamedCount]
    seasons: list[str]
    occasions: list[str]
    moods: list[str]


# ---------------------------------------------------------------------------
# Brands
# ---------------------------------------------------------------------------
class BrandIndexData(BaseModel):
    brands: dict[str, list[BrandCount]]
    total_brands: int
    letters: list[str]


class BrandSummary(BaseModel):
    brand: str
    display_name: str
    fragrance_count: int
    average_rating: float
    average_popularity: float
    top_rated: list[FragranceResponse]


class BrandDetailData(BaseModel):
    brand: BrandSummary
    fragrances: list[FragranceResponse]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
class CollectionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class CollectionUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class CollectionItemCreateRequest(BaseModel):
    fragrance_id: UUID
    personal_rating: Optional[int] = Field(None, ge=1, le=10)
    personal_notes: Optional[str] = Field(None, max_length=1000)
    bottle_size: Optional[str] = Field(None, max_length=50)


class CollectionItemUpdateRequest(BaseModel):
    personal_rating: Optional[int] = Field(None, ge=1, le=10)
    personal_notes: Optional[str] = Field(None, max_length=1000)
    bottle_size: Optional[str] = Field(None, max_length=50)


class CollectionItemResponse(BaseModel):
    id: UUID
    collection_id: UUID
    fragrance_id: UUID
    personal_rating: Optional[int] = None
    personal_notes: Optional[str] = None
    bottle_size: Optional[str] = None
    created_at: datetime
    fragrance: Optional[FragranceResponse] = None

    model_config = ConfigDict(from_attributes=True)


class CollectionResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    items: list[CollectionItemResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def item_count(self) -> int:
        return len(self.items)


class CollectionListData(BaseModel):
    collections: list[CollectionResponse]
    pagination: Pagination


class CollectionStatsData(BaseModel):
    total_items: int
    average_rating: Optional[float] = None
    by_brand: dict[str, int]
    by_decade: dict[str, int]
    by_concentration: dict[str, int]


# ---------------------------------------------------------------------------
# Battles
# ---------------------------------------------------------------------------
class BattleCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    fragrance_ids: list[UUID] = Field(..., min_length=2, max_length=10)


class BattleUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class VoteRequest(BaseModel):
    fragrance_id: UUID


class BattleItemResponse(BaseModel):
    id: UUID
    fragrance_id: UUID
    position: int
    vote_count: int
    winner: bool
    fragrance: Optional[FragranceResponse] = None

    model_config = ConfigDict(from_attributes=True)


class BattleResponse(BaseModel):
    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    status: BattleStatus
    items: list[BattleItemResponse]
    total_votes: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BattleListData(BaseModel):
    battles: list[BattleResponse]
    pagination: Pagination


class VoteResponse(BaseModel):
    id: UUID
    user_id: UUID
    username: Optional[str] = None
    fragrance_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BattleResultsData(BaseModel):
    battle: BattleResponse
    votes: list[VoteResponse]


class BattleItemStats(BaseModel):
    fragrance_id: UUID
    name: Optional[str] = None
    brand: Optional[str] = None
    position: int
    votes: int
    percentage: float
    winner: bool


class BattleStatsData(BaseModel):
    battle_id: UUID
    status: BattleStatus
    total_votes: int
    participant_count: int
    item_stats: list[BattleItemStats]


# ---------------------------------------------------------------------------
# AI
# ---------------------------------------------------------------------------
class CategorizeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    brand: str = Field(..., min_length=1, max_length=255)
    top_notes: list[str] = []
    middle_notes: list[str] = []
    base_notes: list[str] = []
    year: Optional[int] = Field(None, ge=1900, le=2100)
    concentration: Optional[str] = Field(None, max_length=50)


class CategorizationResponse(BaseModel):
    seasons: list[str]
    occasions: list[str]
    moods: list[str]
    confidence: int

    model_config = ConfigDict(from_attributes=True)


class CategorizeData(BaseModel):
    categorization: CategorizationResponse
    reasoning: str
    fragrance_id: Optional[UUID] = None


class FeedbackRequest(BaseModel):
    fragrance_id: UUID
    feedback_type: Literal["season", "occasion", "mood"]
    ai_suggestion: dict[str, Any]
    user_correction: dict[str, Any]


class FeedbackData(BaseModel):
    message: str
    feedback_id: UUID


class ImproveRequest(BaseModel):
    fragrance_id: UUID
    corrections: dict[str, list[str]] = Field(
        ..., description="Any of seasons / occasions / moods with the values the user prefers"
    )


class AIHealthData(BaseModel):
    provider: str
    healthy: bool


class BatchCategorizeRequest(BaseModel):
    limit: int = Field(30, ge=1, le=500)


class TaskDispatchData(BaseModel):
    task_id: str
    status: str = "PENDING"


class AIFeedbackResponse(BaseModel):
    id: UUID
    fragrance_id: UUID
    feedback_type: str
    ai_suggestion: dict
    user_correction: dict
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserAnalyticsData(BaseModel):
    total_fragrances: int
    total_battles: int
    favorite_seasons: list[NamedCount]
    favorite_occasions: list[NamedCount]
    average_rating: float
    most_used_brands: list[NamedCount]


class CollectionSummary(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    item_count: int


class UserProfileData(BaseModel):
    user: UserResponse
    collections: list[CollectionSummary]
    recent_battles: list[BattleResponse]
    recent_feedback: list[AIFeedbackResponse]


class ActivityEntry(BaseModel):
    type: Literal["collection_add", "battle_created", "ai_feedback"]
    created_at: datetime
    data: dict[str, Any]


class ActivityData(BaseModel):
    activities: list[ActivityEntry]
    page: int
    limit: int
    has_more: bool


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------
class TaskStatusResponse(BaseModel):
    """Current state of a Celery background task."""

    task_id: str
    status: str = Field(..., description="PENDING | STARTED | SUCCESS | FAILURE | RETRY")
    result: Optional[dict] = None
    error: Optional[str] = None
