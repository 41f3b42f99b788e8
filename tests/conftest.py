import os

# Settings are read once at import time.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LLM_PROVIDER", "mock")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from fragrance_battle.core import dependencies  # noqa: E402
from fragrance_battle.core.rate_limit import InMemoryRateLimitStore, rate_limit_store  # noqa: E402
from fragrance_battle.core.redis_client import get_redis  # noqa: E402
from fragrance_battle.core.security import hash_password  # noqa: E402
from fragrance_battle.domain.entities import Fragrance, User  # noqa: E402
from fragrance_battle.infrastructure.llm.services import MockLLMService  # noqa: E402
from fragrance_battle.main import app  # noqa: E402
from fragrance_battle.services.auth_service import AuthService  # noqa: E402
from tests.fakes import (  # noqa: E402
    FakeAIFeedbackRepository,
    FakeBattleRepository,
    FakeCollectionRepository,
    FakeFragranceRepository,
    FakeRedis,
    FakeUserRepository,
    InMemoryDatabase,
)
from tests.helpers import auth_header, make_fragrance, register  # noqa: E402


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def user_repo(db):
    return FakeUserRepository(db)


@pytest.fixture
def fragrance_repo(db):
    return FakeFragranceRepository(db)


@pytest.fixture
def collection_repo(db):
    return FakeCollectionRepository(db)


@pytest.fixture
def battle_repo(db):
    return FakeBattleRepository(db)


@pytest.fixture
def feedback_repo(db):
    return FakeAIFeedbackRepository(db)


@pytest.fixture
def llm():
    return MockLLMService()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def catalog(db) -> dict[str, Fragrance]:
    """A handful of fragrances with overlapping notes and brands."""
    fragrances = {
        "sauvage": make_fragrance(
            "Sauvage", "Dior", year=2015, concentration="EDT",
            top_notes=["Bergamot", "Pepper"], middle_notes=["Lavender"], base_notes=["Ambroxan"],
            community_rating=4.2, popularity_score=95, verified=True, market_priority=0.95,
            trending=True, target_demographic="men", data_quality_score=0.9,
        ),
        "homme": make_fragrance(
            "Dior Homme Intense Dior 2011", "Dior", year=2011, concentration="EDP",
            top_notes=["Lavender"], middle_notes=["Iris"], base_notes=["Vetiver"],
            community_rating=4.6, popularity_score=80, market_priority=0.92, data_quality_score=0.6,
        ),
        "aventus": make_fragrance(
            "Aventus", "Creed", year=2010, concentration="EDP",
            top_notes=["Pineapple", "Bergamot"], middle_notes=["Birch"], base_notes=["Musk"],
            community_rating=4.5, popularity_score=90, trending=True, data_quality_score=0.85,
            ai_seasons=["Spring", "Summer"], ai_occasions=["Daily"], ai_moods=["Confident"],
        ),
        "tobacco": make_fragrance(
            "Tobacco Vanille", "Tom Ford", year=2007, concentration="EDP",
            top_notes=["Tobacco"], middle_notes=["Vanilla", "Tonka"], base_notes=["Cacao"],
            community_rating=4.4, popularity_score=70, data_quality_score=0.4,
        ),
    }
    for fragrance in fragrances.values():
        db.fragrances[fragrance.id] = fragrance
    return fragrances


@pytest.fixture
def client(db, fake_redis):
    """TestClient over the real app with fakes behind every dependency.

    The app is used without a ``with`` block, so the lifespan (and the
    database) is never started.
    """
    app.dependency_overrides[dependencies.get_user_repository] = lambda: FakeUserRepository(db)
    app.dependency_overrides[dependencies.get_fragrance_repository] = lambda: FakeFragranceRepository(db)
    app.dependency_overrides[dependencies.get_collection_repository] = lambda: FakeCollectionRepository(db)
    app.dependency_overrides[dependencies.get_battle_repository] = lambda: FakeBattleRepository(db)
    app.dependency_overrides[dependencies.get_feedback_repository] = lambda: FakeAIFeedbackRepository(db)
    app.dependency_overrides[dependencies.get_llm_service] = MockLLMService
    app.dependency_overrides[get_redis] = lambda: fake_redis
    if isinstance(rate_limit_store, InMemoryRateLimitStore):
        rate_limit_store.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def alice(client) -> dict:
    data = register(client, "alice")
    return {**data, "headers": auth_header(data["token"])}


@pytest.fixture
def bob(client) -> dict:
    data = register(client, "bob")
    return {**data, "headers": auth_header(data["token"])}


@pytest.fixture
def admin_headers(db) -> dict[str, str]:
    admin = User(
        id=uuid4(),
        username="admin",
        email="admin@example.com",
        hashed_password=hash_password("adminpass"),
        is_admin=True,
    )
    db.users[admin.id] = admin
    return auth_header(AuthService.issue_token(admin))
