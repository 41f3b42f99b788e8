"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fragrance_battle.api.admin_routes import router as admin_router
from fragrance_battle.api.ai_routes import router as ai_router
from fragrance_battle.api.auth_routes import router as auth_router
from fragrance_battle.api.battle_routes import router as battle_router
from fragrance_battle.api.brand_routes import router as brand_router
from fragrance_battle.api.collection_routes import router as collection_router
from fragrance_battle.api.fragrance_routes import router as fragrance_router
from fragrance_battle.api.task_routes import router as task_router
from fragrance_battle.api.user_routes import router as user_router
from fragrance_battle.core.config import settings
from fragrance_battle.core.errors import register_exception_handlers
from fragrance_battle.infrastructure.database.connection import dispose_db, init_db

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    await init_db()
    logger.info("Database initialized")
    yield
    await dispose_db()
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Fragrance discovery, collections and head-to-head battles with AI categorization",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for router in (
    auth_router,
    fragrance_router,
    brand_router,
    collection_router,
    battle_router,
    ai_router,
    user_router,
    admin_router,
    task_router,
):
    app.include_router(router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "features": {
            "ai_provider": settings.llm_provider,
            "rate_limit_backend": settings.rate_limit_backend,
            "background_tasks": True,
        },
    }
