"""Catalog browsing, search and brand lookups."""

import logging
from dataclasses import fields
from typing import Any, Optional
from uuid import UUID, uuid4

from fragrance_battle.core.errors import NotFoundError
from fragrance_battle.domain.entities import (
    MOODS,
    OCCASIONS,
    SEASONS,
    Fragrance,
    FragranceFilters,
    Page,
)
from fragrance_battle.domain.naming import format_brand_name
from fragrance_battle.domain.repositories import IFragranceRepository

logger = logging.getLogger(__name__)

FILTER_BRAND_LIMIT = 50
TOP_RATED_LIMIT = 5

_MUTABLE_FIELDS = {f.name for f in fields(Fragrance)} - {"id", "created_at", "updated_at"}


def _brand_letter(brand: str) -> str:
    first = brand.strip()[:1].upper()
    return first if first.isalpha() else "#"


class FragranceService:

    def __init__(self, fragrance_repository: IFragranceRepository):
        self.fragrance_repository = fragrance_repository

    async def search(
        self,
        filters: FragranceFilters,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "popularity",
        sort_order: str = "desc",
    ) -> Page[Fragrance]:
        items, total = await self.fragrance_repository.search(
            filters, Page.offset(page, limit), limit, sort_by, sort_order
        )
        return Page(items=items, page=page, limit=limit, total_count=total)

    async def list_fragrances(
        self, page: int = 1, limit: int = 20, sort_by: str = "popularity", sort_order: str = "desc"
    ) -> Page[Fragrance]:
        return await self.search(FragranceFilters(), page, limit, sort_by, sort_order)

    async def get_fragrance(self, fragrance_id: UUID) -> Fragrance:
        fragrance = await self.fragrance_repository.get_by_id(fragrance_id)
        if fragrance is None:
            raise NotFoundError("Fragrance")
        return fragrance

    async def get_fragrance_details(self, fragrance_id: UUID) -> tuple[Fragrance, dict]:
        fragrance = await self.get_fragrance(fragrance_id)
        battles, collections = await self.fragrance_repository.usage_counts(fragrance_id)
        return fragrance, {"battles_participated": battles, "in_collections": collections}

    async def get_filter_options(self) -> dict:
        brands = await self.fragrance_repository.top_brands(limit=FILTER_BRAND_LIMIT)
        concentrations = await self.fragrance_repository.concentration_counts()
        return {
            "brands": [{"name": b, "display_name": format_brand_name(b), "count": n} for b, n in brands],
            "concentrations": [{"name": c, "count": n} for c, n in concentrations],
            "seasons": list(SEASONS),
            "occasions": list(OCCASIONS),
            "moods": list(MOODS),
        }

    async def search_brands(self, query: str, limit: int = 10) -> list[dict]:
        brands = await self.fragrance_repository.top_brands(limit=limit, query=query.strip())
        return [{"name": b, "display_name": format_brand_name(b), "count": n} for b, n in brands]

    # -- admin catalog maintenance ---------------------------------------------

    async def create_fragrance(self, data: dict[str, Any]) -> Fragrance:
        fragrance = Fragrance(id=uuid4(), **{k: v for k, v in data.items() if k in _MUTABLE_FIELDS})
        created = await self.fragrance_repository.create(fragrance)
        logger.info("Fragrance created: %s (%s)", created.id, created.name)
        return created

    async def update_fragrance(self, fragrance_id: UUID, changes: dict[str, Any]) -> Fragrance:
        fragrance = await self.get_fragrance(fragrance_id)
        for key, value in changes.items():
            if key in _MUTABLE_FIELDS:
                setattr(fragrance, key, value)
        return await self.fragrance_repository.update(fragrance)

    async def delete_fragrance(self, fragrance_id: UUID) -> None:
        if not await self.fragrance_repository.delete(fragrance_id):
            raise NotFoundError("Fragrance")
        logger.info("Fragrance deleted: %s", fragrance_id)

    # -- brands -----------------------------------------------------------------

    async def list_brands(self, letter: Optional[str] = None) -> dict:
        """Brands grouped by their first letter (non-letters under ``#``)."""
        brands = await self.fragrance_repository.brand_counts(letter=letter)
        grouped: dict[str, list[dict]] = {}
        for brand, count in brands:
            grouped.setdefault(_brand_letter(brand), []).append(
                {"name": brand, "display_name": format_brand_name(brand), "count": count}
            )
        return {
            "brands": dict(sorted(grouped.items())),
            "total_brands": len(brands),
            "letters": sorted(grouped),
        }

    async def get_brand(self, brand: str, page: int = 1, limit: int = 20) -> tuple[dict, Page[Fragrance]]:
        summary = await self.fragrance_repository.brand_stats(brand)
        if summary is None:
            raise NotFoundError("Brand")
        filters = FragranceFilters(brand=brand)
        top_rated, _ = await self.fragrance_repository.search(
            filters, 0, TOP_RATED_LIMIT, sort_by="rating", sort_order="desc"
        )
        summary = {
            **summary,
            "display_name": format_brand_name(summary["brand"]),
            "average_rating": round(summary["average_rating"], 2),
            "average_popularity": round(summary["average_popularity"], 2),
            "top_rated": top_rated,
        }
        return summary, await self.search(filters, page, limit, "popularity", "desc")
