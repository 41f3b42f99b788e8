"""Catalog health reports for administrators."""

import logging

from fragrance_battle.domain.naming import analyze_fragrance_name
from fragrance_battle.domain.repositories import IFragranceRepository

logger = logging.getLogger(__name__)

TIER_ONE_PRIORITY = 0.9
HIGH_QUALITY_SCORE = 0.8
NAMING_EXAMPLE_LIMIT = 10


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class AdminService:

    def __init__(self, fragrance_repository: IFragranceRepository):
        self.fragrance_repository = fragrance_repository

    async def population_stats(self) -> dict:
        stats = await self.fragrance_repository.population_stats()
        total = stats["total_fragrances"]
        coverage_keys = ("verified", "with_year", "with_notes", "ai_categorized", "trending")
        return {
            **stats,
            "average_rating": round(stats["average_rating"], 2),
            "coverage": {key: _percent(stats[key], total) for key in coverage_keys},
        }

    async def market_coverage(self) -> dict:
        return await self.fragrance_repository.market_coverage(tier_one_threshold=TIER_ONE_PRIORITY)

    async def data_quality(self) -> dict:
        """Quality score summary plus brand-redundant names found by the normalizer."""
        stats = await self.fragrance_repository.quality_stats(high_quality_threshold=HIGH_QUALITY_SCORE)
        fragrances = await self.fragrance_repository.list_all()

        issues = []
        for fragrance in fragrances:
            cleanup = analyze_fragrance_name(fragrance.name, fragrance.brand)
            if cleanup.has_redundancy:
                issues.append((fragrance, cleanup))
        logger.info("Data quality scan: %d of %d names redundant", len(issues), len(fragrances))

        return {
            "total_fragrances": stats["total_fragrances"],
            "average_quality": round(stats["average_quality"], 3),
            "high_quality": stats["high_quality"],
            "high_quality_percentage": _percent(stats["high_quality"], stats["total_fragrances"]),
            "naming_issues": {
                "scanned": len(fragrances),
                "count": len(issues),
                "percentage": _percent(len(issues), len(fragrances)),
                "examples": [
                    {
                        "id": fragrance.id,
                        "brand": fragrance.brand,
                        "name": cleanup.original,
                        "display_name": cleanup.cleaned,
                        "pattern": cleanup.pattern.value,
                    }
                    for fragrance, cleanup in issues[:NAMING_EXAMPLE_LIMIT]
                ],
            },
        }
