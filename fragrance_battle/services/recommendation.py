"""Note-based similar-fragrance recommendations.

Each fragrance is a bag of its top/middle/base notes.  Notes are weighted with
TF-IDF so that ubiquitous notes (musk, bergamot) count for less than rare ones,
and candidates are ranked by cosine similarity to the target.  When nothing
shares a note with the target the brand's best-rated fragrances are returned
instead.
"""

import logging
from uuid import UUID

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from fragrance_battle.core.errors import NotFoundError
from fragrance_battle.domain.entities import Fragrance, FragranceFilters
from fragrance_battle.domain.repositories import IFragranceRepository

logger = logging.getLogger(__name__)

CANDIDATE_POOL = 2000
MAX_SIMILAR = 20


def _note_tokens(fragrance: Fragrance) -> list[str]:
    return [note.strip().lower() for note in fragrance.notes if note and note.strip()]


class SimilarFragranceService:

    def __init__(self, fragrance_repository: IFragranceRepository):
        self.fragrance_repository = fragrance_repository

    async def similar(self, fragrance_id: UUID, limit: int = 10) -> list[tuple[Fragrance, float]]:
        """Return up to ``limit`` (fragrance, score) pairs, best first."""
        target = await self.fragrance_repository.get_by_id(fragrance_id)
        if target is None:
            raise NotFoundError("Fragrance")
        limit = max(1, min(limit, MAX_SIMILAR))

        ranked: list[tuple[Fragrance, float]] = []
        if _note_tokens(target):
            candidates = [
                f for f in await self.fragrance_repository.list_all(limit=CANDIDATE_POOL)
                if f.id != target.id and _note_tokens(f)
            ]
            ranked = self.rank_by_notes(target, candidates, limit)

        if ranked:
            return ranked
        logger.debug("No note overlap for %s, falling back to brand top-rated", fragrance_id)
        return await self._brand_fallback(target, limit)

    @staticmethod
    def rank_by_notes(
        target: Fragrance, candidates: list[Fragrance], limit: int
    ) -> list[tuple[Fragrance, float]]:
        if not candidates:
            return []
        vectorizer = TfidfVectorizer(analyzer=_note_tokens)
        matrix = vectorizer.fit_transform([target, *candidates])
        sims = cosine_similarity(matrix[0], matrix[1:])[0]

        order = np.argsort(-sims, kind="stable")
        return [
            (candidates[i], round(float(sims[i]), 4))
            for i in order[:limit]
            if sims[i] > 0
        ]

    async def _brand_fallback(self, target: Fragrance, limit: int) -> list[tuple[Fragrance, float]]:
        same_brand, _ = await self.fragrance_repository.search(
            FragranceFilters(brand=target.brand), 0, limit + 1, sort_by="rating", sort_order="desc"
        )
        return [(f, 0.0) for f in same_brand if f.id != target.id][:limit]
