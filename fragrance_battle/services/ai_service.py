"""AI categorization: on-demand tagging, user feedback and batch runs."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from fragrance_battle.core.errors import AIServiceError, BadRequestError, NotFoundError
from fragrance_battle.domain.entities import (
    FEEDBACK_TYPES,
    MOODS,
    OCCASIONS,
    SEASONS,
    AIFeedback,
    Categorization,
    Fragrance,
    FragranceProfile,
    User,
)
from fragrance_battle.domain.repositories import (
    IAIFeedbackRepository,
    IFragranceRepository,
    ILLMService,
)

logger = logging.getLogger(__name__)

STORED_CONFIDENCE = 85
STORED_REASONING = "Previously categorized fragrance data"
RECENT_WINDOW = timedelta(days=7)

# feedback_type -> (correction key, fragrance attribute, vocabulary)
_FEEDBACK_TARGETS = {
    "season": ("seasons", "ai_seasons", SEASONS),
    "occasion": ("occasions", "ai_occasions", OCCASIONS),
    "mood": ("moods", "ai_moods", MOODS),
}


def stored_categorization(fragrance: Fragrance) -> Categorization:
    return Categorization(
        seasons=list(fragrance.ai_seasons),
        occasions=list(fragrance.ai_occasions),
        moods=list(fragrance.ai_moods),
        confidence=STORED_CONFIDENCE,
        reasoning=STORED_REASONING,
    )


class AIService:

    def __init__(
        self,
        llm_service: ILLMService,
        fragrance_repository: IFragranceRepository,
        feedback_repository: IAIFeedbackRepository,
    ):
        self.llm_service = llm_service
        self.fragrance_repository = fragrance_repository
        self.feedback_repository = feedback_repository

    async def _apply(self, fragrance: Fragrance, categorization: Categorization) -> Fragrance:
        fragrance.ai_seasons = list(categorization.seasons)
        fragrance.ai_occasions = list(categorization.occasions)
        fragrance.ai_moods = list(categorization.moods)
        return await self.fragrance_repository.update(fragrance)

    async def categorize(
        self, profile: FragranceProfile, user: Optional[User] = None
    ) -> tuple[Categorization, Optional[UUID]]:
        """Categorize arbitrary input.

        Signed-in callers also update the matching catalog entry, found by
        case-insensitive name and brand.
        """
        categorization = await self.llm_service.categorize(profile)
        if user is None:
            return categorization, None

        fragrance = await self.fragrance_repository.find_by_name_and_brand(profile.name, profile.brand)
        if fragrance is None:
            return categorization, None
        await self._apply(fragrance, categorization)
        logger.info("AI tags updated for fragrance %s by user %s", fragrance.id, user.id)
        return categorization, fragrance.id

    async def categorize_existing(self, fragrance_id: UUID) -> tuple[Categorization, Fragrance]:
        """Return stored tags, generating and storing them first if there are none."""
        fragrance = await self.fragrance_repository.get_by_id(fragrance_id)
        if fragrance is None:
            raise NotFoundError("Fragrance")
        if fragrance.is_categorized:
            return stored_categorization(fragrance), fragrance

        categorization = await self.llm_service.categorize(FragranceProfile.from_fragrance(fragrance))
        return categorization, await self._apply(fragrance, categorization)

    async def submit_feedback(
        self,
        user: User,
        fragrance_id: UUID,
        feedback_type: str,
        ai_suggestion: dict,
        user_correction: dict,
    ) -> AIFeedback:
        """Record a correction and apply it to the fragrance's tags for that type."""
        if feedback_type not in FEEDBACK_TYPES:
            raise BadRequestError(f"feedback_type must be one of: {', '.join(FEEDBACK_TYPES)}")
        fragrance = await self.fragrance_repository.get_by_id(fragrance_id)
        if fragrance is None:
            raise NotFoundError("Fragrance")

        key, attribute, vocabulary = _FEEDBACK_TARGETS[feedback_type]
        corrected = user_correction.get(key)
        if not isinstance(corrected, list) or not corrected:
            raise BadRequestError(f"user_correction.{key} must be a non-empty list")
        invalid = [value for value in corrected if value not in vocabulary]
        if invalid:
            raise BadRequestError(
                f"Invalid {key}: {', '.join(map(str, invalid))}",
                details={"allowed": list(vocabulary)},
            )

        feedback = await self.feedback_repository.create(
            AIFeedback(
                id=uuid4(),
                user_id=user.id,
                fragrance_id=fragrance_id,
                feedback_type=feedback_type,
                ai_suggestion=ai_suggestion,
                user_correction=user_correction,
            )
        )
        setattr(fragrance, attribute, list(dict.fromkeys(corrected)))
        await self.fragrance_repository.update(fragrance)
        logger.info("AI %s feedback %s applied to fragrance %s", feedback_type, feedback.id, fragrance_id)
        return feedback

    async def improve(self, fragrance_id: UUID, corrections: dict) -> Categorization:
        fragrance = await self.fragrance_repository.get_by_id(fragrance_id)
        if fragrance is None:
            raise NotFoundError("Fragrance")
        current = stored_categorization(fragrance)
        return await self.llm_service.improve_categorization(
            FragranceProfile.from_fragrance(fragrance), current, corrections
        )

    async def health(self) -> bool:
        return await self.llm_service.health_check()

    async def get_stats(self) -> dict:
        return {
            "total_categorized": await self.fragrance_repository.count_categorized(),
            "categorized_last_7_days": await self.fragrance_repository.count_categorized(
                since=datetime.utcnow() - RECENT_WINDOW
            ),
            "total_feedback": await self.feedback_repository.count(),
            "feedback_by_type": await self.feedback_repository.count_by_type(),
        }

    async def categorize_batch(
        self, limit: int = 30, batch_size: int = 3, delay_seconds: float = 2.0
    ) -> dict:
        """Categorize up to ``limit`` untagged fragrances.

        Provider calls within a batch run concurrently; writes happen one at a
        time on the shared session.  Batches are separated by ``delay_seconds``
        to stay under provider rate limits.
        """
        pending = await self.fragrance_repository.list_uncategorized(limit=limit)
        succeeded, failed = 0, 0
        for start in range(0, len(pending), batch_size):
            if start:
                await asyncio.sleep(delay_seconds)
            batch = pending[start:start + batch_size]
            results = await asyncio.gather(
                *(self.llm_service.categorize(FragranceProfile.from_fragrance(f)) for f in batch),
                return_exceptions=True,
            )
            for fragrance, result in zip(batch, results):
                if isinstance(result, AIServiceError):
                    failed += 1
                    logger.warning("Batch categorization failed for %s: %s", fragrance.id, result.message)
                    continue
                if isinstance(result, BaseException):
                    raise result
                await self._apply(fragrance, result)
                succeeded += 1
        logger.info("Batch categorization: %d succeeded, %d failed", succeeded, failed)
        return {"processed": len(pending), "succeeded": succeeded, "failed": failed}
