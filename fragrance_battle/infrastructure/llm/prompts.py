"""Structured, reusable prompt templates for LLM interactions.

Every categorization call renders one of the templates below, so prompt
wording lives in one place and is versioned separately from provider code.
"""

from dataclasses import dataclass, field
from typing import Any

from fragrance_battle.domain.entities import MOODS, OCCASIONS, SEASONS, FragranceProfile


@dataclass(frozen=True)
class PromptTemplate:
    """A reusable prompt template with named placeholders.

    Usage::

        messages = CATEGORIZATION_PROMPT.render(**profile_fields(profile))
    """

    name: str
    system: str
    user: str
    description: str = ""
    version: str = "1.0"
    tags: list[str] = field(default_factory=list)

    def render(self, **kwargs: Any) -> list[dict[str, str]]:
        """Return an OpenAI-style messages list with placeholders filled."""
        return [
            {"role": "system", "content": self.system.format(**kwargs)},
            {"role": "user", "content": self.user.format(**kwargs)},
        ]

    def render_flat(self, **kwargs: Any) -> str:
        """Return a single-string prompt (system + user) for simpler APIs."""
        return f"{self.system.format(**kwargs)}\n\n{self.user.format(**kwargs)}"


def _join(values: list[str]) -> str:
    return ", ".join(values) if values else "Unknown"


def profile_fields(profile: FragranceProfile) -> dict[str, Any]:
    """Placeholder values shared by the categorization templates."""
    return {
        "name": profile.name,
        "brand": profile.brand,
        "year": profile.year or "Unknown",
        "concentration": profile.concentration or "Unknown",
        "top_notes": _join(profile.top_notes),
        "middle_notes": _join(profile.middle_notes),
        "base_notes": _join(profile.base_notes),
        "seasons": ", ".join(SEASONS),
        "occasions": ", ".join(OCCASIONS),
        "moods": ", ".join(MOODS),
    }


# =========================================================================
# Pre-defined prompts
# =========================================================================

CATEGORIZATION_PROMPT = PromptTemplate(
    name="fragrance_categorization",
    description="Suggest seasons, occasions and moods for a fragrance.",
    version="1.0",
    tags=["ai", "categorization"],
    system=(
        "You are an expert fragrance consultant with deep knowledge of perfumery, "
        "fragrance families, and seasonal/occasion appropriateness.  "
        "Always respond with valid JSON."
    ),
    user=(
        "Analyze the following fragrance.\n\n"
        "Fragrance Details:\n"
        "- Name: {name}\n"
        "- Brand: {brand}\n"
        "- Year: {year}\n"
        "- Concentration: {concentration}\n"
        "- Top Notes: {top_notes}\n"
        "- Middle Notes: {middle_notes}\n"
        "- Base Notes: {base_notes}\n\n"
        "1. SEASONS: when is it most appropriate? Options: {seasons}\n"
        "2. OCCASIONS: what is it suitable for? Options: {occasions}\n"
        "3. MOODS: what does it convey? Options: {moods}\n"
        "4. CONFIDENCE: your confidence in this categorization (0-100)\n\n"
        "Consider note families (citrus=fresh/summer, oud=sophisticated/fall-winter), "
        "brand positioning, and concentration strength (EDT=daily, EDP=evening).\n\n"
        "Return ONLY a JSON object in this exact format:\n"
        '{{"seasons": ["Season1"], "occasions": ["Occasion1"], "moods": ["Mood1"], '
        '"confidence": 85, "reasoning": "Brief explanation"}}\n\n'
        "Use only the exact option values and select 1-3 items for each category."
    ),
)

IMPROVE_CATEGORIZATION_PROMPT = PromptTemplate(
    name="fragrance_categorization_feedback",
    description="Re-categorize a fragrance using a user's corrections.",
    version="1.0",
    tags=["ai", "categorization", "feedback"],
    system=(
        "You are learning from user feedback to improve your fragrance "
        "categorization accuracy.  Always respond with valid JSON."
    ),
    user=(
        "A user has corrected your previous categorization.\n\n"
        "Fragrance:\n"
        "- Name: {name}\n"
        "- Brand: {brand}\n"
        "- Top Notes: {top_notes}\n"
        "- Middle Notes: {middle_notes}\n"
        "- Base Notes: {base_notes}\n\n"
        "Previous categorization: {previous}\n\n"
        "User feedback:\n{feedback}\n\n"
        "Provide an improved categorization that takes the corrections into account, "
        "as a JSON object with keys seasons, occasions, moods, confidence (0-100) and reasoning.\n\n"
        "Available options:\n"
        "- Seasons: {seasons}\n"
        "- Occasions: {occasions}\n"
        "- Moods: {moods}"
    ),
)

HEALTH_CHECK_PROMPT = PromptTemplate(
    name="health_check",
    description="Minimal round trip to verify the provider answers.",
    version="1.0",
    tags=["ai", "health"],
    system='Return a simple JSON object with a "status" field set to "healthy".',
    user="Health check",
)

# Registry for programmatic access
PROMPT_REGISTRY: dict[str, PromptTemplate] = {
    tpl.name: tpl
    for tpl in [
        CATEGORIZATION_PROMPT,
        IMPROVE_CATEGORIZATION_PROMPT,
        HEALTH_CHECK_PROMPT,
    ]
}
