"""LLM service implementations.

Each provider renders the :class:`PromptTemplate` objects from
``fragrance_battle.infrastructure.llm.prompts`` and funnels the raw reply
through :func:`parse_categorization`, so every provider returns tags from the
same vocabularies.  Provider and parsing failures surface as
:class:`AIServiceError`; there is no silent fallback to mock output.
"""

import json
import logging
import re
from typing import Any

import httpx
import openai

from fragrance_battle.core.errors import AIServiceError
from fragrance_battle.domain.entities import (
    MOODS,
    OCCASIONS,
    SEASONS,
    Categorization,
    FragranceProfile,
)
from fragrance_battle.domain.repositories import ILLMService
from fragrance_battle.infrastructure.llm.prompts import (
    CATEGORIZATION_PROMPT,
    HEALTH_CHECK_PROMPT,
    IMPROVE_CATEGORIZATION_PROMPT,
    profile_fields,
)

logger = logging.getLogger(__name__)

DEFAULT_SEASON = "Spring"
DEFAULT_OCCASION = "Daily"
DEFAULT_MOOD = "Fresh"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------
def _allowed(values: Any, vocabulary: tuple[str, ...]) -> list[str]:
    if not isinstance(values, list):
        raise AIServiceError("AI response lists are malformed")
    lookup = {v.lower(): v for v in vocabulary}
    picked: list[str] = []
    for value in values:
        canonical = lookup.get(str(value).strip().lower())
        if canonical and canonical not in picked:
            picked.append(canonical)
    return picked


def parse_categorization(raw: str) -> Categorization:
    """Validate a provider reply.

    Unknown values are dropped, an emptied list falls back to its default
    (Spring / Daily / Fresh) and confidence is clamped to 0–100.
    """
    text = _CODE_FENCE.sub("", (raw or "").strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Unparseable AI response: %r", raw[:500] if raw else raw)
        raise AIServiceError(f"Failed to parse AI response: {exc.msg}")

    if not isinstance(data, dict):
        raise AIServiceError("Failed to parse AI response: expected a JSON object")
    missing = [key for key in ("seasons", "occasions", "moods") if key not in data]
    confidence = data.get("confidence")
    if missing or isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise AIServiceError("Missing required fields in AI response")

    return Categorization(
        seasons=_allowed(data["seasons"], SEASONS) or [DEFAULT_SEASON],
        occasions=_allowed(data["occasions"], OCCASIONS) or [DEFAULT_OCCASION],
        moods=_allowed(data["moods"], MOODS) or [DEFAULT_MOOD],
        confidence=int(round(max(0.0, min(100.0, float(confidence))))),
        reasoning=str(data.get("reasoning") or "No reasoning provided"),
    )


_FEEDBACK_LABELS = (
    ("seasons", "Correct Seasons"),
    ("occasions", "Correct Occasions"),
    ("moods", "Correct Moods"),
    ("notes", "Additional Notes"),
)


def _feedback_text(corrections: dict[str, list[str]]) -> str:
    lines = []
    for key, label in _FEEDBACK_LABELS:
        if corrections.get(key):
            lines.append(f"{label}: {', '.join(corrections[key])}")
    return "\n".join(lines) or "No specific corrections"


def _previous_text(current: Categorization) -> str:
    return json.dumps(
        {
            "seasons": current.seasons,
            "occasions": current.occasions,
            "moods": current.moods,
            "confidence": current.confidence,
        }
    )


# ---------------------------------------------------------------------------
# Mock (development / testing)
# ---------------------------------------------------------------------------
_NOTE_FAMILIES: list[tuple[frozenset[str], dict[str, list[str]]]] = [
    (
        frozenset({"bergamot", "lemon", "citrus", "grapefruit", "mint", "marine", "aquatic", "neroli", "lime", "orange"}),
        {"seasons": ["Spring", "Summer"], "occasions": ["Daily", "Casual"], "moods": ["Fresh", "Energetic"]},
    ),
    (
        frozenset({"oud", "amber", "vanilla", "tobacco", "leather", "incense", "cinnamon", "tonka", "patchouli"}),
        {"seasons": ["Fall", "Winter"], "occasions": ["Evening", "Date"], "moods": ["Sophisticated", "Confident"]},
    ),
    (
        frozenset({"rose", "jasmine", "iris", "tuberose", "peony", "violet", "lavender", "orange blossom"}),
        {"seasons": ["Spring"], "occasions": ["Date", "Formal"], "moods": ["Romantic"]},
    ),
    (
        frozenset({"apple", "pear", "peach", "berries", "pineapple", "coconut", "candy", "praline"}),
        {"seasons": ["Summer"], "occasions": ["Casual"], "moods": ["Playful"]},
    ),
]


class MockLLMService(ILLMService):
    """Deterministic note-family heuristics, useful for tests and offline dev."""

    def _suggest(self, profile: FragranceProfile, bias: dict[str, list[str]] | None = None) -> str:
        notes = {note.strip().lower() for note in profile.notes}
        picked: dict[str, list[str]] = {"seasons": [], "occasions": [], "moods": []}
        if bias:
            for key in picked:
                picked[key].extend(bias.get(key, []))
        matched = 0
        for keywords, tags in _NOTE_FAMILIES:
            if notes & keywords:
                matched += 1
                for key, values in tags.items():
                    picked[key].extend(v for v in values if v not in picked[key])

        concentration = (profile.concentration or "").upper()
        if concentration in {"EDP", "PARFUM"} and "Evening" not in picked["occasions"]:
            picked["occasions"].append("Evening")
        elif concentration == "EDT" and "Daily" not in picked["occasions"]:
            picked["occasions"].append("Daily")

        families = ", ".join(sorted(notes)) or "no listed notes"
        return json.dumps(
            {
                "seasons": picked["seasons"][:3],
                "occasions": picked["occasions"][:3],
                "moods": picked["moods"][:3],
                "confidence": min(90, 50 + 15 * matched),
                "reasoning": f"Heuristic categorization of {profile.name} from {families}",
            }
        )

    async def categorize(self, profile: FragranceProfile) -> Categorization:
        prompt = CATEGORIZATION_PROMPT.render_flat(**profile_fields(profile))
        logger.debug("MockLLM categorization prompt (%d chars)", len(prompt))
        return parse_categorization(self._suggest(profile))

    async def improve_categorization(
        self,
        profile: FragranceProfile,
        current: Categorization,
        corrections: dict[str, list[str]],
    ) -> Categorization:
        prompt = IMPROVE_CATEGORIZATION_PROMPT.render_flat(
            **profile_fields(profile),
            previous=_previous_text(current),
            feedback=_feedback_text(corrections),
        )
        logger.debug("MockLLM improvement prompt (%d chars)", len(prompt))
        improved = parse_categorization(self._suggest(profile, bias=corrections))
        improved.confidence = max(improved.confidence, current.confidence)
        return improved

    async def health_check(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Llama 3 (local / Ollama)
# ---------------------------------------------------------------------------
class LlamaLLMService(ILLMService):
    """Local LLM service backed by `Ollama <https://ollama.com>`_.

    Talks to the Ollama REST API over HTTP using **httpx** and asks for JSON
    output (``"format": "json"``).

    Constructor args:
        base_url:  Ollama server URL (default ``http://localhost:11434``).
        model:     Model tag pulled into Ollama (default ``llama3``).
        timeout:   Per-request timeout in seconds (default 60).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3",
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    async def _chat(self, messages: list[dict[str, str]]) -> str:
        """Call ``POST /api/chat`` (non-streaming) and return the response text."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.3},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(f"{self.base_url}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Ollama /api/chat failed: %s", exc)
            raise AIServiceError("AI service is unavailable")
        return data.get("message", {}).get("content", "")

    async def categorize(self, profile: FragranceProfile) -> Categorization:
        messages = CATEGORIZATION_PROMPT.render(**profile_fields(profile))
        logger.info("LlamaLLM: categorizing %s by %s (model=%s)", profile.name, profile.brand, self.model)
        return parse_categorization(await self._chat(messages))

    async def improve_categorization(
        self,
        profile: FragranceProfile,
        current: Categorization,
        corrections: dict[str, list[str]],
    ) -> Categorization:
        messages = IMPROVE_CATEGORIZATION_PROMPT.render(
            **profile_fields(profile),
            previous=_previous_text(current),
            feedback=_feedback_text(corrections),
        )
        logger.info("LlamaLLM: improving categorization for %s", profile.name)
        return parse_categorization(await self._chat(messages))

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Ollama health check failed: %s", exc)
            return False


# ---------------------------------------------------------------------------
# OpenAI (remote API)
# ---------------------------------------------------------------------------
class OpenAILLMService(ILLMService):
    """OpenAI-backed provider using JSON-mode chat completions.

    Requires ``LLM_API_KEY`` in env.
    """

    def __init__(self, api_key: str, model: str = "gpt-3.5-turbo-1106", timeout: float = 60.0):
        if not api_key:
            raise ValueError("LLM_API_KEY is required for the openai provider")
        self.model = model
        self.client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def _chat(self, messages: list[dict[str, str]], max_tokens: int = 500) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=0.3,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.AuthenticationError:
            logger.error("OpenAI rejected the configured API key")
            raise AIServiceError("AI service is misconfigured")
        except openai.RateLimitError:
            logger.warning("OpenAI rate limit exceeded")
            raise AIServiceError("AI service rate limit exceeded, please try again shortly")
        except openai.OpenAIError as exc:
            logger.warning("OpenAI call failed: %s", exc)
            raise AIServiceError("AI service is unavailable")
        return response.choices[0].message.content or ""

    async def categorize(self, profile: FragranceProfile) -> Categorization:
        messages = CATEGORIZATION_PROMPT.render(**profile_fields(profile))
        return parse_categorization(await self._chat(messages))

    async def improve_categorization(
        self,
        profile: FragranceProfile,
        current: Categorization,
        corrections: dict[str, list[str]],
    ) -> Categorization:
        messages = IMPROVE_CATEGORIZATION_PROMPT.render(
            **profile_fields(profile),
            previous=_previous_text(current),
            feedback=_feedback_text(corrections),
        )
        return parse_categorization(await self._chat(messages))

    async def health_check(self) -> bool:
        try:
            raw = await self._chat(HEALTH_CHECK_PROMPT.render(), max_tokens=20)
            return json.loads(raw).get("status") == "healthy"
        except (AIServiceError, json.JSONDecodeError, AttributeError):
            return False
