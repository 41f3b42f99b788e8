import json

import httpx
import pytest

from fragrance_battle.core.errors import AIServiceError
from fragrance_battle.domain.entities import Categorization, FragranceProfile
from fragrance_battle.infrastructure.llm.prompts import (
    CATEGORIZATION_PROMPT,
    IMPROVE_CATEGORIZATION_PROMPT,
    PROMPT_REGISTRY,
    profile_fields,
)
from fragrance_battle.infrastructure.llm.services import (
    LlamaLLMService,
    MockLLMService,
    OpenAILLMService,
    parse_categorization,
)

SAUVAGE = FragranceProfile(
    name="Sauvage",
    brand="Dior",
    top_notes=["Bergamot", "Pepper"],
    middle_notes=["Lavender"],
    base_notes=["Ambroxan"],
    year=2015,
    concentration="EDT",
)


def reply(**overrides) -> str:
    payload = {
        "seasons": ["Summer"],
        "occasions": ["Daily"],
        "moods": ["Fresh"],
        "confidence": 80,
        "reasoning": "Citrus opening",
    }
    payload.update(overrides)
    return json.dumps(payload)


class TestParseCategorization:
    def test_plain_json(self):
        result = parse_categorization(reply())
        assert result == Categorization(["Summer"], ["Daily"], ["Fresh"], 80, "Citrus opening")

    def test_code_fences_are_stripped(self):
        result = parse_categorization(f"```json\n{reply()}\n```")
        assert result.seasons == ["Summer"]

    def test_unknown_values_are_dropped_and_case_is_normalized(self):
        result = parse_categorization(reply(seasons=["summer", "Monsoon", "SUMMER", "Fall"]))
        assert result.seasons == ["Summer", "Fall"]

    def test_emptied_lists_fall_back_to_defaults(self):
        result = parse_categorization(reply(seasons=["Monsoon"], occasions=[], moods=["Grumpy"]))
        assert (result.seasons, result.occasions, result.moods) == (["Spring"], ["Daily"], ["Fresh"])

    @pytest.mark.parametrize("raw, expected", [(150, 100), (-5, 0), (72.6, 73)])
    def test_confidence_is_clamped(self, raw, expected):
        assert parse_categorization(reply(confidence=raw)).confidence == expected

    def test_missing_reasoning_gets_placeholder(self):
        data = json.loads(reply())
        del data["reasoning"]
        assert parse_categorization(json.dumps(data)).reasoning == "No reasoning provided"

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "",
            "[1, 2, 3]",
            json.dumps({"seasons": ["Summer"], "occasions": ["Daily"], "confidence": 50}),
            reply(confidence="high"),
            reply(confidence=True),
            reply(seasons="Summer"),
        ],
    )
    def test_invalid_replies_raise(self, raw):
        with pytest.raises(AIServiceError) as exc_info:
            parse_categorization(raw)
        assert exc_info.value.status_code == 502


class TestMockLLMService:
    async def test_citrus_and_floral_notes(self):
        result = await MockLLMService().categorize(SAUVAGE)

        assert result.seasons == ["Spring", "Summer"]
        assert result.occasions == ["Daily", "Casual", "Date"]
        assert result.moods == ["Fresh", "Energetic", "Romantic"]
        assert result.confidence == 80

    async def test_oriental_notes_with_edp(self):
        profile = FragranceProfile(
            name="Tobacco Vanille",
            brand="Tom Ford",
            top_notes=["Tobacco"],
            middle_notes=["Vanilla", "Tonka"],
            base_notes=["Cacao"],
            concentration="EDP",
        )
        result = await MockLLMService().categorize(profile)

        assert result.seasons == ["Fall", "Winter"]
        assert result.occasions == ["Evening", "Date"]
        assert result.moods == ["Sophisticated", "Confident"]
        assert result.confidence == 65

    async def test_no_notes_falls_back_to_defaults(self):
        result = await MockLLMService().categorize(FragranceProfile(name="Mystery", brand="Unknown"))

        assert (result.seasons, result.occasions, result.moods) == (["Spring"], ["Daily"], ["Fresh"])
        assert result.confidence == 50

    async def test_improve_puts_corrections_first(self):
        current = Categorization(["Summer"], ["Daily"], ["Fresh"], 85)
        result = await MockLLMService().improve_categorization(SAUVAGE, current, {"seasons": ["Winter"]})

        assert result.seasons == ["Winter", "Spring", "Summer"]
        assert result.confidence == 85

    async def test_health(self):
        assert await MockLLMService().health_check() is True


def test_prompts_render_profile():
    messages = CATEGORIZATION_PROMPT.render(**profile_fields(SAUVAGE))

    assert [m["role"] for m in messages] == ["system", "user"]
    assert "- Top Notes: Bergamot, Pepper" in messages[1]["content"]
    assert "Options: Spring, Summer, Fall, Winter" in messages[1]["content"]

    flat = IMPROVE_CATEGORIZATION_PROMPT.render_flat(
        **profile_fields(FragranceProfile(name="X", brand="Y")),
        previous="{}",
        feedback="Correct Seasons: Winter",
    )
    assert "- Top Notes: Unknown" in flat
    assert "Correct Seasons: Winter" in flat


@pytest.fixture
def ollama(monkeypatch):
    """Route LlamaLLMService's httpx clients through a MockTransport."""
    requests: list[httpx.Request] = []
    responses: dict[str, httpx.Response] = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses.get(request.url.path, httpx.Response(404))

    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )
    return requests, responses


class TestLlamaLLMService:
    async def test_categorize_posts_chat_request(self, ollama):
        requests, responses = ollama
        responses["/api/chat"] = httpx.Response(200, json={"message": {"content": reply(moods=["Confident"])}})

        result = await LlamaLLMService(base_url="http://ollama:11434/", model="llama3").categorize(SAUVAGE)

        assert result.moods == ["Confident"]
        body = json.loads(requests[0].content)
        assert str(requests[0].url) == "http://ollama:11434/api/chat"
        assert body["model"] == "llama3"
        assert body["format"] == "json"
        assert body["stream"] is False

    async def test_improve_sends_corrections_as_text(self, ollama):
        requests, responses = ollama
        responses["/api/chat"] = httpx.Response(200, json={"message": {"content": reply(seasons=["Winter"])}})
        current = Categorization(["Summer"], ["Daily"], ["Fresh"], 85)

        result = await LlamaLLMService().improve_categorization(
            SAUVAGE, current, {"seasons": ["Winter"], "notes": ["Smoky", "Too sweet"]}
        )

        assert result.seasons == ["Winter"]
        prompt = json.loads(requests[0].content)["messages"][-1]["content"]
        assert "Correct Seasons: Winter" in prompt
        assert "Additional Notes: Smoky, Too sweet" in prompt
        assert "['Smoky'" not in prompt

    async def test_http_failure_becomes_ai_error(self, ollama):
        _, responses = ollama
        responses["/api/chat"] = httpx.Response(500)

        with pytest.raises(AIServiceError):
            await LlamaLLMService().categorize(SAUVAGE)

    async def test_health_check(self, ollama):
        _, responses = ollama
        assert await LlamaLLMService().health_check() is False

        responses["/api/tags"] = httpx.Response(200, json={"models": []})
        assert await LlamaLLMService().health_check() is True


def test_openai_requires_api_key():
    with pytest.raises(ValueError):
        OpenAILLMService(api_key="")


def test_prompt_registry():
    assert sorted(PROMPT_REGISTRY) == ["fragrance_categorization", "fragrance_categorization_feedback", "health_check"]
    assert PROMPT_REGISTRY["fragrance_categorization"] is CATEGORIZATION_PROMPT
