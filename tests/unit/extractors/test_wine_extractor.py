import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from wine_discovery.extractors.prompts import (
    WINE_EXTRACTION_SYSTEM,
    format_wine_extraction_prompt,
    render_search_results,
)
from wine_discovery.extractors.wine_extractor import (
    AIWineExtractor,
    FallbackWineExtractor,
    HeuristicWineExtractor,
    create_extractor,
)
from wine_discovery.models.schemas import DiscoveryRequest, WineSource, WineType
from wine_discovery.services.llm_service import ClaudeServiceError
from wine_discovery.services.search_service import SearchPayload
from wine_discovery.utils.retry import ExtractionFailedError


@pytest.fixture
def request_2018():
    return DiscoveryRequest(winery="Tabor Winery", wine_name="Adama", vintage="2018")


@pytest.fixture
def empty_payload():
    return SearchPayload(query="Tabor Winery Adama 2018 wine", provider="serper")


def model_reply(**fields) -> str:
    return "```json\n" + json.dumps(fields) + "\n```"


# =============================================================================
# Prompts
# =============================================================================

def test_render_search_results(tabor_payload):
    rendered = render_search_results(tabor_payload)
    assert rendered.startswith("1. Tabor Adama 2018")
    assert "Galilee, 14% alcohol" in rendered
    assert "https://tabor.example/adama" in rendered


def test_format_prompt_embeds_request_and_results(tabor_payload):
    system, user = format_wine_extraction_prompt("Tabor Winery", "Adama", "2018", tabor_payload)
    assert system == WINE_EXTRACTION_SYSTEM
    assert "- Winery: Tabor Winery" in user
    assert "- Vintage: 2018" in user
    assert '"alcoholContent"' in user
    assert "Cabernet Sauvignon, Galilee" in user


# =============================================================================
# Heuristic Strategy
# =============================================================================

@pytest.mark.asyncio
async def test_heuristic_extracts_tabor(request_2018, tabor_payload):
    wine = await HeuristicWineExtractor().extract(request_2018, tabor_payload)

    assert wine.winery == "Tabor Winery"
    assert wine.wine_name == "Adama"
    assert wine.vintage == "2018"
    assert wine.grapes == ["Cabernet Sauvignon"]
    assert wine.region == "Galilee"
    assert wine.country == "Israel"
    assert wine.alcohol_content == 14.0
    assert wine.wine_type == WineType.RED.value
    assert wine.source == WineSource.HEURISTIC.value
    assert wine.validated is False


@pytest.mark.asyncio
async def test_heuristic_uses_only_first_result(request_2018, payload_factory):
    payload = payload_factory(snippet="Bold red from Rioja", title="Adama")
    payload.organic.append(payload.organic[0].model_copy(update={"snippet": "Chardonnay from Galilee", "position": 2}))

    wine = await HeuristicWineExtractor().extract(request_2018, payload)
    assert wine.region == "Rioja"
    assert wine.grapes == []


@pytest.mark.asyncio
async def test_heuristic_empty_payload_fails(request_2018, empty_payload):
    with pytest.raises(ExtractionFailedError):
        await HeuristicWineExtractor().extract(request_2018, empty_payload)


# =============================================================================
# AI Strategy
# =============================================================================

@pytest.mark.asyncio
async def test_ai_extracts_fenced_json(settings, request_2018, tabor_payload):
    llm = AsyncMock()
    llm.complete.return_value = model_reply(
        winery="Tabor Winery",
        wineName="Adama",
        vintage=2018,
        grapes=["Cabernet Sauvignon", "Cabernet Sauvignon"],
        region="Galilee",
        country="Israel",
        alcoholContent="14%",
        type="RED",
    )

    wine = await AIWineExtractor(llm, settings=settings).extract(request_2018, tabor_payload)

    assert wine.vintage == "2018"
    assert wine.grapes == ["Cabernet Sauvignon"]
    assert wine.alcohol_content == 14.0
    assert wine.source == WineSource.AI.value
    llm.complete.assert_awaited_once()
    _, kwargs = llm.complete.call_args
    assert kwargs["system"] == WINE_EXTRACTION_SYSTEM


@pytest.mark.asyncio
async def test_ai_keeps_requested_identity(settings, tabor_payload):
    llm = AsyncMock()
    llm.complete.return_value = model_reply(
        winery="Tabor Winery Ltd.",
        wineName="Adama Cabernet",
        vintage="2018",
        region="Galilee",
    )
    request = DiscoveryRequest(winery="Tabor Winery", wine_name="Adama")

    wine = await AIWineExtractor(llm, settings=settings).extract(request, tabor_payload)

    assert wine.natural_key == ("Tabor Winery", "Adama", "NV")
    assert wine.region == "Galilee"


@pytest.mark.asyncio
async def test_ai_missing_fields_fall_back(settings, request_2018, payload_factory):
    llm = AsyncMock()
    llm.complete.return_value = 'Here you go: {"grapes": "Chardonnay, Viognier", "alcoholContent": null}'
    payload = payload_factory(snippet="A crisp white wine from the coast")

    wine = await AIWineExtractor(llm, settings=settings).extract(request_2018, payload)

    assert wine.winery == "Tabor Winery"
    assert wine.wine_name == "Adama"
    assert wine.vintage == "2018"
    assert wine.grapes == ["Chardonnay", "Viognier"]
    assert wine.region == "Unknown"
    assert wine.country == "Unknown"
    assert wine.alcohol_content is None
    # No type from the model: classified from the top snippet
    assert wine.wine_type == WineType.WHITE.value


@pytest.mark.parametrize("reply", ["not json at all", "[1, 2, 3]", "```json\n{broken\n```"])
def test_ai_malformed_reply(settings, request_2018, reply):
    extractor = AIWineExtractor(AsyncMock(), settings=settings)
    with pytest.raises(ExtractionFailedError):
        extractor.parse_response(reply, request_2018)


@pytest.mark.asyncio
async def test_ai_model_error_becomes_extraction_failure(settings, request_2018, tabor_payload):
    llm = AsyncMock()
    llm.complete.side_effect = ClaudeServiceError("Authentication failed")

    with pytest.raises(ExtractionFailedError):
        await AIWineExtractor(llm, settings=settings).extract(request_2018, tabor_payload)


@pytest.mark.asyncio
async def test_ai_timeout_becomes_extraction_failure(settings_factory, request_2018, tabor_payload):
    async def slow(*args, **kwargs):
        await asyncio.sleep(1)
        return "{}"

    llm = AsyncMock()
    llm.complete.side_effect = slow
    settings = settings_factory(EXTRACTION_TIMEOUT_SECONDS=0.05)

    with pytest.raises(ExtractionFailedError):
        await AIWineExtractor(llm, settings=settings).extract(request_2018, tabor_payload)


@pytest.mark.asyncio
async def test_ai_empty_payload_fails_without_model_call(settings, request_2018, empty_payload):
    llm = AsyncMock()
    with pytest.raises(ExtractionFailedError):
        await AIWineExtractor(llm, settings=settings).extract(request_2018, empty_payload)
    llm.complete.assert_not_awaited()


# =============================================================================
# Fallback and Factory
# =============================================================================

@pytest.mark.asyncio
async def test_fallback_uses_heuristic_when_ai_fails(settings, request_2018, tabor_payload):
    llm = AsyncMock()
    llm.complete.return_value = "I could not find that wine."
    extractor = FallbackWineExtractor(AIWineExtractor(llm, settings=settings), HeuristicWineExtractor())

    wine = await extractor.extract(request_2018, tabor_payload)

    assert extractor.name == "ai+heuristic"
    assert wine.source == WineSource.HEURISTIC.value
    assert wine.region == "Galilee"


def test_create_extractor_heuristic(settings):
    assert isinstance(create_extractor(settings), HeuristicWineExtractor)


def test_create_extractor_auto_without_backend(settings_factory):
    assert isinstance(create_extractor(settings_factory(EXTRACTION_STRATEGY="auto")), HeuristicWineExtractor)


def test_create_extractor_auto_with_backend(settings_factory):
    extractor = create_extractor(settings_factory(EXTRACTION_STRATEGY="auto"), llm_service=AsyncMock())
    assert isinstance(extractor, FallbackWineExtractor)
    assert isinstance(extractor.primary, AIWineExtractor)


def test_create_extractor_ai_only(settings_factory):
    extractor = create_extractor(settings_factory(EXTRACTION_STRATEGY="ai"), llm_service=AsyncMock())
    assert isinstance(extractor, AIWineExtractor)


def test_create_extractor_kill_switch(settings_factory):
    settings = settings_factory(EXTRACTION_STRATEGY="ai", AI_EXTRACTION_ENABLED=False)
    assert isinstance(create_extractor(settings, llm_service=AsyncMock()), HeuristicWineExtractor)


def test_create_extractor_builds_claude_client_from_key(settings_factory):
    settings = settings_factory(EXTRACTION_STRATEGY="auto", ANTHROPIC_API_KEY="sk-ant-test")
    extractor = create_extractor(settings)
    assert isinstance(extractor, FallbackWineExtractor)
    assert extractor.primary.llm.settings is settings
