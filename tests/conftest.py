import pytest
from unittest.mock import AsyncMock, MagicMock

from wine_discovery.config.settings import Settings
from wine_discovery.models.schemas import WineRecord, WineSource
from wine_discovery.services.search_service import OrganicResult, SearchPayload, SearchService
from wine_discovery.services.validation_service import ValidationService
from wine_discovery.storage.repository import InMemoryWineStore

TABOR_SNIPPET = "Tabor Adama 2018, Cabernet Sauvignon, Galilee, 14% alcohol"


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values = {
        "SERPER_API_KEY": "serper-test-key",
        "SERPAPI_API_KEY": None,
        "ANTHROPIC_API_KEY": None,
        "DATABASE_URL": "memory://",
        "EXTRACTION_STRATEGY": "heuristic",
        "SEARCH_TIMEOUT_SECONDS": 2.0,
        "EXTRACTION_TIMEOUT_SECONDS": 2.0,
        "SEARCH_MAX_ATTEMPTS": 1,
        "LOG_JSON": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_payload(snippet: str = TABOR_SNIPPET, title: str = "Tabor Adama 2018", **kwargs) -> SearchPayload:
    query = kwargs.pop("query", "Tabor Winery Adama 2018 wine")
    return SearchPayload(
        query=query,
        provider="serper",
        organic=[OrganicResult(title=title, snippet=snippet, link="https://tabor.example/adama", position=1)],
        **kwargs,
    )


def make_search_service(payload=None, image_url=None) -> MagicMock:
    """A SearchService double whose text search returns ``payload``."""
    service = MagicMock(spec=SearchService)
    service.text_search = AsyncMock(return_value=payload if payload is not None else make_payload())
    service.image_search = AsyncMock(return_value=image_url)
    service.close = AsyncMock()
    return service


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def memory_store():
    return InMemoryWineStore()


@pytest.fixture
def tabor_payload():
    return make_payload()


@pytest.fixture
def search_service(tabor_payload):
    return make_search_service(tabor_payload, image_url="https://img.example/adama.jpg")


@pytest.fixture
def validator():
    return ValidationService(current_year=lambda: 2024)


@pytest.fixture
def sample_wine():
    return WineRecord(
        winery="Tabor Winery",
        wine_name="Adama",
        vintage="2018",
        grapes=["Cabernet Sauvignon"],
        region="Galilee",
        country="Israel",
        alcohol_content=14.0,
        wine_type="RED",
        source=WineSource.HEURISTIC,
        validated=True,
    )


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def payload_factory():
    return make_payload


@pytest.fixture
def search_factory():
    return make_search_service
