"""
Integration tests for the CLI using Click's CliRunner.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch
from click.testing import CliRunner
from rich.console import Console

from wine_discovery.main import cli
from wine_discovery.models.schemas import (
    DiscoveryFailure,
    DiscoveryResult,
    FailureReason,
    RejectionReason,
    WineSource,
)
from wine_discovery.config.settings import Settings
from wine_discovery.utils.retry import DiscoveryInternalError

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(settings):
    """Patch settings loading and logging setup for every command."""
    with patch("wine_discovery.main.get_settings", return_value=settings):
        with patch("wine_discovery.main.setup_logging"):
            # Wide console so rich does not wrap the asserted text
            with patch("wine_discovery.main.console", Console(width=200)):
                yield settings


@pytest.fixture
def mock_pipeline():
    """Patches the pipeline class the CLI instantiates."""
    instance = AsyncMock()
    instance.__aenter__.return_value = instance
    instance.__aexit__.return_value = None
    with patch("wine_discovery.main.WineDiscoveryPipeline", return_value=instance):
        yield instance

# =============================================================================
# discover
# =============================================================================

def test_discover_success(runner, mock_pipeline, sample_wine):
    mock_pipeline.discover.return_value = DiscoveryResult(run_id="run-1", wine=sample_wine.model_copy(update={"id": 7}))

    result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama", "--vintage", "2018"])

    assert result.exit_code == 0
    assert "Galilee" in result.output
    assert "Discovered" in result.output
    mock_pipeline.discover.assert_awaited_once_with("Tabor Winery", "Adama", "2018")


def test_discover_defaults_to_non_vintage(runner, mock_pipeline, sample_wine):
    mock_pipeline.discover.return_value = DiscoveryResult(run_id="run-1", wine=sample_wine, cache_hit=True)

    result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama"])

    assert result.exit_code == 0
    assert "Found in cache" in result.output
    mock_pipeline.discover.assert_awaited_once_with("Tabor Winery", "Adama", None)


def test_discover_json(runner, mock_pipeline, sample_wine):
    mock_pipeline.discover.return_value = DiscoveryResult(run_id="run-1", wine=sample_wine)

    result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama", "--vintage", "2018", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["run_id"] == "run-1"
    assert data["wine"]["wineName"] == "Adama"
    assert data["wine"]["type"] == "RED"
    assert data["failure"] is None


def test_discover_failure_exits_1(runner, mock_pipeline):
    mock_pipeline.discover.return_value = DiscoveryResult(
        run_id="run-2",
        failure=DiscoveryFailure(
            reason=FailureReason.VALIDATION_REJECTED,
            rejection=RejectionReason.INVALID_VINTAGE,
            detail="vintage out of range [1900, 2024]: 2030",
        ),
    )

    result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama", "--vintage", "2030"])

    assert result.exit_code == 1
    assert "Please manually enter the wine information" in result.output
    assert "invalid_vintage" in result.output


def test_discover_internal_error_exits_1(runner, mock_pipeline):
    mock_pipeline.discover.side_effect = DiscoveryInternalError("Unexpected discovery error: boom")

    result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama"])

    assert result.exit_code == 1
    assert "Unexpected discovery error" in result.output


def test_discover_configuration_error(runner):
    def broken_settings():
        return Settings(_env_file=None, ANTHROPIC_API_KEY="not-a-key")

    with patch("wine_discovery.main.get_settings", side_effect=broken_settings):
        result = runner.invoke(cli, ["discover", "Tabor Winery", "Adama"])

    assert result.exit_code == 1
    assert "Configuration Error" in result.output

# =============================================================================
# Read-only commands
# =============================================================================

def test_show(runner, mock_pipeline, sample_wine):
    mock_pipeline.get_wine.return_value = sample_wine.model_copy(update={"id": 3})

    result = runner.invoke(cli, ["show", "3"])

    assert result.exit_code == 0
    assert "Cabernet Sauvignon" in result.output
    mock_pipeline.get_wine.assert_awaited_once_with(3)


def test_bracketed_names_render_literally(runner, mock_pipeline, sample_wine):
    odd = sample_wine.model_copy(update={"id": 4, "winery": "Domaine [red]X", "wine_name": "Cuvee [/x]"})
    mock_pipeline.get_wine.return_value = odd
    mock_pipeline.find_by_name_contains.return_value = [odd]
    mock_pipeline.discover.return_value = DiscoveryResult(run_id="run-3", wine=odd)

    shown = runner.invoke(cli, ["show", "4"])
    found = runner.invoke(cli, ["search", "--name", "cuvee"])
    discovered = runner.invoke(cli, ["discover", "Domaine [red]X", "Cuvee [/x]"])

    for result in (shown, found, discovered):
        assert result.exit_code == 0, result.output
        assert "Cuvee [/x]" in result.output
        assert "Domaine [red]X" in result.output


def test_show_missing(runner, mock_pipeline):
    mock_pipeline.get_wine.return_value = None

    result = runner.invoke(cli, ["show", "99"])

    assert result.exit_code == 1
    assert "No wine with id 99" in result.output


def test_search_combines_filters(runner, mock_pipeline, sample_wine):
    adama = sample_wine.model_copy(update={"id": 1})
    other = sample_wine.model_copy(update={"id": 2, "wine_name": "Malkiya", "region": "Rioja"})
    mock_pipeline.find_by_winery_contains.return_value = [adama, other]
    mock_pipeline.find_by_source.return_value = [adama]

    result = runner.invoke(cli, ["search", "--winery", "tabor", "--source", "heuristic"])

    assert result.exit_code == 0
    assert "Adama" in result.output
    assert "Malkiya" not in result.output
    mock_pipeline.find_by_source.assert_awaited_once_with(WineSource.HEURISTIC)


def test_search_requires_a_filter(runner, mock_pipeline):
    result = runner.invoke(cli, ["search"])
    assert result.exit_code == 2


def test_search_no_matches(runner, mock_pipeline):
    mock_pipeline.find_by_country.return_value = []

    result = runner.invoke(cli, ["search", "--country", "Atlantis"])

    assert result.exit_code == 0
    assert "No matching wines" in result.output


def test_validated(runner, mock_pipeline, sample_wine):
    mock_pipeline.find_all_validated.return_value = [sample_wine.model_copy(update={"id": 1})]

    result = runner.invoke(cli, ["validated"])

    assert result.exit_code == 0
    assert "Adama" in result.output

# =============================================================================
# validate-setup
# =============================================================================

def test_validate_setup_pass(runner):
    result = runner.invoke(cli, ["validate-setup"])
    assert result.exit_code == 0
    assert "serper" in result.output
    assert "heuristic" in result.output


def test_validate_setup_without_search_provider(runner, settings_factory):
    with patch("wine_discovery.main.get_settings", return_value=settings_factory(SERPER_API_KEY=None)):
        result = runner.invoke(cli, ["validate-setup"])
    assert result.exit_code == 1
    assert "No search provider configured" in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output
