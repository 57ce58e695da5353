"""
Claude prompts for wine field extraction.

The extraction prompt embeds the organic search results and asks for a
strict JSON object with the wine's identity and attributes. Output is
parsed by AIWineExtractor, which tolerates markdown code fences.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wine_discovery.services.search_service import SearchPayload


# =============================================================================
# Prompt Configuration
# =============================================================================

@dataclass
class PromptConfig:
    """Configuration for a prompt template."""
    name: str
    description: str
    recommended_temperature: float
    recommended_max_tokens: int

    def __repr__(self) -> str:
        return f"PromptConfig({self.name}, temp={self.recommended_temperature})"


# =============================================================================
# Wine Extraction
# =============================================================================

WINE_EXTRACTION_CONFIG = PromptConfig(
    name="wine_extraction",
    description="Extract structured wine information from web search results",
    recommended_temperature=0.0,
    recommended_max_tokens=1024,
)

WINE_EXTRACTION_SYSTEM = """You are a sommelier and wine data specialist. You read web search results about a single wine and return its structured details.

<guidelines>
1. ACCURACY: Only use information present in the search results or well-established facts about the named wine.
2. FORMAT: Output one valid JSON object and nothing else. No markdown, no commentary.
3. IDENTITY: The winery, wine name and vintage identify the wine as the user asked for it. Report them as given.
</guidelines>"""

WINE_EXTRACTION_USER = """Extract structured wine information from the following search results.
Return ONLY a valid JSON object with these exact fields (no markdown, no extra text):
{{
    "winery": "string",
    "wineName": "string",
    "vintage": "string (year or 'NV')",
    "grapes": ["array", "of", "grape", "varieties"],
    "region": "string",
    "country": "string",
    "alcoholContent": "number (5-22)",
    "type": "one of RED, WHITE, ROSE, SPARKLING, DESSERT, FORTIFIED"
}}

Wine to find:
- Winery: {winery}
- Wine Name: {wine_name}
- Vintage: {vintage}

Search Results:
{search_results}

If information is missing, use reasonable defaults:
- For vintage: use 'NV' if not found
- For grapes: use empty array if not found
- For alcohol content: use null if not found
- For region: use the primary region if not found

Return ONLY the JSON object, nothing else."""


def render_search_results(payload: "SearchPayload") -> str:
    """Render organic results as a numbered plain-text block."""
    lines = []
    for result in payload.organic:
        lines.append(f"{result.position}. {result.title}")
        if result.snippet:
            lines.append(f"   {result.snippet}")
        if result.link:
            lines.append(f"   {result.link}")
    return "\n".join(lines)


def format_wine_extraction_prompt(
    winery: str,
    wine_name: str,
    vintage: str,
    payload: "SearchPayload",
) -> tuple[str, str]:
    """
    Format the wine extraction prompt with provided data.

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    user_prompt = WINE_EXTRACTION_USER.format(
        winery=winery,
        wine_name=wine_name,
        vintage=vintage,
        search_results=render_search_results(payload),
    )
    return WINE_EXTRACTION_SYSTEM, user_prompt
