"""Search query construction for wine discovery."""

from typing import Optional

from wine_discovery.models.schemas import NON_VINTAGE


def has_vintage(vintage: Optional[str]) -> bool:
    """True when vintage is present and not the non-vintage token."""
    return bool(vintage and vintage.strip() and vintage.strip().upper() != NON_VINTAGE)


def build_query(winery: str, wine_name: str, vintage: Optional[str] = None) -> str:
    """
    Build the web search query for a wine.

    Example:
        >>> build_query("Tabor Winery", "Adama", "2018")
        'Tabor Winery Adama 2018 wine'
        >>> build_query("Tabor Winery", "Adama", "nv")
        'Tabor Winery Adama wine'
    """
    if has_vintage(vintage):
        return f"{winery} {wine_name} {vintage.strip()} wine"
    return f"{winery} {wine_name} wine"


def build_image_query(winery: str, wine_name: str, vintage: Optional[str] = None) -> str:
    """Build the bottle image search query for a wine."""
    return build_query(winery, wine_name, vintage) + " bottle"
