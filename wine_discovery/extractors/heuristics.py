"""
Deterministic field detectors for search snippets.

Each detector is a small class working on lower-cased text. The grape and
region detectors iterate a WineCatalog; none of them call out to anything.
"""

import re
from typing import Optional

from wine_discovery.extractors.catalog import WineCatalog
from wine_discovery.models.schemas import MAX_ALCOHOL, MIN_ALCOHOL, UNKNOWN, WineType


def title_case_words(name: str) -> str:
    """Capitalize each space-separated word: 'cabernet sauvignon' -> 'Cabernet Sauvignon'."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" ") if word)


# =============================================================================
# Grapes
# =============================================================================

class GrapeDetector:
    """Finds catalog grape varieties mentioned in a snippet."""

    def __init__(self, catalog: WineCatalog):
        self.catalog = catalog

    def detect(self, text: str) -> list[str]:
        """
        Return matched varieties, deduplicated, in order of first appearance.

        Longer names are matched first and their spans masked, so
        'sauvignon blanc' does not also report a contained shorter name.
        """
        if not text:
            return []
        masked = text.lower()
        first_seen: dict[str, int] = {}

        for grape in self.catalog.grapes:
            start = masked.find(grape)
            if start < 0:
                continue
            first_seen[grape] = start
            while start >= 0:
                masked = masked[:start] + "\0" * len(grape) + masked[start + len(grape):]
                start = masked.find(grape, start + len(grape))

        ordered = sorted(first_seen, key=first_seen.get)
        return list(dict.fromkeys(title_case_words(g) for g in ordered))


# =============================================================================
# Alcohol
# =============================================================================

class AlcoholParser:
    """
    Picks the alcohol-by-volume figure out of a snippet.

    Percentages followed by a context word (alcohol, alc, vol, abv, content)
    are preferred. Otherwise the first percentage inside the plausible
    alcohol range wins, which skips blend shares such as 38% or 60%.

    Example:
        >>> AlcoholParser.parse("Cabernet Sauvignon 38%, Merlot 17%, 13.5% alcohol")
        13.5
    """

    PATTERN = re.compile(
        r"(?<![\d.])(\d{1,2}(?:[.,]\d{1,2})?)\s?%(?:\s*(alcohol|alc|vol|abv|content)\b)?"
    )

    @classmethod
    def in_range(cls, value: Optional[float]) -> bool:
        return value is not None and MIN_ALCOHOL <= value <= MAX_ALCOHOL

    @classmethod
    def parse(cls, text: str) -> Optional[float]:
        if not text:
            return None

        contextual: list[float] = []
        bare: list[float] = []
        for match in cls.PATTERN.finditer(text.lower()):
            value = float(match.group(1).replace(",", "."))
            if match.group(2):
                contextual.append(value)
            else:
                bare.append(value)

        for value in contextual + bare:
            if cls.in_range(value):
                return value
        return None


# =============================================================================
# Region
# =============================================================================

class RegionDetector:
    """
    Matches known wine regions in lower-cased text.

    Matching is on whole words, not raw substrings, so short region names
    do not fire inside longer words ("Toro" in "Torontel", "Rioja" in
    "Riojano"). Earliest match wins, longer names break ties.
    """

    def __init__(self, catalog: WineCatalog):
        self.catalog = catalog
        self._patterns = [
            (name, re.compile(r"(?<!\w)" + re.escape(name.lower()) + r"(?!\w)"))
            for name in catalog.region_names
        ]

    def find(self, text: str) -> Optional[str]:
        """Earliest match in the text wins; longest name breaks ties."""
        if not text:
            return None
        lowered = text.lower()
        best: Optional[tuple[int, int, str]] = None
        for name, pattern in self._patterns:
            match = pattern.search(lowered)
            if match is None:
                continue
            candidate = (match.start(), -len(name), name)
            if best is None or candidate < best:
                best = candidate
        return best[2] if best else None

    def detect(self, snippet: str, title: str = "") -> tuple[str, str]:
        """Return (region, country), trying the snippet before the title."""
        region = self.find(snippet) or self.find(title)
        if region is None:
            return UNKNOWN, UNKNOWN
        return region, self.catalog.country_for(region) or UNKNOWN


# =============================================================================
# Wine Type
# =============================================================================

class WineTypeClassifier:
    """Keyword classification of wine style, first matching rule wins."""

    TYPE_KEYWORDS: tuple[tuple[WineType, tuple[str, ...]], ...] = (
        (WineType.WHITE, (
            "white wine", "white blend", "blanc", "chardonnay", "riesling",
            "pinot grigio", "pinot gris",
        )),
        (WineType.ROSE, ("rosé", "rose wine", "rosado", "rosato")),
        (WineType.SPARKLING, (
            "sparkling", "champagne", "prosecco", "cava", "crémant", "cremant", "brut",
        )),
        (WineType.DESSERT, (
            "dessert wine", "late harvest", "ice wine", "icewine", "sauternes", "tokaji",
        )),
        (WineType.FORTIFIED, (
            "fortified", "port wine", "tawny port", "ruby port", "sherry", "madeira", "marsala",
        )),
    )

    _RULES = [
        (wine_type, re.compile(
            r"(?<!\w)(?:" + "|".join(re.escape(k) for k in keywords) + r")(?!\w)"
        ))
        for wine_type, keywords in TYPE_KEYWORDS
    ]

    @classmethod
    def classify(cls, text: str) -> WineType:
        lowered = (text or "").lower()
        for wine_type, pattern in cls._RULES:
            if pattern.search(lowered):
                return wine_type
        return WineType.RED
