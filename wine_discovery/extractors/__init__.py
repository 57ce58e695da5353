"""
Extractors module for the Wine Discovery Pipeline.

Components:
    - build_query / build_image_query: Search query construction
    - WineExtractor: Extraction strategy interface
    - AIWineExtractor / HeuristicWineExtractor / FallbackWineExtractor
    - create_extractor: Strategy selection from settings
    - WineCatalog: Grape and region lookup tables
"""

from wine_discovery.extractors.query_builder import build_query, build_image_query
from wine_discovery.extractors.catalog import WineCatalog, GRAPE_VARIETIES, WINE_REGIONS
from wine_discovery.extractors.heuristics import (
    AlcoholParser,
    GrapeDetector,
    RegionDetector,
    WineTypeClassifier,
)
from wine_discovery.extractors.wine_extractor import (
    WineExtractor,
    AIWineExtractor,
    HeuristicWineExtractor,
    FallbackWineExtractor,
    create_extractor,
)

__all__ = [
    "build_query",
    "build_image_query",
    "WineCatalog",
    "GRAPE_VARIETIES",
    "WINE_REGIONS",
    "AlcoholParser",
    "GrapeDetector",
    "RegionDetector",
    "WineTypeClassifier",
    "WineExtractor",
    "AIWineExtractor",
    "HeuristicWineExtractor",
    "FallbackWineExtractor",
    "create_extractor",
]
