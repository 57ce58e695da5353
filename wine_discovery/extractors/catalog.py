"""
Static lookup tables for heuristic extraction.

Grape varieties and wine regions are data, not branching: the heuristic
extractor only iterates these tables, and deployments can extend them
through the EXTRA_GRAPE_VARIETIES / EXTRA_WINE_REGIONS settings.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional


# =============================================================================
# Grape Varieties
# =============================================================================

GRAPE_VARIETIES: tuple[str, ...] = (
    # Red
    "cabernet sauvignon",
    "cabernet franc",
    "merlot",
    "pinot noir",
    "syrah",
    "shiraz",
    "petite sirah",
    "malbec",
    "tempranillo",
    "sangiovese",
    "nebbiolo",
    "barbera",
    "dolcetto",
    "grenache",
    "garnacha",
    "mourvèdre",
    "mourvedre",
    "carignan",
    "cinsault",
    "zinfandel",
    "primitivo",
    "petit verdot",
    "carménère",
    "carmenere",
    "gamay",
    "pinotage",
    "touriga nacional",
    "tannat",
    "aglianico",
    "montepulciano",
    "corvina",
    "nero d'avola",
    "mencía",
    "blaufränkisch",
    "argaman",
    "marselan",
    # White
    "chardonnay",
    "sauvignon blanc",
    "riesling",
    "pinot grigio",
    "pinot gris",
    "pinot blanc",
    "chenin blanc",
    "gewürztraminer",
    "gewurztraminer",
    "viognier",
    "sémillon",
    "semillon",
    "muscat",
    "moscato",
    "grüner veltliner",
    "albariño",
    "albarino",
    "verdejo",
    "vermentino",
    "marsanne",
    "roussanne",
    "grenache blanc",
    "trebbiano",
    "garganega",
    "torrontés",
    "assyrtiko",
    "furmint",
    "glera",
    "colombard",
)


# =============================================================================
# Wine Regions
# =============================================================================

WINE_REGIONS: dict[str, str] = {
    # Israel
    "Galilee": "Israel",
    "Upper Galilee": "Israel",
    "Golan Heights": "Israel",
    "Judean Hills": "Israel",
    "Shomron": "Israel",
    "Negev": "Israel",
    # France
    "Bordeaux": "France",
    "Médoc": "France",
    "Pauillac": "France",
    "Margaux": "France",
    "Saint-Émilion": "France",
    "Pomerol": "France",
    "Burgundy": "France",
    "Bourgogne": "France",
    "Chablis": "France",
    "Beaujolais": "France",
    "Champagne": "France",
    "Alsace": "France",
    "Loire": "France",
    "Rhône": "France",
    "Rhone": "France",
    "Châteauneuf-du-Pape": "France",
    "Provence": "France",
    "Languedoc": "France",
    "Sauternes": "France",
    # Italy
    "Tuscany": "Italy",
    "Chianti": "Italy",
    "Montalcino": "Italy",
    "Piedmont": "Italy",
    "Barolo": "Italy",
    "Barbaresco": "Italy",
    "Veneto": "Italy",
    "Valpolicella": "Italy",
    "Sicily": "Italy",
    "Puglia": "Italy",
    "Friuli": "Italy",
    # Spain
    "Rioja": "Spain",
    "Ribera del Duero": "Spain",
    "Priorat": "Spain",
    "Rías Baixas": "Spain",
    "Jerez": "Spain",
    "Penedès": "Spain",
    "Toro": "Spain",
    # Portugal
    "Douro": "Portugal",
    "Alentejo": "Portugal",
    "Vinho Verde": "Portugal",
    "Madeira": "Portugal",
    # Germany and Austria
    "Mosel": "Germany",
    "Rheingau": "Germany",
    "Pfalz": "Germany",
    "Wachau": "Austria",
    "Burgenland": "Austria",
    # United States
    "Napa Valley": "United States",
    "Napa": "United States",
    "Sonoma": "United States",
    "Paso Robles": "United States",
    "Santa Barbara": "United States",
    "Willamette Valley": "United States",
    "Columbia Valley": "United States",
    "Finger Lakes": "United States",
    # Southern hemisphere
    "Mendoza": "Argentina",
    "Salta": "Argentina",
    "Maipo Valley": "Chile",
    "Colchagua": "Chile",
    "Casablanca Valley": "Chile",
    "Barossa Valley": "Australia",
    "Barossa": "Australia",
    "McLaren Vale": "Australia",
    "Margaret River": "Australia",
    "Yarra Valley": "Australia",
    "Coonawarra": "Australia",
    "Marlborough": "New Zealand",
    "Central Otago": "New Zealand",
    "Hawke's Bay": "New Zealand",
    "Stellenbosch": "South Africa",
    "Swartland": "South Africa",
    # Elsewhere
    "Tokaj": "Hungary",
    "Santorini": "Greece",
    "Bekaa Valley": "Lebanon",
    "Kakheti": "Georgia",
}


# =============================================================================
# Catalog
# =============================================================================

@dataclass
class WineCatalog:
    """
    Grape and region lookup tables used by the heuristic extractor.

    Example:
        >>> catalog = WineCatalog.default(extra_regions={"Carmel": "Israel"})
        >>> catalog.country_for("carmel")
        'Israel'
    """

    grapes: tuple[str, ...] = GRAPE_VARIETIES
    regions: Mapping[str, str] = field(default_factory=lambda: dict(WINE_REGIONS))

    def __post_init__(self):
        # Longest first so multi-word names are tried before the names they contain
        self.grapes = tuple(
            sorted(dict.fromkeys(g.strip().lower() for g in self.grapes if g.strip()), key=len, reverse=True)
        )
        self._region_lookup = {name.lower(): name for name in self.regions}

    @classmethod
    def default(
        cls,
        extra_grapes: Optional[Iterable[str]] = None,
        extra_regions: Optional[Mapping[str, str]] = None,
    ) -> "WineCatalog":
        """Build the built-in catalog, optionally extended."""
        regions = dict(WINE_REGIONS)
        regions.update(extra_regions or {})
        return cls(grapes=GRAPE_VARIETIES + tuple(extra_grapes or ()), regions=regions)

    @property
    def region_names(self) -> list[str]:
        return sorted(self.regions, key=len, reverse=True)

    def canonical_region(self, name: str) -> str:
        return self._region_lookup.get(name.lower(), name)

    def country_for(self, region: str) -> Optional[str]:
        return self.regions.get(self.canonical_region(region))
