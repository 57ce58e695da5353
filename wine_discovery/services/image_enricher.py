"""
Best-effort bottle image lookup for discovered wines.

Enrichment never fails a discovery run: any error or empty result leaves
the record's image URL unset.
"""

from typing import Optional

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.extractors.query_builder import build_image_query
from wine_discovery.models.schemas import WineRecord
from wine_discovery.services.search_service import SearchService
from wine_discovery.utils.logger import get_logger
from wine_discovery.utils.retry import AppError, call_with_timeout

logger = get_logger(__name__)


class ImageEnricher:
    """
    Fills ``image_url`` from an image search.

    Example:
        >>> enricher = ImageEnricher(search_service)
        >>> await enricher.enrich(wine)
        'https://example.com/adama.jpg'
    """

    def __init__(self, search_service: SearchService, settings: Optional[Settings] = None):
        self.search = search_service
        self.settings = settings or get_settings()

    @property
    def enabled(self) -> bool:
        return self.settings.image_enrichment_enabled

    async def enrich(self, record: WineRecord) -> Optional[str]:
        """Look up an image for the record and set it; return the URL or None."""
        if not self.enabled:
            return None

        query = build_image_query(record.winery, record.wine_name, record.vintage)
        try:
            image_url = await call_with_timeout(
                self.search.image_search(query),
                self.settings.search_timeout_seconds,
                "image_search",
            )
        except AppError as e:
            logger.info("Image enrichment skipped", query=query, error=str(e))
            return None
        except Exception as e:
            logger.warning(
                "Image enrichment failed",
                query=query,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if not image_url:
            logger.info("No image found", query=query)
            return None

        record.image_url = image_url
        logger.debug("Image enrichment completed", query=query, image_url=image_url)
        return image_url
