"""Storage module for the Wine Discovery Pipeline."""

from wine_discovery.storage.models import Base, WineRow
from wine_discovery.storage.repository import (
    WineStore,
    SqlAlchemyWineStore,
    InMemoryWineStore,
    create_wine_store,
    MEMORY_URL,
)

__all__ = [
    "Base",
    "WineRow",
    "WineStore",
    "SqlAlchemyWineStore",
    "InMemoryWineStore",
    "create_wine_store",
    "MEMORY_URL",
]
