"""
Persistent wine cache.

Provides the WineStore interface used by the discovery pipeline and two
implementations:
    - SqlAlchemyWineStore: SQLAlchemy 2.0 over any SQL database (SQLite by default)
    - InMemoryWineStore: process-local store for tests and dry runs

Natural-key uniqueness is enforced at write time. A duplicate insert raises
DuplicateWineError so callers can re-read the winning record.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wine_discovery.config.settings import Settings, get_settings
from wine_discovery.models.schemas import WineRecord, WineSource, WineType
from wine_discovery.storage.models import Base, WineRow
from wine_discovery.utils.logger import get_logger
from wine_discovery.utils.retry import DuplicateWineError

logger = get_logger(__name__)

MEMORY_URL = "memory://"


# =============================================================================
# Store Interface
# =============================================================================

class WineStore(ABC):
    """Abstract interface for the wine cache."""

    @abstractmethod
    async def find_by_key(self, winery: str, wine_name: str, vintage: str) -> Optional[WineRecord]:
        """Exact natural-key match first, else the oldest case-insensitive match."""
        pass

    @abstractmethod
    async def save(self, record: WineRecord) -> WineRecord:
        """
        Insert a new record and return it with its assigned id.

        Raises:
            DuplicateWineError: A record with the same natural key exists
        """
        pass

    @abstractmethod
    async def get_by_id(self, wine_id: int) -> Optional[WineRecord]:
        pass

    @abstractmethod
    async def find_by_winery_contains(self, text: str) -> list[WineRecord]:
        pass

    @abstractmethod
    async def find_by_name_contains(self, text: str) -> list[WineRecord]:
        pass

    @abstractmethod
    async def find_all_validated(self) -> list[WineRecord]:
        pass

    @abstractmethod
    async def find_by_country(self, country: str) -> list[WineRecord]:
        pass

    @abstractmethod
    async def find_by_region(self, region: str) -> list[WineRecord]:
        pass

    @abstractmethod
    async def find_by_source(self, source: WineSource) -> list[WineRecord]:
        pass

    @abstractmethod
    async def count(self) -> int:
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        return None


# =============================================================================
# SQLAlchemy Store
# =============================================================================

def _enable_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    # WAL mode for better concurrent access
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.close()


class SqlAlchemyWineStore(WineStore):
    """
    SQL-backed wine cache.

    Blocking SQLAlchemy work runs in worker threads so the event loop is
    never blocked. Each operation uses its own session and transaction.

    Example:
        >>> store = SqlAlchemyWineStore("sqlite:///wines.db")
        >>> wine = await store.find_by_key("Tabor Winery", "Adama", "2018")
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            engine = self._create_engine(database_url or get_settings().database_url)
        self.engine = engine
        self._sessions = sessionmaker(self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)
        logger.info("Wine store initialized", url=self.engine.url.render_as_string(hide_password=True))

    @staticmethod
    def _create_engine(database_url: str) -> Engine:
        if not database_url.startswith("sqlite"):
            return create_engine(database_url, pool_pre_ping=True)

        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every thread sees an empty database
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )

        engine = create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 30})
        event.listen(engine, "connect", _enable_sqlite_pragmas)
        return engine

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Context manager for transactions."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # Sync Operations
    # =========================================================================

    def _find_by_key_sync(self, winery: str, wine_name: str, vintage: str) -> Optional[WineRecord]:
        with self._session() as session:
            exact = session.execute(
                select(WineRow).where(
                    WineRow.winery == winery,
                    WineRow.wine_name == wine_name,
                    WineRow.vintage == vintage,
                )
            ).scalar_one_or_none()
            if exact is not None:
                return self._to_domain(exact)

            folded = session.execute(
                select(WineRow)
                .where(
                    func.lower(WineRow.winery) == winery.lower(),
                    func.lower(WineRow.wine_name) == wine_name.lower(),
                    func.lower(WineRow.vintage) == vintage.lower(),
                )
                .order_by(WineRow.id)
                .limit(1)
            ).scalar_one_or_none()
            return self._to_domain(folded) if folded else None

    def _save_sync(self, record: WineRecord) -> WineRecord:
        row = self._to_row(record)
        try:
            with self._session() as session:
                session.add(row)
                session.flush()
        except IntegrityError as e:
            logger.info("Duplicate wine rejected by store", key=list(record.natural_key))
            raise DuplicateWineError(record.natural_key) from e
        return self._to_domain(row)

    def _get_by_id_sync(self, wine_id: int) -> Optional[WineRecord]:
        with self._session() as session:
            row = session.get(WineRow, wine_id)
            return self._to_domain(row) if row else None

    def _list_sync(self, *criteria) -> list[WineRecord]:
        with self._session() as session:
            rows = session.execute(
                select(WineRow).where(*criteria).order_by(WineRow.id)
            ).scalars().all()
            return [self._to_domain(r) for r in rows]

    def _count_sync(self) -> int:
        with self._session() as session:
            return session.execute(select(func.count()).select_from(WineRow)).scalar() or 0

    # =========================================================================
    # Async API
    # =========================================================================

    async def find_by_key(self, winery: str, wine_name: str, vintage: str) -> Optional[WineRecord]:
        return await asyncio.to_thread(self._find_by_key_sync, winery, wine_name, vintage)

    async def save(self, record: WineRecord) -> WineRecord:
        return await asyncio.to_thread(self._save_sync, record)

    async def get_by_id(self, wine_id: int) -> Optional[WineRecord]:
        return await asyncio.to_thread(self._get_by_id_sync, wine_id)

    async def find_by_winery_contains(self, text: str) -> list[WineRecord]:
        return await asyncio.to_thread(
            self._list_sync, WineRow.winery.icontains(text, autoescape=True)
        )

    async def find_by_name_contains(self, text: str) -> list[WineRecord]:
        return await asyncio.to_thread(
            self._list_sync, WineRow.wine_name.icontains(text, autoescape=True)
        )

    async def find_all_validated(self) -> list[WineRecord]:
        return await asyncio.to_thread(self._list_sync, WineRow.validated.is_(True))

    async def find_by_country(self, country: str) -> list[WineRecord]:
        return await asyncio.to_thread(
            self._list_sync, func.lower(WineRow.country) == country.lower()
        )

    async def find_by_region(self, region: str) -> list[WineRecord]:
        return await asyncio.to_thread(
            self._list_sync, func.lower(WineRow.region) == region.lower()
        )

    async def find_by_source(self, source: WineSource) -> list[WineRecord]:
        return await asyncio.to_thread(
            self._list_sync, WineRow.source == WineSource(source).value
        )

    async def count(self) -> int:
        return await asyncio.to_thread(self._count_sync)

    async def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Mapping
    # =========================================================================

    @staticmethod
    def _to_row(record: WineRecord) -> WineRow:
        return WineRow(
            winery=record.winery,
            wine_name=record.wine_name,
            vintage=record.vintage,
            grapes=list(record.grapes),
            region=record.region,
            country=record.country,
            alcohol_content=record.alcohol_content,
            wine_type=WineType(record.wine_type).value,
            image_url=record.image_url,
            source=WineSource(record.source).value,
            validated=record.validated,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _to_domain(row: WineRow) -> WineRecord:
        """Convert DB model to domain model."""
        return WineRecord(
            id=row.id,
            winery=row.winery,
            wine_name=row.wine_name,
            vintage=row.vintage,
            grapes=list(row.grapes or []),
            region=row.region,
            country=row.country,
            alcohol_content=row.alcohol_content,
            wine_type=row.wine_type,
            image_url=row.image_url,
            source=row.source,
            validated=row.validated,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


# =============================================================================
# In-Memory Store
# =============================================================================

class InMemoryWineStore(WineStore):
    """Process-local wine cache with the same uniqueness rule as the SQL store."""

    def __init__(self):
        self._rows: dict[int, WineRecord] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    def _snapshot(self) -> list[WineRecord]:
        return [r.model_copy(deep=True) for _, r in sorted(self._rows.items())]

    async def find_by_key(self, winery: str, wine_name: str, vintage: str) -> Optional[WineRecord]:
        rows = self._snapshot()
        for row in rows:
            if row.natural_key == (winery, wine_name, vintage):
                return row
        folded = (winery.lower(), wine_name.lower(), vintage.lower())
        for row in rows:
            if tuple(part.lower() for part in row.natural_key) == folded:
                return row
        return None

    async def save(self, record: WineRecord) -> WineRecord:
        async with self._lock:
            if any(r.natural_key == record.natural_key for r in self._rows.values()):
                raise DuplicateWineError(record.natural_key)
            stored = record.model_copy(deep=True, update={"id": self._next_id})
            self._rows[self._next_id] = stored
            self._next_id += 1
            return stored.model_copy(deep=True)

    async def get_by_id(self, wine_id: int) -> Optional[WineRecord]:
        row = self._rows.get(wine_id)
        return row.model_copy(deep=True) if row else None

    async def find_by_winery_contains(self, text: str) -> list[WineRecord]:
        return [r for r in self._snapshot() if text.lower() in r.winery.lower()]

    async def find_by_name_contains(self, text: str) -> list[WineRecord]:
        return [r for r in self._snapshot() if text.lower() in r.wine_name.lower()]

    async def find_all_validated(self) -> list[WineRecord]:
        return [r for r in self._snapshot() if r.validated]

    async def find_by_country(self, country: str) -> list[WineRecord]:
        return [r for r in self._snapshot() if r.country.lower() == country.lower()]

    async def find_by_region(self, region: str) -> list[WineRecord]:
        return [r for r in self._snapshot() if r.region.lower() == region.lower()]

    async def find_by_source(self, source: WineSource) -> list[WineRecord]:
        wanted = WineSource(source).value
        return [r for r in self._snapshot() if r.source == wanted]

    async def count(self) -> int:
        return len(self._rows)


# =============================================================================
# Factory
# =============================================================================

def create_wine_store(settings: Optional[Settings] = None) -> WineStore:
    """Build the store named by DATABASE_URL ('memory://' selects the in-memory store)."""
    settings = settings or get_settings()
    if settings.database_url == MEMORY_URL:
        return InMemoryWineStore()
    return SqlAlchemyWineStore(settings.database_url)
