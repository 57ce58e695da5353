"""SQLAlchemy table definitions for the wine cache."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class WineRow(Base):
    """One discovered wine; (winery, wine_name, vintage) is unique."""

    __tablename__ = "global_wines"
    __table_args__ = (
        UniqueConstraint("winery", "wine_name", "vintage", name="uq_global_wines_natural_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    winery: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    wine_name: Mapped[str] = mapped_column(String(255), nullable=False)
    vintage: Mapped[str] = mapped_column(String(16), nullable=False)
    grapes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    region: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown")
    country: Mapped[str] = mapped_column(String(255), nullable=False, default="Unknown", index=True)
    alcohol_content: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    wine_type: Mapped[str] = mapped_column("type", String(16), nullable=False, default="RED")
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    validated: Mapped[bool] = mapped_column("ai_validated", Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"WineRow(id={self.id}, {self.winery!r}, {self.wine_name!r}, {self.vintage!r})"
