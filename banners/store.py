"""
banners/store.py -- SQLAlchemy-backed persistence layer for banners.

Uses SQLAlchemy Core (not ORM) so the Banner dataclass in banners/models.py
remains the authoritative domain representation.

Pattern: Repository + Data Mapper. BannerStore is the repository;
_row_to_banner is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = BannerStore("sqlite:///bannerboard.db")
    banner_id = store.create_banner(banner)
    banners = store.list_banners()
    store.update_banner(banner_id, title="Summer sale")
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from banners.models import Banner
from core.db import make_engine, store_errors

# Fields update_banner() accepts. Anything else is a programming error.
_MUTABLE_FIELDS = {"title", "description", "link", "image_url", "is_active"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_banners = Table(
    "banners",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("image_url", String(512), nullable=False),
    Column("link", String(2048)),
    Column("is_active", Integer, nullable=False, server_default="1"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BannerStore:
    def __init__(self, db_url: str, timeout: float = 5.0, engine: Optional[Engine] = None) -> None:
        self.engine: Engine = engine or make_engine(db_url, timeout)
        with store_errors("banners.create_table"):
            metadata.create_all(self.engine)

    def create_banner(self, banner: Banner) -> int:
        """Insert a banner and return its ID."""
        now = _now_iso()
        with store_errors("banners.insert"), self.engine.connect() as conn:
            result = conn.execute(
                _banners.insert().values(
                    title=banner.title,
                    description=banner.description,
                    image_url=banner.image_url,
                    link=banner.link,
                    is_active=1 if banner.is_active else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_banner(self, banner_id: int) -> Optional[Banner]:
        with store_errors("banners.get"), self.engine.connect() as conn:
            row = conn.execute(_banners.select().where(_banners.c.id == banner_id)).fetchone()
        return _row_to_banner(row) if row is not None else None

    def list_banners(self, active_only: bool = False) -> list[Banner]:
        """Return banners oldest first, optionally only the active ones."""
        query = _banners.select().order_by(_banners.c.id)
        if active_only:
            query = query.where(_banners.c.is_active == 1)
        with store_errors("banners.list"), self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_banner(r) for r in rows]

    def update_banner(self, banner_id: int, **fields) -> bool:
        """Update the given fields and stamp updated_at.

        Returns True if a row was updated, False if banner_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown banner fields: {unknown!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with store_errors("banners.update"), self.engine.connect() as conn:
            result = conn.execute(_banners.update().where(_banners.c.id == banner_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_banner(self, banner_id: int) -> bool:
        with store_errors("banners.delete"), self.engine.connect() as conn:
            result = conn.execute(_banners.delete().where(_banners.c.id == banner_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_banner(row) -> Banner:
    return Banner(
        id=row.id,
        title=row.title,
        description=row.description,
        image_url=row.image_url,
        link=row.link,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
