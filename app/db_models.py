"""SQLAlchemy ORM models backing the side indexes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class TorrentInfo(Base):
    """Title and size known for a content hash, keyed by hash."""

    __tablename__ = "torrent_info"

    hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text, default="")
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    source: Mapped[str] = mapped_column(String(16), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class TorrentStream(Base):
    """A file inside a content hash mapped to an external stream id."""

    __tablename__ = "torrent_stream"

    hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    file_index: Mapped[int] = mapped_column(Integer, primary_key=True, default=0)
    strem_id: Mapped[str] = mapped_column(String(128), default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
