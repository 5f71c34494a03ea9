"""Write side of the persistent torrent metadata index."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import TorrentInfo

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TorrentInfoRecord:
    """Metadata collected for a content hash while listing a store."""

    hash: str
    title: str
    size: int
    source: str


class TorrentInfoIndex:
    """Batch upserts of listing metadata keyed by content hash."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(
        self, records: Sequence[TorrentInfoRecord], *, dedupe_by_hash: bool = True
    ) -> int:
        """Insert unknown hashes and, when ``dedupe_by_hash``, refresh known ones.

        Returns the number of rows written.
        """

        latest: dict[str, TorrentInfoRecord] = {}
        for record in records:
            if record.hash:
                latest[record.hash] = record
        if not latest:
            return 0

        written = 0
        async with self._session_factory() as session:
            result = await session.execute(
                select(TorrentInfo).where(TorrentInfo.hash.in_(list(latest)))
            )
            existing = {row.hash: row for row in result.scalars()}
            now = datetime.utcnow()
            for content_hash, record in latest.items():
                row = existing.get(content_hash)
                if row is None:
                    session.add(
                        TorrentInfo(
                            hash=content_hash,
                            title=record.title,
                            size=record.size,
                            source=record.source,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    written += 1
                    continue
                if not dedupe_by_hash:
                    continue
                row.title = record.title or row.title
                row.size = record.size or row.size
                row.source = record.source
                row.updated_at = now
                written += 1
            await session.commit()
        logger.debug("Upserted %d torrent info records", written)
        return written
