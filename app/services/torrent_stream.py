"""Read side of the hash to stream-id index."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import TorrentStream


class TorrentStreamIndex:
    """Resolve content hashes to external stream identifiers."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_strem_ids_by_hashes(self, hashes: Iterable[str]) -> dict[str, str]:
        """Return ``hash -> strem_id`` for the hashes that have one.

        When several files of a hash are known, the lowest file index wins.
        """

        wanted = {content_hash for content_hash in hashes if content_hash}
        if not wanted:
            return {}

        async with self._session_factory() as session:
            stmt = (
                select(TorrentStream.hash, TorrentStream.strem_id)
                .where(TorrentStream.hash.in_(sorted(wanted)), TorrentStream.strem_id != "")
                .order_by(TorrentStream.hash, TorrentStream.file_index)
            )
            result = await session.execute(stmt)
            strem_ids: dict[str, str] = {}
            for content_hash, strem_id in result.all():
                strem_ids.setdefault(content_hash, strem_id)
        return strem_ids
