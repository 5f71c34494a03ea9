"""Per-request orchestration of store catalogs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Sequence
from urllib.parse import parse_qs

from pydantic import BaseModel, Field, field_validator

from ..config import Settings
from ..context import RequestContext, UserData
from ..models import CONTENT_TYPE_OTHER, CatalogItem
from ..stores import (
    ID_NAMESPACE,
    STORE_ACTIONS_GENRE,
    STORE_ACTIONS_NAME,
    StoreDefinition,
    action_id_for,
    catalog_id_for,
    id_prefix_for,
    parse_catalog_id,
)
from ..utils import build_search_pattern, paginate
from .catalog_cache import CatalogCache, catalog_cache_key
from .listing import fetch_catalog_listing, listing_source_for
from .store_client import StoreClient
from .torrent_info import TorrentInfoIndex, TorrentInfoRecord
from .torrent_stream import TorrentStreamIndex

logger = logging.getLogger(__name__)

# Listing names from this store are not trusted to replace known titles.
UNTRUSTED_TITLE_STORE_CODES = frozenset({"rd"})


class ExtraParams(BaseModel):
    """Normalized view of the catalog ``extra`` path segment."""

    search: str | None = None
    skip: int = Field(default=0, ge=0)
    genre: str | None = None

    @classmethod
    def parse(cls, raw: str | None) -> "ExtraParams":
        """Parse ``search=...&skip=...&genre=...``; bad input yields defaults."""

        if not raw:
            return cls()
        try:
            values = parse_qs(raw, keep_blank_values=True, errors="strict")
        except ValueError:
            return cls()
        return cls.model_validate(
            {key: entries[0] for key, entries in values.items() if entries}
        )

    @field_validator("skip", mode="before")
    @classmethod
    def _parse_skip(cls, value: object) -> int:
        if value is None or value == "":
            return 0
        try:
            skip = int(str(value).strip())
        except (TypeError, ValueError):
            return 0
        return max(skip, 0)

    @field_validator("search", "genre", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            return value if value.strip() else None
        return value


def filter_by_search(items: Iterable[CatalogItem], text: str) -> list[CatalogItem]:
    """Return the items whose name contains every search term, in order."""

    pattern = build_search_pattern(text)
    return [item for item in items if pattern.search(item.name)]


class StoreCatalogService:
    """Coordinates store listings, the catalog cache and poster enrichment."""

    def __init__(
        self,
        settings: Settings,
        store_client: StoreClient,
        cache: CatalogCache,
        torrent_info_index: TorrentInfoIndex | None = None,
        torrent_stream_index: TorrentStreamIndex | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._settings = settings
        self._store_client = store_client
        self._cache = cache
        self._torrent_info = torrent_info_index
        self._torrent_stream = torrent_stream_index
        self._sleep = sleep
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._enabled_store_names = frozenset(settings.enabled_stores)

    async def stop(self, timeout: float = 5.0) -> None:
        """Give pending side index writes a moment to finish."""

        pending = [task for task in self._background_tasks if not task.done()]
        if not pending:
            return
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning(
                "%d torrent info upserts still running at shutdown", len(still_pending)
            )

    def build_manifest(self, user_data: UserData) -> dict[str, Any]:
        """Return the add-on manifest for the account's store."""

        store = self._require_enabled(user_data.store)
        extras = [
            {"name": "search", "isRequired": False},
            {"name": "skip", "isRequired": False},
            {"name": "genre", "isRequired": False, "options": [STORE_ACTIONS_GENRE]},
        ]
        catalogs = [
            {
                "type": CONTENT_TYPE_OTHER,
                "id": catalog_id_for(store),
                "name": store.display_name,
                "extra": extras,
            }
        ]
        if store.supports_usenet:
            catalogs.append(
                {
                    "type": CONTENT_TYPE_OTHER,
                    "id": catalog_id_for(store, is_usenet=True),
                    "name": f"{store.display_name} Usenet",
                    "extra": extras,
                }
            )
        return {
            "id": f"com.storeshelf.{store.code}",
            "version": "1.0.0",
            "name": f"{self._settings.app_name} {store.display_name}",
            "description": f"Browse the downloads in your {store.display_name} account.",
            "catalogs": catalogs,
            "resources": ["catalog"],
            "types": [CONTENT_TYPE_OTHER],
            "idPrefixes": [f"{ID_NAMESPACE}:"],
        }

    async def get_catalog_payload(
        self,
        user_data: UserData,
        catalog_id: str,
        extra: ExtraParams,
        *,
        client_ip: str | None = None,
    ) -> dict[str, Any]:
        """Return one page of the account's catalog as ``{"metas": [...]}``."""

        ref = parse_catalog_id(catalog_id)
        self._require_enabled(ref.store)
        context = user_data.request_context(ref, client_ip=client_ip)

        if extra.genre == STORE_ACTIONS_GENRE:
            return {"metas": [self._store_action_meta(ref.store)]}

        items: Sequence[CatalogItem] = await self.get_catalog_items(
            context, is_usenet=ref.is_usenet
        )
        if extra.search:
            items = filter_by_search(items, extra.search)
        page = paginate(items, extra.skip, self._settings.catalog_page_size)
        page = await self.enrich_with_posters(page)
        return {"metas": [item.to_meta_preview() for item in page]}

    async def get_catalog_items(
        self, context: RequestContext, *, is_usenet: bool = False
    ) -> tuple[CatalogItem, ...]:
        """Return the cached listing for the account, fetching it on a miss."""

        source = listing_source_for(
            self._store_client, context.store, is_usenet=is_usenet
        )
        id_prefix = id_prefix_for(context.store, is_usenet=is_usenet)
        cache_key = catalog_cache_key(id_prefix, context.store_token)
        items, found = self._cache.get(cache_key)
        if found:
            return items

        listing = await fetch_catalog_listing(
            source,
            store_token=context.store_token,
            client_ip=context.client_ip,
            id_prefix=id_prefix,
            page_size=self._settings.fetch_page_size,
            max_items=self._settings.fetch_max_items,
            delay=self._settings.fetch_delay_seconds,
            sleep=self._sleep,
        )
        if not listing.complete:
            logger.warning(
                "Caching partial %s catalog for store %s with %d items",
                source.kind,
                context.store.name,
                len(listing.items),
            )
        items = tuple(listing.items)
        self._cache.put(cache_key, items)
        if source.collects_torrent_info:
            self._schedule_torrent_info_upsert(context.store, listing.torrent_info)
        return items

    async def enrich_with_posters(
        self, items: Sequence[CatalogItem]
    ) -> list[CatalogItem]:
        """Attach posters for items whose hash maps to a known stream id."""

        if not items or self._torrent_stream is None:
            return list(items)
        hashes = {item.content_hash for item in items if item.content_hash}
        strem_ids: dict[str, str] = {}
        try:
            strem_ids = await self._torrent_stream.get_strem_ids_by_hashes(hashes)
        except Exception as exc:
            logger.warning("Failed to get strem ids by hashes: %s", exc)

        enriched: list[CatalogItem] = []
        for item in items:
            strem_id = strem_ids.get(item.content_hash, "")
            if strem_id:
                base_id = strem_id.split(":", 1)[0]
                poster = self._settings.poster_url_template.format(id=base_id)
                item = item.model_copy(update={"poster": poster})
            enriched.append(item)
        return enriched

    def _schedule_torrent_info_upsert(
        self, store: StoreDefinition, records: list[TorrentInfoRecord]
    ) -> None:
        """Hand the batch to a detached task; its outcome is only logged."""

        if self._torrent_info is None or not records:
            return
        index = self._torrent_info
        dedupe_by_hash = store.code not in UNTRUSTED_TITLE_STORE_CODES

        async def _runner() -> None:
            try:
                await index.upsert(records, dedupe_by_hash=dedupe_by_hash)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception(
                    "Background torrent info upsert for store %s failed: %s",
                    store.name,
                    exc,
                )

        task = asyncio.create_task(_runner())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _require_enabled(self, store: StoreDefinition) -> StoreDefinition:
        if store.name not in self._enabled_store_names:
            raise ValueError(f"Store {store.name} is not enabled")
        return store

    @staticmethod
    def _store_action_meta(store: StoreDefinition) -> dict[str, Any]:
        return {
            "id": action_id_for(store),
            "type": CONTENT_TYPE_OTHER,
            "name": STORE_ACTIONS_NAME,
        }
