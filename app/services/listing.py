"""Paginated listing of a store account into catalog items."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

import httpx

from ..models import (
    CatalogItem,
    MagnetItem,
    NewzItem,
    STATUS_DOWNLOADED,
    magnet_description,
    usenet_description,
)
from ..stores import StoreDefinition
from .store_client import ListParams, StoreClient, StoreClientError
from .torrent_info import TorrentInfoRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500
DEFAULT_MAX_ITEMS = 2_000
DEFAULT_DELAY_SECONDS = 1.0


@dataclass(slots=True)
class ListingPage:
    items: Sequence[Any]
    total_items: int


@dataclass(slots=True)
class CatalogListing:
    """Items collected from a store plus metadata destined for the side index."""

    items: list[CatalogItem] = field(default_factory=list)
    torrent_info: list[TorrentInfoRecord] = field(default_factory=list)
    requests: int = 0
    complete: bool = True


class ListingSource(ABC):
    """One listing variant of a store: how to fetch, classify and describe."""

    kind = "listing"
    collects_torrent_info = False

    def __init__(self, client: StoreClient, store: StoreDefinition):
        self._client = client
        self.store = store

    @abstractmethod
    async def fetch_page(self, params: ListParams) -> ListingPage:
        """Return one page of raw items."""

    @abstractmethod
    def classify(self, item: Any, id_prefix: str) -> CatalogItem | None:
        """Return the catalog item for a downloaded entry, ``None`` otherwise."""

    def torrent_info(self, item: Any) -> TorrentInfoRecord | None:
        return None


class MagnetListingSource(ListingSource):
    kind = "magnet"
    collects_torrent_info = True

    async def fetch_page(self, params: ListParams) -> ListingPage:
        page = await self._client.list_magnets(params)
        return ListingPage(items=page.items, total_items=page.total_items)

    def classify(self, item: MagnetItem, id_prefix: str) -> CatalogItem | None:
        if item.status != STATUS_DOWNLOADED:
            return None
        return CatalogItem(
            id=f"{id_prefix}{item.id}",
            name=item.name,
            description=magnet_description(item.hash, item.name),
            content_hash=item.hash,
        )

    def torrent_info(self, item: MagnetItem) -> TorrentInfoRecord | None:
        if not item.hash:
            return None
        return TorrentInfoRecord(
            hash=item.hash, title=item.name, size=item.size, source=self.store.code
        )


class UsenetListingSource(ListingSource):
    kind = "usenet"

    async def fetch_page(self, params: ListParams) -> ListingPage:
        page = await self._client.list_newz(params)
        return ListingPage(items=page.items, total_items=page.total_items)

    def classify(self, item: NewzItem, id_prefix: str) -> CatalogItem | None:
        if item.status != STATUS_DOWNLOADED:
            return None
        file_name = item.largest_file_name()
        return CatalogItem(
            id=f"{id_prefix}{item.id}",
            name=file_name,
            description=usenet_description(item.name, file_name),
            content_hash=item.hash,
        )


def listing_source_for(
    client: StoreClient, store: StoreDefinition, *, is_usenet: bool
) -> ListingSource:
    if is_usenet:
        return UsenetListingSource(client, store)
    return MagnetListingSource(client, store)


async def fetch_catalog_listing(
    source: ListingSource,
    *,
    store_token: str,
    client_ip: str | None,
    id_prefix: str,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_items: int = DEFAULT_MAX_ITEMS,
    delay: float = DEFAULT_DELAY_SECONDS,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> CatalogListing:
    """Walk the store listing page by page.

    Stops on a short page, once ``total_items`` is reached, at ``max_items``,
    or on the first failed request. A failure keeps whatever was collected.
    """

    listing = CatalogListing()
    offset = 0
    has_more = True
    while has_more and offset < max_items:
        if offset > 0 and delay > 0:
            await sleep(delay)
        params = ListParams(
            store_name=source.store.name,
            store_token=store_token,
            limit=page_size,
            offset=offset,
            client_ip=client_ip,
        )
        listing.requests += 1
        try:
            page = await source.fetch_page(params)
        except (StoreClientError, httpx.HTTPError) as exc:
            logger.warning(
                "Failed to list %s items for store %s at offset %s: %s",
                source.kind,
                source.store.name,
                offset,
                exc,
            )
            listing.complete = False
            break

        for item in page.items:
            catalog_item = source.classify(item, id_prefix)
            if catalog_item is not None:
                listing.items.append(catalog_item)
            if source.collects_torrent_info:
                record = source.torrent_info(item)
                if record is not None:
                    listing.torrent_info.append(record)

        offset += page_size
        has_more = len(page.items) == page_size and offset < page.total_items

    logger.info(
        "Listed %d catalog items for store %s in %d requests",
        len(listing.items),
        source.store.name,
        listing.requests,
    )
    return listing
