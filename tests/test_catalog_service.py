"""End-to-end behaviour of the store catalog service."""

from __future__ import annotations

from typing import Any, Callable, cast

import httpx
import pytest

from app.context import UserData
from app.services.catalog import ExtraParams, StoreCatalogService, filter_by_search
from app.services.catalog_cache import CatalogCache
from app.services.store_client import StoreClient
from app.services.torrent_info import TorrentInfoIndex
from app.services.torrent_stream import TorrentStreamIndex
from app.models import CatalogItem
from conftest import build_settings, listing_handler, magnet_payload


class RecordingStreamIndex:
    def __init__(
        self, mapping: dict[str, str] | None = None, error: Exception | None = None
    ) -> None:
        self.mapping = mapping or {}
        self.error = error
        self.calls: list[set[str]] = []

    async def get_strem_ids_by_hashes(self, hashes) -> dict[str, str]:
        wanted = set(hashes)
        self.calls.append(wanted)
        if self.error is not None:
            raise self.error
        return {key: value for key, value in self.mapping.items() if key in wanted}


class RecordingInfoIndex:
    def __init__(self) -> None:
        self.calls: list[tuple[list[Any], bool]] = []

    async def upsert(self, records, *, dedupe_by_hash: bool = True) -> int:
        self.calls.append((list(records), dedupe_by_hash))
        return len(records)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _user(store: str = "realdebrid", token: str = "token-1") -> UserData:
    return UserData.model_validate({"store": store, "token": token})


async def _run(
    handler: Callable[[httpx.Request], httpx.Response],
    scenario: Callable[[StoreCatalogService], Any],
    *,
    stream_index: RecordingStreamIndex | None = None,
    info_index: RecordingInfoIndex | None = None,
    cache: CatalogCache | None = None,
) -> Any:
    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://store.example.com") as http_client:
        service = StoreCatalogService(
            build_settings(),
            StoreClient(build_settings(), http_client),
            cache if cache is not None else CatalogCache(600),
            cast(TorrentInfoIndex, info_index),
            cast(TorrentStreamIndex, stream_index or RecordingStreamIndex()),
        )
        result = await scenario(service)
        await service.stop()
        return result


@pytest.mark.anyio("asyncio")
async def test_skip_returns_tail_page() -> None:
    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams.parse("skip=600")
        )

    payload = await _run(listing_handler(650), scenario)

    metas = payload["metas"]
    assert len(metas) == 50
    assert metas[0]["id"] == "storeshelf:rd:m600"
    assert metas[-1]["id"] == "storeshelf:rd:m649"


@pytest.mark.anyio("asyncio")
async def test_search_filters_before_paging() -> None:
    names = ["The Matrix Reloaded", "Matrix Revolutions", "The Notebook", "The Matrix"]

    def make_item(index: int) -> dict[str, Any]:
        return {**magnet_payload(index), "name": names[index]}

    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams.parse("search=the%20matrix")
        )

    payload = await _run(listing_handler(len(names), make_item=make_item), scenario)

    assert [meta["name"] for meta in payload["metas"]] == [
        "The Matrix Reloaded",
        "The Matrix",
    ]


@pytest.mark.anyio("asyncio")
async def test_partial_listing_is_cached_for_the_lifetime() -> None:
    requests: list[httpx.Request] = []
    clock = FakeClock()
    cache = CatalogCache(600, clock=clock)

    async def scenario(service: StoreCatalogService) -> tuple[int, int, int]:
        first = await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams(skip=0)
        )
        request_count = len(requests)
        clock.now += 599
        second = await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams(skip=400)
        )
        assert len(requests) == request_count
        return len(first["metas"]), len(second["metas"]), request_count

    first_len, second_len, request_count = await _run(
        listing_handler(2_000, requests=requests, fail_at_offset=500),
        scenario,
        cache=cache,
    )

    assert request_count == 2
    assert first_len == 100
    assert second_len == 100
    items, found = cache.get("storeshelf:rd:token-1")
    assert found is True
    assert len(items) == 500


@pytest.mark.anyio("asyncio")
async def test_expired_entry_triggers_refetch() -> None:
    requests: list[httpx.Request] = []
    clock = FakeClock()

    async def scenario(service: StoreCatalogService) -> None:
        await service.get_catalog_payload(_user(), "storeshelf.rd", ExtraParams())
        clock.now += 600
        await service.get_catalog_payload(_user(), "storeshelf.rd", ExtraParams())

    await _run(
        listing_handler(10, requests=requests),
        scenario,
        cache=CatalogCache(600, clock=clock),
    )

    assert len(requests) == 2


@pytest.mark.anyio("asyncio")
async def test_accounts_do_not_share_entries() -> None:
    requests: list[httpx.Request] = []

    async def scenario(service: StoreCatalogService) -> None:
        await service.get_catalog_payload(_user(token="a"), "storeshelf.rd", ExtraParams())
        await service.get_catalog_payload(_user(token="b"), "storeshelf.rd", ExtraParams())
        await service.get_catalog_payload(_user(token="a"), "storeshelf.rd", ExtraParams())

    await _run(listing_handler(10, requests=requests), scenario)

    assert [
        request.headers["X-StremThru-Store-Authorization"] for request in requests
    ] == ["Bearer a", "Bearer b"]


@pytest.mark.anyio("asyncio")
async def test_genre_sentinel_short_circuits_before_listing() -> None:
    requests: list[httpx.Request] = []

    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(
            _user("torbox"), "storeshelf.tb", ExtraParams.parse("genre=StoreShelf")
        )

    payload = await _run(listing_handler(10, requests=requests), scenario)

    assert requests == []
    assert payload == {
        "metas": [
            {
                "id": "storeshelf:tb:action",
                "type": "other",
                "name": "StoreShelf Store Actions",
            }
        ]
    }


@pytest.mark.anyio("asyncio")
async def test_posters_use_stream_id_before_separator() -> None:
    stream_index = RecordingStreamIndex({f"{1:040x}": "tt0133093:1:2"})
    cache = CatalogCache(600)

    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams.parse("skip=0")
        )

    payload = await _run(
        listing_handler(3), scenario, stream_index=stream_index, cache=cache
    )

    metas = payload["metas"]
    assert "poster" not in metas[0]
    assert metas[1]["poster"] == "https://images.metahub.space/poster/small/tt0133093/img"
    cached, _ = cache.get("storeshelf:rd:token-1")
    assert all(item.poster is None for item in cached)


@pytest.mark.anyio("asyncio")
async def test_enrichment_is_scoped_to_the_returned_page() -> None:
    stream_index = RecordingStreamIndex()

    async def scenario(service: StoreCatalogService) -> None:
        await service.get_catalog_payload(
            _user(), "storeshelf.rd", ExtraParams.parse("skip=250")
        )

    await _run(listing_handler(300), scenario, stream_index=stream_index)

    assert stream_index.calls == [{f"{index:040x}" for index in range(250, 300)}]


@pytest.mark.anyio("asyncio")
async def test_enrichment_failure_keeps_items() -> None:
    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(_user(), "storeshelf.rd", ExtraParams())

    healthy = await _run(listing_handler(5), scenario)
    broken = await _run(
        listing_handler(5),
        scenario,
        stream_index=RecordingStreamIndex(error=RuntimeError("index down")),
    )

    assert broken == healthy
    assert all("poster" not in meta for meta in broken["metas"])


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(("store", "dedupe"), [("realdebrid", False), ("torbox", True)])
async def test_torrent_info_upserted_in_background(store: str, dedupe: bool) -> None:
    info_index = RecordingInfoIndex()
    catalog_id = "storeshelf.rd" if store == "realdebrid" else "storeshelf.tb"

    async def scenario(service: StoreCatalogService) -> None:
        await service.get_catalog_payload(_user(store), catalog_id, ExtraParams())

    await _run(listing_handler(4), scenario, info_index=info_index)

    assert len(info_index.calls) == 1
    records, dedupe_by_hash = info_index.calls[0]
    assert len(records) == 4
    assert dedupe_by_hash is dedupe


@pytest.mark.anyio("asyncio")
async def test_usenet_catalog_does_not_upsert_torrent_info() -> None:
    info_index = RecordingInfoIndex()

    def make_item(index: int) -> dict[str, Any]:
        return {
            "id": f"n{index}",
            "hash": f"h{index}",
            "name": f"Upload {index}",
            "status": "downloaded",
            "files": [{"name": f"file-{index}.mkv", "size": 10}],
        }

    async def scenario(service: StoreCatalogService) -> dict[str, Any]:
        return await service.get_catalog_payload(
            _user("torbox"), "storeshelf.tb.usenet", ExtraParams()
        )

    payload = await _run(
        listing_handler(2, make_item=make_item), scenario, info_index=info_index
    )

    assert [meta["id"] for meta in payload["metas"]] == [
        "storeshelf:tb:usenet:n0",
        "storeshelf:tb:usenet:n1",
    ]
    assert info_index.calls == []


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    "catalog_id", ["storeshelf.tb", "storeshelf.rd.usenet", "nope"]
)
async def test_mismatched_catalog_ids_are_rejected(catalog_id: str) -> None:
    async def scenario(service: StoreCatalogService) -> None:
        with pytest.raises(ValueError, match="unsupported catalog id"):
            await service.get_catalog_payload(_user(), catalog_id, ExtraParams())

    await _run(listing_handler(1), scenario)


def test_extra_params_degrade_to_defaults() -> None:
    assert ExtraParams.parse(None) == ExtraParams()
    assert ExtraParams.parse("skip=abc") == ExtraParams()
    assert ExtraParams.parse("skip=-5").skip == 0
    assert ExtraParams.parse("search=%FF") == ExtraParams()

    parsed = ExtraParams.parse("search=star+wars&skip=200&genre=Action&other=1")
    assert parsed.search == "star wars"
    assert parsed.skip == 200
    assert parsed.genre == "Action"


def test_filter_by_search_preserves_order() -> None:
    items = [
        CatalogItem(id=str(index), name=name)
        for index, name in enumerate(
            ["Star Wars", "Star Trek", "Star: A New Wars Hope", "Wars"]
        )
    ]

    assert [item.name for item in filter_by_search(items, "star wars")] == [
        "Star Wars",
        "Star: A New Wars Hope",
    ]
