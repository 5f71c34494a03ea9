"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

# Ensure the application package is importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    """Return settings without a .env file and with no inter-page delay."""

    base: dict[str, Any] = {"FETCH_DELAY": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def magnet_payload(index: int, *, status: str = "downloaded") -> dict[str, Any]:
    return {
        "id": f"m{index}",
        "hash": f"{index:040x}",
        "name": f"Item {index}",
        "size": 1_000 + index,
        "status": status,
    }


def listing_handler(
    total: int,
    *,
    requests: list[httpx.Request] | None = None,
    fail_at_offset: int | None = None,
    make_item: Callable[[int], dict[str, Any]] = magnet_payload,
) -> Callable[[httpx.Request], httpx.Response]:
    """Build a MockTransport handler serving ``total`` items by limit/offset."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        limit = int(request.url.params["limit"])
        offset = int(request.url.params["offset"])
        if fail_at_offset is not None and offset >= fail_at_offset:
            return httpx.Response(
                503, json={"error": {"message": "store unavailable"}}
            )
        items = [make_item(index) for index in range(offset, min(offset + limit, total))]
        return httpx.Response(
            200, json={"data": {"items": items, "total_items": total}}
        )

    return handler
