"""Utilities for communicating with a StremThru-compatible store API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import MagnetListPage, NewzListPage

logger = logging.getLogger(__name__)


class StoreClientError(Exception):
    """Raised when the store API cannot satisfy a listing request."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class ListParams:
    """Pagination and account details for a single listing request."""

    store_name: str
    store_token: str
    limit: int
    offset: int
    client_ip: str | None = None


class StoreClient:
    """Thin wrapper around the store listing endpoints."""

    _MAGNETS_PATH = "/v0/store/magnets"
    _NEWZ_PATH = "/v0/store/newz"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _headers(self, params: ListParams) -> dict[str, str]:
        return {
            "User-Agent": f"{self._settings.app_name} (storeshelf)",
            "X-StremThru-Store-Name": params.store_name,
            "X-StremThru-Store-Authorization": f"Bearer {params.store_token}",
        }

    async def list_magnets(self, params: ListParams) -> MagnetListPage:
        """Fetch one page of the account's magnets."""

        data = await self._get_data(self._MAGNETS_PATH, params)
        try:
            return MagnetListPage.model_validate(data)
        except ValidationError as exc:
            raise StoreClientError(f"Unexpected magnet listing payload: {exc}") from exc

    async def list_newz(self, params: ListParams) -> NewzListPage:
        """Fetch one page of the account's usenet downloads."""

        data = await self._get_data(self._NEWZ_PATH, params)
        try:
            return NewzListPage.model_validate(data)
        except ValidationError as exc:
            raise StoreClientError(f"Unexpected newz listing payload: {exc}") from exc

    async def _get_data(self, path: str, params: ListParams) -> dict[str, Any]:
        query: dict[str, str | int] = {"limit": params.limit, "offset": params.offset}
        if params.client_ip:
            query["client_ip"] = params.client_ip
        try:
            response = await self._client.get(
                path, headers=self._headers(params), params=query
            )
        except httpx.HTTPError as exc:
            raise StoreClientError(
                f"{exc.__class__.__name__} talking to store {params.store_name}"
            ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            raise StoreClientError(
                _error_message(payload, fallback=response.reason_phrase),
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise StoreClientError(
                "Unexpected non-JSON store response", status_code=response.status_code
            )
        if payload.get("error"):
            raise StoreClientError(
                _error_message(payload, fallback="store error"),
                status_code=response.status_code,
            )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise StoreClientError(
                "Store response is missing data", status_code=response.status_code
            )
        return data


def _error_message(payload: Any, *, fallback: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message") or error.get("code")
            if message:
                return str(message)
        elif isinstance(error, str) and error:
            return error
    return fallback or "store error"
