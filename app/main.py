"""Entry point for the FastAPI-powered Stremio store add-on."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .context import UserData
from .database import Database
from .models import CONTENT_TYPE_OTHER
from .services.catalog import ExtraParams, StoreCatalogService
from .services.catalog_cache import CatalogCache
from .services.store_client import StoreClient
from .services.torrent_info import TorrentInfoIndex
from .services.torrent_stream import TorrentStreamIndex
from .utils import first_forwarded_value

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    store_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.store_api_url),
            timeout=httpx.Timeout(settings.store_api_timeout, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    catalog_service = StoreCatalogService(
        settings,
        StoreClient(settings, store_http_client),
        CatalogCache(settings.catalog_cache_ttl, name="stremio:store:catalog"),
        TorrentInfoIndex(database.session_factory),
        TorrentStreamIndex(database.session_factory),
    )

    fastapi_app.state.catalog_service = catalog_service
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await catalog_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Stremio catalogs of the downloads in your store account",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> StoreCatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, StoreCatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    def _decode_user_data(raw: str) -> UserData:
        try:
            return UserData.decode(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from None

    async def _catalog_endpoint(
        request: Request,
        user_data: str,
        content_type: str,
        catalog_id: str,
        extra: str | None = None,
    ) -> JSONResponse:
        ud = _decode_user_data(user_data)
        if content_type != CONTENT_TYPE_OTHER:
            raise HTTPException(status_code=400, detail="Unsupported content type")
        service = get_catalog_service(fastapi_app)
        try:
            payload = await service.get_catalog_payload(
                ud,
                catalog_id,
                ExtraParams.parse(extra),
                client_ip=_client_ip(request),
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse(payload)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/stremio/store/{user_data}/manifest.json")
    async def manifest(user_data: str) -> dict[str, Any]:
        ud = _decode_user_data(user_data)
        service = get_catalog_service(fastapi_app)
        try:
            return service.build_manifest(ud)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @fastapi_app.get("/stremio/store/{user_data}/catalog/{content_type}/{catalog_id}.json")
    async def catalog(
        request: Request, user_data: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, user_data, content_type, catalog_id)

    # Routes match the decoded path, so an escaped slash in a search value
    # arrives as a separator inside ``extra``.
    @fastapi_app.get(
        "/stremio/store/{user_data}/catalog/{content_type}/{catalog_id}/{extra:path}"
    )
    async def catalog_with_extra(
        request: Request,
        user_data: str,
        content_type: str,
        catalog_id: str,
        extra: str,
    ) -> JSONResponse:
        if not extra.endswith(".json"):
            raise HTTPException(status_code=404, detail="Not Found")
        extra = extra[: -len(".json")]
        return await _catalog_endpoint(
            request, user_data, content_type, catalog_id, extra
        )


def _client_ip(request: Request) -> str | None:
    forwarded = first_forwarded_value(request.headers.get("x-forwarded-for"))
    if forwarded:
        return forwarded
    if request.client is not None:
        return request.client.host
    return None


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
