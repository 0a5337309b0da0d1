import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from aldrin.api.endpoints import router as api_router
from aldrin.core.errors import AldrinError, RangeNotSatisfiable
from aldrin.core.logging import configure_logging
from aldrin.core.settings import Settings, settings as default_settings
from aldrin.services.catalog import CatalogAggregator, build_catalog_source
from aldrin.services.paths import ensure_media_root
from aldrin.services.streaming import MediaStreamer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    configure_logging(settings)

    app.state.media_root = ensure_media_root(settings.MEDIA_ROOT)
    app.state.streamer = MediaStreamer(
        chunk_size=settings.STREAM_CHUNK_SIZE,
        cover_cache_control=settings.COVER_CACHE_CONTROL,
    )

    # Only the relational backend needs a client; it lives as long as the app
    client = None
    if settings.CATALOG_SOURCE == "supabase":
        client = httpx.AsyncClient(timeout=settings.SUPABASE_TIMEOUT)
    try:
        source = build_catalog_source(settings, client)
        app.state.catalog = CatalogAggregator(source, playback_enabled=settings.MEDIA_PLAYBACK_ENABLED)
        logger.info(f"Catalog source: {source.name}")
        yield
    finally:
        if client is not None:
            await client.aclose()


async def handle_app_error(request: Request, exc: AldrinError) -> JSONResponse:
    headers = exc.headers if isinstance(exc, RangeNotSatisfiable) else None
    logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=headers)


def find_static_dir(settings: Settings) -> Path:
    # PyInstaller creates a temp folder and stores path in _MEIPASS
    if getattr(sys, 'frozen', False):
        return Path(sys._MEIPASS) / "static"
    return settings.STATIC_DIR


def create_app(settings: Settings = default_settings) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AldrinError, handle_app_error)

    app.include_router(api_router)

    # Built dashboard frontend (portable builds without a separate web server)
    static_dir = find_static_dir(settings)
    if static_dir.exists() and static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


app = create_app()
