# src/nodelisting/apps/api/server.py
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nodelisting import __version__
from nodelisting.apps.api import nodes_api
from nodelisting.services.bootstrap import ListingService, get_service
from nodelisting.services.errors import InternalError, ListingError

logger = logging.getLogger(__name__)


def create_app(service: Optional[ListingService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # сервис собираем лениво: импорт модуля не должен трогать БД/настройки
        svc = service or get_service()
        app.state.listing = svc
        await svc.start()
        try:
            yield
        finally:
            await svc.stop()

    app = FastAPI(title="Node Listing API", version=__version__, lifespan=lifespan)
    app.include_router(nodes_api.router, prefix="/api")

    # листинг публичный: CORS открыт для любых origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=False,
    )

    @app.exception_handler(ListingError)
    async def _listing_error(request: Request, exc: ListingError):
        if exc.status_code >= 500:
            logger.error("request.failed", extra={"extra": {"path": request.url.path, "error": exc.error}})
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "invalid request", "hint": str(exc.errors()[:1])})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("request.unhandled", extra={"extra": {"path": request.url.path}})
        return JSONResponse(status_code=500, content=InternalError().to_body())

    # --- health endpoints (без авторизации; удобно для оркестраторов/проб) ---
    @app.get("/health/live")
    async def health_live():
        return {"ok": True}

    @app.get("/health/ready")
    async def health_ready(request: Request):
        svc = getattr(request.app.state, "listing", None)
        if svc is None or not svc.is_ready():
            raise HTTPException(status_code=503, detail="not ready")
        return {"ok": True}

    return app


app = create_app()
