# marketplace/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from supabase import create_client

from .bids import router as bids_router
from .config import Settings, get_settings
from .db import create_engine, create_schema, create_sessionmaker
from .errors import MarketplaceError
from .gateway import PaymentGateway
from .jobs import router as jobs_router
from .payments import router as payments_router
from .routers.health import router as health_router
from .stripe_webhook import router as stripe_router
from .users import router as users_router

log = logging.getLogger("uvicorn.error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # one engine, one Stripe gateway, one Supabase client for the whole process
        engine = create_engine(settings)
        if settings.auto_create_schema:
            await create_schema(engine)
        app.state.settings = settings
        app.state.sessionmaker = create_sessionmaker(engine)
        app.state.gateway = PaymentGateway(settings)
        app.state.supabase = None
        if settings.supabase_url and settings.supabase_service_role_key:
            app.state.supabase = create_client(settings.supabase_url, settings.supabase_service_role_key)
        log.info(f"Marketplace API started (mock payments: {settings.mock_payments})")
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title="Marketplace API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )

    # ──────────────────────────────────────────────────────────────────────────
    # CORS (relaxed by default; set CORS_ORIGINS to tighten)
    # ──────────────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MarketplaceError)
    async def marketplace_error(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/", tags=["default"])
    def read_root():
        return {"ok": True, "service": "marketplace-api"}

    # routers
    app.include_router(health_router)
    app.include_router(users_router)
    app.include_router(jobs_router)
    app.include_router(bids_router)
    app.include_router(payments_router)
    app.include_router(stripe_router)
    return app


# ──────────────────────────────────────────────────────────────────────────────
# Local dev entrypoint
# ──────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "marketplace.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=get_settings().port,
        reload=True,
    )
