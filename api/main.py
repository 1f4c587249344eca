from __future__ import annotations

import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import load_config
from api.errors import ApiError, api_error_handler, ledger_error_handler
from api.routes import get_api_router
from ledger import __version__
from ledger.core.config import Config
from ledger.core.exceptions import LedgerError
from ledger.core.log import configure_logging


def create_app(config: Config | None = None) -> FastAPI:
    start = time.monotonic()
    config = config or load_config()

    # Refuse to start with an empty auth_token unless explicitly overridden.
    insecure_ok = os.environ.get("LEDGER_INSECURE_OK", "").lower() in ("1", "true", "yes")
    if not config.api.auth_token and not insecure_ok:
        msg = (
            "API auth_token is empty\n"
            "\n"
            "Set LEDGER_API__AUTH_TOKEN or add to config/user.yaml:\n"
            "  api:\n"
            "    auth_token: your-secret-token\n"
            "\n"
            "To run without auth (dev/test only), set LEDGER_INSECURE_OK=1"
        )
        raise RuntimeError(msg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.started_at = start
        configure_logging(app.state.config.logging)
        yield

        db = getattr(app.state, "db", None)
        if db is not None:
            db.close()

    openapi_tags = [
        {"name": "health", "description": "Liveness and version metadata."},
        {"name": "liquidity", "description": "Available liquidity per asset."},
        {"name": "insurance", "description": "Insurance records by owner or covered contract."},
        {"name": "events", "description": "The append-only ledger journal."},
    ]

    app = FastAPI(
        title="insurance-ledger API",
        description="Read-only view of pooled liquidity and insurance records",
        version=__version__,
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.started_at = start

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(LedgerError, ledger_error_handler)

    # CORS: only enable if origins explicitly configured
    if config.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.cors_origins,
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    app.include_router(get_api_router(), prefix="/api/v1")
    return app


# Module-level app for uvicorn (e.g. `uvicorn api.main:app`).
# Guarded so test imports don't crash when auth_token isn't configured.
try:
    app = create_app()
except (RuntimeError, LedgerError):
    app = None
