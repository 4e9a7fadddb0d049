"""
FastAPI application factory.
"""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.database import init_db, close_db
from .core.errors import IntakeError, OracleUnavailable
from .core.redis import close_redis
from .api.router import router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="DocSense",
        description="Document intake and semantic search",
        version="1.0.0",
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
    )

    # ── CORS ─────────────────────────────────────────────────────
    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Errors ───────────────────────────────────────────────────
    @app.exception_handler(IntakeError)
    async def intake_error(request: Request, exc: IntakeError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(OracleUnavailable)
    async def oracle_unavailable(request: Request, exc: OracleUnavailable):
        logger.error("Upstream unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # ── Startup ──────────────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup():
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )
        logger.info("Starting DocSense (env=%s)", settings.env)

        Path(settings.storage_root).mkdir(parents=True, exist_ok=True)
        await init_db()

        from .core.flags import get_flags
        flags = get_flags()
        logger.info(
            "Flags: redis=%s tie_break=%s filter_by_doc_type=%s",
            flags.use_redis, flags.use_tie_break, flags.filter_by_doc_type,
        )
        if not settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not set; ingestion and search will fail")

        logger.info("DocSense is ready")

    # ── Shutdown ─────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown():
        from .services.llm import close_client
        from .core.dependencies import close_vector_index
        await close_client()
        await close_vector_index()
        await close_db()
        await close_redis()
        logger.info("DocSense shut down")

    # ── Routes ───────────────────────────────────────────────────
    app.include_router(router)

    return app
