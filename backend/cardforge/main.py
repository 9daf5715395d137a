"""
FastAPI application entry point.
Sets up the API with lifespan events for database, HTTP client and
Firebase initialization.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from firebase_admin.exceptions import FirebaseError
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from cardforge.config import settings
from cardforge.database import Database
from cardforge.api.router import api_router
from cardforge.auth.firebase import initialize_firebase
from cardforge.errors import register_exception_handlers
from cardforge.middleware.metrics_middleware import MetricsMiddleware
from cardforge.middleware.request_id import RequestIdMiddleware
from cardforge.services.pricing_service import PRINT_PRICING_TIERS, validate_tiers
from cardforge.utils.http import build_http_client
from cardforge.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def _check_pricing_tiers() -> None:
    for problem in validate_tiers(PRINT_PRICING_TIERS):
        logger.warning(f"Pricing tier problem: {problem}", extra={"event": "pricing_tiers_invalid"})


def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    `database` may be injected (tests); otherwise one is built from
    settings.database_url when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for startup/shutdown events.
        - Startup: open database and HTTP client, initialize Firebase Admin SDK
        - Shutdown: close them again
        """
        configure_logging('cardforge-api', settings.log_level)

        db = database or Database(settings.database_url)
        await db.connect()
        await db.create_all()
        app.state.database = db
        app.state.http_client = build_http_client()

        _check_pricing_tiers()

        # Skip if Firebase config not provided (for local dev without Firebase)
        if settings.firebase_project_id:
            try:
                initialize_firebase()
            except (ValueError, FirebaseError) as e:
                if settings.environment == "production":
                    raise
                logger.warning(f"Firebase initialization failed: {e}", extra={"event": "firebase_init_failed"})

        try:
            yield
        finally:
            await app.state.http_client.aclose()
            await db.disconnect()

    app = FastAPI(
        title="CardForge API",
        description="Backend API for the CardForge trading card designer",
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    # Added last so it runs first and every response carries the id
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "CardForge API",
            "version": "0.1.0",
            "environment": settings.environment
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app


app = create_app()
