"""
Executive Marketplace Credits - FastAPI Backend
Main application entry point with health check and API routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    companies,
    profiles,
    admin_companies,
    admin_candidates,
)
from routers.rate_limit import build_rate_limiter
from routers.responses import credit_service_error_handler
from services.authorization import build_authorization_policy
from services.errors import CreditServiceError

logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Executive Marketplace Credits API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except Exception as e:
            logger.warning("Database bootstrap skipped: %s", e)
    logger.info("Authorization policy: %s", app.state.authorization_policy.name)
    yield
    # Shutdown
    await engine.dispose()
    logger.info("Shutting down API...")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Executive Marketplace Credits API",
        description="Candidate profile unlocks, company credit ledgers and admin back office",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.authorization_policy = build_authorization_policy(settings.AUTHORIZATION_POLICY)
    app.state.rate_limiter = build_rate_limiter()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CreditServiceError, credit_service_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(companies.router, prefix="/companies", tags=["Companies"])
    app.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
    app.include_router(admin_companies.router, prefix="/admin/companies", tags=["Admin Companies"])
    app.include_router(admin_candidates.router, prefix="/admin/candidates", tags=["Admin Candidates"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Executive Marketplace Credits API",
            "version": "0.1.0",
            "status": "running",
        }

    return app


app = create_app()
