"""FastAPI application — main entry point."""

import os

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keyword_matcher.config import get_settings
from keyword_matcher.infrastructure.database import engine, Base
from keyword_matcher.core.logging import configure_logging
from keyword_matcher.core.middleware import setup_middleware
from keyword_matcher.core.exceptions import AppError, app_error_handler, global_exception_handler

# Import all models so SQLAlchemy knows about them
from keyword_matcher.domain.models.user import User
from keyword_matcher.domain.models.uploaded_file import UploadedFile
from keyword_matcher.domain.models.match_result import MatchResult

# Import routers
from keyword_matcher.interfaces.api.auth import router as auth_router
from keyword_matcher.interfaces.api.files import router as files_router
from keyword_matcher.interfaces.api.results import router as results_router
from keyword_matcher.interfaces.api.export import router as export_router
from keyword_matcher.interfaces.api.targeting import router as targeting_router

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    # Startup
    logger.info("Starting Keyword Matcher...", env=settings.ENVIRONMENT)

    # Create DB tables (dev only, use Alembic in production)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    os.makedirs(settings.EXPORT_DIR, exist_ok=True)

    # Seed the configured admin account
    from keyword_matcher.infrastructure.database import SessionLocal
    from keyword_matcher.application.services.auth_service import ensure_admin
    db = SessionLocal()
    try:
        if ensure_admin(db, settings.DEFAULT_ADMIN_EMAIL, settings.DEFAULT_ADMIN_PASSWORD):
            logger.info("Admin account available", email=settings.DEFAULT_ADMIN_EMAIL)
    finally:
        db.close()

    # Start scheduler (cleanup + resume of interrupted runs)
    from keyword_matcher.scheduler.jobs import start_scheduler
    start_scheduler()

    yield

    # Shutdown
    from keyword_matcher.scheduler.jobs import stop_scheduler
    stop_scheduler()
    logger.info("Keyword Matcher stopped")


app = FastAPI(
    title="Keyword Matcher",
    description="API Backend — keyword to Meta ad-targeting suggestions, scored by AI",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup Middleware (Correlation ID, Logging)
setup_middleware(app)

# Global Exception Handling
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(Exception, global_exception_handler)

# CORS outermost
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(files_router)
app.include_router(results_router)
app.include_router(export_router)
app.include_router(targeting_router)


@app.get("/")
def root():
    return {
        "name": "Keyword Matcher",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
