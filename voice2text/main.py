"""
Voice2Text Backend - Main FastAPI Application

Entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from voice2text.auth.verifier import close_identity_verifier
from voice2text.config import get_settings
from voice2text.core.exceptions import AuthenticationError
from voice2text.database import create_tables
from voice2text.rate_limit import limiter
from voice2text.transcription import transcription_router
from voice2text.transcription.client import close_transcription_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs startup and shutdown logic.
    """
    # Startup
    logger.info(f"[Startup] Starting {settings.app_name} v{settings.app_version}")

    for name in settings.missing_credentials():
        logger.error(f"[Startup] Missing {name} in environment")

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    try:
        await create_tables()
        logger.info("[Startup] Database tables created/verified")
    except Exception as e:
        logger.error(f"[Startup] Database initialization failed: {e}")

    yield

    # Shutdown
    logger.info("[Shutdown] Application shutting down...")
    await close_transcription_client()
    await close_identity_verifier()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Voice2Text Backend API - upload a recording, get the transcript back.

    * **Transcribe** - Send audio to Deepgram and save the transcript
    * **History** - List your own saved transcripts

    Requests are authenticated with Supabase access tokens.
    """,
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.cors_origin_regex or None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every incoming request."""
    logger.info(
        f"[Request] {request.method} {request.url.path} "
        f"origin={request.headers.get('origin')} "
        f"user-agent={request.headers.get('user-agent')}"
    )
    return await call_next(request)


@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError):
    """Turn auth failures raised by dependencies into 401 responses."""
    logger.warning(f"[Auth] {request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"message": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


# Health check endpoints
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


API_PREFIX = "/api"

# Include routers
app.include_router(transcription_router, prefix=API_PREFIX)
