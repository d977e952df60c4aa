"""
Bid Audit - FastAPI Application

API server for bid compliance audits, report history and rankings.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings
from config.logging_config import setup_logging
from api.routes import audits, rankings, reports, usage
from api.middleware.error_handler import setup_error_handlers
from api.middleware.logging import LoggingMiddleware
from api.middleware.rate_limit import setup_rate_limiting

# Set up logging
logger = setup_logging(log_level="INFO", log_to_file=settings.api_env != "test")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    from database.connection import close_db, init_db

    logger.info("Starting Bid Audit API...")
    logger.info(f"Environment: {settings.api_env}")
    logger.info(f"Analysis model: {settings.gemini_model}")

    if not settings.google_api_key:
        logger.warning("GOOGLE_API_KEY is not set; audits will fail with a configuration error")

    await init_db()

    yield

    await close_db()
    logger.info("Shutting down Bid Audit API...")


app = FastAPI(
    title="Bid Audit API",
    description="Bid compliance audits against RFQs, with report history and rankings",
    version="1.0.0",
    lifespan=lifespan
)

# Set up error handlers (before middleware)
setup_error_handlers(app)

# Set up rate limiting
setup_rate_limiting(app)

# Add logging middleware
app.add_middleware(LoggingMiddleware)

# Configure CORS (should be last middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# API Routes
# ============================================================================

app.include_router(audits.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")
app.include_router(rankings.router, prefix="/api/v1")
app.include_router(usage.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Bid Audit API",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.api_env,
        "model": settings.gemini_model,
        "docs": "/docs"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.api_env
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
