"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, stats
from core.config import settings
from core.logging import setup_logging
import logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="FPDS Warehouse Status API",
    description="Read-only operational status for the FPDS ingestion pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


# Include routers
app.include_router(health.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting FPDS Warehouse Status API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "FPDS Warehouse Status API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "stats": "/stats"
        }
    }
