"""
Proctorly - FastAPI Application Entry Point
Integrity analytics and recording replay for monitored interviews.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from proctorly.core.config import settings
from proctorly.core.database import init_db
from proctorly.core.exceptions import register_exception_handlers
from proctorly.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("proctorly.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  Proctorly Analytics Backend - Starting")
    logger.info("=" * 60)

    init_db()
    logger.info("Database initialized")

    logger.info(f"Environment: {settings.PROCTORLY_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info(f"Recordings directory: {settings.upload_path}")
    logger.info("Proctorly is ready!")
    logger.info("=" * 60)

    yield

    logger.info("Proctorly shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Proctorly - Interview Integrity Analytics",
    description="Event ingestion, integrity scoring, reports and recording replay",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
)

register_exception_handlers(app)

# Include routers
from proctorly.routers import events, media, reports, subjects

app.include_router(subjects.router)
app.include_router(events.router)
app.include_router(reports.router)
app.include_router(media.router)


# Health check endpoint
@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "service": "Proctorly",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "Proctorly API",
        "version": "1.0.0",
        "description": "Interview integrity analytics",
        "endpoints": {
            "candidates": "/api/candidates",
            "logs": "/api/logs",
            "reports": "/api/reports",
            "upload": "/api/upload",
            "health": "/health",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
