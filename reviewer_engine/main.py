"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from reviewer_engine.api.v1 import reviewers
from reviewer_engine.config import settings

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    config = reviewers.assignment_engine.config
    logger.info(
        "Starting reviewer assignment engine",
        version=settings.app_version,
        environment=settings.environment,
        max_reviewers_per_pr=config.constraints.max_reviewers_per_pr,
        min_expertise_level=config.constraints.min_expertise_level.value,
    )

    yield

    logger.info("Shutting down reviewer assignment engine")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Suggests and assigns code reviewers from expertise, workload and collaboration signals",
    lifespan=lifespan,
)

app.include_router(reviewers.router, prefix=f"{settings.api_prefix}/reviewers", tags=["Reviewers"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }
