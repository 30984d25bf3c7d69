"""
REST API main application.
Entry point for the FastAPI traceability server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.logging import setup_logging, trace_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import engine, SessionLocal
from trace_api.models import Base
from trace_api.routers import (
    catalogs_router,
    ingredients_router,
    labels_router,
    lots_router,
    recipes_router,
)
from trace_api.seed import seed


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    config_errors = settings.validate_production_settings()
    if config_errors:
        for error in config_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(f"Production configuration errors: {'; '.join(config_errors)}")

    logger.info("Starting traceability API", port=settings.rest_api_port, env=settings.environment)

    # Create tables and storage triggers
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    # Seed reference catalogs
    with SessionLocal() as db:
        seed(db)

    yield

    logger.info("Shutting down traceability API")


# Create FastAPI application
app = FastAPI(
    title="Trazabilidad API",
    description="Recipes, production lots and allergen labels",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for the label-printing frontend
allowed_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()] or [
    "http://localhost:5173",  # Vite default
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalogs_router)
app.include_router(ingredients_router)
app.include_router(recipes_router)
app.include_router(lots_router)
app.include_router(labels_router)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trace_api.main:app",
        host="0.0.0.0",
        port=settings.rest_api_port,
        reload=settings.debug,
    )
