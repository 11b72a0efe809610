"""Main FastAPI application entry point."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from llmdesk import __version__
from llmdesk.api.backup import router as backup_router
from llmdesk.api.deps import get_provider_service, get_store, catalog_state
from llmdesk.api.models import router as models_router
from llmdesk.api.providers import router as providers_router
from llmdesk.config import settings
from llmdesk.database.database import get_db, init_db
from llmdesk.errors import StorageError
from llmdesk.services.encryption_service import EncryptionService
from llmdesk.services.provider_service import ProviderService

logger = logging.getLogger(__name__)

app = FastAPI(
    title="LLM Desk",
    description="Catalog of LLM API providers and models with versioned backup import/export",
    version=__version__,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(providers_router)
app.include_router(models_router)
app.include_router(backup_router)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str
    encryption: str
    message: Optional[str] = None


class StatsResponse(BaseModel):
    """Catalog statistics response."""

    providers_count: int
    enabled_providers_count: int
    models_count: int
    enabled_models_count: int
    selected_provider_id: Optional[str] = None


@app.on_event("startup")
async def startup_event():
    """Validate encryption, initialize the database and load the catalog."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Fails fast on a missing or malformed ENCRYPTION_KEY
    EncryptionService()
    init_db()
    try:
        ProviderService(get_store(), catalog_state).refresh()
    except StorageError as e:
        logger.error(f"Starting with an empty catalog: {e}")


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "LLM Desk API", "version": __version__}


@app.get("/api/health", response_model=HealthResponse)
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint.

    Checks database connectivity and encryption key validity.
    """
    health_status = {
        "status": "healthy",
        "database": "connected",
        "encryption": "valid"
    }

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        health_status["message"] = str(e)
        return HealthResponse(**health_status)

    try:
        encryption_service = EncryptionService()
        if encryption_service.decrypt(encryption_service.encrypt("test")) != "test":
            raise ValueError("Encryption service validation failed")
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["encryption"] = "invalid"
        health_status["message"] = str(e)

    return HealthResponse(**health_status)


@app.get("/api/stats", response_model=StatsResponse)
async def get_stats(service: ProviderService = Depends(get_provider_service)):
    """Get catalog statistics from the in-memory provider collection."""
    try:
        providers = service.list_providers()
        models = [model for provider in providers for model in provider.models]
        selected = service.selected_provider
        return StatsResponse(
            providers_count=len(providers),
            enabled_providers_count=sum(1 for p in providers if p.enabled),
            models_count=len(models),
            enabled_models_count=sum(1 for m in models if m.enabled),
            selected_provider_id=selected.id if selected else None,
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get stats: {str(e)}")


def run():
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run("llmdesk.main:app", host=settings.app_host, port=settings.app_port)
