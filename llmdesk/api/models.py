"""Model API endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from llmdesk.api.deps import get_provider_service
from llmdesk.schemas.catalog import ContextWindow, Model, ModelFeatures, Pricing, RateLimit
from llmdesk.services.model_fetcher import FetchedModel, FetchModelsResult
from llmdesk.services.provider_service import ProviderService

router = APIRouter(prefix="/api/providers/{provider_id}/models", tags=["models"])


class ModelUpdate(BaseModel):
    """Model update request. Omitted fields are left unchanged."""

    name: Optional[str] = None
    enabled: Optional[bool] = None
    parameters: Optional[str] = None
    pricing: Optional[Pricing] = None
    context: Optional[ContextWindow] = None
    modalities: Optional[List[str]] = None
    features: Optional[ModelFeatures] = None
    limits: Optional[List[RateLimit]] = None


class FetchedModelsAdd(BaseModel):
    """Entries picked from a fetch listing."""

    models: List[FetchedModel]


@router.get("", response_model=List[Model])
async def list_models(
    provider_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """List the models of a provider."""
    try:
        return service.get_provider(provider_id).models
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=Model, status_code=201)
async def add_model(
    provider_id: str,
    model: Model,
    service: ProviderService = Depends(get_provider_service)
):
    """Add a model to a provider."""
    try:
        return service.add_model(provider_id, model)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to add model: {str(e)}")


@router.post("/fetch", response_model=FetchModelsResult)
async def fetch_models(
    provider_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """List the models offered by the provider's API without storing them."""
    try:
        return await service.fetch_models(provider_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/fetched", response_model=List[Model], status_code=201)
async def add_fetched_models(
    provider_id: str,
    request: FetchedModelsAdd,
    service: ProviderService = Depends(get_provider_service)
):
    """Add fetched models with default metadata, skipping ids already present."""
    try:
        return service.add_fetched_models(provider_id, request.models)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to add fetched models: {str(e)}")


@router.put("/{model_id:path}", response_model=Model)
async def update_model(
    provider_id: str,
    model_id: str,
    model_update: ModelUpdate,
    service: ProviderService = Depends(get_provider_service)
):
    """Update a model's fields."""
    try:
        return service.update_model(
            provider_id,
            model_id,
            name=model_update.name,
            enabled=model_update.enabled,
            parameters=model_update.parameters,
            pricing=model_update.pricing,
            context=model_update.context,
            modalities=model_update.modalities,
            features=model_update.features,
            limits=model_update.limits,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update model: {str(e)}")


@router.delete("/{model_id:path}", status_code=204)
async def delete_model(
    provider_id: str,
    model_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """Remove a model from a provider."""
    try:
        service.delete_model(provider_id, model_id)
        return None
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete model: {str(e)}")
