"""Provider API endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from llmdesk.api.deps import get_provider_service
from llmdesk.schemas.catalog import Endpoints, Provider, ProviderFeatures, RateLimit
from llmdesk.services.provider_service import ProviderService

router = APIRouter(prefix="/api/providers", tags=["providers"])


class ProviderCreate(BaseModel):
    """Provider creation request."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    id: Optional[str] = None
    enabled: bool = True
    endpoints: Optional[Endpoints] = None
    api_keys: List[str] = Field(default_factory=list, alias="apiKeys")
    limits: List[RateLimit] = Field(default_factory=list)
    features: Optional[ProviderFeatures] = None


class ProviderUpdate(BaseModel):
    """Provider update request. Omitted fields are left unchanged."""

    name: Optional[str] = None
    enabled: Optional[bool] = None
    endpoints: Optional[Endpoints] = None
    limits: Optional[List[RateLimit]] = None
    features: Optional[ProviderFeatures] = None


class CredentialsUpdate(BaseModel):
    """Credentials update request."""

    model_config = ConfigDict(populate_by_name=True)

    api_keys: List[str] = Field(alias="apiKeys")


class ProviderSummary(BaseModel):
    """Provider list entry with masked API keys."""

    id: str
    name: str
    enabled: bool
    is_custom: bool
    base_url: str
    api_keys_masked: List[str]
    model_count: int = 0


@router.get("", response_model=List[ProviderSummary])
async def list_providers(service: ProviderService = Depends(get_provider_service)):
    """List all providers with masked API keys."""
    return [ProviderSummary(**summary) for summary in service.list_provider_summaries()]


@router.post("", response_model=Provider, status_code=201)
async def create_provider(
    provider: ProviderCreate,
    service: ProviderService = Depends(get_provider_service)
):
    """Create a new custom provider."""
    try:
        return service.create_provider(
            name=provider.name,
            endpoints=provider.endpoints,
            api_keys=provider.api_keys,
            limits=provider.limits,
            features=provider.features,
            enabled=provider.enabled,
            provider_id=provider.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create provider: {str(e)}")


@router.get("/selected", response_model=Optional[Provider])
async def get_selected_provider(service: ProviderService = Depends(get_provider_service)):
    """Get the currently selected provider, if any."""
    return service.selected_provider


@router.delete("/selected", status_code=204)
async def clear_selected_provider(service: ProviderService = Depends(get_provider_service)):
    """Clear the provider selection."""
    service.select_provider(None)
    return None


@router.get("/{provider_id}", response_model=Provider)
async def get_provider(
    provider_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """Get provider details, including models and API keys."""
    try:
        return service.get_provider(provider_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{provider_id}", response_model=Provider)
async def update_provider(
    provider_id: str,
    provider_update: ProviderUpdate,
    service: ProviderService = Depends(get_provider_service)
):
    """Update a provider's name, state, endpoints, limits or features."""
    try:
        return service.update_provider(
            provider_id,
            name=provider_update.name,
            enabled=provider_update.enabled,
            endpoints=provider_update.endpoints,
            limits=provider_update.limits,
            features=provider_update.features,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update provider: {str(e)}")


@router.put("/{provider_id}/credentials", response_model=Provider)
async def update_credentials(
    provider_id: str,
    credentials: CredentialsUpdate,
    service: ProviderService = Depends(get_provider_service)
):
    """Replace a provider's API keys."""
    try:
        return service.update_credentials(provider_id, credentials.api_keys)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update credentials: {str(e)}")


@router.delete("/{provider_id}", status_code=204)
async def delete_provider(
    provider_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """Delete a provider with cascade deletion of its models."""
    try:
        service.delete_provider(provider_id)
        return None
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete provider: {str(e)}")


@router.post("/{provider_id}/select", response_model=Provider)
async def select_provider(
    provider_id: str,
    service: ProviderService = Depends(get_provider_service)
):
    """Select a provider for detail views."""
    try:
        return service.select_provider(provider_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
