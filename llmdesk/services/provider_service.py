"""Provider service for managing LLM API providers and their models."""

import logging
import re
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel

from llmdesk.errors import ModelNotFoundError, ProviderNotFoundError, StorageError
from llmdesk.schemas.catalog import (
    ContextWindow,
    Credentials,
    Endpoints,
    Model,
    ModelFeatures,
    Pricing,
    Provider,
    ProviderFeatures,
    RateLimit,
    format_model_name,
)
from llmdesk.services.catalog_state import CatalogState
from llmdesk.services.model_fetcher import FetchedModel, FetchModelsResult, ModelFetcher
from llmdesk.services.storage_service import ProviderStore
from llmdesk.services.validation_service import ValidationService

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def generate_provider_id(name: str) -> str:
    """Build a provider id from its name: ``"My Proxy"`` -> ``"my-proxy-1a2b3c4d"``."""
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "provider"
    return f"{base}-{uuid.uuid4().hex[:8]}"


def mask_api_key(api_key: str) -> str:
    """Mask an API key - show only first 3 and last 4 characters."""
    if len(api_key) > 10:
        return f"{api_key[:3]}{'*' * 15}{api_key[-4:]}"
    return "*" * len(api_key)


def _coerce(schema: Type[SchemaT], value: Union[SchemaT, Dict[str, Any]]) -> SchemaT:
    if isinstance(value, schema):
        return value.model_copy(deep=True)
    return schema.model_validate(value)


def _coerce_limits(limits: Sequence[Union[RateLimit, Dict[str, Any]]]) -> List[RateLimit]:
    return [_coerce(RateLimit, limit) for limit in limits]


class ProviderService:
    """Service for managing LLM API providers.

    Mutations load the stored catalog, apply one change through the store and
    then swap the in-memory ``CatalogState`` so the provider list and the
    selected provider stay in sync.
    """

    def __init__(
        self,
        store: ProviderStore,
        state: Optional[CatalogState] = None,
        validation_service: Optional[ValidationService] = None,
        id_factory: Callable[[str], str] = generate_provider_id,
        model_fetcher: Optional[ModelFetcher] = None,
    ):
        """Initialize provider service.

        Args:
            store: Storage collaborator.
            state: Canonical in-memory collection shared with the import service.
            validation_service: Strict validator for CRUD input.
            id_factory: Builds the id of a new provider from its name.
            model_fetcher: Client used to list models from a provider's API.
        """
        self.store = store
        self.state = state if state is not None else CatalogState()
        self.validation_service = validation_service or ValidationService()
        self.id_factory = id_factory
        self.model_fetcher = model_fetcher or ModelFetcher()

    def refresh(self) -> List[Provider]:
        """Reload the catalog from storage into the in-memory state.

        Raises:
            StorageError: If storage is unreadable; the state is emptied first.
        """
        try:
            providers = self.store.load_all()
        except StorageError as e:
            logger.error(f"Failed to load providers: {e}")
            self.state.swap([])
            raise
        self.state.swap(providers)
        logger.info(f"Loaded {len(providers)} providers")
        return providers

    def list_providers(self) -> List[Provider]:
        return list(self.state.providers)

    def list_provider_summaries(self) -> List[dict]:
        """List providers with masked API keys and model counts."""
        return [
            {
                "id": provider.id,
                "name": provider.name,
                "enabled": provider.enabled,
                "is_custom": provider.is_custom,
                "base_url": provider.endpoints.openai,
                "api_keys_masked": [mask_api_key(key) for key in provider.api_keys],
                "model_count": len(provider.models),
            }
            for provider in self.state.providers
        ]

    def get_provider(self, provider_id: str) -> Provider:
        """Get a provider by id.

        Raises:
            ProviderNotFoundError: If no provider has this id.
        """
        provider = self.state.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    @property
    def selected_provider(self) -> Optional[Provider]:
        return self.state.selected

    def select_provider(self, provider_id: Optional[str]) -> Optional[Provider]:
        """Select a provider for detail views; ``None`` clears the selection."""
        return self.state.select(provider_id)

    def create_provider(
        self,
        name: str,
        endpoints: Optional[Union[Endpoints, Dict[str, Any]]] = None,
        api_keys: Optional[Sequence[str]] = None,
        limits: Optional[Sequence[Union[RateLimit, Dict[str, Any]]]] = None,
        features: Optional[Union[ProviderFeatures, Dict[str, Any]]] = None,
        models: Optional[Sequence[Model]] = None,
        enabled: bool = True,
        provider_id: Optional[str] = None,
    ) -> Provider:
        """Create a new user-defined provider.

        Args:
            name: Display name.
            endpoints: API endpoints.
            api_keys: Initial API keys.
            limits: Provider rate limits.
            features: Capability flags; all enabled when omitted.
            models: Initial models.
            enabled: Whether the provider is active.
            provider_id: Explicit id; generated from the name when omitted.

        Returns:
            The created Provider.

        Raises:
            CatalogValidationError: If the provider or one of its models is invalid.
            ValueError: If the id is already taken.
        """
        name = name.strip()
        provider = Provider(
            id=provider_id or self.id_factory(name),
            name=name,
            enabled=enabled,
            credentials=Credentials(api_keys=list(api_keys or [])),
            endpoints=_coerce(Endpoints, endpoints or {}),
            limits=_coerce_limits(limits or []),
            features=_coerce(ProviderFeatures, features) if features is not None else ProviderFeatures(
                streaming=True, tool_calling=True, json_mode=True
            ),
            models=[model.model_copy(deep=True) for model in models or []],
            is_custom=True,
        )
        self.validation_service.ensure_valid_provider(provider)
        seen = set()
        for model in provider.models:
            self.validation_service.ensure_valid_model(model, provider.id)
            if model.id in seen:
                raise ValueError(f"Duplicate model '{model.id}' for provider '{provider.id}'")
            seen.add(model.id)

        providers = self.store.load_all()
        self.store.create_provider(provider)
        self.state.swap([*providers, provider])
        return provider

    def update_provider(
        self,
        provider_id: str,
        name: Optional[str] = None,
        enabled: Optional[bool] = None,
        endpoints: Optional[Union[Endpoints, Dict[str, Any]]] = None,
        limits: Optional[Sequence[Union[RateLimit, Dict[str, Any]]]] = None,
        features: Optional[Union[ProviderFeatures, Dict[str, Any]]] = None,
    ) -> Provider:
        """Update the given fields of a provider; omitted fields keep their value.

        Credentials and models have their own operations.

        Raises:
            ProviderNotFoundError: If the provider does not exist.
            CatalogValidationError: If the result is invalid.
        """
        providers = self.store.load_all()
        current = self._find(providers, provider_id)

        updated = current.model_copy(deep=True)
        if name is not None:
            updated.name = name.strip()
        if enabled is not None:
            updated.enabled = enabled
        if endpoints is not None:
            updated.endpoints = _coerce(Endpoints, endpoints)
        if limits is not None:
            updated.limits = _coerce_limits(limits)
        if features is not None:
            updated.features = _coerce(ProviderFeatures, features)
        self.validation_service.ensure_valid_provider(updated)

        self.store.update_provider(updated)
        self._swap_with(providers, updated)
        return updated

    def update_credentials(self, provider_id: str, api_keys: Sequence[str]) -> Provider:
        """Replace the API keys of a provider."""
        providers = self.store.load_all()
        current = self._find(providers, provider_id)
        updated = current.model_copy(deep=True, update={"credentials": Credentials(api_keys=list(api_keys))})
        self.store.update_provider(updated)
        self._swap_with(providers, updated)
        logger.info(f"Updated credentials for provider '{provider_id}' ({len(api_keys)} keys)")
        return updated

    def delete_provider(self, provider_id: str) -> None:
        """Delete a provider and its models; clears the selection if it pointed here."""
        providers = self.store.load_all()
        self._find(providers, provider_id)
        self.store.delete_provider(provider_id)
        self.state.swap([p for p in providers if p.id != provider_id])

    def add_model(self, provider_id: str, model: Union[Model, Dict[str, Any]]) -> Model:
        """Add a model to a provider.

        Raises:
            ProviderNotFoundError: If the provider does not exist.
            CatalogValidationError: If the model is invalid.
            ValueError: If the provider already has a model with this id.
        """
        model = _coerce(Model, model)
        self.validation_service.ensure_valid_model(model, provider_id)

        providers = self.store.load_all()
        current = self._find(providers, provider_id)
        if current.get_model(model.id) is not None:
            raise ValueError(f"Model '{model.id}' already exists for provider '{provider_id}'")

        self.store.create_model(provider_id, model)
        self._swap_with(providers, current.model_copy(update={"models": [*current.models, model]}))
        logger.info(f"Model '{model.id}' added to provider '{provider_id}'")
        return model

    def update_model(
        self,
        provider_id: str,
        model_id: str,
        name: Optional[str] = None,
        enabled: Optional[bool] = None,
        parameters: Optional[str] = None,
        pricing: Optional[Union[Pricing, Dict[str, Any]]] = None,
        context: Optional[Union[ContextWindow, Dict[str, Any]]] = None,
        modalities: Optional[Sequence[str]] = None,
        features: Optional[Union[ModelFeatures, Dict[str, Any]]] = None,
        limits: Optional[Sequence[Union[RateLimit, Dict[str, Any]]]] = None,
    ) -> Model:
        """Update the given fields of a model; omitted fields keep their value.

        Raises:
            ProviderNotFoundError: If the provider does not exist.
            ModelNotFoundError: If the model does not exist.
            CatalogValidationError: If the result is invalid.
        """
        providers = self.store.load_all()
        current = self._find(providers, provider_id)
        model = current.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id, provider_id)

        updated = model.model_copy(deep=True)
        if name is not None:
            updated.name = name
        if enabled is not None:
            updated.enabled = enabled
        if parameters is not None:
            updated.parameters = parameters
        if pricing is not None:
            updated.pricing = _coerce(Pricing, pricing)
        if context is not None:
            updated.context = _coerce(ContextWindow, context)
        if modalities is not None:
            updated.modalities = list(modalities)
        if features is not None:
            updated.features = _coerce(ModelFeatures, features)
        if limits is not None:
            updated.limits = _coerce_limits(limits)
        if not updated.name.strip():
            updated.name = format_model_name(updated.id)
        self.validation_service.ensure_valid_model(updated, provider_id)

        self.store.update_model(provider_id, updated)
        models = [updated if m.id == model_id else m for m in current.models]
        self._swap_with(providers, current.model_copy(update={"models": models}))
        logger.info(f"Model '{model_id}' of provider '{provider_id}' updated")
        return updated

    def delete_model(self, provider_id: str, model_id: str) -> None:
        """Remove a model from a provider."""
        providers = self.store.load_all()
        current = self._find(providers, provider_id)
        if current.get_model(model_id) is None:
            raise ModelNotFoundError(model_id, provider_id)

        self.store.delete_model(provider_id, model_id)
        models = [m for m in current.models if m.id != model_id]
        self._swap_with(providers, current.model_copy(update={"models": models}))
        logger.info(f"Model '{model_id}' removed from provider '{provider_id}'")

    def clear_all_data(self) -> None:
        """Delete every provider and model."""
        self.store.clear()
        self.state.swap([])
        logger.warning("All provider data cleared")

    async def fetch_models(self, provider_id: str) -> FetchModelsResult:
        """List the models a provider's API offers, using its first API key.

        Nothing is stored; callers add the models they want with
        ``add_fetched_models``.
        """
        provider = self.get_provider(provider_id)
        api_key = provider.api_keys[0] if provider.api_keys else ""
        if not provider.endpoints.openai and not provider.endpoints.anthropic:
            return FetchModelsResult(error=f"Provider '{provider_id}' has no endpoint configured")
        return await self.model_fetcher.fetch_models(
            provider.endpoints.openai,
            api_key,
            provider.endpoints.anthropic,
        )

    def add_fetched_models(self, provider_id: str, fetched: Sequence[FetchedModel]) -> List[Model]:
        """Add models picked from a ``fetch_models`` listing with default metadata.

        Ids the provider already has, and repeats within ``fetched``, are skipped.

        Returns:
            The models that were added.

        Raises:
            ProviderNotFoundError: If the provider does not exist.
        """
        providers = self.store.load_all()
        current = self._find(providers, provider_id)
        seen = {model.id for model in current.models}

        added = []
        for entry in fetched:
            if entry.id in seen:
                continue
            seen.add(entry.id)
            model = ModelFetcher.to_model(entry)
            self.store.create_model(provider_id, model)
            added.append(model)

        self._swap_with(providers, current.model_copy(update={"models": [*current.models, *added]}))
        logger.info(f"Added {len(added)} fetched models to provider '{provider_id}'")
        return added

    @staticmethod
    def _find(providers: Sequence[Provider], provider_id: str) -> Provider:
        for provider in providers:
            if provider.id == provider_id:
                return provider
        raise ProviderNotFoundError(provider_id)

    def _swap_with(self, providers: Sequence[Provider], updated: Provider) -> None:
        self.state.swap([updated if p.id == updated.id else p for p in providers])
