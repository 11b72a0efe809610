"""Tests for provider service."""

from unittest.mock import AsyncMock, patch

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from llmdesk.database.database import enable_sqlite_foreign_keys, init_db
from llmdesk.errors import CatalogValidationError, ModelNotFoundError, ProviderNotFoundError, StorageError
from llmdesk.schemas.catalog import Model, Pricing
from llmdesk.services.catalog_state import CatalogState
from llmdesk.services.encryption_service import EncryptionService
from llmdesk.services.model_fetcher import FetchedModel, FetchModelsResult
from llmdesk.services.provider_service import ProviderService, generate_provider_id, mask_api_key
from llmdesk.services.storage_service import SqlProviderStore


@pytest.fixture
def store():
    """Create a SQL store on an in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(engine)
    yield SqlProviderStore(sessionmaker(bind=engine), EncryptionService(Fernet.generate_key().decode()))
    engine.dispose()


@pytest.fixture
def state():
    """Create empty catalog state."""
    return CatalogState()


@pytest.fixture
def provider_service(store, state):
    """Create provider service with predictable ids."""
    return ProviderService(store, state, id_factory=lambda name: name.lower().replace(" ", "-"))


def test_generate_provider_id():
    """Test that generated ids are slugs with a random suffix."""
    first = generate_provider_id("My Proxy!")
    second = generate_provider_id("My Proxy!")

    assert first.startswith("my-proxy-")
    assert len(first) == len("my-proxy-") + 8
    assert first != second
    assert generate_provider_id("***").startswith("provider-")


def test_mask_api_key():
    """Test API key masking."""
    assert mask_api_key("sk-1234567890abcdef") == "sk-***************cdef"
    assert mask_api_key("short") == "*****"


class TestProviderCRUD:
    """Test provider CRUD operations."""

    def test_create_provider(self, provider_service, store, state):
        """Test creating a provider with defaults."""
        provider = provider_service.create_provider(
            name=" Test Provider ",
            endpoints={"openai": "https://api.test.com/v1"},
            api_keys=["sk-test-key-123"],
        )

        assert provider.id == "test-provider"
        assert provider.name == "Test Provider"
        assert provider.is_custom is True
        assert provider.features.streaming is True
        assert provider.features.tool_calling is True
        assert provider.features.json_mode is True
        assert [p.model_dump() for p in store.load_all()] == [provider.model_dump()]
        assert state.get(provider.id) is not None

    def test_create_provider_validation_failure(self, provider_service, store):
        """Test that an invalid endpoint is rejected before storing."""
        with pytest.raises(CatalogValidationError, match="Invalid OpenAI endpoint URL"):
            provider_service.create_provider(name="Bad", endpoints={"openai": "not a url"})

        assert store.load_all() == []

    def test_create_provider_duplicate_id(self, provider_service):
        """Test that an explicit id can only be used once."""
        provider_service.create_provider(name="One", provider_id="same")

        with pytest.raises(ValueError, match="already exists"):
            provider_service.create_provider(name="Two", provider_id="same")

    def test_create_provider_with_duplicate_models(self, provider_service):
        """Test that initial models must have distinct ids."""
        with pytest.raises(ValueError, match="Duplicate model"):
            provider_service.create_provider(name="P", models=[Model(id="m"), Model(id="m")])

    def test_update_provider(self, provider_service, state):
        """Test that only given fields change."""
        provider_service.create_provider(name="P", api_keys=["sk-1"], models=[Model(id="m")])

        updated = provider_service.update_provider(
            "p",
            name="Renamed",
            enabled=False,
            limits=[{"kind": "requests", "count": 5, "windowSeconds": 1}],
        )

        assert updated.name == "Renamed"
        assert updated.enabled is False
        assert updated.limits[0].count == 5
        assert updated.api_keys == ["sk-1"]
        assert [m.id for m in updated.models] == ["m"]
        assert state.get("p").name == "Renamed"

    def test_update_unknown_provider(self, provider_service):
        """Test that updating an unknown provider raises."""
        with pytest.raises(ProviderNotFoundError):
            provider_service.update_provider("missing", name="X")

    def test_update_credentials(self, provider_service, store):
        """Test replacing API keys."""
        provider_service.create_provider(name="P", api_keys=["sk-old"])

        provider_service.update_credentials("p", ["sk-new-1", "sk-new-2"])

        assert store.load_all()[0].api_keys == ["sk-new-1", "sk-new-2"]

    def test_delete_provider_clears_selection(self, provider_service, state):
        """Test that deleting the selected provider clears the selection."""
        provider_service.create_provider(name="P", models=[Model(id="m")])
        provider_service.select_provider("p")

        provider_service.delete_provider("p")

        assert provider_service.list_providers() == []
        assert provider_service.selected_provider is None

    def test_list_provider_summaries(self, provider_service):
        """Test that listings mask API keys."""
        provider_service.create_provider(
            name="P",
            endpoints={"openai": "https://api.test.com/v1"},
            api_keys=["sk-1234567890abcdef"],
            models=[Model(id="a"), Model(id="b")],
        )

        assert provider_service.list_provider_summaries() == [{
            "id": "p",
            "name": "P",
            "enabled": True,
            "is_custom": True,
            "base_url": "https://api.test.com/v1",
            "api_keys_masked": ["sk-***************cdef"],
            "model_count": 2,
        }]

    def test_refresh(self, provider_service, store, state):
        """Test that refresh loads the stored catalog into the state."""
        provider_service.create_provider(name="P")
        state.swap([])

        providers = provider_service.refresh()

        assert [p.id for p in providers] == ["p"]
        assert [p.id for p in state.providers] == ["p"]

    def test_refresh_failure_empties_state(self, provider_service, store, state):
        """Test that an unreadable store leaves an empty catalog and re-raises."""
        provider_service.create_provider(name="P")

        with patch.object(store, "load_all", side_effect=StorageError("corrupt")):
            with pytest.raises(StorageError):
                provider_service.refresh()

        assert state.providers == ()

    def test_clear_all_data(self, provider_service, store, state):
        """Test clearing all providers."""
        provider_service.create_provider(name="P")

        provider_service.clear_all_data()

        assert store.load_all() == []
        assert state.providers == ()


class TestModelCRUD:
    """Test model operations."""

    @pytest.fixture(autouse=True)
    def provider(self, provider_service):
        """Create a provider to hold models."""
        return provider_service.create_provider(name="P", models=[Model(id="existing")])

    def test_add_model(self, provider_service, store):
        """Test adding a model."""
        model = provider_service.add_model("p", {"id": "gpt-4o-mini", "pricing": {"input": 0.15}})

        assert model.name == "Gpt 4o Mini"
        stored = store.load_all()[0]
        assert [m.id for m in stored.models] == ["existing", "gpt-4o-mini"]
        assert provider_service.get_provider("p").get_model("gpt-4o-mini").pricing.input == 0.15

    def test_add_duplicate_model(self, provider_service):
        """Test that a model id can only be added once per provider."""
        with pytest.raises(ValueError, match="already exists"):
            provider_service.add_model("p", Model(id="existing"))

    def test_add_invalid_model(self, provider_service):
        """Test that negative pricing is rejected."""
        with pytest.raises(CatalogValidationError):
            provider_service.add_model("p", Model(id="m", pricing=Pricing(input=-1)))

    def test_update_model(self, provider_service, store):
        """Test that only given model fields change."""
        updated = provider_service.update_model("p", "existing", name="Renamed", modalities=["text", "audio"])

        assert updated.name == "Renamed"
        assert updated.modalities == ["text", "audio"]
        assert updated.context.max_input == 128000
        assert store.load_all()[0].models[0].name == "Renamed"

    def test_update_model_blank_name_uses_formatted_id(self, provider_service, store):
        """Test that clearing the name falls back to the name formatted from the id."""
        updated = provider_service.update_model("p", "existing", name="  ")

        assert updated.name == "Existing"
        assert store.load_all()[0].models[0].name == "Existing"

    def test_update_unknown_model(self, provider_service):
        """Test that updating an unknown model raises."""
        with pytest.raises(ModelNotFoundError):
            provider_service.update_model("p", "missing", name="X")

    def test_delete_model(self, provider_service, state):
        """Test removing a model."""
        provider_service.delete_model("p", "existing")

        assert state.get("p").models == []

    def test_add_fetched_models(self, provider_service, store, state):
        """Test that fetched entries are stored with default metadata and known ids skipped."""
        fetched = [FetchedModel(id="existing"), FetchedModel(id="meta/llama-3"), FetchedModel(id="meta/llama-3")]

        added = provider_service.add_fetched_models("p", fetched)

        assert [m.id for m in added] == ["meta/llama-3"]
        assert added[0].name == "Meta Llama 3"
        assert added[0].limits is None
        assert [m.id for m in store.load_all()[0].models] == ["existing", "meta/llama-3"]
        assert [m.id for m in state.get("p").models] == ["existing", "meta/llama-3"]

    def test_add_fetched_models_unknown_provider(self, provider_service):
        """Test that adding fetched models to an unknown provider raises."""
        with pytest.raises(ProviderNotFoundError):
            provider_service.add_fetched_models("missing", [FetchedModel(id="m")])


class TestFetchModels:
    """Test listing upstream models through the service."""

    @pytest.mark.asyncio
    async def test_uses_first_key_and_endpoints(self, store, state):
        """Test that the provider's first key and endpoints are used."""
        fetcher = AsyncMock()
        fetcher.fetch_models.return_value = FetchModelsResult(models=[FetchedModel(id="m")])
        service = ProviderService(store, state, id_factory=lambda name: "p", model_fetcher=fetcher)
        service.create_provider(
            name="P",
            endpoints={"openai": "https://api.test.com/v1", "anthropic": "https://api.test.com/anthropic"},
            api_keys=["sk-1", "sk-2"],
        )

        result = await service.fetch_models("p")

        assert [m.id for m in result.models] == ["m"]
        fetcher.fetch_models.assert_awaited_once_with(
            "https://api.test.com/v1", "sk-1", "https://api.test.com/anthropic"
        )

    @pytest.mark.asyncio
    async def test_no_endpoint(self, provider_service):
        """Test that a provider without endpoints reports an error."""
        provider_service.create_provider(name="P")

        result = await provider_service.fetch_models("p")

        assert result.models == []
        assert result.error == "Provider 'p' has no endpoint configured"
