"""Tests for provider reconciliation."""

import pytest

from llmdesk.schemas.catalog import Credentials, Endpoints, Model, Provider, RateLimit
from llmdesk.schemas.results import ImportMode
from llmdesk.services.provider_reconciler import ProviderReconciler, merge_api_keys


@pytest.fixture
def reconciler():
    """Create provider reconciler."""
    return ProviderReconciler()


def make_provider(provider_id, keys=(), models=(), **kwargs):
    return Provider(
        id=provider_id,
        name=kwargs.pop("name", provider_id.title()),
        credentials=Credentials(api_keys=list(keys)),
        models=[Model(id=model_id) for model_id in models],
        **kwargs,
    )


def dump(providers):
    return [provider.model_dump() for provider in providers]


class TestMergeApiKeys:
    """Test API key union."""

    def test_union_keeps_order(self):
        """Test that existing keys come first and new keys are appended once."""
        assert merge_api_keys(["k1", "k2"], ["k2", "k3", "k3"]) == ["k1", "k2", "k3"]

    def test_never_shrinks(self):
        """Test that an empty incoming list keeps every existing key."""
        assert merge_api_keys(["k1"], []) == ["k1"]


class TestReplaceMode:
    """Test replace mode."""

    def test_result_is_incoming(self, reconciler):
        """Test that replace discards existing providers."""
        existing = [make_provider("old", keys=["k0"])]
        incoming = [make_provider("new", models=["m1"])]

        result = reconciler.reconcile(existing, incoming, ImportMode.REPLACE)

        assert dump(result.providers) == dump(incoming)
        assert result.counts.providers_added == 1
        assert result.counts.models_added == 1

    def test_duplicate_providers(self, reconciler):
        """Two providers with the same id: one survives, one warning."""
        incoming = [make_provider("dup", name="First"), make_provider("dup", name="Second")]

        result = reconciler.reconcile([], incoming, ImportMode.REPLACE)

        assert [(p.id, p.name) for p in result.providers] == [("dup", "First")]
        assert result.warnings == ["Duplicate provider 'dup' ignored"]

    def test_keeps_is_custom_as_given(self, reconciler):
        """Test that replace does not mark providers as custom."""
        result = reconciler.reconcile([], [make_provider("p")], ImportMode.REPLACE)

        assert result.providers[0].is_custom is False


class TestMergeMode:
    """Test merge mode."""

    def test_keys_and_models_merged(self, reconciler):
        """Matching provider: keys are unioned and models appended."""
        existing = [make_provider("openai", keys=["k1"], models=["gpt-4"])]
        incoming = [make_provider("openai", keys=["k2"], models=["gpt-4o"])]

        result = reconciler.reconcile(existing, incoming, ImportMode.MERGE)

        provider = result.providers[0]
        assert provider.api_keys == ["k1", "k2"]
        assert [m.id for m in provider.models] == ["gpt-4", "gpt-4o"]
        assert result.counts.providers_updated == 1
        assert result.counts.models_added == 1

    def test_invalid_model_skipped_siblings_kept(self, reconciler):
        """A model with no modalities is skipped; its siblings are merged."""
        incoming_provider = make_provider("p", models=["ok"])
        incoming_provider.models.append(Model(id="bad", modalities=[]))
        incoming_provider.models.append(Model(id="ok-too"))

        result = reconciler.reconcile([make_provider("p")], [incoming_provider], ImportMode.MERGE)

        assert [m.id for m in result.providers[0].models] == ["ok", "ok-too"]
        assert result.warnings == ["Model 'bad' in provider 'p' skipped: modalities must not be empty"]

    def test_scalar_fields_overwritten(self, reconciler):
        """Test that name, enabled, endpoints and features come from incoming."""
        existing = [make_provider(
            "p", name="Old", endpoints=Endpoints(openai="https://old.example.com/v1"), is_custom=True
        )]
        incoming = [make_provider(
            "p", name="New", enabled=False, endpoints=Endpoints(openai="https://new.example.com/v1")
        )]

        provider = reconciler.reconcile(existing, incoming, ImportMode.MERGE).providers[0]

        assert provider.name == "New"
        assert provider.enabled is False
        assert provider.endpoints.openai == "https://new.example.com/v1"
        assert provider.is_custom is True

    def test_limits_kept_when_incoming_has_none(self, reconciler):
        """Test that limits are only overwritten when incoming carries them."""
        limit = RateLimit(kind="requests", count=10, window_seconds=60)
        existing = [make_provider("p", limits=[limit])]

        kept = reconciler.reconcile(existing, [make_provider("p")], ImportMode.MERGE)
        cleared = reconciler.reconcile(existing, [make_provider("p", limits=[])], ImportMode.MERGE)

        assert kept.providers[0].limits == [limit]
        assert cleared.providers[0].limits == []

    def test_unmatched_provider_appended_as_custom(self, reconciler):
        """Test that new providers are appended and marked custom."""
        existing = [make_provider("a")]
        incoming = [make_provider("b")]

        result = reconciler.reconcile(existing, incoming, ImportMode.MERGE)

        assert [p.id for p in result.providers] == ["a", "b"]
        assert result.providers[1].is_custom is True
        assert result.counts.providers_added == 1

    def test_idempotent(self, reconciler):
        """Applying the same incoming set twice equals applying it once."""
        existing = [make_provider("a", keys=["k1"], models=["m1"]), make_provider("b")]
        incoming = [
            make_provider("a", keys=["k2"], models=["m2", "m1"]),
            make_provider("c", models=["x"]),
            make_provider("c", models=["y"]),
        ]

        once = reconciler.reconcile(existing, incoming, ImportMode.MERGE).providers
        twice = reconciler.reconcile(once, incoming, ImportMode.MERGE).providers

        assert dump(twice) == dump(once)

    def test_inputs_not_modified(self, reconciler):
        """Test that neither input collection is mutated."""
        existing = [make_provider("a", keys=["k1"], models=["m1"])]
        incoming = [make_provider("a", keys=["k2"], models=["m2"]), make_provider("b")]
        before = dump(existing) + dump(incoming)

        result = reconciler.reconcile(existing, incoming, ImportMode.MERGE)
        result.providers[0].credentials.api_keys.append("k3")

        assert dump(existing) + dump(incoming) == before
