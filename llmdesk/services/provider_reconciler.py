"""Reconciliation of the provider collection."""

import logging
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from llmdesk.schemas.catalog import Credentials, Model, Provider
from llmdesk.schemas.results import ImportMode
from llmdesk.services.model_reconciler import ModelReconciler

logger = logging.getLogger(__name__)


class ReconcileCounts(BaseModel):
    """What a reconciliation changed, for reporting."""

    providers_added: int = 0
    providers_updated: int = 0
    models_added: int = 0
    models_updated: int = 0

    @property
    def providers(self) -> int:
        return self.providers_added + self.providers_updated

    @property
    def models(self) -> int:
        return self.models_added + self.models_updated


class ProviderReconcileResult(BaseModel):
    """Providers produced by a reconciliation, with warnings and counts."""

    providers: List[Provider] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    counts: ReconcileCounts = Field(default_factory=ReconcileCounts)


def merge_api_keys(existing: Sequence[str], incoming: Sequence[str]) -> List[str]:
    """Union of two key lists: existing keys first, new keys appended once.

    Existing keys are never removed.
    """
    merged = list(existing)
    seen = set(merged)
    for key in incoming:
        if key not in seen:
            merged.append(key)
            seen.add(key)
    return merged


def merge_provider(existing: Provider, incoming: Provider, models: List[Model]) -> Provider:
    """Merge an incoming provider into the stored one with the same id.

    ``name``, ``enabled``, ``endpoints`` and ``features`` come from the
    incoming provider. ``limits`` are taken from the incoming provider only
    when it carries them. API keys are unioned, ``isCustom`` is kept.

    Args:
        existing: The stored provider.
        incoming: The provider from the import document.
        models: The already reconciled model list.

    Returns:
        A new Provider; neither argument is modified.
    """
    if "limits" in incoming.model_fields_set:
        limits = [limit.model_copy() for limit in incoming.limits]
    else:
        limits = [limit.model_copy() for limit in existing.limits]

    return Provider(
        id=existing.id,
        name=incoming.name,
        enabled=incoming.enabled,
        credentials=Credentials(api_keys=merge_api_keys(existing.api_keys, incoming.api_keys)),
        endpoints=incoming.endpoints.model_copy(deep=True),
        limits=limits,
        features=incoming.features.model_copy(deep=True),
        models=models,
        is_custom=existing.is_custom,
    )


class ProviderReconciler:
    """Combines the stored provider collection with incoming providers."""

    def __init__(self, model_reconciler: Optional[ModelReconciler] = None):
        """Initialize provider reconciler.

        Args:
            model_reconciler: Reconciler used for each provider's models.
        """
        self.model_reconciler = model_reconciler or ModelReconciler()

    def reconcile(
        self,
        existing: Sequence[Provider],
        incoming: Sequence[Provider],
        mode: Union[ImportMode, str],
    ) -> ProviderReconcileResult:
        """Reconcile ``incoming`` providers against ``existing`` ones.

        Replace mode returns the incoming providers without duplicate ids,
        ``isCustom`` kept as given. Merge mode updates providers with a
        matching id (see ``merge_provider``) and appends the others as custom
        providers. Models are reconciled per provider with the same mode.

        Applying the same incoming set twice gives the same result as applying
        it once. Inputs are not modified.

        Args:
            existing: Providers currently stored.
            incoming: Providers from the import document.
            mode: ``replace`` or ``merge``.

        Returns:
            ProviderReconcileResult with the new collection, warnings and counts.
        """
        mode = ImportMode(mode)
        warnings: List[str] = []
        counts = ReconcileCounts()
        unique = self._dedupe(incoming, warnings)

        if mode is ImportMode.REPLACE:
            providers = []
            for provider in unique:
                result = self.model_reconciler.reconcile([], provider.models, mode, provider.id)
                warnings.extend(result.warnings)
                counts.models_added += result.added
                providers.append(provider.model_copy(deep=True, update={"models": result.models}))
            counts.providers_added = len(providers)
            logger.info(f"Replace reconciliation produced {len(providers)} providers")
            return ProviderReconcileResult(providers=providers, warnings=warnings, counts=counts)

        merged = [provider.model_copy(deep=True) for provider in existing]
        positions: Dict[str, int] = {}
        for position, provider in enumerate(merged):
            positions.setdefault(provider.id, position)

        for provider in unique:
            position = positions.get(provider.id)
            if position is None:
                result = self.model_reconciler.reconcile([], provider.models, mode, provider.id)
                positions[provider.id] = len(merged)
                merged.append(
                    provider.model_copy(deep=True, update={"models": result.models, "is_custom": True})
                )
                counts.providers_added += 1
            else:
                current = merged[position]
                result = self.model_reconciler.reconcile(current.models, provider.models, mode, provider.id)
                merged[position] = merge_provider(current, provider, result.models)
                counts.providers_updated += 1
            warnings.extend(result.warnings)
            counts.models_added += result.added
            counts.models_updated += result.updated

        logger.info(
            f"Merge reconciliation: {counts.providers_added} providers added, "
            f"{counts.providers_updated} updated, {counts.models_added} models added, "
            f"{counts.models_updated} updated"
        )
        return ProviderReconcileResult(providers=merged, warnings=warnings, counts=counts)

    @staticmethod
    def _dedupe(incoming: Sequence[Provider], warnings: List[str]) -> List[Provider]:
        seen = set()
        unique = []
        for provider in incoming:
            if provider.id in seen:
                warnings.append(f"Duplicate provider '{provider.id}' ignored")
                continue
            seen.add(provider.id)
            unique.append(provider)
        return unique
