"""Reconciliation of the model list within a single provider."""

import logging
from typing import List, Sequence, Union

from pydantic import BaseModel, Field

from llmdesk.schemas.catalog import Model
from llmdesk.schemas.results import ImportMode
from llmdesk.services.validation_service import model_import_issues

logger = logging.getLogger(__name__)


class ModelReconcileResult(BaseModel):
    """Models produced by a reconciliation, with warnings and counts."""

    models: List[Model] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    added: int = 0
    updated: int = 0


class ModelReconciler:
    """Combines a provider's stored models with incoming ones."""

    def reconcile(
        self,
        existing: Sequence[Model],
        incoming: Sequence[Model],
        mode: Union[ImportMode, str],
        provider_id: str = "",
    ) -> ModelReconcileResult:
        """Reconcile ``incoming`` models against ``existing`` ones.

        In replace mode the result is the incoming list without duplicate ids
        (first occurrence wins). In merge mode an incoming model replaces the
        existing model with the same id in place, new ids are appended in
        incoming order and existing models not mentioned are kept.

        Incoming models that cannot be stored (non-positive ``maxInput``, no
        modalities, negative or non-finite pricing) are skipped with a warning in both modes.
        Neither input sequence is modified.

        Args:
            existing: Models currently stored for the provider.
            incoming: Models from the import document.
            mode: ``replace`` or ``merge``.
            provider_id: Owning provider, used in warning messages.

        Returns:
            ModelReconcileResult with the new model list.
        """
        mode = ImportMode(mode)
        warnings: List[str] = []
        accepted = self._accept(incoming, provider_id, warnings)

        if mode is ImportMode.REPLACE:
            return ModelReconcileResult(models=accepted, warnings=warnings, added=len(accepted))

        merged = [model.model_copy(deep=True) for model in existing]
        positions = {}
        for position, model in enumerate(merged):
            positions.setdefault(model.id, position)

        added = updated = 0
        for model in accepted:
            position = positions.get(model.id)
            if position is None:
                positions[model.id] = len(merged)
                merged.append(model)
                added += 1
            else:
                merged[position] = model
                updated += 1

        return ModelReconcileResult(models=merged, warnings=warnings, added=added, updated=updated)

    def _accept(self, incoming: Sequence[Model], provider_id: str, warnings: List[str]) -> List[Model]:
        """Deduplicate incoming models and drop the ones that cannot be stored."""
        seen = set()
        accepted = []
        for model in incoming:
            if model.id in seen:
                warnings.append(f"Duplicate model '{model.id}' in provider '{provider_id}' ignored")
                continue
            seen.add(model.id)

            issues = model_import_issues(model)
            if issues:
                message = f"Model '{model.id}' in provider '{provider_id}' skipped: {', '.join(issues)}"
                logger.warning(message)
                warnings.append(message)
                continue
            accepted.append(model.model_copy(deep=True))
        return accepted
