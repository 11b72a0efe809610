"""Validation of import documents and of entities saved through CRUD."""

import copy
import logging
import math
from typing import Any, List, Optional, Sequence
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from llmdesk.errors import CatalogValidationError
from llmdesk.schemas.catalog import CatalogDocument, Model, Provider, RateLimit
from llmdesk.schemas.results import ValidationResult

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_VERSION = "1.0.0"

MAX_PROVIDER_NAME_LENGTH = 100
MAX_MODEL_ID_LENGTH = 200
MAX_MODEL_NAME_LENGTH = 200


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _format_location(loc: Sequence[Any]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def model_import_issues(model: Model) -> List[str]:
    """Return the reasons a model cannot be stored, or an empty list.

    Used by reconciliation to skip individual models instead of failing the
    whole document.
    """
    issues = []
    if model.context.max_input <= 0:
        issues.append("maxInput must be positive")
    if not model.modalities:
        issues.append("modalities must not be empty")
    prices = [model.pricing.input, model.pricing.output]
    if model.pricing.cached is not None:
        prices.append(model.pricing.cached)
    if not all(math.isfinite(price) for price in prices):
        issues.append("pricing must be a finite number")
    elif any(price < 0 for price in prices):
        issues.append("pricing cannot be negative")
    return issues


class ValidationService:
    """Checks documents before import and entities before they are saved."""

    def __init__(self, supported_version: str = SUPPORTED_SCHEMA_VERSION):
        """Initialize validation service.

        Args:
            supported_version: Schema version this build writes; documents with
                a different major version are accepted with a warning.
        """
        self.supported_version = supported_version

    def validate_document(self, raw: Any) -> ValidationResult:
        """Validate a parsed import document.

        The input is never modified. Structural problems (missing version,
        providers not a list, providers without id or name, models without id,
        fields of the wrong type) make the result invalid. Unknown fields are
        ignored. Malformed rate-limit entries are dropped with a warning.

        Args:
            raw: The JSON-decoded document.

        Returns:
            ValidationResult, with ``document`` set when valid.
        """
        errors: List[str] = []
        warnings: List[str] = []

        if not isinstance(raw, dict):
            return ValidationResult(valid=False, errors=["document: must be a JSON object"])

        version = raw.get("version")
        if _is_blank(version):
            errors.append("version: field is required")
        elif version.split(".")[0] != self.supported_version.split(".")[0]:
            warnings.append(
                f"Document version {version} differs from supported version {self.supported_version}"
            )

        if "metadata" not in raw or raw["metadata"] is None:
            warnings.append("metadata: missing from document")
        elif not isinstance(raw["metadata"], dict):
            errors.append("metadata: must be an object")

        providers = raw.get("providers")
        if not isinstance(providers, list):
            errors.append("providers: must be a list")
            providers = []
        elif not providers:
            warnings.append("providers: document contains no providers")

        for index, provider in enumerate(providers):
            errors.extend(self._check_provider_shape(index, provider))

        if errors:
            logger.warning(f"Import document rejected with {len(errors)} error(s)")
            return ValidationResult(valid=False, errors=errors, warnings=warnings)

        cleaned = self._drop_malformed_limits(raw, warnings)
        try:
            document = CatalogDocument.model_validate(cleaned)
        except PydanticValidationError as e:
            type_errors = [
                f"{_format_location(err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            logger.warning(f"Import document rejected with {len(type_errors)} type error(s)")
            return ValidationResult(valid=False, errors=type_errors, warnings=warnings)

        return ValidationResult(valid=True, warnings=warnings, document=document)

    def _check_provider_shape(self, index: int, provider: Any) -> List[str]:
        where = f"providers[{index}]"
        if not isinstance(provider, dict):
            return [f"{where}: must be an object"]

        errors = []
        if _is_blank(provider.get("id")):
            errors.append(f"{where}.id: field is required")
        if _is_blank(provider.get("name")):
            errors.append(f"{where}.name: field is required")

        models = provider.get("models")
        if models is None:
            return errors
        if not isinstance(models, list):
            errors.append(f"{where}.models: must be a list")
            return errors

        for model_index, model in enumerate(models):
            model_where = f"{where}.models[{model_index}]"
            if not isinstance(model, dict):
                errors.append(f"{model_where}: must be an object")
            elif _is_blank(model.get("id")):
                errors.append(f"{model_where}.id: field is required")
        return errors

    def _drop_malformed_limits(self, raw: dict, warnings: List[str]) -> dict:
        """Return a copy of ``raw`` with unusable rate-limit entries removed."""
        cleaned = copy.deepcopy(raw)
        for provider in cleaned["providers"]:
            provider_id = provider["id"]
            self._clean_limits_in_place(provider, f"provider '{provider_id}'", warnings)
            for model in provider.get("models") or []:
                self._clean_limits_in_place(
                    model, f"model '{model['id']}' in provider '{provider_id}'", warnings
                )
        return cleaned

    @staticmethod
    def _clean_limits_in_place(entity: dict, owner: str, warnings: List[str]) -> None:
        if "limits" not in entity:
            return
        if entity["limits"] is None:
            # Same as absent: a merge keeps the stored limits
            del entity["limits"]
            return
        limits = entity["limits"]
        if not isinstance(limits, list):
            warnings.append(f"Malformed limits on {owner} ignored")
            del entity["limits"]
            return

        kept = []
        for position, limit in enumerate(limits, start=1):
            try:
                RateLimit.model_validate(limit)
            except PydanticValidationError:
                warnings.append(f"Malformed limit #{position} on {owner} ignored")
                continue
            kept.append(limit)
        entity["limits"] = kept

    def validate_provider(self, provider: Provider) -> List[str]:
        """Strict checks applied before a provider is created or updated.

        Returns:
            List of ``"field: message"`` strings; empty when valid.
        """
        errors = []
        name = provider.name.strip()
        if not name:
            errors.append("name: Provider name is required")
        elif len(name) > MAX_PROVIDER_NAME_LENGTH:
            errors.append(f"name: Provider name exceeds {MAX_PROVIDER_NAME_LENGTH} characters")

        if provider.endpoints.openai and not _is_valid_url(provider.endpoints.openai):
            errors.append("endpoints.openai: Invalid OpenAI endpoint URL")
        if provider.endpoints.anthropic and not _is_valid_url(provider.endpoints.anthropic):
            errors.append("endpoints.anthropic: Invalid Anthropic endpoint URL")
        return errors

    def validate_model(self, model: Model) -> List[str]:
        """Strict checks applied before a model is added or updated.

        Returns:
            List of ``"field: message"`` strings; empty when valid.
        """
        errors = []
        model_id = model.id.strip()
        if not model_id:
            errors.append("id: Model ID is required")
        elif len(model_id) > MAX_MODEL_ID_LENGTH:
            errors.append(f"id: Model ID exceeds {MAX_MODEL_ID_LENGTH} characters")

        if len(model.name) > MAX_MODEL_NAME_LENGTH:
            errors.append(f"name: Model name exceeds {MAX_MODEL_NAME_LENGTH} characters")

        for field, label, price in (
            ("input", "Input", model.pricing.input),
            ("output", "Output", model.pricing.output),
            ("cached", "Cached", model.pricing.cached),
        ):
            if price is None:
                continue
            if not math.isfinite(price):
                errors.append(f"pricing.{field}: {label} pricing must be a finite number")
            elif price < 0:
                errors.append(f"pricing.{field}: {label} pricing cannot be negative")

        if model.context.max_input <= 0:
            errors.append("context.maxInput: Max input context must be positive")
        if model.context.max_output is not None and model.context.max_output <= 0:
            errors.append("context.maxOutput: Max output context must be positive if specified")

        if not model.modalities:
            errors.append("modalities: At least one modality is required")
        return errors

    def ensure_valid_provider(self, provider: Provider) -> None:
        """Raise CatalogValidationError if ``provider`` fails strict checks."""
        errors = self.validate_provider(provider)
        if errors:
            raise CatalogValidationError(errors)

    def ensure_valid_model(self, model: Model, provider_id: Optional[str] = None) -> None:
        """Raise CatalogValidationError if ``model`` fails strict checks."""
        errors = self.validate_model(model)
        if errors:
            if provider_id:
                logger.warning(f"Rejected model '{model.id}' for provider '{provider_id}': {errors}")
            raise CatalogValidationError(errors)
