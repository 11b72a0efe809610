"""Catalog schemas: providers, models and the backup document.

Attribute names are snake_case; the JSON wire format uses the camelCase
aliases, so documents are dumped with ``model_dump(by_alias=True)``.
"""

import re
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def format_model_name(model_id: str) -> str:
    """Turn a model id into a readable name.

    ``"gpt-4o-mini"`` becomes ``"Gpt 4o Mini"`` and
    ``"meta/llama_3"`` becomes ``"Meta Llama 3"``.
    """
    parts = [part for part in re.split(r"[-_/]", model_id) if part]
    return " ".join(part[0].upper() + part[1:] for part in parts)


class CatalogSchema(BaseModel):
    """Base for catalog schemas."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RateLimit(CatalogSchema):
    """A rate-limit rule. Accepts the legacy ``type``/``limit``/``window`` keys."""

    kind: Literal["requests", "tokens"] = Field(
        validation_alias=AliasChoices("kind", "type"),
        serialization_alias="kind",
    )
    count: int = Field(validation_alias=AliasChoices("count", "limit"), gt=0)
    window_seconds: int = Field(
        validation_alias=AliasChoices("windowSeconds", "window_seconds", "window"),
        serialization_alias="windowSeconds",
        gt=0,
    )


class Pricing(CatalogSchema):
    """Cost per million tokens."""

    input: float = 0.0
    output: float = 0.0
    cached: Optional[float] = None
    currency: str = "USD"


class ContextWindow(CatalogSchema):
    """Context window sizes in tokens."""

    max_input: int = Field(default=128000, alias="maxInput")
    max_output: Optional[int] = Field(default=None, alias="maxOutput")


class ModelFeatures(CatalogSchema):
    """Per-model capability flags; ``None`` means unknown."""

    tool_calling: Optional[bool] = Field(default=None, alias="toolCalling")
    reasoning: Optional[bool] = None
    search: Optional[bool] = None
    code_execution: Optional[bool] = Field(default=None, alias="codeExecution")
    vision: Optional[bool] = None


class ProviderFeatures(CatalogSchema):
    """Provider capability flags."""

    streaming: Optional[bool] = None
    tool_calling: Optional[bool] = Field(default=None, alias="toolCalling")
    json_mode: Optional[bool] = Field(default=None, alias="jsonMode")


class Endpoints(CatalogSchema):
    """Primary (OpenAI-compatible) and optional secondary (Anthropic) URLs."""

    openai: str = ""
    anthropic: Optional[str] = None

    @field_validator("openai", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class Credentials(CatalogSchema):
    """API keys, in the order they were added."""

    api_keys: List[str] = Field(default_factory=list, alias="apiKeys")

    @field_validator("api_keys", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value


class Model(CatalogSchema):
    """A single model offered by a provider."""

    id: str
    name: str = ""
    enabled: bool = True
    parameters: Optional[str] = None
    pricing: Pricing = Field(default_factory=Pricing)
    context: ContextWindow = Field(default_factory=ContextWindow)
    modalities: List[str] = Field(default_factory=lambda: ["text"])
    features: ModelFeatures = Field(default_factory=ModelFeatures)
    limits: Optional[List[RateLimit]] = None

    @field_validator("pricing", "context", "features", mode="before")
    @classmethod
    def _none_to_defaults(cls, value):
        return {} if value is None else value

    @model_validator(mode="after")
    def _fill_name(self) -> "Model":
        if not self.name.strip() and self.id:
            self.name = format_model_name(self.id)
        return self


class Provider(CatalogSchema):
    """A configured LLM API source and the models it offers."""

    id: str
    name: str
    enabled: bool = True
    credentials: Credentials = Field(default_factory=Credentials)
    endpoints: Endpoints = Field(default_factory=Endpoints)
    limits: List[RateLimit] = Field(default_factory=list)
    features: ProviderFeatures = Field(default_factory=ProviderFeatures)
    models: List[Model] = Field(default_factory=list)
    is_custom: bool = Field(default=False, alias="isCustom")

    @field_validator("limits", "models", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return [] if value is None else value

    @field_validator("credentials", "endpoints", "features", mode="before")
    @classmethod
    def _none_to_defaults(cls, value):
        return {} if value is None else value

    @property
    def api_keys(self) -> List[str]:
        return self.credentials.api_keys

    def get_model(self, model_id: str) -> Optional[Model]:
        return next((m for m in self.models if m.id == model_id), None)


class Metadata(CatalogSchema):
    """Backup document metadata. Timestamps are ISO 8601 strings."""

    created_at: str = Field(default="", alias="createdAt")
    modified_at: str = Field(default="", alias="modifiedAt")
    generator: str = ""
    description: Optional[str] = None

    @field_validator("created_at", "modified_at", "generator", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


class CatalogDocument(CatalogSchema):
    """The versioned import/export document."""

    version: str
    metadata: Metadata = Field(default_factory=Metadata)
    providers: List[Provider] = Field(default_factory=list)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_to_defaults(cls, value):
        return {} if value is None else value

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)
