"""Listing the models offered by a provider's API."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from llmdesk.config import settings
from llmdesk.schemas.catalog import Model, format_model_name

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
FETCH_ERROR_MESSAGE = (
    "Could not fetch models. This may be due to invalid credentials, "
    "or the endpoint not supporting model listing."
)


class FetchedModel(BaseModel):
    """A model entry as returned by a ``/models`` endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: str
    object: Optional[str] = None
    created: Optional[int] = None
    owned_by: Optional[str] = None


class FetchModelsResult(BaseModel):
    """Models returned by the provider, or an error message."""

    models: List[FetchedModel] = Field(default_factory=list)
    error: Optional[str] = None


class ModelFetcher:
    """Fetches model lists from OpenAI-compatible and Anthropic endpoints."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        """Initialize model fetcher.

        Args:
            client: Shared HTTP client; a short-lived one is created per
                request when omitted.
            timeout: Request timeout in seconds.
        """
        self._client = client
        self.timeout = timeout or settings.fetch_timeout

    async def fetch_models(
        self,
        base_url: str,
        api_key: str,
        anthropic_url: Optional[str] = None,
    ) -> FetchModelsResult:
        """Fetch models, trying the OpenAI-style endpoint then the Anthropic one.

        Args:
            base_url: OpenAI-compatible base URL (``.../v1``).
            api_key: Key sent with the request.
            anthropic_url: Optional Anthropic base URL used as a fallback.

        Returns:
            FetchModelsResult; ``error`` is set when neither endpoint listed models.
        """
        models = await self._fetch(
            base_url,
            {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )
        if models:
            return FetchModelsResult(models=models)

        if anthropic_url:
            models = await self._fetch(
                anthropic_url,
                {
                    "x-api-key": api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "Content-Type": "application/json",
                },
            )
            if models:
                return FetchModelsResult(models=models)

        return FetchModelsResult(error=FETCH_ERROR_MESSAGE)

    async def _fetch(self, base_url: str, headers: Dict[str, str]) -> List[FetchedModel]:
        models_url = f"{base_url.rstrip('/')}/models"
        try:
            response = await self._get(models_url, headers)
            response.raise_for_status()
            models = self._parse(response.json())
        except httpx.TimeoutException:
            logger.error(f"Timeout fetching models from {models_url}")
            return []
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error fetching models from {models_url}: {e.response.status_code}")
            return []
        except httpx.RequestError as e:
            logger.error(f"Request error fetching models from {models_url}: {e}")
            return []
        except ValueError as e:
            logger.warning(f"Unexpected response format from {models_url}: {e}")
            return []

        logger.info(f"Fetched {len(models)} models from {models_url}")
        return models

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _get(self, url: str, headers: Dict[str, str]) -> httpx.Response:
        """GET with retries on timeouts and connection errors."""
        if self._client is not None:
            return await self._client.get(url, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=headers)

    @staticmethod
    def _parse(data: Any) -> List[FetchedModel]:
        # {"data": [...]} (OpenAI), {"models": [...]}, or a bare list
        items: Any = []
        if isinstance(data, dict):
            items = data.get("data") or data.get("models") or []
        elif isinstance(data, list):
            items = data
        if not isinstance(items, list):
            return []
        return [
            FetchedModel.model_validate(item)
            for item in items
            if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]
        ]

    @staticmethod
    def to_model(fetched: FetchedModel) -> Model:
        """Convert a fetched entry into a catalog model with default metadata."""
        return Model(id=fetched.id, name=format_model_name(fetched.id))
