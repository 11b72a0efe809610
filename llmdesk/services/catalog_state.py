"""In-memory canonical provider collection and the selected-provider view."""

import logging
from typing import Optional, Sequence, Tuple

from llmdesk.errors import ProviderNotFoundError
from llmdesk.schemas.catalog import Provider

logger = logging.getLogger(__name__)


class CatalogState:
    """Holds the provider collection that readers render from.

    The collection is an immutable tuple replaced in one assignment, so a
    reader never observes a partially applied mutation. The selected provider
    is looked up by id from the current collection, which keeps it in sync
    with every swap; a swap that removes the selected id clears the selection.
    """

    def __init__(self, providers: Sequence[Provider] = ()):
        self._providers: Tuple[Provider, ...] = tuple(providers)
        self._selected_id: Optional[str] = None

    @property
    def providers(self) -> Tuple[Provider, ...]:
        return self._providers

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected(self) -> Optional[Provider]:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def get(self, provider_id: str) -> Optional[Provider]:
        return next((p for p in self._providers if p.id == provider_id), None)

    def swap(self, providers: Sequence[Provider]) -> None:
        """Replace the whole collection."""
        new_providers = tuple(providers)
        if self._selected_id is not None and not any(p.id == self._selected_id for p in new_providers):
            logger.info(f"Selected provider '{self._selected_id}' no longer exists, clearing selection")
            self._selected_id = None
        self._providers = new_providers

    def select(self, provider_id: Optional[str]) -> Optional[Provider]:
        """Select a provider by id, or clear the selection with ``None``.

        Raises:
            ProviderNotFoundError: If the id is not in the collection.
        """
        if provider_id is None:
            self._selected_id = None
            return None
        provider = self.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        self._selected_id = provider_id
        return provider
