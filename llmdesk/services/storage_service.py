"""Persistence of the provider catalog.

``ProviderStore`` is the contract the import pipeline and the CRUD service
depend on. ``replace_all`` must be atomic: readers see either the old or the
new collection, never a mix.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol, Sequence

from cryptography.fernet import InvalidToken
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from llmdesk.errors import ModelNotFoundError, ProviderNotFoundError, StorageError
from llmdesk.models.model import ModelRecord
from llmdesk.models.provider import ProviderRecord
from llmdesk.schemas.catalog import Model, Provider
from llmdesk.services.encryption_service import EncryptionService

logger = logging.getLogger(__name__)


class ProviderStore(Protocol):
    """Storage collaborator for the provider catalog."""

    def load_all(self) -> List[Provider]:
        """Return every stored provider in order; raise StorageError if unreadable."""
        ...

    def replace_all(self, providers: Sequence[Provider]) -> None:
        """Atomically replace the whole collection; raise StorageError on failure."""
        ...

    def create_provider(self, provider: Provider) -> None: ...

    def update_provider(self, provider: Provider) -> None: ...

    def delete_provider(self, provider_id: str) -> None: ...

    def create_model(self, provider_id: str, model: Model) -> None: ...

    def update_model(self, provider_id: str, model: Model) -> None: ...

    def delete_model(self, provider_id: str, model_id: str) -> None: ...

    def clear(self) -> None: ...


class InMemoryProviderStore:
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, providers: Optional[Sequence[Provider]] = None):
        self._providers: List[Provider] = [p.model_copy(deep=True) for p in providers or []]

    def load_all(self) -> List[Provider]:
        return [p.model_copy(deep=True) for p in self._providers]

    def replace_all(self, providers: Sequence[Provider]) -> None:
        ids = [p.id for p in providers]
        if len(ids) != len(set(ids)):
            raise StorageError("Duplicate provider ids in collection")
        self._providers = [p.model_copy(deep=True) for p in providers]

    def _index(self, provider_id: str) -> int:
        for position, provider in enumerate(self._providers):
            if provider.id == provider_id:
                return position
        raise ProviderNotFoundError(provider_id)

    def create_provider(self, provider: Provider) -> None:
        if any(p.id == provider.id for p in self._providers):
            raise ValueError(f"Provider with id '{provider.id}' already exists")
        self._providers.append(provider.model_copy(deep=True))

    def update_provider(self, provider: Provider) -> None:
        position = self._index(provider.id)
        models = self._providers[position].models
        self._providers[position] = provider.model_copy(deep=True, update={"models": models})

    def delete_provider(self, provider_id: str) -> None:
        del self._providers[self._index(provider_id)]

    def create_model(self, provider_id: str, model: Model) -> None:
        provider = self._providers[self._index(provider_id)]
        if provider.get_model(model.id) is not None:
            raise ValueError(f"Model '{model.id}' already exists for provider '{provider_id}'")
        provider.models.append(model.model_copy(deep=True))

    def update_model(self, provider_id: str, model: Model) -> None:
        provider = self._providers[self._index(provider_id)]
        for position, current in enumerate(provider.models):
            if current.id == model.id:
                provider.models[position] = model.model_copy(deep=True)
                return
        raise ModelNotFoundError(model.id, provider_id)

    def delete_model(self, provider_id: str, model_id: str) -> None:
        provider = self._providers[self._index(provider_id)]
        remaining = [m for m in provider.models if m.id != model_id]
        if len(remaining) == len(provider.models):
            raise ModelNotFoundError(model_id, provider_id)
        provider.models = remaining

    def clear(self) -> None:
        self._providers = []


class SqlProviderStore:
    """SQLAlchemy-backed store. Each call runs in its own transaction."""

    def __init__(self, session_factory=None, encryption_service: Optional[EncryptionService] = None):
        """Initialize SQL store.

        Args:
            session_factory: Callable returning a new Session; defaults to
                the application's SessionLocal.
            encryption_service: Service used to encrypt API keys at rest.
        """
        if session_factory is None:
            from llmdesk.database.database import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self.encryption_service = encryption_service or EncryptionService()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _commit(self, db: Session, action: str) -> None:
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise StorageError(f"Failed to {action}: {e}") from e

    def load_all(self) -> List[Provider]:
        """Load all providers with decrypted API keys.

        Raises:
            StorageError: If the database or stored credentials cannot be read.
        """
        with self._session() as db:
            try:
                records = db.query(ProviderRecord).order_by(ProviderRecord.position).all()
                return [self._to_provider(record) for record in records]
            except SQLAlchemyError as e:
                logger.error(f"Failed to load providers: {e}")
                raise StorageError(f"Failed to load providers: {e}") from e
            except (InvalidToken, ValueError) as e:
                logger.error(f"Stored provider data is corrupt: {e!r}")
                raise StorageError(f"Stored provider data is corrupt: {e!r}") from e

    def replace_all(self, providers: Sequence[Provider]) -> None:
        """Replace every stored provider and model in a single transaction.

        Raises:
            StorageError: If the write fails; the previous data is kept.
        """
        records = [self._to_record(provider, position) for position, provider in enumerate(providers)]
        with self._session() as db:
            try:
                db.query(ModelRecord).delete(synchronize_session=False)
                db.query(ProviderRecord).delete(synchronize_session=False)
                db.add_all(records)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Failed to replace providers: {e}")
                raise StorageError(f"Failed to replace providers: {e}") from e
        logger.info(f"Stored {len(records)} providers")

    def create_provider(self, provider: Provider) -> None:
        """Append a provider (with its models) after the existing ones.

        Raises:
            ValueError: If a provider with the same id already exists.
        """
        with self._session() as db:
            last = db.query(func.max(ProviderRecord.position)).scalar()
            db.add(self._to_record(provider, 0 if last is None else last + 1))
            try:
                self._commit(db, f"create provider '{provider.id}'")
            except IntegrityError as e:
                logger.error(f"Failed to add provider '{provider.id}': {e}")
                raise ValueError(f"Provider with id '{provider.id}' already exists")
        logger.info(f"Provider '{provider.id}' added successfully")

    def update_provider(self, provider: Provider) -> None:
        """Overwrite a provider's own fields. Its models are left untouched."""
        with self._session() as db:
            record = self._get_record(db, provider.id)
            record.name = provider.name
            record.enabled = provider.enabled
            record.is_custom = provider.is_custom
            record.api_keys_encrypted = self.encryption_service.encrypt_keys(provider.api_keys)
            record.endpoints = provider.endpoints.model_dump(by_alias=True)
            record.limits = [limit.model_dump(by_alias=True) for limit in provider.limits]
            record.features = provider.features.model_dump(by_alias=True)
            self._commit(db, f"update provider '{provider.id}'")
        logger.info(f"Provider '{provider.id}' updated successfully")

    def delete_provider(self, provider_id: str) -> None:
        """Delete a provider and, by cascade, its models."""
        with self._session() as db:
            record = self._get_record(db, provider_id)
            model_count = len(record.models)
            db.delete(record)
            self._commit(db, f"delete provider '{provider_id}'")
        logger.info(f"Provider '{provider_id}' deleted successfully (cascade deleted {model_count} models)")

    def create_model(self, provider_id: str, model: Model) -> None:
        """Append a model to a provider.

        Raises:
            ValueError: If the provider already has a model with this id.
        """
        with self._session() as db:
            record = self._get_record(db, provider_id)
            position = max((m.position for m in record.models), default=-1) + 1
            record.models.append(self._to_model_record(model, position))
            try:
                self._commit(db, f"add model '{model.id}'")
            except IntegrityError:
                raise ValueError(f"Model '{model.id}' already exists for provider '{provider_id}'")

    def update_model(self, provider_id: str, model: Model) -> None:
        with self._session() as db:
            record = self._get_model_record(db, provider_id, model.id)
            self._fill_model_record(record, model)
            self._commit(db, f"update model '{model.id}'")

    def delete_model(self, provider_id: str, model_id: str) -> None:
        with self._session() as db:
            record = self._get_model_record(db, provider_id, model_id)
            db.delete(record)
            self._commit(db, f"delete model '{model_id}'")

    def clear(self) -> None:
        """Remove all stored providers and models."""
        self.replace_all([])

    def _get_record(self, db: Session, provider_id: str) -> ProviderRecord:
        record = db.query(ProviderRecord).filter(ProviderRecord.id == provider_id).first()
        if record is None:
            raise ProviderNotFoundError(provider_id)
        return record

    def _get_model_record(self, db: Session, provider_id: str, model_id: str) -> ModelRecord:
        self._get_record(db, provider_id)
        record = db.query(ModelRecord).filter(
            ModelRecord.provider_id == provider_id,
            ModelRecord.model_id == model_id,
        ).first()
        if record is None:
            raise ModelNotFoundError(model_id, provider_id)
        return record

    def _to_record(self, provider: Provider, position: int) -> ProviderRecord:
        record = ProviderRecord(
            id=provider.id,
            position=position,
            name=provider.name,
            enabled=provider.enabled,
            is_custom=provider.is_custom,
            api_keys_encrypted=self.encryption_service.encrypt_keys(provider.api_keys),
            endpoints=provider.endpoints.model_dump(by_alias=True),
            limits=[limit.model_dump(by_alias=True) for limit in provider.limits],
            features=provider.features.model_dump(by_alias=True),
        )
        record.models = [self._to_model_record(model, index) for index, model in enumerate(provider.models)]
        return record

    def _to_model_record(self, model: Model, position: int) -> ModelRecord:
        record = ModelRecord(model_id=model.id, position=position)
        self._fill_model_record(record, model)
        return record

    @staticmethod
    def _fill_model_record(record: ModelRecord, model: Model) -> None:
        record.name = model.name
        record.enabled = model.enabled
        record.parameters = model.parameters
        record.pricing = model.pricing.model_dump(by_alias=True)
        record.context = model.context.model_dump(by_alias=True)
        record.modalities = list(model.modalities)
        record.features = model.features.model_dump(by_alias=True)
        record.limits = (
            None if model.limits is None else [limit.model_dump(by_alias=True) for limit in model.limits]
        )

    def _to_provider(self, record: ProviderRecord) -> Provider:
        return Provider.model_validate({
            "id": record.id,
            "name": record.name,
            "enabled": record.enabled,
            "credentials": {"apiKeys": self.encryption_service.decrypt_keys(record.api_keys_encrypted)},
            "endpoints": record.endpoints,
            "limits": record.limits,
            "features": record.features,
            "models": [self._to_model(model) for model in record.models],
            "isCustom": record.is_custom,
        })

    @staticmethod
    def _to_model(record: ModelRecord) -> dict:
        return {
            "id": record.model_id,
            "name": record.name,
            "enabled": record.enabled,
            "parameters": record.parameters,
            "pricing": record.pricing,
            "context": record.context,
            "modalities": record.modalities,
            "features": record.features,
            "limits": record.limits,
        }
