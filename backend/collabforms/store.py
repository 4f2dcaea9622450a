"""Record-level persistence used by the form workflow services."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .services.errors import FormWorkflowError, PersistenceFailure, RecordNotFound

# purpose: expose users/forms/sections/responses as plain record collections
# inputs: SQLAlchemy session bound to the current request or CLI run
# outputs: ORM rows with store-assigned identities and timestamps
# status: active

logger = logging.getLogger(__name__)

COLLECTIONS: dict[str, type] = {
    "users": models.User,
    "forms": models.Form,
    "sections": models.Section,
    "responses": models.Response,
}


class RecordStore:
    """Insert, update, delete and select records in the four collections.

    Every write is flushed immediately so store-generated fields are
    available to the caller. ``atomic`` groups the writes of one workflow
    operation: either all of them commit or the transaction is rolled
    back, which discards every record created earlier in the operation.
    """

    def __init__(self, db: Session):
        self.db = db

    def _model(self, collection: str) -> type:
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection {collection!r}") from None

    @contextmanager
    def _guard(self, action: str, collection: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning("Store %s on %s failed: %s", action, collection, exc)
            raise PersistenceFailure(f"Could not {action} {collection}: {exc}") from exc

    @contextmanager
    def atomic(self, operation: str) -> Iterator["RecordStore"]:
        try:
            yield self
            self.db.commit()
        except FormWorkflowError:
            self.db.rollback()
            logger.warning("Rolled back %s", operation)
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Rolled back %s: %s", operation, exc)
            raise PersistenceFailure(f"{operation} failed: {exc}") from exc

    def get(self, collection: str, record_id: UUID) -> Any | None:
        model = self._model(collection)
        with self._guard("read", collection):
            return self.db.get(model, record_id)

    def require(self, collection: str, record_id: UUID) -> Any:
        record = self.get(collection, record_id)
        if record is None:
            singular = collection[:-1].capitalize()
            raise RecordNotFound(f"{singular} not found")
        return record

    def select(self, collection: str, *, order_by: str | None = None, **filters: Any) -> list[Any]:
        model = self._model(collection)
        with self._guard("read", collection):
            query = self.db.query(model)
            if filters:
                query = query.filter_by(**filters)
            if order_by:
                query = query.order_by(getattr(model, order_by))
            return query.all()

    def select_in(self, collection: str, column: str, values: Iterable[Any]) -> list[Any]:
        values = list(values)
        if not values:
            return []
        model = self._model(collection)
        with self._guard("read", collection):
            return self.db.query(model).filter(getattr(model, column).in_(values)).all()

    def insert(self, collection: str, values: dict[str, Any]) -> Any:
        model = self._model(collection)
        with self._guard("insert", collection):
            record = model(**values)
            self.db.add(record)
            self.db.flush()
            return record

    def insert_many(self, collection: str, rows: Iterable[dict[str, Any]]) -> list[Any]:
        model = self._model(collection)
        with self._guard("insert", collection):
            records = [model(**values) for values in rows]
            self.db.add_all(records)
            self.db.flush()
            return records

    def update(self, collection: str, record_id: UUID, values: dict[str, Any]) -> Any:
        record = self.require(collection, record_id)
        with self._guard("update", collection):
            for key, value in values.items():
                setattr(record, key, value)
            self.db.flush()
            return record

    def delete(self, collection: str, record_id: UUID) -> None:
        record = self.require(collection, record_id)
        with self._guard("delete", collection):
            self.db.delete(record)
            self.db.flush()

    def delete_where(self, collection: str, column: str, values: Iterable[Any]) -> int:
        """Delete every record whose ``column`` is in ``values``."""

        values = list(values)
        if not values:
            return 0
        model = self._model(collection)
        with self._guard("delete", collection):
            deleted = (
                self.db.query(model)
                .filter(getattr(model, column).in_(values))
                .delete(synchronize_session="fetch")
            )
            self.db.flush()
            return deleted
