"""Document store accessor.

Collections are addressed by name and document id, the way the booking pages
address them. Reads come back as typed records, writes are validated against the
same record types before anything touches the database, and every committed
write is pushed to live subscribers of that document.
"""

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from threading import Lock
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medibook.core.errors import Conflict, NotFound, StoreUnavailable, ValidationFailed
from medibook.models.admin import Admin
from medibook.models.appointment import Appointment
from medibook.models.doctor import Doctor
from medibook.models.patient import Patient
from medibook.models.user import User
from medibook.records import (
    AdminRecord,
    AppointmentRecord,
    DoctorRecord,
    PatientRecord,
    Record,
    UserRecord,
)

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

Listener = Callable[[Record | None], None]


class Collection:
    def __init__(self, name: str, model, record_type, key: str):
        self.name = name
        self.model = model
        self.record_type = record_type
        self.key = key

    @property
    def versioned(self) -> bool:
        return hasattr(self.model, 'version')


COLLECTIONS = {
    'users': Collection('users', User, UserRecord, 'uid'),
    'doctors': Collection('doctors', Doctor, DoctorRecord, 'uid'),
    'patients': Collection('patients', Patient, PatientRecord, 'uid'),
    'admins': Collection('admins', Admin, AdminRecord, 'uid'),
    'appointments': Collection('appointments', Appointment, AppointmentRecord, 'id'),
}


class SubscriptionHub:
    """Fans committed writes out to per-document listeners."""

    def __init__(self):
        self._lock = Lock()
        self._listeners: dict[tuple[str, str], list[Listener]] = defaultdict(list)

    def subscribe(self, collection: str, doc_id: str, listener: Listener) -> Callable[[], None]:
        key = (collection, doc_id)
        with self._lock:
            self._listeners[key].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(key, None)

        return unsubscribe

    def publish(self, collection: str, doc_id: str, record: Record | None) -> None:
        with self._lock:
            listeners = list(self._listeners.get((collection, doc_id), []))

        for listener in listeners:
            try:
                listener(record)
            except Exception:
                logger.exception('Live update listener failed for %s/%s', collection, doc_id)

    def listener_count(self, collection: str, doc_id: str) -> int:
        with self._lock:
            return len(self._listeners.get((collection, doc_id), []))


live_updates = SubscriptionHub()


def _collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise ValueError(f'Unknown collection: {name}') from None


def _to_columns(record: Record) -> dict[str, Any]:
    data = record.model_dump(exclude={'kind'})
    if isinstance(record, DoctorRecord):
        data['availability'] = [
            {'date': entry.date.isoformat(), 'slots': list(entry.slots)}
            for entry in record.availability
        ]
    if data.get('created_at') is None:
        data.pop('created_at', None)
    return data


class DocumentStore:
    """Reads and writes records for one database session."""

    def __init__(self, db: Session, hub: SubscriptionHub | None = None):
        self.db = db
        self.hub = hub or live_updates

    def _validate(self, collection: Collection, data: dict[str, Any]) -> Record:
        try:
            return collection.record_type.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = '.'.join(str(part) for part in first.get('loc', ()))
            raise ValidationFailed(f'Invalid {collection.name} record ({field}): {first.get("msg")}') from exc

    def _record(self, collection: Collection, row) -> Record:
        return collection.record_type.model_validate(row)

    def _fail(self, operation: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.exception('Document store %s failed', operation)
        raise StoreUnavailable(STORE_UNAVAILABLE_DETAIL) from exc

    def get(self, collection_name: str, doc_id: str) -> Record | None:
        collection = _collection(collection_name)
        try:
            row = self.db.get(collection.model, doc_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self._fail(f'read of {collection_name}/{doc_id}', exc)
        if row is None:
            return None
        return self._record(collection, row)

    def list(self, collection_name: str, **equals: Any) -> list[Record]:
        if len(equals) > 1:
            raise ValueError('List reads filter on a single field.')

        collection = _collection(collection_name)
        try:
            query = self.db.query(collection.model)
            for field, value in equals.items():
                column = getattr(collection.model, field, None)
                if column is None:
                    raise ValueError(f'{collection_name} has no field {field}')
                query = query.filter(column == value)
            rows = query.all()
        except SQLAlchemyError as exc:
            self._fail(f'list of {collection_name}', exc)
        return [self._record(collection, row) for row in rows]

    def create(self, collection_name: str, data: dict[str, Any]) -> Record:
        collection = _collection(collection_name)
        payload = dict(data)
        payload.setdefault(collection.key, uuid.uuid4().hex)
        record = self._validate(collection, payload)
        doc_id = getattr(record, collection.key)

        try:
            row = collection.model(**_to_columns(record))
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self._fail(f'create in {collection_name}', exc)

        stored = self._record(collection, row)
        self.hub.publish(collection_name, doc_id, stored)
        return stored

    def set(self, collection_name: str, doc_id: str, data: dict[str, Any]) -> Record:
        """Create the document or replace it wholesale."""
        collection = _collection(collection_name)
        record = self._validate(collection, {**data, collection.key: doc_id})

        try:
            row = self.db.get(collection.model, doc_id, populate_existing=True)
            columns = _to_columns(record)
            if row is None:
                row = collection.model(**columns)
                self.db.add(row)
            else:
                if collection.versioned:
                    columns['version'] = (row.version or 1) + 1
                for field, value in columns.items():
                    setattr(row, field, value)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self._fail(f'set of {collection_name}/{doc_id}', exc)

        stored = self._record(collection, row)
        self.hub.publish(collection_name, doc_id, stored)
        return stored

    def update(
        self,
        collection_name: str,
        doc_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> Record:
        """Apply a partial update.

        ``expected_version`` is only honoured by versioned collections; a
        mismatch raises ``Conflict`` and nothing is written.
        """
        collection = _collection(collection_name)

        try:
            row = self.db.get(collection.model, doc_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self._fail(f'read of {collection_name}/{doc_id}', exc)
        if row is None:
            raise NotFound(f'{collection_name}/{doc_id} not found.')

        current = self._record(collection, row)
        if collection.versioned and expected_version is not None and current.version != expected_version:
            raise Conflict('This profile was changed elsewhere. Reload it before saving.')

        merged = {**current.model_dump(), **changes, collection.key: doc_id}
        record = self._validate(collection, merged)

        try:
            columns = _to_columns(record)
            if collection.versioned:
                self._write_versioned(collection, doc_id, columns, expected_version)
            else:
                for field, value in columns.items():
                    setattr(row, field, value)
            self.db.commit()
            row = self.db.get(collection.model, doc_id, populate_existing=True)
        except SQLAlchemyError as exc:
            self._fail(f'update of {collection_name}/{doc_id}', exc)
        if row is None:
            raise NotFound(f'{collection_name}/{doc_id} not found.')

        stored = self._record(collection, row)
        self.hub.publish(collection_name, doc_id, stored)
        return stored

    def _write_versioned(
        self,
        collection: Collection,
        doc_id: str,
        columns: dict[str, Any],
        expected_version: int | None,
    ) -> None:
        """Write and bump the version in one UPDATE, guarded by ``expected_version``."""
        model = collection.model
        columns.pop('version', None)
        columns['updated_at'] = datetime.now()
        columns['version'] = model.version + 1

        query = self.db.query(model).filter(getattr(model, collection.key) == doc_id)
        if expected_version is not None:
            query = query.filter(model.version == expected_version)

        if query.update(columns, synchronize_session=False) == 0:
            self.db.rollback()
            raise Conflict('This profile was changed elsewhere. Reload it before saving.')

    def delete(self, collection_name: str, doc_id: str) -> bool:
        collection = _collection(collection_name)
        try:
            row = self.db.get(collection.model, doc_id, populate_existing=True)
            if row is None:
                return False
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail(f'delete of {collection_name}/{doc_id}', exc)

        self.hub.publish(collection_name, doc_id, None)
        return True

    def subscribe(self, collection_name: str, doc_id: str, listener: Listener) -> Callable[[], None]:
        """Deliver the current document now and every committed change after it."""
        _collection(collection_name)
        unsubscribe = self.hub.subscribe(collection_name, doc_id, listener)
        listener(self.get(collection_name, doc_id))
        return unsubscribe
