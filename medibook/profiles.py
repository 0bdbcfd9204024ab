"""Profile editing.

Doctor profiles are live documents: while a doctor has the edit form open,
changes pushed by the store are held aside instead of being written over the
form. Saving against a profile that moved on in the meantime is a conflict the
editor has to settle, either by reloading or by saving with ``force``.
"""

import logging
from typing import Any

from medibook.auth.session import CurrentUser
from medibook.core.errors import AuthorizationFailed, NotFound, ValidationFailed
from medibook.records import DoctorRecord, PatientRecord
from medibook.store import DocumentStore

logger = logging.getLogger(__name__)

DOCTOR_EDITABLE_FIELDS = (
    'name',
    'specialty',
    'qualification',
    'consultation_fee',
    'bio',
    'profile_image',
    'experience',
    'clinic_name',
    'clinic_city',
    'availability',
)


def _form_from(doctor: DoctorRecord) -> dict[str, Any]:
    data = doctor.model_dump(include=set(DOCTOR_EDITABLE_FIELDS))
    data['availability'] = [
        {'date': entry.date, 'slots': list(entry.slots)} for entry in doctor.availability
    ]
    return data


class ProfileEditSession:
    def __init__(
        self,
        store: DocumentStore,
        doctor_id: str,
        editor: CurrentUser,
        base_version: int | None = None,
    ):
        doctor = store.get('doctors', doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found.')

        self.store = store
        self.doctor_id = doctor_id
        self.editor = editor
        self.base_version = doctor.version if base_version is None else base_version
        self.form = _form_from(doctor)
        self.remote: DoctorRecord | None = None
        self.remote_deleted = False
        self._unsubscribe = store.hub.subscribe('doctors', doctor_id, self._on_remote)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _on_remote(self, record: DoctorRecord | None) -> None:
        if record is None:
            self.remote_deleted = True
            return
        if record.version != self.base_version:
            self.remote = record

    @property
    def remote_changed(self) -> bool:
        return self.remote_deleted or self.remote is not None

    def edit(self, **changes: Any) -> None:
        unknown = set(changes) - set(DOCTOR_EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f'Cannot edit: {", ".join(sorted(unknown))}')
        self.form.update(changes)

    def reload(self) -> DoctorRecord:
        """Drop local edits and take the stored profile as the new starting point."""
        doctor = self.store.get('doctors', self.doctor_id)
        if doctor is None:
            raise NotFound('Doctor not found.')
        self.form = _form_from(doctor)
        self.base_version = doctor.version
        self.remote = None
        self.remote_deleted = False
        return doctor

    def save(self, force: bool = False) -> DoctorRecord:
        if self.editor.uid != self.doctor_id:
            raise AuthorizationFailed('You are not authorized to edit this profile.')
        if self.remote_deleted:
            raise NotFound('Doctor not found.')

        expected_version = None if force else self.base_version
        stored = self.store.update('doctors', self.doctor_id, dict(self.form), expected_version=expected_version)

        self.base_version = stored.version
        self.remote = None
        logger.info('Doctor profile %s saved at version %s', self.doctor_id, stored.version)
        return stored

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


def update_patient_profile(
    store: DocumentStore,
    patient_id: str,
    editor: CurrentUser,
    name: str,
) -> PatientRecord:
    if editor.uid != patient_id and editor.role != 'admin':
        raise AuthorizationFailed('You are not authorized to edit this profile.')

    name = (name or '').strip()
    if not name:
        raise ValidationFailed('Name is required.')

    if store.get('patients', patient_id) is None:
        raise NotFound('Patient not found.')

    patient = store.update('patients', patient_id, {'name': name})
    if store.get('users', patient_id) is not None:
        store.update('users', patient_id, {'name': name})
    return patient
