"""Appointment listings and cancellation."""

import logging

from medibook.auth.session import CurrentUser
from medibook.core.errors import AuthorizationFailed, NotFound
from medibook.records import AppointmentRecord
from medibook.store import DocumentStore

logger = logging.getLogger(__name__)


def _ordered(appointments: list[AppointmentRecord]) -> list[AppointmentRecord]:
    return sorted(appointments, key=lambda appointment: (appointment.date, appointment.time))


def list_for_patient(store: DocumentStore, patient_id: str) -> list[AppointmentRecord]:
    return _ordered(store.list('appointments', patient_id=patient_id))


def list_for_doctor(store: DocumentStore, doctor_id: str) -> list[AppointmentRecord]:
    return _ordered(store.list('appointments', doctor_id=doctor_id))


def can_cancel(appointment: AppointmentRecord, actor: CurrentUser) -> bool:
    if actor.role == 'admin':
        return True
    if actor.role == 'patient':
        return appointment.patient_id == actor.uid
    if actor.role == 'doctor':
        return appointment.doctor_id == actor.uid
    return False


def cancel_appointment(store: DocumentStore, appointment_id: str, actor: CurrentUser) -> None:
    """Cancel by deleting the document; no cancelled copy is kept."""
    appointment = store.get('appointments', appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found.')

    if not can_cancel(appointment, actor):
        raise AuthorizationFailed('Only the patient, the doctor, or an admin can cancel this appointment.')

    store.delete('appointments', appointment_id)
    logger.info('Appointment %s cancelled by %s %s', appointment_id, actor.role, actor.uid)
