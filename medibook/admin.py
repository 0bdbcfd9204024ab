"""Back-office listings, search and removal."""

import logging

from pydantic import BaseModel

from medibook.auth.identity import PasswordIdentityProvider
from medibook.core.errors import NotFound
from medibook.records import AppointmentRecord, DoctorRecord, UserRecord
from medibook.store import DocumentStore

logger = logging.getLogger(__name__)

UNKNOWN_DOCTOR = 'Unknown Doctor'
UNKNOWN_PATIENT = 'Unknown Patient'


class AdminAppointment(BaseModel):
    appointment: AppointmentRecord
    doctor: str
    patient: str


class AdminOverview(BaseModel):
    doctor_count: int
    patient_count: int
    appointment_count: int
    doctors: list[DoctorRecord]
    patients: list[UserRecord]
    appointments: list[AdminAppointment]


def _matches(term: str, *values: str | None) -> bool:
    needle = (term or '').strip().lower()
    if not needle:
        return True
    return any(needle in (value or '').lower() for value in values)


def search_doctors(doctors: list[DoctorRecord], term: str) -> list[DoctorRecord]:
    return [doctor for doctor in doctors if _matches(term, doctor.name, doctor.uid, doctor.specialty)]


def search_patients(patients: list[UserRecord], term: str) -> list[UserRecord]:
    return [patient for patient in patients if _matches(term, patient.name, patient.email, patient.uid)]


def list_patients(store: DocumentStore) -> list[UserRecord]:
    return store.list('users', role='patient')


def label_appointments(
    appointments: list[AppointmentRecord],
    doctors: list[DoctorRecord],
    patients: list[UserRecord],
) -> list[AdminAppointment]:
    doctor_names = {doctor.uid: doctor.name for doctor in doctors}
    patient_names = {patient.uid: patient.name for patient in patients}
    return [
        AdminAppointment(
            appointment=appointment,
            doctor=doctor_names.get(appointment.doctor_id) or UNKNOWN_DOCTOR,
            patient=patient_names.get(appointment.patient_id) or UNKNOWN_PATIENT,
        )
        for appointment in appointments
    ]


def overview(store: DocumentStore) -> AdminOverview:
    doctors = store.list('doctors')
    patients = list_patients(store)
    appointments = label_appointments(store.list('appointments'), doctors, patients)
    return AdminOverview(
        doctor_count=len(doctors),
        patient_count=len(patients),
        appointment_count=len(appointments),
        doctors=doctors,
        patients=patients,
        appointments=appointments,
    )


def remove_doctor(store: DocumentStore, doctor_id: str) -> None:
    if not store.delete('doctors', doctor_id):
        raise NotFound('Doctor not found.')
    logger.info('Doctor %s removed', doctor_id)


def remove_patient(store: DocumentStore, provider: PasswordIdentityProvider, patient_id: str) -> None:
    """Delete the patient documents and sign out every session the account holds."""
    user = store.get('users', patient_id)
    if user is not None and user.role != 'patient':
        raise NotFound('Patient not found.')

    removed_user = store.delete('users', patient_id)
    removed_profile = store.delete('patients', patient_id)
    if not (removed_user or removed_profile):
        raise NotFound('Patient not found.')
    provider.revoke_sessions(patient_id)
    logger.info('Patient %s removed', patient_id)


def remove_appointment(store: DocumentStore, appointment_id: str) -> None:
    if not store.delete('appointments', appointment_id):
        raise NotFound('Appointment not found.')
    logger.info('Appointment %s removed by admin', appointment_id)
