from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel

from medibook import admin
from medibook.auth.dependencies import get_gateway, get_store, require_roles
from medibook.auth.identity import IdentityGateway
from medibook.auth.session import CurrentUser
from medibook.profiles import update_patient_profile
from medibook.records import AppointmentRecord, DoctorRecord, PatientRecord, UserRecord
from medibook.store import DocumentStore

router = APIRouter(prefix='/admin', tags=['admin'])

admin_only = require_roles('admin')


class PatientNameUpdate(BaseModel):
    name: str


@router.get('/dashboard', response_model=admin.AdminOverview)
def admin_dashboard(
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    return admin.overview(store)


@router.get('/manage-doctors', response_model=list[DoctorRecord])
def manage_doctors(
    search: str = Query(default=''),
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    return admin.search_doctors(store.list('doctors'), search)


@router.delete('/manage-doctors/{doctor_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_doctor(
    doctor_id: str,
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    admin.remove_doctor(store, doctor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/manage-patients', response_model=list[UserRecord])
def manage_patients(
    search: str = Query(default=''),
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    return admin.search_patients(admin.list_patients(store), search)


@router.put('/manage-patients/{patient_id}', response_model=PatientRecord)
def rename_patient(
    patient_id: str,
    data: PatientNameUpdate,
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    return update_patient_profile(store, patient_id, user, data.name)


@router.delete('/manage-patients/{patient_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_patient(
    patient_id: str,
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
    gateway: IdentityGateway = Depends(get_gateway),
):
    admin.remove_patient(store, gateway.provider, patient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/manage-appointments', response_model=list[AppointmentRecord])
def manage_appointments(
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    return sorted(
        store.list('appointments'),
        key=lambda appointment: (appointment.date, appointment.time),
    )


@router.delete('/manage-appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: str,
    user: CurrentUser = Depends(admin_only),
    store: DocumentStore = Depends(get_store),
):
    admin.remove_appointment(store, appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
