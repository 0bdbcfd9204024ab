from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from pydantic import BaseModel

from medibook import appointments as appointment_service
from medibook.auth.dependencies import get_store, require_roles
from medibook.auth.session import CurrentUser
from medibook.profiles import update_patient_profile
from medibook.records import AppointmentRecord, PatientRecord
from medibook.store import DocumentStore

router = APIRouter(tags=['patients'])


class PatientDashboardResponse(BaseModel):
    patient: PatientRecord | None = None
    appointments: list[AppointmentRecord]


class PatientProfileUpdate(BaseModel):
    name: str


@router.get('/dashboard', response_model=PatientDashboardResponse)
def patient_dashboard(
    user: CurrentUser = Depends(require_roles('patient')),
    store: DocumentStore = Depends(get_store),
):
    return PatientDashboardResponse(
        patient=store.get('patients', user.uid),
        appointments=appointment_service.list_for_patient(store, user.uid),
    )


@router.put('/dashboard/profile', response_model=PatientRecord)
def update_my_profile(
    data: PatientProfileUpdate,
    user: CurrentUser = Depends(require_roles('patient')),
    store: DocumentStore = Depends(get_store),
):
    return update_patient_profile(store, user.uid, user, data.name)


@router.delete('/dashboard/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def cancel_my_appointment(
    appointment_id: str,
    user: CurrentUser = Depends(require_roles('patient')),
    store: DocumentStore = Depends(get_store),
):
    appointment_service.cancel_appointment(store, appointment_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
