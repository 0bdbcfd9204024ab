from datetime import date

import pytest

from medibook.appointments import cancel_appointment, list_for_doctor, list_for_patient
from medibook.auth.session import CurrentUser
from medibook.core.errors import AuthorizationFailed, NotFound


@pytest.fixture
def booked(store):
    for appointment_id, day, slot in (('a2', date(2025, 6, 11), '09:00'), ('a1', date(2025, 6, 10), '10:00')):
        store.create('appointments', {
            'id': appointment_id,
            'doctor_id': 'doc-1',
            'patient_id': 'patient-1',
            'date': day,
            'time': slot,
            'fee': 400,
        })
    return store


def test_listings_are_ordered_by_date_and_time(booked) -> None:
    assert [appointment.id for appointment in list_for_patient(booked, 'patient-1')] == ['a1', 'a2']
    assert [appointment.id for appointment in list_for_doctor(booked, 'doc-1')] == ['a1', 'a2']
    assert list_for_doctor(booked, 'doc-2') == []


@pytest.mark.parametrize(
    'actor',
    [
        CurrentUser(uid='patient-1', role='patient'),
        CurrentUser(uid='doc-1', role='doctor'),
        CurrentUser(uid='admin-1', role='admin'),
    ],
)
def test_participants_and_admins_can_cancel(booked, actor: CurrentUser) -> None:
    cancel_appointment(booked, 'a1', actor)

    assert booked.get('appointments', 'a1') is None


@pytest.mark.parametrize(
    'actor',
    [
        CurrentUser(uid='patient-2', role='patient'),
        CurrentUser(uid='doc-2', role='doctor'),
    ],
)
def test_strangers_cannot_cancel(booked, actor: CurrentUser) -> None:
    with pytest.raises(AuthorizationFailed):
        cancel_appointment(booked, 'a1', actor)

    assert booked.get('appointments', 'a1') is not None


def test_cancel_missing_appointment(booked) -> None:
    with pytest.raises(NotFound):
        cancel_appointment(booked, 'ghost', CurrentUser(uid='admin-1', role='admin'))
