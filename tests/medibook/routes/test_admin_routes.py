from datetime import date

import pytest



@pytest.fixture
def admin_headers(client, gateway, bearer) -> dict[str, str]:
    _, token = gateway.register('Clinic Admin', 'admin@example.com', 'secret123', 'admin')
    return bearer(token)


def test_admin_pages_redirect_patients(client, register, bearer) -> None:
    token = register('Pat Lee', 'pat@example.com')['access_token']

    for path in ('/admin/dashboard', '/admin/manage-doctors', '/admin/manage-appointments'):
        response = client.get(path, headers=bearer(token), follow_redirects=False)
        assert response.status_code == 303
        assert response.headers['location'] == '/auth/login'


def test_dashboard_summarises_clinic(client, admin_headers, register, doctor_factory, store) -> None:
    doctor_factory('D')
    patient = register('Pat Lee', 'pat@example.com')['user']
    store.create('appointments', {
        'doctor_id': 'D',
        'patient_id': patient['uid'],
        'date': date(2025, 6, 10),
        'time': '09:00',
        'fee': 500,
    })

    body = client.get('/admin/dashboard', headers=admin_headers).json()

    assert (body['doctor_count'], body['patient_count'], body['appointment_count']) == (1, 1, 1)
    assert body['appointments'][0]['doctor'] == 'Dr. Asha Rao'
    assert body['appointments'][0]['patient'] == 'Pat Lee'


def test_manage_patients_search_rename_and_remove(client, admin_headers, register, store) -> None:
    patient = register('Pat Lee', 'pat@example.com')['user']
    register('Sam Roy', 'sam@example.com')

    found = client.get('/admin/manage-patients', params={'search': 'pat@'}, headers=admin_headers).json()
    renamed = client.put(
        f'/admin/manage-patients/{patient["uid"]}',
        json={'name': 'Patricia Lee'},
        headers=admin_headers,
    )
    removed = client.delete(f'/admin/manage-patients/{patient["uid"]}', headers=admin_headers)

    assert [entry['uid'] for entry in found] == [patient['uid']]
    assert renamed.status_code == 200
    assert renamed.json()['name'] == 'Patricia Lee'
    assert removed.status_code == 204
    assert store.get('users', patient['uid']) is None


def test_remove_unknown_doctor_is_not_found(client, admin_headers) -> None:
    response = client.delete('/admin/manage-doctors/ghost', headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {'detail': 'Doctor not found.'}


def test_manage_appointments_lists_and_hard_deletes(client, admin_headers, store) -> None:
    for appointment_id, day in (('later', date(2025, 6, 12)), ('sooner', date(2025, 6, 10))):
        store.create('appointments', {
            'id': appointment_id,
            'doctor_id': 'D',
            'patient_id': 'P',
            'date': day,
            'time': '09:00',
            'fee': 500,
        })

    listed = client.get('/admin/manage-appointments', headers=admin_headers).json()
    removed = client.delete('/admin/manage-appointments/sooner', headers=admin_headers)
    missing = client.delete('/admin/manage-appointments/sooner', headers=admin_headers)

    assert [appointment['id'] for appointment in listed] == ['sooner', 'later']
    assert removed.status_code == 204
    assert missing.status_code == 404
    assert [appointment.id for appointment in store.list('appointments')] == ['later']


def test_removed_patient_is_signed_out(client, admin_headers, register, bearer) -> None:
    patient = register('Pat Lee', 'pat@example.com')

    client.delete(f'/admin/manage-patients/{patient["user"]["uid"]}', headers=admin_headers)
    response = client.get('/auth/me', headers=bearer(patient['access_token']), follow_redirects=False)

    assert response.status_code == 303
