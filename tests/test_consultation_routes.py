"""Record -> review -> save through the HTTP API."""
import io

from mediconsult.exceptions import ExtractionFailed


class FailingExtractor:
    def extract(self, raw_input):
        raise ExtractionFailed('Extraction timed out, please try again')


def _start_and_stop(client, headers, patient_name='Jane Doe', patient_phone='555-0100'):
    resp = client.post('/api/consultations/start', headers=headers, json={
        'mode': 'text', 'patient_name': patient_name, 'patient_phone': patient_phone,
    })
    assert resp.status_code == 200
    assert resp.get_json()['data']['state'] == 'recording'
    return client.post('/api/consultations/stop', headers=headers, json={
        'text': 'Three days of fever and sore throat. Paracetamol and amoxicillin.',
    })


def test_record_review_and_save(client, doctor_headers, extractor):
    resp = _start_and_stop(client, doctor_headers)
    assert resp.status_code == 200
    draft = resp.get_json()['data']['draft']
    assert resp.get_json()['data']['state'] == 'reviewing'
    assert [m['name'] for m in draft['medications']] == ['Paracetamol', 'Amoxicillin']
    assert draft['committable'] is True

    resp = client.put('/api/consultations/draft', headers=doctor_headers, json={'diagnosis': 'Streptococcal pharyngitis'})
    assert resp.status_code == 200

    resp = client.post('/api/consultations/commit', headers=doctor_headers)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['data']['state'] == 'committed'
    assert body['data']['draft'] is None
    appointment_id = body['result']['appointment_id']
    assert body['result']['patient_provisioned'] is True

    resp = client.get(f'/api/appointments/{appointment_id}', headers=doctor_headers)
    appointment = resp.get_json()['data']
    assert appointment['status'] == 'completed'
    assert appointment['patient_name'] == 'Jane Doe'
    assert appointment['diagnosis'] == 'Streptococcal pharyngitis'
    assert [m['name'] for m in appointment['medications']] == ['Paracetamol', 'Amoxicillin']
    assert appointment['medications'][0]['timing_detail'] == 'after_breakfast'

    # next entry starts a fresh consultation
    resp = client.get('/api/consultations/current', headers=doctor_headers)
    assert resp.get_json()['data']['state'] == 'idle'


def test_commit_without_patient_name_stays_in_review(client, doctor_headers, extractor):
    _start_and_stop(client, doctor_headers, patient_name='', patient_phone='')

    resp = client.post('/api/consultations/commit', headers=doctor_headers)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['code'] == 'validation_failed'
    assert body['details'] == {'missing': ['patient_name'], 'state': 'reviewing'}

    resp = client.get('/api/consultations/current', headers=doctor_headers)
    assert resp.get_json()['data']['state'] == 'reviewing'

    client.put('/api/consultations/patient', headers=doctor_headers, json={'patient_name': 'Jane Doe'})
    assert client.post('/api/consultations/commit', headers=doctor_headers).status_code == 201


def test_voice_capture_upload(client, doctor_headers, extractor):
    client.post('/api/consultations/start', headers=doctor_headers, json={'patient_name': 'Jane Doe'})
    resp = client.post(
        '/api/consultations/stop',
        headers=doctor_headers,
        data={'audio': (io.BytesIO(b'RIFF\x00\x00\x00\x00WAVEfmt '), 'visit.wav')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200
    assert extractor.calls[0].mode == 'voice'
    assert extractor.calls[0].filename == 'visit.wav'
    assert resp.get_json()['data']['input_mode'] == 'voice'


def test_oversized_audio_rejected(app, client, doctor_headers, extractor):
    app.config['MAX_AUDIO_BYTES'] = 8
    client.post('/api/consultations/start', headers=doctor_headers, json={})
    resp = client.post(
        '/api/consultations/stop',
        headers=doctor_headers,
        data={'audio': (io.BytesIO(b'0123456789'), 'visit.wav')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 400
    assert extractor.calls == []


def test_extraction_failure_then_acknowledge(app, client, doctor_headers):
    app.extensions['extractor'] = FailingExtractor()
    resp = _start_and_stop(client, doctor_headers)
    assert resp.status_code == 502
    assert resp.get_json()['details']['state'] == 'failed'

    current = client.get('/api/consultations/current', headers=doctor_headers).get_json()['data']
    assert current['state'] == 'failed'
    assert current['last_error']['code'] == 'extraction_failed'

    resp = client.post('/api/consultations/acknowledge', headers=doctor_headers)
    assert resp.get_json()['data']['state'] == 'idle'
    assert resp.get_json()['data']['draft']['patient_name'] == 'Jane Doe'


def test_medication_editing(client, doctor_headers, extractor):
    _start_and_stop(client, doctor_headers)

    resp = client.post('/api/consultations/medications', headers=doctor_headers, json={
        'name': 'Cetirizine', 'dosage': '10mg', 'duration': '5 days', 'frequency': {'evening': True},
        'timing_detail': 'bedtime',
    })
    assert resp.status_code == 201
    assert resp.get_json()['index'] == 2

    resp = client.put('/api/consultations/medications/0', headers=doctor_headers, json={
        'name': 'Paracetamol', 'dosage': '650mg', 'duration': '3 days', 'frequency_morning': True,
    })
    assert resp.get_json()['data']['draft']['medications'][0]['dosage'] == '650mg'

    resp = client.delete('/api/consultations/medications/1', headers=doctor_headers)
    names = [m['name'] for m in resp.get_json()['data']['draft']['medications']]
    assert names == ['Paracetamol', 'Cetirizine']

    resp = client.delete('/api/consultations/medications/9', headers=doctor_headers)
    assert resp.status_code == 400

    resp = client.post('/api/consultations/medications', headers=doctor_headers, json={'name': 'Zinc'})
    assert resp.status_code == 400


def test_draft_rejects_unknown_fields(client, doctor_headers, extractor):
    _start_and_stop(client, doctor_headers)
    resp = client.put('/api/consultations/draft', headers=doctor_headers, json={'status': 'completed'})
    assert resp.status_code == 400


def test_re_record_and_cancel(client, doctor_headers, extractor):
    _start_and_stop(client, doctor_headers)

    resp = client.post('/api/consultations/re-record', headers=doctor_headers)
    data = resp.get_json()['data']
    assert data['state'] == 'recording'
    assert data['draft']['patient_name'] == 'Jane Doe'
    assert data['draft']['medications'] == []

    resp = client.post('/api/consultations/cancel', headers=doctor_headers)
    assert resp.get_json()['data']['state'] == 'idle'
    assert resp.get_json()['data']['draft']['patient_name'] == ''


def test_out_of_order_call_is_a_conflict(client, doctor_headers, extractor):
    resp = client.post('/api/consultations/commit', headers=doctor_headers)
    assert resp.status_code == 409
    assert resp.get_json()['details']['state'] == 'idle'


def test_patients_and_anonymous_users_are_kept_out(client, patient_headers):
    assert client.get('/api/consultations/current').status_code == 401

    resp = client.post('/api/consultations/start', headers=patient_headers, json={'mode': 'text'})
    assert resp.status_code == 403
    assert resp.get_json()['error'] == 'forbidden — doctor role required'


def test_each_doctor_has_their_own_consultation(app, client, doctor_headers, extractor):
    from conftest import login, sign_up

    sign_up(app, 'cuddy@clinic.test', 'Lisa Cuddy', 'doctor')
    other_headers = login(client, 'cuddy@clinic.test')

    _start_and_stop(client, doctor_headers)
    resp = client.get('/api/consultations/current', headers=other_headers)
    assert resp.get_json()['data']['state'] == 'idle'


def test_unreadable_medications_are_reported(app, client, doctor_headers):
    from mediconsult.consultation import ExtractionResult, MedicationEntry, StaticExtractor

    app.extensions['extractor'] = StaticExtractor(ExtractionResult(
        chief_complaint='Cough',
        medications=(MedicationEntry('Honey syrup', '10ml', '5 days', evening=True),),
        dropped_medications=1,
    ))
    resp = _start_and_stop(client, doctor_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['data']['draft']['dropped_medications'] == 1
    assert '1 medication(s) could not be read' in body['message']


def test_retry_after_changing_patient_saves_new_patient(app, client, doctor_headers, extractor, monkeypatch):
    from mediconsult.models import Appointment
    from mediconsult.services.store import RelationalStore
    from sqlalchemy.exc import SQLAlchemyError

    _start_and_stop(client, doctor_headers, patient_name='Jane Doe', patient_phone='555-0001')

    original_insert = RelationalStore.insert

    def failing_insert(self, row):
        if isinstance(row, Appointment):
            raise SQLAlchemyError('disk I/O error')
        return original_insert(self, row)

    monkeypatch.setattr(RelationalStore, 'insert', failing_insert)
    resp = client.post('/api/consultations/commit', headers=doctor_headers)
    monkeypatch.undo()
    assert resp.status_code == 500
    assert resp.get_json()['details']['step'] == 'appointment'

    client.post('/api/consultations/acknowledge', headers=doctor_headers)
    client.put('/api/consultations/patient', headers=doctor_headers,
               json={'patient_name': 'Janet Smith', 'patient_phone': '555-0999'})
    resp = client.post('/api/consultations/commit', headers=doctor_headers)
    assert resp.status_code == 201

    appointment_id = resp.get_json()['result']['appointment_id']
    appointment = client.get(f'/api/appointments/{appointment_id}', headers=doctor_headers).get_json()['data']
    assert appointment['patient_name'] == 'Janet Smith'
