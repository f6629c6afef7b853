import pytest

from mediconsult import create_app
from mediconsult.consultation import ExtractionResult, MedicationEntry, StaticExtractor
from mediconsult.extensions import db
from mediconsult.services import get_identity_provider

PASSWORD = 'secret123'
DOCTOR_EMAIL = 'house@clinic.test'
PATIENT_EMAIL = 'jane@mail.test'


@pytest.fixture
def app(tmp_path):
    app = create_app('testing')
    app.config['PDF_EXPORT_PATH'] = str(tmp_path / 'exports')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def sign_up(app, email, full_name, role, phone=None, specialization=None):
    with app.app_context():
        return get_identity_provider().sign_up(email, PASSWORD, {
            'full_name': full_name,
            'role': role,
            'phone': phone,
            'specialization': specialization,
        })


def login(client, email, password=PASSWORD):
    resp = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert resp.status_code == 200, resp.get_json()
    return {'Authorization': f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture
def doctor_id(app):
    return sign_up(app, DOCTOR_EMAIL, 'Gregory House', 'doctor', specialization='Diagnostics')


@pytest.fixture
def patient_id(app):
    return sign_up(app, PATIENT_EMAIL, 'Jane Doe', 'patient', phone='555-0100')


@pytest.fixture
def doctor_headers(client, doctor_id):
    return login(client, DOCTOR_EMAIL)


@pytest.fixture
def patient_headers(client, patient_id):
    return login(client, PATIENT_EMAIL)


@pytest.fixture
def extraction_result():
    return ExtractionResult(
        chief_complaint='Fever and sore throat for 3 days',
        consultation_notes='Temperature 38.5C, inflamed tonsils, no cough.',
        diagnosis='Pharyngitis',
        medications=(
            MedicationEntry('Paracetamol', '500mg', '3 days', morning=True, evening=True, timing_detail='after_breakfast'),
            MedicationEntry('Amoxicillin', '250mg', '5 days', morning=True, afternoon=True, evening=True),
        ),
        follow_up_instructions='Return if the fever persists beyond 3 days.',
        ai_summary='Likely bacterial pharyngitis; antibiotics started.',
    )


@pytest.fixture
def extractor(app, extraction_result):
    extractor = StaticExtractor(extraction_result)
    app.extensions['extractor'] = extractor
    return extractor
