import pytest
from sqlalchemy.exc import SQLAlchemyError

from mediconsult.consultation import ConsultationDraft, MedicationEntry
from mediconsult.exceptions import PersistenceFailed, ValidationFailed
from mediconsult.extensions import db
from mediconsult.models import Appointment, AuthUser, Medication, Profile
from mediconsult.services import CommitCoordinator, RelationalStore, get_identity_provider


class FailingStore(RelationalStore):
    """Raises on inserts of the given model, and optionally on reads or commit."""

    def __init__(self, fail_on=(), fail_select=False, fail_commit=False):
        super().__init__()
        self.fail_on = fail_on
        self.fail_select = fail_select
        self.fail_commit = fail_commit

    def insert(self, row):
        if isinstance(row, self.fail_on):
            raise SQLAlchemyError('disk I/O error')
        return super().insert(row)

    def select_by_id(self, model, row_id):
        if self.fail_select:
            raise SQLAlchemyError('database is locked')
        return super().select_by_id(model, row_id)

    def commit(self):
        if self.fail_commit:
            raise SQLAlchemyError('database is locked')
        super().commit()


def _draft(name='Jane Doe', phone='555-0100'):
    draft = ConsultationDraft(
        patient_name=name,
        patient_phone=phone,
        chief_complaint='Fever and sore throat',
        diagnosis='Pharyngitis',
    )
    draft.medications = [
        MedicationEntry('Paracetamol', '500mg', '3 days', morning=True, evening=True),
        MedicationEntry('Amoxicillin', '250mg', '5 days', morning=True, afternoon=True, evening=True),
    ]
    return draft


def test_commit_provisions_patient_and_keeps_medication_order(app, doctor_id):
    with app.app_context():
        draft = _draft()
        result = CommitCoordinator(get_identity_provider()).commit(draft, doctor_id=doctor_id)

        assert result.patient_provisioned is True
        assert draft.resolved_patient_id == result.patient_id
        assert draft.patient_id is None

        appointment = db.session.get(Appointment, result.appointment_id)
        assert appointment.status == 'completed'
        assert appointment.doctor_id == doctor_id
        assert appointment.patient.full_name == 'Jane Doe'
        assert [m.name for m in appointment.medications] == ['Paracetamol', 'Amoxicillin']
        assert [m.sort_index for m in appointment.medications] == [0, 1]

        account = db.session.get(AuthUser, result.patient_id)
        assert account.password_hash is None
        assert account.email.endswith('@patients.mediconsult.local')


def test_commit_reuses_patient_matched_by_phone_and_name(app, doctor_id, patient_id):
    with app.app_context():
        result = CommitCoordinator(get_identity_provider()).commit(_draft(name='jane doe'), doctor_id=doctor_id)
        assert result.patient_id == patient_id
        assert result.patient_provisioned is False


def test_same_name_different_phone_is_a_new_patient(app, doctor_id, patient_id):
    with app.app_context():
        result = CommitCoordinator(get_identity_provider()).commit(_draft(phone='555-0199'), doctor_id=doctor_id)
        assert result.patient_id != patient_id
        assert result.patient_provisioned is True


def test_explicit_patient_reference_must_exist(app, doctor_id):
    with app.app_context():
        draft = _draft()
        draft.patient_id = 'no-such-patient'
        with pytest.raises(ValidationFailed):
            CommitCoordinator(get_identity_provider()).commit(draft, doctor_id=doctor_id)


def test_patient_role_required(app, doctor_id):
    with app.app_context():
        draft = _draft()
        draft.patient_id = doctor_id
        with pytest.raises(ValidationFailed):
            CommitCoordinator(get_identity_provider()).commit(draft, doctor_id=doctor_id)
        assert Appointment.query.count() == 0


def test_only_doctors_commit(app, patient_id):
    with app.app_context():
        with pytest.raises(ValidationFailed):
            CommitCoordinator(get_identity_provider()).commit(_draft(), doctor_id=patient_id)


def test_appointment_failure_writes_nothing_and_retry_reuses_patient(app, doctor_id):
    with app.app_context():
        provider = get_identity_provider()
        draft = _draft(name='Ravi Kumar', phone='555-0142')

        with pytest.raises(PersistenceFailed) as exc:
            CommitCoordinator(provider, store=FailingStore(Appointment)).commit(draft, doctor_id=doctor_id)
        assert exc.value.step == 'appointment'
        assert Appointment.query.count() == 0
        assert Medication.query.count() == 0
        provisioned_id = draft.resolved_patient_id
        assert provisioned_id is not None

        result = CommitCoordinator(provider).commit(draft, doctor_id=doctor_id)
        assert result.patient_id == provisioned_id
        assert result.patient_provisioned is False
        assert Profile.query.filter_by(full_name='Ravi Kumar').count() == 1


def test_medication_failure_rolls_back_appointment(app, doctor_id):
    with app.app_context():
        with pytest.raises(PersistenceFailed) as exc:
            CommitCoordinator(get_identity_provider(), store=FailingStore(Medication)).commit(
                _draft(), doctor_id=doctor_id,
            )
        assert exc.value.step == 'medications'
        assert exc.value.details['failed_index'] == 0
        assert Appointment.query.count() == 0


def test_patient_provisioning_failure(app, doctor_id):
    with app.app_context():
        provider = get_identity_provider()
        original_store = provider.store
        provider.store = FailingStore(AuthUser)
        try:
            with pytest.raises(PersistenceFailed) as exc:
                CommitCoordinator(provider).commit(_draft(), doctor_id=doctor_id)
        finally:
            provider.store = original_store
        assert exc.value.step == 'patient'
        assert Appointment.query.count() == 0


def test_commit_rejects_incomplete_draft(app, doctor_id):
    with app.app_context():
        draft = ConsultationDraft(patient_name='Jane Doe')
        with pytest.raises(ValidationFailed) as exc:
            CommitCoordinator(get_identity_provider()).commit(draft, doctor_id=doctor_id)
        assert exc.value.details['missing'] == ['recorded_content']


def test_retry_after_patient_change_saves_against_new_patient(app, doctor_id):
    with app.app_context():
        provider = get_identity_provider()
        draft = _draft(name='Jane Doe', phone='555-0001')

        with pytest.raises(PersistenceFailed):
            CommitCoordinator(provider, store=FailingStore(Appointment)).commit(draft, doctor_id=doctor_id)
        first_patient = draft.resolved_patient_id
        assert first_patient is not None

        draft.set_patient(name='Janet Smith', phone='555-0999')
        assert draft.resolved_patient_id is None

        result = CommitCoordinator(provider).commit(draft, doctor_id=doctor_id)
        assert result.patient_id != first_patient
        appointment = db.session.get(Appointment, result.appointment_id)
        assert appointment.patient.full_name == 'Janet Smith'
        assert appointment.patient.phone == '555-0999'


def test_patient_lookup_failure_is_tagged_patient(app, doctor_id):
    with app.app_context():
        with pytest.raises(PersistenceFailed) as exc:
            CommitCoordinator(get_identity_provider(), store=FailingStore(fail_select=True)).commit(
                _draft(), doctor_id=doctor_id,
            )
        assert exc.value.step == 'patient'
        assert exc.value.details['step'] == 'patient'
        assert Appointment.query.count() == 0


def test_patient_match_query_failure_is_tagged_patient(app, doctor_id, monkeypatch):
    with app.app_context():
        coordinator = CommitCoordinator(get_identity_provider())

        def broken_match(name, phone):
            raise SQLAlchemyError('no such table: profiles')

        monkeypatch.setattr(coordinator, '_find_patient', broken_match)
        with pytest.raises(PersistenceFailed) as exc:
            coordinator.commit(_draft(), doctor_id=doctor_id)
        assert exc.value.step == 'patient'
        assert Profile.query.filter_by(full_name='Jane Doe').count() == 0


def test_final_commit_failure_step_follows_draft_content(app, doctor_id):
    with app.app_context():
        provider = get_identity_provider()
        draft = _draft()
        draft.medications = []
        with pytest.raises(PersistenceFailed) as exc:
            CommitCoordinator(provider, store=FailingStore(fail_commit=True)).commit(draft, doctor_id=doctor_id)
        assert exc.value.step == 'appointment'

        with pytest.raises(PersistenceFailed) as exc:
            CommitCoordinator(provider, store=FailingStore(fail_commit=True)).commit(_draft(), doctor_id=doctor_id)
        assert exc.value.step == 'medications'
        assert Appointment.query.count() == 0
