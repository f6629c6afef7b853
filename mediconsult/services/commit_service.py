"""
Commit Coordinator
Turns a finished consultation draft into persisted records:

    1. resolve the patient (existing reference, phone + name match, or a new identity)
    2. insert the appointment (status completed)
    3. insert the medications in draft order

Step 1 is committed on its own because it goes through the identity
provider. Steps 2 and 3 share one transaction: either the appointment is
written with all its medications or nothing is.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from mediconsult.exceptions import PersistenceFailed, ValidationFailed
from mediconsult.models import Appointment, Medication, Profile
from mediconsult.models.appointment import STATUS_COMPLETED
from mediconsult.models.profile import ROLE_DOCTOR, ROLE_PATIENT
from mediconsult.services.store import RelationalStore
from mediconsult.utils.audit import log_audit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    appointment_id: str
    patient_id: str
    medication_ids: Tuple[str, ...]
    patient_provisioned: bool = False

    def to_dict(self):
        return {
            'appointment_id': self.appointment_id,
            'patient_id': self.patient_id,
            'medication_ids': list(self.medication_ids),
            'patient_provisioned': self.patient_provisioned,
        }


class CommitCoordinator:
    def __init__(self, identity_provider, store: Optional[RelationalStore] = None):
        self.identity_provider = identity_provider
        self.store = store or RelationalStore()

    def commit(self, draft, doctor_id: str) -> CommitResult:
        if not draft.is_committable():
            raise ValidationFailed('Consultation is missing a patient name or recorded content',
                                   details={'missing': draft.missing_requirements()})

        try:
            doctor = self.store.select_by_id(Profile, doctor_id)
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Doctor lookup failed for %s: %s", doctor_id, e, exc_info=True)
            raise PersistenceFailed('Could not load the doctor profile', step='patient') from e
        if doctor is None or doctor.role != ROLE_DOCTOR:
            raise ValidationFailed('Appointments must be recorded by a doctor profile')

        patient, provisioned = self._resolve_patient(draft)
        if patient.role != ROLE_PATIENT:
            raise ValidationFailed('The selected patient profile does not have the patient role')
        if patient.id == doctor.id:
            raise ValidationFailed('Doctor and patient must be different profiles')

        appointment = self._insert_appointment(draft, doctor, patient)
        medication_ids = self._insert_medications(draft, appointment)

        try:
            self.store.commit()
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Commit of appointment for doctor %s failed: %s", doctor.id, e, exc_info=True)
            step = 'medications' if medication_ids else 'appointment'
            raise PersistenceFailed('Could not save the consultation', step=step) from e

        logger.info(
            "Consultation committed: appointment %s (doctor %s, patient %s, %d medications)",
            appointment.id, doctor.id, patient.id, len(medication_ids),
        )
        log_audit(
            'appointment',
            'commit',
            user_id=doctor.id,
            entity_id=appointment.id,
            details={
                'patient_id': patient.id,
                'medication_count': len(medication_ids),
                'patient_provisioned': provisioned,
            },
        )
        return CommitResult(
            appointment_id=appointment.id,
            patient_id=patient.id,
            medication_ids=tuple(medication_ids),
            patient_provisioned=provisioned,
        )

    def _resolve_patient(self, draft) -> Tuple[Profile, bool]:
        try:
            existing = self._lookup_patient(draft)
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Patient lookup failed: %s", e, exc_info=True)
            raise PersistenceFailed('Could not look up the patient', step='patient') from e
        if existing is not None:
            return existing, False

        patient = self.identity_provider.provision_patient(draft.patient_name, draft.patient_phone or None)
        draft.resolved_patient_id = patient.id
        return patient, True

    def _lookup_patient(self, draft) -> Optional[Profile]:
        if draft.patient_id:
            patient = self.store.select_by_id(Profile, draft.patient_id)
            if patient is None:
                raise ValidationFailed(f'Patient {draft.patient_id} not found')
            return patient

        # A previous attempt may already have resolved this name and phone; reuse it.
        if draft.resolved_patient_id:
            patient = self.store.select_by_id(Profile, draft.resolved_patient_id)
            if patient is not None:
                return patient

        existing = self._find_patient(draft.patient_name, draft.patient_phone)
        if existing is not None:
            logger.info("Reusing patient %s matched by phone and name", existing.id)
            draft.resolved_patient_id = existing.id
        return existing

    def _find_patient(self, name: str, phone: str) -> Optional[Profile]:
        if not phone:
            return None
        return (
            self.store.session.query(Profile)
            .filter(Profile.role == ROLE_PATIENT)
            .filter(Profile.phone == phone.strip())
            .filter(func.lower(Profile.full_name) == name.strip().lower())
            .order_by(Profile.created_at.asc())
            .first()
        )

    def _insert_appointment(self, draft, doctor, patient) -> Appointment:
        try:
            return self.store.insert(Appointment(
                doctor_id=doctor.id,
                patient_id=patient.id,
                chief_complaint=draft.chief_complaint or None,
                consultation_notes=draft.consultation_notes or None,
                diagnosis=draft.diagnosis or None,
                ai_summary=draft.ai_summary or None,
                follow_up_instructions=draft.follow_up_instructions or None,
                status=STATUS_COMPLETED,
            ))
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Appointment insert failed for doctor %s: %s", doctor.id, e, exc_info=True)
            raise PersistenceFailed('Could not save the appointment', step='appointment') from e

    def _insert_medications(self, draft, appointment):
        medication_ids = []
        try:
            for index, entry in enumerate(draft.medications):
                row = self.store.insert(Medication(
                    appointment_id=appointment.id,
                    sort_index=index,
                    name=entry.name,
                    dosage=entry.dosage,
                    duration=entry.duration,
                    frequency_morning=entry.morning,
                    frequency_afternoon=entry.afternoon,
                    frequency_evening=entry.evening,
                    timing_detail=entry.timing_detail.value if entry.timing_detail else None,
                    instructions=entry.instructions,
                ))
                medication_ids.append(row.id)
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error("Medication insert failed for appointment %s: %s", appointment.id, e, exc_info=True)
            raise PersistenceFailed(
                'Could not save the medications',
                step='medications',
                details={'failed_index': len(medication_ids)},
            ) from e
        return medication_ids
