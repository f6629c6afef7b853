"""
In-progress structured record for one consultation.

The draft has two halves: the patient identity the doctor types in
(name, phone, optional existing patient id) and the extracted clinical
content. Re-recording clears only the extracted half.

A failed commit may leave behind the patient it resolved
(``resolved_patient_id``) so the retry reuses it. That id belongs to the
name and phone it was resolved for and is dropped when either changes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mediconsult.consultation.extraction import ExtractionResult
from mediconsult.consultation.medication import MedicationEntry
from mediconsult.exceptions import ValidationFailed

TEXT_FIELDS = ('chief_complaint', 'consultation_notes', 'diagnosis', 'follow_up_instructions')
PATIENT_FIELDS = ('patient_name', 'patient_phone')
EDITABLE_FIELDS = PATIENT_FIELDS + TEXT_FIELDS + ('medications',)


def _clean(value) -> str:
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationFailed('Expected a text value')
    return value.strip()


@dataclass
class ConsultationDraft:
    patient_name: str = ''
    patient_phone: str = ''
    patient_id: Optional[str] = None
    resolved_patient_id: Optional[str] = None

    chief_complaint: str = ''
    consultation_notes: str = ''
    diagnosis: str = ''
    medications: List[MedicationEntry] = field(default_factory=list)
    follow_up_instructions: str = ''
    ai_summary: Optional[str] = None
    transcript: Optional[str] = None
    dropped_medications: int = 0

    capture_status: str = 'idle'

    def apply_extraction(self, result: ExtractionResult) -> None:
        """Replace the extracted content wholesale; no field-level merge."""
        self.chief_complaint = result.chief_complaint or ''
        self.consultation_notes = result.consultation_notes or ''
        self.diagnosis = result.diagnosis or ''
        self.medications = list(result.medications)
        self.follow_up_instructions = result.follow_up_instructions or ''
        self.ai_summary = result.ai_summary
        self.transcript = result.transcript
        self.dropped_medications = result.dropped_medications

    def clear_extracted(self) -> None:
        self.apply_extraction(ExtractionResult())

    def edit_field(self, field_name: str, value: Any) -> None:
        if field_name not in EDITABLE_FIELDS:
            raise ValidationFailed(
                f'Unknown field "{field_name}". Editable fields: {", ".join(EDITABLE_FIELDS)}'
            )
        if field_name == 'medications':
            if not isinstance(value, list):
                raise ValidationFailed('medications must be a list')
            self.medications = [
                item if isinstance(item, MedicationEntry) else MedicationEntry.from_dict(item)
                for item in value
            ]
            return
        if field_name == 'patient_name':
            self.set_patient(name='' if value is None else value)
        elif field_name == 'patient_phone':
            self.set_patient(phone='' if value is None else value)
        else:
            setattr(self, field_name, _clean(value))

    def set_patient(self, name=None, phone=None, patient_id=None) -> None:
        identity = (self.patient_name, self.patient_phone)
        if name is not None:
            self.patient_name = _clean(name)
        if phone is not None:
            self.patient_phone = _clean(phone)
        if patient_id is not None:
            self.patient_id = _clean(patient_id) or None
        if (self.patient_name, self.patient_phone) != identity:
            self.resolved_patient_id = None

    # Medications are addressed by their position in the draft
    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or index < 0 or index >= len(self.medications):
            raise ValidationFailed(f'No medication at position {index}')

    def add_medication(self, entry: MedicationEntry) -> int:
        self.medications.append(entry)
        return len(self.medications) - 1

    def replace_medication(self, index: int, entry: MedicationEntry) -> None:
        self._check_index(index)
        self.medications[index] = entry

    def remove_medication(self, index: int) -> MedicationEntry:
        self._check_index(index)
        return self.medications.pop(index)

    def has_content(self) -> bool:
        return bool(self.chief_complaint.strip() or self.consultation_notes.strip())

    def missing_requirements(self) -> List[str]:
        missing = []
        if not self.patient_name.strip():
            missing.append('patient_name')
        if not self.has_content():
            missing.append('recorded_content')
        return missing

    def is_committable(self) -> bool:
        return not self.missing_requirements()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'patient_name': self.patient_name,
            'patient_phone': self.patient_phone,
            'patient_id': self.patient_id,
            'resolved_patient_id': self.resolved_patient_id,
            'chief_complaint': self.chief_complaint,
            'consultation_notes': self.consultation_notes,
            'diagnosis': self.diagnosis,
            'medications': [m.to_dict() for m in self.medications],
            'follow_up_instructions': self.follow_up_instructions,
            'ai_summary': self.ai_summary,
            'dropped_medications': self.dropped_medications,
            'capture_status': self.capture_status,
            'committable': self.is_committable(),
        }
