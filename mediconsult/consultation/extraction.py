"""
Contract between the capture workflow and the extraction collaborator.

An extractor turns raw consultation input (recorded audio or typed notes)
into an ``ExtractionResult``. It either returns a result or raises
``ExtractionFailed``; how long it takes is up to the implementation.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Protocol

from mediconsult.consultation.medication import MedicationEntry
from mediconsult.exceptions import ExtractionFailed, ValidationFailed

logger = logging.getLogger(__name__)

INPUT_TEXT = 'text'
INPUT_VOICE = 'voice'
INPUT_MODES = (INPUT_TEXT, INPUT_VOICE)


@dataclass(frozen=True)
class RawInput:
    """Either typed notes (``text``) or a recorded audio capture (``audio``)."""

    mode: str
    text: Optional[str] = None
    audio: Optional[bytes] = None
    content_type: str = 'audio/wav'
    filename: str = 'consultation.wav'

    @classmethod
    def from_text(cls, text: str) -> 'RawInput':
        return cls(mode=INPUT_TEXT, text=text)

    @classmethod
    def from_audio(cls, audio: bytes, content_type: str = 'audio/wav', filename: str = 'consultation.wav') -> 'RawInput':
        return cls(mode=INPUT_VOICE, audio=audio, content_type=content_type or 'audio/wav', filename=filename or 'consultation.wav')

    def is_empty(self) -> bool:
        if self.mode == INPUT_VOICE:
            return not self.audio
        return not (self.text or '').strip()

    def describe(self) -> str:
        if self.mode == INPUT_VOICE:
            return f'voice ({len(self.audio or b"")} bytes, {self.content_type})'
        return f'text ({len(self.text or "")} chars)'


@dataclass(frozen=True)
class ExtractionResult:
    chief_complaint: str = ''
    consultation_notes: str = ''
    diagnosis: str = ''
    medications: tuple = field(default_factory=tuple)
    follow_up_instructions: str = ''
    ai_summary: Optional[str] = None
    transcript: Optional[str] = None
    # extracted medications that failed validation and were left out
    dropped_medications: int = 0

    def has_content(self) -> bool:
        return bool(self.chief_complaint.strip() or self.consultation_notes.strip())

    def to_dict(self):
        return {
            'chief_complaint': self.chief_complaint,
            'consultation_notes': self.consultation_notes,
            'diagnosis': self.diagnosis,
            'medications': [m.to_dict() for m in self.medications],
            'follow_up_instructions': self.follow_up_instructions,
            'ai_summary': self.ai_summary,
            'dropped_medications': self.dropped_medications,
        }


class Extractor(Protocol):
    def extract(self, raw_input: RawInput) -> ExtractionResult:
        ...


def _text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, (list, tuple)):
        return '; '.join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def parse_extraction_payload(payload: Mapping[str, Any], transcript: Optional[str] = None) -> ExtractionResult:
    """
    Validate the JSON object returned by an extraction model.

    Medications that fail validation are dropped with a warning rather than
    failing the whole extraction. The result counts them so the review
    screen can say something was left out.
    """
    if not isinstance(payload, Mapping):
        raise ExtractionFailed('Extraction returned an unexpected payload')

    raw_medications = payload.get('medications') or []
    if not isinstance(raw_medications, list):
        raise ExtractionFailed('Extraction returned medications in an unexpected format')

    medications: List[MedicationEntry] = []
    for idx, item in enumerate(raw_medications, start=1):
        try:
            medications.append(MedicationEntry.from_dict(item))
        except ValidationFailed as e:
            logger.warning("Dropping extracted medication %s: %s", idx, e.message)

    return ExtractionResult(
        chief_complaint=_text(payload.get('chief_complaint')),
        consultation_notes=_text(payload.get('consultation_notes')),
        diagnosis=_text(payload.get('diagnosis')),
        medications=tuple(medications),
        follow_up_instructions=_text(payload.get('follow_up_instructions')),
        ai_summary=_text(payload.get('ai_summary')) or None,
        transcript=transcript,
        dropped_medications=len(raw_medications) - len(medications),
    )


class StaticExtractor:
    """Returns a fixed result for any non-empty input. Used for demos and tests."""

    def __init__(self, result: ExtractionResult):
        self.result = result
        self.calls: List[RawInput] = []

    def extract(self, raw_input: RawInput) -> ExtractionResult:
        self.calls.append(raw_input)
        if raw_input.is_empty():
            raise ExtractionFailed('Nothing was captured')
        return self.result
