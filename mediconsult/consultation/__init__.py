"""Consultation capture workflow: medications, draft, state machine."""
from .medication import MedicationEntry, TimingDetail
from .extraction import ExtractionResult, Extractor, RawInput, StaticExtractor, parse_extraction_payload
from .draft import ConsultationDraft
from .state_machine import CaptureState, CaptureStateMachine
from .registry import WorkflowRegistry

__all__ = [
    "MedicationEntry",
    "TimingDetail",
    "ExtractionResult",
    "Extractor",
    "RawInput",
    "StaticExtractor",
    "parse_extraction_payload",
    "ConsultationDraft",
    "CaptureState",
    "CaptureStateMachine",
    "WorkflowRegistry",
]
