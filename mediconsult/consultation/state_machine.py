"""
Capture workflow for one consultation.

    idle -> recording -> extracting -> reviewing -> committed
                ^                          |
                +------- re_record --------+

Any state can be cancelled back to idle. Extraction or commit errors move
the workflow to ``failed``; acknowledging returns to ``reviewing`` when the
draft still holds extracted content and to ``idle`` otherwise.

Extraction and commit are the only calls that can take a while. Cancelling
or re-recording while one of them is in flight bumps ``epoch`` so the late
outcome is ignored. Rows a late commit already wrote stay written.
Only one of the two runs at a time for a workflow; a second request that
arrives meanwhile gets ``InvalidTransition``.
"""
import logging
from contextlib import contextmanager
from enum import Enum
from threading import Lock
from typing import Any, Dict, Optional

from mediconsult.consultation.draft import PATIENT_FIELDS, ConsultationDraft
from mediconsult.consultation.extraction import INPUT_MODES, ExtractionResult, Extractor, RawInput
from mediconsult.consultation.medication import MedicationEntry
from mediconsult.exceptions import (
    ExtractionFailed,
    InvalidTransition,
    PersistenceFailed,
    ValidationFailed,
)

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = 'idle'
    RECORDING = 'recording'
    EXTRACTING = 'extracting'
    REVIEWING = 'reviewing'
    COMMITTED = 'committed'
    FAILED = 'failed'


_ALLOWED = {
    'start_capture': (CaptureState.IDLE,),
    'stop_capture': (CaptureState.RECORDING,),
    'extraction_succeeded': (CaptureState.EXTRACTING,),
    'extraction_failed': (CaptureState.EXTRACTING,),
    'run_extraction': (CaptureState.EXTRACTING,),
    'edit': (CaptureState.REVIEWING,),
    're_record': (CaptureState.REVIEWING,),
    'commit': (CaptureState.REVIEWING,),
    'acknowledge': (CaptureState.FAILED,),
    # Patient identity lives outside the extracted content and can be typed at any point
    'set_patient': (
        CaptureState.IDLE,
        CaptureState.RECORDING,
        CaptureState.EXTRACTING,
        CaptureState.REVIEWING,
        CaptureState.FAILED,
    ),
}


class CaptureStateMachine:
    def __init__(self, session):
        self.session = session
        self.state = CaptureState.IDLE
        self.draft: Optional[ConsultationDraft] = ConsultationDraft()
        self.input_mode: Optional[str] = None
        self.raw_input: Optional[RawInput] = None
        self.last_error: Optional[Dict[str, Any]] = None
        self.committed_appointment_id: Optional[str] = None
        self.epoch = 0
        # held while extraction or commit is in flight
        self._in_flight = Lock()

    @property
    def doctor_id(self) -> str:
        return self.session.user_id

    def _require(self, action: str) -> None:
        if self.state not in _ALLOWED[action]:
            raise InvalidTransition(
                f'Cannot {action.replace("_", " ")} while the consultation is {self.state.value}',
                details={'state': self.state.value, 'action': action},
            )

    def _move(self, new_state: CaptureState) -> None:
        old_state = self.state
        self.state = new_state
        if self.draft is not None:
            self.draft.capture_status = new_state.value
        logger.info("Consultation workflow for doctor %s: %s -> %s", self.doctor_id, old_state.value, new_state.value)

    @contextmanager
    def _exclusive(self, action: str):
        if not self._in_flight.acquire(blocking=False):
            raise InvalidTransition(
                f'Cannot {action.replace("_", " ")} while another request is still processing this consultation',
                details={'state': self.state.value, 'action': action},
            )
        try:
            yield
        finally:
            self._in_flight.release()

    def _fail(self, error) -> None:
        self.last_error = {'code': error.code, 'error': error.message, **error.details}
        self._move(CaptureState.FAILED)

    # -- capture -------------------------------------------------------------

    def start_capture(self, mode: str = 'voice') -> None:
        self._require('start_capture')
        if mode not in INPUT_MODES:
            raise ValidationFailed(f'Invalid capture mode "{mode}". Must be one of: {", ".join(INPUT_MODES)}')
        self.input_mode = mode
        self.raw_input = None
        self.last_error = None
        self.draft.clear_extracted()
        self._move(CaptureState.RECORDING)

    def stop_capture(self, raw_input: RawInput) -> None:
        """Hand the captured input over for extraction."""
        self._require('stop_capture')
        self.raw_input = raw_input
        self._move(CaptureState.EXTRACTING)

    def extraction_succeeded(self, result: ExtractionResult) -> None:
        self._require('extraction_succeeded')
        self.draft.apply_extraction(result)
        self.last_error = None
        self._move(CaptureState.REVIEWING)

    def extraction_failed(self, reason: str) -> None:
        self._require('extraction_failed')
        self.draft.clear_extracted()
        self._fail(ExtractionFailed(reason))

    def run_extraction(self, extractor: Extractor) -> Optional[ExtractionResult]:
        """
        Call the extractor on the captured input and apply the outcome.

        Returns the result, or None when the workflow was cancelled or
        re-recorded while the call was in flight. Raises ExtractionFailed
        after moving to ``failed``.
        """
        with self._exclusive('run_extraction'):
            return self._run_extraction(extractor)

    def _run_extraction(self, extractor: Extractor) -> Optional[ExtractionResult]:
        self._require('run_extraction')
        epoch = self.epoch
        raw_input = self.raw_input
        logger.info("Extracting consultation for doctor %s from %s", self.doctor_id, raw_input.describe() if raw_input else 'no input')

        try:
            if raw_input is None or raw_input.is_empty():
                raise ExtractionFailed('Nothing was captured. Record or type the consultation first.')
            result = extractor.extract(raw_input)
            error = None
        except ExtractionFailed as e:
            result, error = None, e
        except Exception as e:
            logger.error("Extractor raised unexpectedly: %s", e, exc_info=True)
            result, error = None, ExtractionFailed(f'Extraction failed: {e}')

        if epoch != self.epoch or self.state != CaptureState.EXTRACTING:
            logger.info("Discarding extraction outcome for doctor %s: workflow moved on", self.doctor_id)
            return None

        if error is not None:
            logger.warning("Extraction failed for doctor %s: %s", self.doctor_id, error.message)
            self.extraction_failed(error.message)
            raise ExtractionFailed(error.message, details={'state': self.state.value})

        self.extraction_succeeded(result)
        return result

    # -- review --------------------------------------------------------------

    def set_patient(self, name=None, phone=None, patient_id=None) -> None:
        self._require('set_patient')
        self.draft.set_patient(name=name, phone=phone, patient_id=patient_id)

    def edit(self, field_name: str, value: Any) -> None:
        if field_name in PATIENT_FIELDS:
            self._require('set_patient')
        else:
            self._require('edit')
        self.draft.edit_field(field_name, value)

    def add_medication(self, entry: MedicationEntry) -> int:
        self._require('edit')
        return self.draft.add_medication(entry)

    def replace_medication(self, index: int, entry: MedicationEntry) -> None:
        self._require('edit')
        self.draft.replace_medication(index, entry)

    def remove_medication(self, index: int) -> MedicationEntry:
        self._require('edit')
        return self.draft.remove_medication(index)

    def re_record(self) -> None:
        """Throw away the extracted content and capture again; patient identity is kept."""
        self._require('re_record')
        self.epoch += 1
        self.draft.clear_extracted()
        self.raw_input = None
        self._move(CaptureState.RECORDING)

    # -- commit --------------------------------------------------------------

    def commit(self, coordinator):
        """
        Persist the draft. Rejected with ValidationFailed (state unchanged)
        when the draft is not committable. On PersistenceFailed the workflow
        moves to ``failed`` and keeps the draft for a retry.
        """
        with self._exclusive('commit'):
            return self._commit(coordinator)

    def _commit(self, coordinator):
        self._require('commit')
        missing = self.draft.missing_requirements()
        if missing:
            messages = {
                'patient_name': 'patient name is required',
                'recorded_content': 'record the consultation first',
            }
            raise ValidationFailed(
                'Missing information: ' + ', '.join(messages[m] for m in missing),
                details={'missing': missing, 'state': self.state.value},
            )

        epoch = self.epoch
        try:
            result = coordinator.commit(self.draft, doctor_id=self.doctor_id)
        except PersistenceFailed as e:
            if epoch == self.epoch:
                self._fail(e)
                e.details['state'] = self.state.value
            raise

        if epoch != self.epoch:
            logger.warning(
                "Commit for doctor %s finished after the workflow was cancelled; appointment %s was written",
                self.doctor_id, result.appointment_id,
            )
            return result

        self.committed_appointment_id = result.appointment_id
        self.last_error = None
        self._move(CaptureState.COMMITTED)
        self.draft = None
        self.raw_input = None
        return result

    # -- recovery ------------------------------------------------------------

    def cancel(self) -> None:
        """Discard the draft from any state."""
        self.epoch += 1
        self.draft = ConsultationDraft()
        self.raw_input = None
        self.input_mode = None
        self.last_error = None
        self.committed_appointment_id = None
        self._move(CaptureState.IDLE)

    def acknowledge(self) -> None:
        self._require('acknowledge')
        self.last_error = None
        if self.draft.has_content():
            self._move(CaptureState.REVIEWING)
        else:
            self._move(CaptureState.IDLE)

    def snapshot(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'input_mode': self.input_mode,
            'draft': self.draft.to_dict() if self.draft is not None else None,
            'last_error': self.last_error,
            'committed_appointment_id': self.committed_appointment_id,
        }
