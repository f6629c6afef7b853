"""
In-memory map of capture workflows, one per doctor.

The access guard runs when a doctor enters the workflow, i.e. when an
instance is created for them. A committed workflow is finished: the next
entry for that doctor starts a fresh one.
"""
from threading import Lock
from typing import Dict, Optional

from mediconsult.consultation.state_machine import CaptureState, CaptureStateMachine
from mediconsult.exceptions import AuthRequired


class WorkflowRegistry:
    def __init__(self):
        self._workflows: Dict[str, CaptureStateMachine] = {}
        self._lock = Lock()

    def _active(self, user_id: str) -> Optional[CaptureStateMachine]:
        workflow = self._workflows.get(user_id)
        if workflow is None or workflow.state == CaptureState.COMMITTED:
            return None
        return workflow

    def enter(self, session, guard) -> CaptureStateMachine:
        """Return the doctor's open workflow, creating one after the guard admits them."""
        if session is None:
            raise AuthRequired()
        with self._lock:
            workflow = self._active(session.user_id)
            if workflow is not None:
                workflow.session = session
                return workflow

        guard.require_doctor(session)

        with self._lock:
            workflow = self._active(session.user_id)
            if workflow is None:
                workflow = CaptureStateMachine(session)
                self._workflows[session.user_id] = workflow
            return workflow

    def get(self, doctor_id: str) -> Optional[CaptureStateMachine]:
        with self._lock:
            return self._workflows.get(doctor_id)

    def discard(self, doctor_id: str) -> None:
        with self._lock:
            self._workflows.pop(doctor_id, None)

    def __len__(self):
        with self._lock:
            return len(self._workflows)
