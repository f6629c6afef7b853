"""
Consultation capture API
record -> review -> save, for the signed-in doctor's single open consultation
"""
from flask import Blueprint, current_app, g, jsonify, request
import logging

from mediconsult.consultation import MedicationEntry, RawInput
from mediconsult.consultation.draft import EDITABLE_FIELDS
from mediconsult.exceptions import ValidationFailed
from mediconsult.services import AccessGuard, CommitCoordinator, get_identity_provider

logger = logging.getLogger(__name__)

consultation_bp = Blueprint('consultation', __name__, url_prefix='/api/consultations')


@consultation_bp.before_request
def enter_workflow():
    """Resolve the doctor's workflow; the access guard runs when one is created."""
    if request.method == 'OPTIONS':
        return None
    identity_provider = get_identity_provider()
    registry = current_app.extensions['workflow_registry']
    g.workflow = registry.enter(identity_provider.get_session(), AccessGuard(identity_provider))


def _respond(message=None, status=200, **extra):
    body = {'success': True, 'data': g.workflow.snapshot()}
    if message:
        body['message'] = message
    body.update(extra)
    return jsonify(body), status


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')
    return data


@consultation_bp.route('/current', methods=['GET'])
def get_current():
    """Current state of the doctor's consultation"""
    return _respond()


@consultation_bp.route('/start', methods=['POST'])
def start_capture():
    """
    Start recording a consultation

    Body:
        mode: "voice" (default) or "text"
        patient_name, patient_phone, patient_id: optional patient identity
    """
    data = _json_body()
    workflow = g.workflow
    if any(k in data for k in ('patient_name', 'patient_phone', 'patient_id')):
        workflow.set_patient(
            name=data.get('patient_name'),
            phone=data.get('patient_phone'),
            patient_id=data.get('patient_id'),
        )
    workflow.start_capture(data.get('mode', 'voice'))
    return _respond('Listening...')


@consultation_bp.route('/patient', methods=['PUT'])
def set_patient():
    """Set patient name / phone / existing patient id; allowed until the consultation is saved"""
    data = _json_body()
    g.workflow.set_patient(
        name=data.get('patient_name'),
        phone=data.get('patient_phone'),
        patient_id=data.get('patient_id'),
    )
    return _respond()


@consultation_bp.route('/stop', methods=['POST'])
def stop_capture():
    """
    Stop recording and extract the structured consultation.

    Accepts either multipart form data with an ``audio`` file, or JSON
    ``{"text": "..."}`` with typed notes.
    """
    audio = request.files.get('audio')
    if audio is not None:
        audio_bytes = audio.read()
        max_bytes = current_app.config.get('MAX_AUDIO_BYTES')
        if max_bytes and len(audio_bytes) > max_bytes:
            raise ValidationFailed(f'Audio recording is too large (max {max_bytes // (1024 * 1024)} MB)')
        raw_input = RawInput.from_audio(audio_bytes, audio.mimetype, audio.filename)
    else:
        raw_input = RawInput.from_text(_json_body().get('text') or '')

    workflow = g.workflow
    workflow.stop_capture(raw_input)
    result = workflow.run_extraction(current_app.extensions['extractor'])
    if result is None:
        return _respond('Consultation was cancelled while extracting')
    if result.dropped_medications:
        return _respond(f'Consultation captured; {result.dropped_medications} medication(s) could not be read and were left out')
    return _respond('Consultation captured')


@consultation_bp.route('/draft', methods=['PUT'])
def edit_draft():
    """
    Correct extracted fields.

    Body: any of patient_name, patient_phone, chief_complaint,
    consultation_notes, diagnosis, follow_up_instructions, medications
    """
    data = _json_body()
    if not data:
        raise ValidationFailed('No fields to update')
    unknown = [k for k in data if k not in EDITABLE_FIELDS]
    if unknown:
        raise ValidationFailed(f'Unknown fields: {", ".join(unknown)}')
    for field_name, value in data.items():
        g.workflow.edit(field_name, value)
    return _respond('Draft updated')


@consultation_bp.route('/medications', methods=['POST'])
def add_medication():
    index = g.workflow.add_medication(MedicationEntry.from_dict(_json_body()))
    return _respond('Medication added', status=201, index=index)


@consultation_bp.route('/medications/<int:index>', methods=['PUT'])
def replace_medication(index):
    g.workflow.replace_medication(index, MedicationEntry.from_dict(_json_body()))
    return _respond('Medication updated')


@consultation_bp.route('/medications/<int:index>', methods=['DELETE'])
def remove_medication(index):
    g.workflow.remove_medication(index)
    return _respond('Medication removed')


@consultation_bp.route('/re-record', methods=['POST'])
def re_record():
    """Discard the extracted content and record again (patient details are kept)"""
    g.workflow.re_record()
    return _respond('Listening...')


@consultation_bp.route('/commit', methods=['POST'])
def commit():
    """Save the consultation as an appointment with its medications"""
    workflow = g.workflow
    result = workflow.commit(CommitCoordinator(get_identity_provider()))
    logger.info("Doctor %s saved consultation as appointment %s", workflow.doctor_id, result.appointment_id)
    return _respond('Consultation saved', status=201, result=result.to_dict())


@consultation_bp.route('/cancel', methods=['POST'])
def cancel():
    g.workflow.cancel()
    return _respond('Consultation discarded')


@consultation_bp.route('/acknowledge', methods=['POST'])
def acknowledge():
    """Dismiss a failure and go back to the draft (or to idle if nothing was captured)"""
    g.workflow.acknowledge()
    return _respond()
