from datetime import datetime
import logging

from flask import Blueprint, current_app, g, jsonify, request, send_file
from sqlalchemy import or_

from mediconsult.exceptions import InvalidTransition, NotFound, ValidationFailed
from mediconsult.extensions import db
from mediconsult.models import Appointment, Medication, Profile
from mediconsult.models.appointment import APPOINTMENT_STATUSES, STATUS_PENDING
from mediconsult.models.profile import ROLE_PATIENT
from mediconsult.services import export_prescription
from mediconsult.utils.audit import log_audit
from mediconsult.utils.decorators import doctor_required, login_required

logger = logging.getLogger(__name__)

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')


def _own_appointment(appointment_id):
    """Appointment visible to the current user (doctor or patient party), else 404."""
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None or g.profile.id not in (appointment.doctor_id, appointment.patient_id):
        raise NotFound('Appointment not found')
    return appointment


@appointment_bp.route('', methods=['GET'])
@login_required
def list_appointments():
    """
    List the current user's appointments, newest first.
    Query params:
        q: search chief complaint, notes, diagnosis and medication names (optional)
        status: pending | completed | cancelled (optional)
        page, limit: Pagination
    """
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', 20, type=int)
    search = (request.args.get('q') or '').strip()
    status = request.args.get('status', type=str)

    if page < 1:
        page = 1
    if limit < 1 or limit > 100:
        limit = 20

    if g.profile.is_doctor():
        query = Appointment.query.filter(Appointment.doctor_id == g.profile.id)
    else:
        query = Appointment.query.filter(Appointment.patient_id == g.profile.id)

    if status:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationFailed(f'Invalid status. Must be one of: {", ".join(APPOINTMENT_STATUSES)}')
        query = query.filter(Appointment.status == status)

    if search:
        pattern = f'%{search}%'
        medication_match = Appointment.medications.any(Medication.name.ilike(pattern))
        query = query.filter(or_(
            Appointment.chief_complaint.ilike(pattern),
            Appointment.consultation_notes.ilike(pattern),
            Appointment.diagnosis.ilike(pattern),
            medication_match,
        ))

    pagination = query.order_by(Appointment.appointment_date.desc()).paginate(
        page=page,
        per_page=limit,
        error_out=False
    )

    return jsonify({
        'success': True,
        'data': {
            'appointments': [a.to_dict() for a in pagination.items],
            'pagination': {
                'page': pagination.page,
                'limit': limit,
                'total': pagination.total,
                'pages': pagination.pages
            }
        }
    })


@appointment_bp.route('', methods=['POST'])
@doctor_required
def create_appointment():
    """
    Schedule a pending appointment with an existing patient.

    Body:
        patient_id (required)
        appointment_date: ISO datetime (optional, defaults to now)
    """
    data = request.get_json(silent=True) or {}
    patient = db.session.get(Profile, data.get('patient_id')) if data.get('patient_id') else None
    if patient is None or patient.role != ROLE_PATIENT:
        raise ValidationFailed('patient_id must reference a patient profile')

    appointment = Appointment(doctor_id=g.profile.id, patient_id=patient.id, status=STATUS_PENDING)
    if data.get('appointment_date'):
        try:
            appointment.appointment_date = datetime.fromisoformat(data['appointment_date'])
        except (TypeError, ValueError):
            raise ValidationFailed('Invalid appointment_date. Use ISO format, e.g. 2026-10-19T10:30')

    db.session.add(appointment)
    db.session.commit()
    log_audit('appointment', 'create', user_id=g.profile.id, entity_id=appointment.id, details={'patient_id': patient.id})

    return jsonify({
        'success': True,
        'message': 'Appointment scheduled',
        'data': appointment.to_dict()
    }), 201


@appointment_bp.route('/<appointment_id>', methods=['GET'])
@login_required
def get_appointment(appointment_id):
    """Appointment with its medications and attachments"""
    return jsonify({
        'success': True,
        'data': _own_appointment(appointment_id).to_dict()
    })


@appointment_bp.route('/<appointment_id>/status', methods=['PUT'])
@doctor_required
def update_status(appointment_id):
    """
    Complete or cancel a pending appointment.
    Body: {"status": "completed" | "cancelled"}
    """
    appointment = _own_appointment(appointment_id)
    if appointment.doctor_id != g.profile.id:
        raise NotFound('Appointment not found')

    data = request.get_json(silent=True) or {}
    new_status = data.get('status')
    if new_status not in APPOINTMENT_STATUSES:
        raise ValidationFailed(f'Invalid status. Must be one of: {", ".join(APPOINTMENT_STATUSES)}')
    if not appointment.can_transition_to(new_status):
        raise InvalidTransition(
            f'Cannot change appointment status from {appointment.status} to {new_status}',
            details={'status': appointment.status},
        )

    appointment.status = new_status
    db.session.commit()
    log_audit('appointment', 'status', user_id=g.profile.id, entity_id=appointment.id, details={'status': new_status})
    logger.info("Appointment %s marked %s by doctor %s", appointment.id, new_status, g.profile.id)

    return jsonify({
        'success': True,
        'message': 'Appointment updated successfully',
        'data': appointment.to_dict()
    })


@appointment_bp.route('/<appointment_id>/export', methods=['GET'])
@login_required
def export_appointment(appointment_id):
    """Download the prescription PDF for an appointment"""
    appointment = _own_appointment(appointment_id)
    export_dir = current_app.config['PDF_EXPORT_PATH']
    if not export_dir.startswith('/'):
        export_dir = f"{current_app.config['PROJECT_ROOT']}/{export_dir}"

    pdf_path = export_prescription(appointment, export_dir, clinic_name=current_app.config.get('CLINIC_NAME', 'MediConsult'))
    log_audit('appointment', 'export', user_id=g.profile.id, entity_id=appointment.id)

    return send_file(
        pdf_path,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f'prescription_{appointment.id}.pdf'
    )
