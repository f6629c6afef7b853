"""
Prescription export: a PDF built from a committed appointment and its medications.
"""
import io
import logging
import os
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

logger = logging.getLogger(__name__)

SLOT_LABELS = (('morning', 'Morning'), ('afternoon', 'Afternoon'), ('evening', 'Evening'))


def _p(text, style):
    return Paragraph(escape(text or '').replace('\n', '<br/>'), style)


def _schedule(medication) -> str:
    slots = [label for key, label in SLOT_LABELS if getattr(medication, f'frequency_{key}')]
    schedule = ' / '.join(slots) if slots else 'As directed'
    if medication.timing_detail:
        schedule = f"{schedule}, {medication.timing_detail.replace('_', ' ')}"
    return schedule


def build_prescription_pdf(appointment, clinic_name='MediConsult') -> bytes:
    """Render the prescription for ``appointment`` and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=2*cm, rightMargin=2*cm, topMargin=2*cm, bottomMargin=2*cm,
        title=f'Prescription {appointment.id}',
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        name='PrescriptionTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#0066cc'),
        spaceAfter=6,
        alignment=1,
    )
    heading_style = ParagraphStyle(
        name='SectionHeading',
        parent=styles['Heading2'],
        fontSize=13,
        textColor=colors.HexColor('#0066cc'),
        spaceAfter=6,
    )
    normal = styles['Normal']
    cell = ParagraphStyle(name='Cell', parent=normal, fontSize=9, leading=11)
    story = []

    visit_date = appointment.appointment_date or datetime.now()
    story.append(Paragraph(escape(clinic_name.upper()), title_style))
    story.append(Paragraph(f"Date: {visit_date.strftime('%d-%m-%Y')}", normal))
    story.append(Spacer(1, 14))

    doctor = appointment.doctor
    patient = appointment.patient
    story.append(Paragraph("Patient", heading_style))
    info = Table([
        ["Patient Name:", patient.full_name if patient else 'Unknown'],
        ["Phone:", (patient.phone if patient else None) or 'N/A'],
        ["Doctor:", f"Dr. {doctor.full_name}" if doctor else 'Unknown'],
        ["Specialization:", (doctor.specialization if doctor else None) or 'N/A'],
    ], colWidths=[4.5*cm, 12*cm])
    info.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f5f5f5')),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story.append(info)
    story.append(Spacer(1, 14))

    for label, value in (
        ("Chief Complaint", appointment.chief_complaint),
        ("Diagnosis", appointment.diagnosis),
    ):
        if value:
            story.append(Paragraph(label, heading_style))
            story.append(_p(value, normal))
            story.append(Spacer(1, 8))

    story.append(Paragraph("Medications", heading_style))
    if appointment.medications:
        rows = [["Medicine", "Dosage", "Duration", "When", "Instructions"]]
        for medication in appointment.medications:
            rows.append([
                _p(medication.name, cell),
                _p(medication.dosage, cell),
                _p(medication.duration, cell),
                _p(_schedule(medication), cell),
                _p(medication.instructions or '', cell),
            ])
        table = Table(rows, colWidths=[3.5*cm, 2.5*cm, 2.3*cm, 3.7*cm, 4.5*cm], repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#0066cc')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        story.append(table)
    else:
        story.append(Paragraph("No medications prescribed.", normal))
    story.append(Spacer(1, 14))

    if appointment.follow_up_instructions:
        story.append(Paragraph("Follow-up", heading_style))
        story.append(_p(appointment.follow_up_instructions, normal))
        story.append(Spacer(1, 14))

    story.append(Spacer(1, 24))
    story.append(Paragraph("<b>Prescribed by:</b>", normal))
    doctor_name = f"Dr. {doctor.full_name}" if doctor else "Dr. Unknown"
    story.append(Paragraph(f'<font color="#0066cc" size="13"><b>{escape(doctor_name)}</b></font>', normal))
    story.append(Spacer(1, 24))
    story.append(Paragraph(
        "<i>This is a computer-generated prescription. Please follow the dosage instructions carefully.</i>",
        ParagraphStyle(name='Footer', parent=normal, fontSize=9, textColor=colors.grey, alignment=1)
    ))
    doc.build(story)
    return buffer.getvalue()


def export_prescription(appointment, export_dir, clinic_name='MediConsult') -> str:
    """Write the prescription PDF under ``export_dir`` and return its path."""
    os.makedirs(export_dir, exist_ok=True, mode=0o755)
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    output_path = os.path.abspath(os.path.join(export_dir, f"prescription_{appointment.id}_{timestamp}.pdf"))
    with open(output_path, 'wb') as fh:
        fh.write(build_prescription_pdf(appointment, clinic_name=clinic_name))
    logger.info("Prescription PDF exported: %s", output_path)
    return output_path
