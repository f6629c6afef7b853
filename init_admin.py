#!/usr/bin/env python3
"""
Create demo doctor accounts for a fresh MediConsult database.
Run with: python3 init_admin.py
"""
from mediconsult import create_app
from mediconsult.exceptions import ValidationFailed
from mediconsult.extensions import db
from mediconsult.services import get_identity_provider

DEFAULT_DOCTORS = [
    {
        'email': 'doctor1@mediconsult.local',
        'password': 'doctor123',
        'full_name': 'John Doctor',
        'specialization': 'General Medicine',
        'phone': ''
    },
    {
        'email': 'doctor2@mediconsult.local',
        'password': 'doctor123',
        'full_name': 'Asha Rao',
        'specialization': 'Pediatrics',
        'phone': ''
    },
]


def create_doctors():
    """Create default doctor accounts"""
    app = create_app()

    with app.app_context():
        db.create_all()
        provider = get_identity_provider()

        print("=" * 60)
        print("Initializing Doctor Accounts")
        print("=" * 60)
        print()

        created_count = 0
        for doctor in DEFAULT_DOCTORS:
            try:
                provider.sign_up(doctor['email'], doctor['password'], {
                    'full_name': doctor['full_name'],
                    'role': 'doctor',
                    'specialization': doctor['specialization'],
                    'phone': doctor['phone'],
                })
            except ValidationFailed as e:
                print(f"  - {doctor['email']}: {e.message} (skipping)")
                continue
            created_count += 1
            print(f"  ✓ Created: {doctor['email']} - Password: {doctor['password']}")

        print()
        print("=" * 60)
        print(f"✅ Created {created_count} new doctor account(s)")
        print("=" * 60)
        print("\n⚠️  IMPORTANT: Change passwords after first login!")


if __name__ == '__main__':
    create_doctors()
