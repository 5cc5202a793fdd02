"""
Management command to populate the database with demo rooms and patients.

Idempotent: rooms are keyed by room number and patients by email, so
running it twice leaves a single copy of each.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.conf import settings
from django.core.management.base import BaseCommand

from wards.models import Patient, Room

ROOMS = [
    ('101', 'SINGLE', 1, 1, '1500.00'),
    ('102', 'SINGLE', 1, 1, '1500.00'),
    ('103', 'DOUBLE', 1, 2, '1000.00'),
    ('201', 'SUITE', 2, 1, '4200.00'),
    ('202', 'WARD', 2, 6, '450.00'),
    ('301', 'ICU', 3, 1, '6800.00'),
    ('302', 'EMERGENCY', 3, 1, '3000.00'),
]

PATIENTS = [
    ('Alice Moreau', 'alice@example.com', '555-0101', 'F', 'A+'),
    ('Bao Nguyen', 'bao@example.com', '555-0102', 'M', 'O-'),
    ('Chidi Okafor', 'chidi@example.com', '555-0103', 'M', 'B+'),
    ('Dana Kowalski', 'dana@example.com', '555-0104', 'F', 'AB+'),
]


class Command(BaseCommand):
    help = 'Create demo rooms, patients and a ward staff user (idempotent).'

    def add_arguments(self, parser):
        parser.add_argument('--staff-password', default='ward123456',
                            help='password set on the demo "nurse" account')

    def handle(self, *args, **options):
        self.stdout.write('creating demo ward data...')
        for number, room_type, floor, capacity, price in ROOMS:
            _, created = Room.objects.get_or_create(
                room_number=number,
                defaults={
                    'room_type': room_type, 'floor': floor, 'capacity': capacity,
                    'price_per_day': Decimal(price),
                },
            )
            if created:
                self.stdout.write(f'room {number} ({room_type})')

        for name, email, phone, gender, blood in PATIENTS:
            Patient.objects.get_or_create(
                email=email,
                defaults={'name': name, 'phone': phone, 'gender': gender, 'blood_group': blood},
            )

        staff_group, _ = Group.objects.get_or_create(name=settings.WARD_STAFF_GROUP)
        user, created = get_user_model().objects.get_or_create(username='nurse', defaults={'is_active': True})
        if created:
            user.set_password(options['staff_password'])
            user.save(update_fields=['password'])
        user.groups.add(staff_group)

        self.stdout.write(self.style.SUCCESS(
            f'{Room.objects.count()} rooms, {Patient.objects.count()} patients, staff user "nurse" ready'
        ))
