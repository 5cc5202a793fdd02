from django.core.management.base import BaseCommand

from wards.services.gateway import get_gateway
from wards.services.reconcile import find_occupancy_drift, repair_occupancy_drift


class Command(BaseCommand):
    help = "Bring room status back in line with ACTIVE allocations (run after a partial failure)."

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='only report rooms that disagree')

    def handle(self, *args, **options):
        gateway = get_gateway()
        if options['dry_run']:
            drift = find_occupancy_drift(gateway.repository)
        else:
            drift = repair_occupancy_drift(gateway.repository, gateway.locks)

        for d in drift:
            self.stdout.write(f"room {d.room_number}: {d.status} -> {d.expected}")

        verb = 'found' if options['dry_run'] else 'repaired'
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(drift)} room(s) out of line"))
