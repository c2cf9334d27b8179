"""Management command to complete confirmed reservations whose rental has ended."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from reservations.models import BookingStatus, Reservation
from reservations.transitions import complete_finished_reservations


class Command(BaseCommand):
    help = 'Mark confirmed reservations whose drop-off date has passed as completed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--today',
            type=str,
            help='Treat this ISO date (YYYY-MM-DD) as today'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the reservations that would be completed without changing them'
        )

    def handle(self, *args, **options):
        today = None
        if options['today']:
            try:
                today = date.fromisoformat(options['today'])
            except ValueError as exc:
                raise CommandError(f'Invalid --today value: {options["today"]}') from exc

        if options['dry_run']:
            due = Reservation.objects.filter(status=BookingStatus.CONFIRMED, end_date__lt=today or timezone.localdate())
            if not due.exists():
                self.stdout.write(self.style.SUCCESS('No reservations to complete.'))
                return
            self.stdout.write(self.style.WARNING(f'{due.count()} reservation(s) would be completed:'))
            for reservation in due:
                self.stdout.write(f'  - {reservation.reference_number} (ended {reservation.end_date})')
            return

        completed = complete_finished_reservations(today=today)
        if completed:
            self.stdout.write(self.style.SUCCESS(f'Completed {completed} reservation(s).'))
        else:
            self.stdout.write('No reservations to complete.')
