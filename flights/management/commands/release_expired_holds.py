"""Management command to release expired seat holds and abandoned booking drafts."""

from django.core.management.base import BaseCommand
from django.utils import timezone

from flights.models import SeatHold
from flights.services import release_expired_holds


class Command(BaseCommand):
    help = 'Delete seat holds and booking drafts whose expiry has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List what would be released without deleting anything'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired_holds = SeatHold.objects.expired().select_related('flight', 'seat')
            if not expired_holds.exists():
                self.stdout.write(self.style.SUCCESS('No expired seat holds found.'))
            for hold in expired_holds:
                self.stdout.write(
                    f'  - {hold.flight.flight_number} seat {hold.seat.seat_number} '
                    f'(draft {hold.draft_id}, expired {timezone.localtime(hold.expires_at):%Y-%m-%d %H:%M})'
                )
            _, draft_count = release_expired_holds(dry_run=True)
            self.stdout.write(self.style.WARNING(f'{draft_count} abandoned booking draft(s) would be deleted.'))
            return

        hold_count, draft_count = release_expired_holds()
        self.stdout.write(
            self.style.SUCCESS(f'Released {hold_count} seat hold(s) and {draft_count} booking draft(s).')
        )
