from django.core.management.base import BaseCommand

from notifications.reminders import ReminderEngine


class Command(BaseCommand):
    help = 'Sends upcoming vaccination reminders and overdue alerts now'

    def add_arguments(self, parser):
        parser.add_argument(
            '--pass', dest='which', choices=['upcoming', 'overdue', 'all'], default='all',
            help='Which pass to run (default: both)',
        )

    def handle(self, *args, **options):
        self.stdout.write("Starting notification engine...")
        engine = ReminderEngine()

        if options['which'] in ('upcoming', 'all'):
            result = engine.process_upcoming()
            self.stdout.write(self.style.SUCCESS(
                f"Sent {result.succeeded} REMINDERS ({result.skipped} already sent, {result.failed} failed)."
            ))

        if options['which'] in ('overdue', 'all'):
            result = engine.process_overdue()
            self.stdout.write(self.style.WARNING(
                f"Flagged {result.counters.get('marked_overdue', 0)} OVERDUE, sent {result.succeeded} alerts "
                f"({result.failed} failed)."
            ))

        self.stdout.write(self.style.SUCCESS("Notification engine finished."))
