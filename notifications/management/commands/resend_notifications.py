from django.core.management.base import BaseCommand

from notifications.reminders import ReminderEngine


class Command(BaseCommand):
    help = 'Retries failed and stale pending notifications'

    def add_arguments(self, parser):
        parser.add_argument('ids', nargs='*', type=int, help='Only these notification ids')

    def handle(self, *args, **options):
        result = ReminderEngine().resend_failed(notification_ids=options['ids'] or None)
        self.stdout.write(self.style.SUCCESS(f"{result.succeeded} notifications delivered."))
        for failure in result.failures:
            self.stdout.write(self.style.ERROR(f"  notification {failure['item']}: {failure['error']}"))
