from django.core.management.base import BaseCommand, CommandError

from core.exceptions import UnknownJob
from scheduler.jobs import build_default_runner


class Command(BaseCommand):
    help = 'Runs one scheduler job immediately (daily-reminders, overdue-check, cleanup)'

    def add_arguments(self, parser):
        parser.add_argument('name', help='Job name')

    def handle(self, *args, **options):
        runner = build_default_runner()
        try:
            outcome = runner.run_job(options['name'])
        except UnknownJob as e:
            raise CommandError(f"{e}. Available jobs: {', '.join(runner.status()['job_names'])}")

        if not outcome['success']:
            raise CommandError(outcome['message'])
        self.stdout.write(self.style.SUCCESS(outcome['message']))
        self.stdout.write(str(outcome['result']))
