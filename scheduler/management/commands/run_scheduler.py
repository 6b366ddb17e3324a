import signal
import threading

from django.core.management.base import BaseCommand

from scheduler.jobs import build_default_runner


class Command(BaseCommand):
    help = 'Runs the vaccination job scheduler in the foreground until interrupted'

    def handle(self, *args, **options):
        runner = build_default_runner()
        stopped = threading.Event()

        def shutdown(signum, frame):
            self.stdout.write(f"Received signal {signum}, shutting down scheduler...")
            stopped.set()

        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)

        runner.initialize()
        for name, job in runner.status()['jobs'].items():
            self.stdout.write(f"  {name}: next run at {job['next_run_at']}")
        self.stdout.write(self.style.SUCCESS("Scheduler running. Press Ctrl+C to stop."))

        try:
            while not stopped.wait(timeout=1):
                pass
        finally:
            runner.stop()
        self.stdout.write(self.style.SUCCESS("Scheduler stopped."))
