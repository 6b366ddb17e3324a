from django.core.management.base import BaseCommand, CommandError

from core.exceptions import NotFound
from medical.scheduling import ScheduleGenerator


class Command(BaseCommand):
    help = 'Creates missing vaccination records for children (all, one child, or one new vaccine)'

    def add_arguments(self, parser):
        target = parser.add_mutually_exclusive_group()
        target.add_argument('--child', type=int, help='Only generate for this child id')
        target.add_argument('--vaccine', type=int, help='Schedule this (newly activated) vaccine for all children')

    def handle(self, *args, **options):
        generator = ScheduleGenerator()

        try:
            if options['child']:
                schedule = generator.generate_for_child(options['child'])
                self.stdout.write(self.style.SUCCESS(
                    f"Child {schedule.child_id}: {schedule.created_count} records scheduled "
                    f"({schedule.eligible_vaccine_count} eligible vaccines)"
                ))
                return

            if options['vaccine']:
                result = generator.generate_for_new_vaccine(options['vaccine'])
            else:
                result = generator.generate_for_all_children()
        except NotFound as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(
            f"{result.succeeded} children processed, "
            f"{result.counters.get('vaccinations_scheduled', 0)} records scheduled."
        ))
        if result.failed:
            self.stdout.write(self.style.WARNING(f"{result.failed} children failed:"))
            for failure in result.failures:
                self.stdout.write(f"  child {failure['item']}: {failure['error']}")
