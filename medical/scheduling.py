"""
Dose-by-dose schedule generation.

For each active vaccine a child is eligible for, every dose that has no live
(non-cancelled) record gets one, due ``age_in_days`` after birth. Doses that
fell due longer ago than the grace period are left for an operator to
back-fill. Running the generator again for an unchanged child creates
nothing.
"""
import logging
from dataclasses import dataclass, field
from typing import List

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.conf import get_scheduler_config, local_today
from core.exceptions import NotFound
from core.results import PassResult
from .ages import add_days
from .eligibility import is_eligible
from .models import Child, Vaccine, VaccinationRecord

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    child_id: int
    age_in_days: int
    eligible_vaccine_count: int = 0
    created_records: List[VaccinationRecord] = field(default_factory=list)

    @property
    def created_count(self):
        return len(self.created_records)


class ScheduleGenerator:
    def __init__(self, config=None):
        self.config = config or get_scheduler_config()

    def generate_for_child(self, child, now=None):
        child = self._get_child(child)
        now = now or timezone.now()
        today = local_today(now, self.config)

        child_age = child.age_in_days(today)
        result = ScheduleResult(child_id=child.pk, age_in_days=child_age)
        existing = self._existing_doses(child)

        for vaccine in self._active_vaccines():
            if not is_eligible(child_age, vaccine.age_windows.all(), self.config.eligibility_catch_up_days):
                continue
            result.eligible_vaccine_count += 1
            result.created_records.extend(self._schedule_doses(child, vaccine, today, existing))

        result.created_records.sort(key=lambda r: r.scheduled_date)
        logger.info(
            f"Generated schedule for child {child.pk}: {result.created_count} vaccinations scheduled "
            f"from {result.eligible_vaccine_count} eligible vaccines"
        )
        return result

    def generate_for_all_children(self, now=None):
        now = now or timezone.now()
        result = PassResult(name='generate-schedules')
        logger.info("Generating vaccination schedules for all children...")

        for child in Child.objects.all().iterator():
            try:
                schedule = self.generate_for_child(child, now=now)
            except Exception as e:
                logger.exception(f"Failed to generate schedule for child {child.pk}: {e}")
                result.record_failure(child.pk, e)
                continue
            result.succeeded += 1
            result.increment('vaccinations_scheduled', schedule.created_count)

        logger.info(f"Generated schedules for {result.succeeded}/{result.succeeded + result.failed} children")
        return result

    def generate_for_new_vaccine(self, vaccine, now=None):
        """Schedule a newly activated vaccine for every eligible child."""
        vaccine = self._get_vaccine(vaccine)
        now = now or timezone.now()
        today = local_today(now, self.config)
        result = PassResult(name=f'new-vaccine:{vaccine.pk}')

        if not vaccine.is_active:
            logger.info(f"Vaccine {vaccine.pk} is inactive, nothing to schedule")
            return result

        logger.info(f"Updating schedules for new vaccine: {vaccine.name}")
        windows = list(vaccine.age_windows.all())
        doses = list(vaccine.doses.all())

        for child in Child.objects.all().iterator():
            result.increment('children_evaluated')
            try:
                child_age = child.age_in_days(today)
                if not is_eligible(child_age, windows, self.config.eligibility_catch_up_days):
                    result.skipped += 1
                    continue
                existing = self._existing_doses(child, vaccine=vaccine)
                created = self._schedule_doses(child, vaccine, today, existing, doses=doses)
            except Exception as e:
                logger.exception(f"Failed to schedule vaccine {vaccine.pk} for child {child.pk}: {e}")
                result.record_failure(child.pk, e)
                continue
            result.succeeded += 1
            result.increment('vaccinations_scheduled', len(created))

        logger.info(
            f"Updated schedules for new vaccine {vaccine.name}: "
            f"{result.counters.get('vaccinations_scheduled', 0)} vaccinations scheduled"
        )
        return result

    def earliest_schedulable_date(self, today):
        return add_days(today, -self.config.grace_period_days)

    def _schedule_doses(self, child, vaccine, today, existing, doses=None):
        earliest = self.earliest_schedulable_date(today)
        created = []

        for dose in doses if doses is not None else vaccine.doses.all():
            key = (vaccine.pk, dose.dose_number)
            if key in existing:
                continue

            due = add_days(child.date_of_birth, dose.age_in_days)
            if due < earliest:
                logger.debug(
                    f"Skipping {vaccine.name} dose {dose.dose_number} for child {child.pk}: "
                    f"due {due} is outside the {self.config.grace_period_days}-day grace period"
                )
                continue

            record = self._create_record(child, vaccine, dose, max(due, today))
            existing.add(key)
            if record is not None:
                created.append(record)
        return created

    def _create_record(self, child, vaccine, dose, scheduled_date):
        try:
            with transaction.atomic():
                return VaccinationRecord.objects.create(
                    child=child,
                    vaccine=vaccine,
                    dose_number=dose.dose_number,
                    scheduled_date=scheduled_date,
                    status=VaccinationRecord.SCHEDULED,
                    notes=f"Auto-scheduled for {child.first_name} - {dose.description}",
                )
        except IntegrityError:
            # another writer created the same live dose first
            logger.info(f"Dose {dose.dose_number} of {vaccine.name} already scheduled for child {child.pk}")
            return None

    def _existing_doses(self, child, vaccine=None):
        records = VaccinationRecord.objects.filter(child=child).exclude(status=VaccinationRecord.CANCELLED)
        if vaccine is not None:
            records = records.filter(vaccine=vaccine)
        return set(records.values_list('vaccine_id', 'dose_number'))

    def _active_vaccines(self):
        return Vaccine.objects.filter(is_active=True).prefetch_related('age_windows', 'doses')

    def _get_child(self, child):
        if isinstance(child, Child):
            return child
        try:
            return Child.objects.get(pk=child)
        except Child.DoesNotExist:
            raise NotFound(f"Child {child} not found")

    def _get_vaccine(self, vaccine):
        if isinstance(vaccine, Vaccine):
            return vaccine
        try:
            return Vaccine.objects.get(pk=vaccine)
        except Vaccine.DoesNotExist:
            raise NotFound(f"Vaccine {vaccine} not found")
