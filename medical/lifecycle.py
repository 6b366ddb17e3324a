"""
Vaccination record state machine.

    scheduled -> overdue | completed | missed | cancelled
    overdue   -> completed | missed | cancelled

completed, missed and cancelled are terminal. ``overdue`` is only ever set
by the overdue pass; it never reverts to ``scheduled``.
"""
import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from core.conf import local_today
from core.exceptions import InvalidTransition, NotFound, StoreFailure
from .models import VaccinationRecord

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    VaccinationRecord.SCHEDULED: frozenset({VaccinationRecord.OVERDUE, *VaccinationRecord.TERMINAL_STATUSES}),
    VaccinationRecord.OVERDUE: frozenset(VaccinationRecord.TERMINAL_STATUSES),
}


def can_transition(current, target):
    if current not in VaccinationRecord.OPEN_STATUSES:
        return False
    return target in ALLOWED_TRANSITIONS[current]


def transition(record, target, now=None, **changes):
    """
    Move ``record`` to ``target`` and persist it.

    The row is re-read under a lock so the check and the write see the same
    state. The passed instance is refreshed with the stored values.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            try:
                locked = VaccinationRecord.objects.select_for_update().get(pk=record.pk)
            except VaccinationRecord.DoesNotExist:
                raise NotFound(f"Vaccination record {record.pk} not found")

            if not can_transition(locked.status, target):
                raise InvalidTransition(locked.status, target, record_id=locked.pk)

            previous = locked.status
            locked.status = target
            locked.status_changed_at = now
            for field_name, value in changes.items():
                setattr(locked, field_name, value)
            locked.save()
    except DatabaseError as e:
        raise StoreFailure(f"Could not update vaccination record {record.pk}: {e}") from e

    logger.info(f"Vaccination record {locked.pk}: {previous} -> {target}")

    for field_name in ['status', 'status_changed_at', *changes]:
        setattr(record, field_name, getattr(locked, field_name))
    record.updated_at = locked.updated_at
    return record


def mark_overdue(record, now=None):
    return transition(record, VaccinationRecord.OVERDUE, now=now)


def mark_completed(record, administered_by=None, administered_date=None, batch_number='', notes=None, now=None):
    now = now or timezone.now()
    changes = {
        'administered_date': administered_date or local_today(now),
        'administered_by': administered_by,
    }
    if batch_number:
        changes['batch_number'] = batch_number
    if notes:
        changes['notes'] = notes
    return transition(record, VaccinationRecord.COMPLETED, now=now, **changes)


def mark_missed(record, reason='', now=None):
    return transition(record, VaccinationRecord.MISSED, now=now, status_reason=reason)


def cancel(record, reason='', now=None):
    return transition(record, VaccinationRecord.CANCELLED, now=now, status_reason=reason)
