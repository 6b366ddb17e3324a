import logging
from datetime import timedelta

from dateutil.relativedelta import relativedelta
from django.db import DatabaseError
from django.utils import timezone

from core.conf import get_scheduler_config, local_today
from core.exceptions import StoreFailure
from medical.models import VaccinationRecord
from .models import Notification

logger = logging.getLogger(__name__)


def purge_expired(now=None, config=None):
    """
    Weekly retention pass.

    Deletes sent/failed notifications older than the notification retention
    window and completed vaccination records administered longer ago than the
    record retention window. Pending notifications are never deleted here.
    """
    config = config or get_scheduler_config()
    now = now or timezone.now()
    logger.info("Cleaning up old notifications...")

    notification_cutoff = now - timedelta(days=config.notification_retention_days)
    record_cutoff = local_today(now, config) - relativedelta(years=config.record_retention_years)

    try:
        notifications_deleted, _ = Notification.objects.filter(
            created_at__lt=notification_cutoff,
            status__in=Notification.RESOLVED_STATUSES,
        ).delete()
        logger.info(f"Cleaned up {notifications_deleted} old notifications")

        records_deleted, _ = VaccinationRecord.objects.filter(
            status=VaccinationRecord.COMPLETED,
            administered_date__lt=record_cutoff,
        ).delete()
        logger.info(f"Cleaned up {records_deleted} old vaccination records")
    except DatabaseError as e:
        raise StoreFailure(f"Retention pass failed: {e}") from e

    return {
        'notifications_deleted': notifications_deleted,
        'records_deleted': records_deleted,
    }
