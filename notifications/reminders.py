"""
Reminder and overdue alert passes.

Both passes are safe to run repeatedly: before creating a notification they
look for one of the same type for the same record inside the dedup window.
The lookup hits the database, so a restarted process does not resend.
"""
import logging
from datetime import timedelta

from django.db.models import Q
from django.utils import timezone

from core.conf import get_scheduler_config, local_today
from core.exceptions import DispatchFailure
from core.results import PassResult
from medical import lifecycle
from medical.ages import add_days
from medical.models import VaccinationRecord
from .models import Notification
from .services import NotificationDispatcher

logger = logging.getLogger(__name__)


class ReminderEngine:
    def __init__(self, dispatcher=None, config=None):
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.config = config or get_scheduler_config()

    # --- passes ---

    def process_upcoming(self, now=None):
        """Send reminders for scheduled doses due exactly ``lead`` days from today."""
        now = now or timezone.now()
        today = local_today(now, self.config)
        since = now - timedelta(hours=self.config.reminder_dedup_hours)
        result = PassResult(name='daily-reminders')
        logger.info("Processing upcoming vaccinations for reminders...")

        for lead_days in self.config.reminder_lead_days:
            upcoming = (
                VaccinationRecord.objects
                .filter(status=VaccinationRecord.SCHEDULED, scheduled_date=add_days(today, lead_days))
                .select_related('child__parent', 'vaccine')
            )
            for record in upcoming:
                try:
                    if self.has_recent_notification(record, Notification.TYPE_REMINDER, since):
                        logger.debug(f"Reminder for vaccination {record.pk} already sent in the dedup window")
                        result.skipped += 1
                        continue
                    notification = self.create_reminder(record, lead_days, now=now)
                    self.deliver(notification, now=now)
                except Exception as e:
                    logger.exception(f"Failed to send reminder for vaccination {record.pk}: {e}")
                    result.record_failure(record.pk, e)
                    continue
                result.succeeded += 1

        logger.info(
            f"Processed upcoming vaccinations: {result.succeeded} reminders sent, "
            f"{result.skipped} already reminded, {result.failed} failed"
        )
        return result

    def process_overdue(self, now=None):
        """Flag scheduled doses past the overdue grace period and alert the parent once."""
        now = now or timezone.now()
        today = local_today(now, self.config)
        since = now - timedelta(days=self.config.overdue_dedup_days)
        result = PassResult(name='overdue-check')
        logger.info("Processing overdue vaccinations...")

        past_due = (
            VaccinationRecord.objects
            .filter(status=VaccinationRecord.SCHEDULED, scheduled_date__lt=today)
            .select_related('child__parent', 'vaccine')
        )
        for record in past_due:
            days_overdue = record.days_overdue(today)
            if days_overdue < self.config.overdue_grace_days:
                continue

            try:
                lifecycle.mark_overdue(record, now=now)
                result.increment('marked_overdue')

                if self.has_recent_notification(record, Notification.TYPE_OVERDUE, since):
                    logger.debug(f"Overdue alert for vaccination {record.pk} already sent in the dedup window")
                    result.skipped += 1
                    continue

                notification = self.create_overdue_alert(record, days_overdue, now=now)
                self.deliver(notification, now=now)
            except Exception as e:
                logger.exception(f"Failed to process overdue vaccination {record.pk}: {e}")
                result.record_failure(record.pk, e)
                continue
            result.succeeded += 1

        logger.info(
            f"Processed overdue vaccinations: {result.counters.get('marked_overdue', 0)} overdue, "
            f"{result.succeeded} alerts sent, {result.failed} failed"
        )
        return result

    def resend_failed(self, now=None, notification_ids=None):
        """
        Retry notifications that were never delivered.

        Covers ``failed`` rows and ``pending`` rows older than an hour
        (left behind when a pass died between create and dispatch).
        """
        now = now or timezone.now()
        result = PassResult(name='resend-notifications')
        candidates = Notification.objects.filter(
            Q(status=Notification.STATUS_FAILED)
            | Q(status=Notification.STATUS_PENDING, created_at__lt=now - timedelta(hours=1))
        ).select_related('recipient')
        if notification_ids is not None:
            candidates = candidates.filter(pk__in=notification_ids)

        for notification in candidates:
            try:
                self.deliver(notification, now=now)
            except Exception as e:
                logger.error(f"Resend of notification {notification.pk} failed: {e}")
                result.record_failure(notification.pk, e)
                continue
            result.succeeded += 1

        logger.info(f"Resent notifications: {result.succeeded} delivered, {result.failed} failed")
        return result

    def notify_completed(self, record, now=None):
        """Confirmation to the parent once a dose has been administered."""
        if record.status != VaccinationRecord.COMPLETED:
            return None
        child = record.child
        administered = record.administered_date or local_today(now, self.config)
        notification = self.create_notification(
            record,
            Notification.TYPE_COMPLETED,
            title=f"Vaccination Completed for {child.first_name}",
            body=(
                f"Great news! {child.first_name} has successfully received the {record.vaccine.name} "
                f"vaccination on {administered:%B %d, %Y}."
            ),
            delivery_methods=self.config.completion_delivery_methods,
            now=now,
        )
        try:
            self.deliver(notification, now=now)
        except DispatchFailure as e:
            logger.error(str(e))
        return notification

    # --- building blocks ---

    def has_recent_notification(self, record, notification_type, since):
        return Notification.objects.filter(
            vaccination_record=record,
            notification_type=notification_type,
            created_at__gte=since,
        ).exists()

    def create_reminder(self, record, lead_days, now=None):
        child = record.child
        return self.create_notification(
            record,
            Notification.TYPE_REMINDER,
            title=f"Vaccination Reminder for {child.first_name}",
            body=(
                f"Don't forget! {child.first_name} has a {record.vaccine.name} vaccination "
                f"(dose {record.dose_number}) scheduled for {record.scheduled_date:%B %d, %Y}, "
                f"in {lead_days} day{'s' if lead_days != 1 else ''}."
            ),
            now=now,
        )

    def create_overdue_alert(self, record, days_overdue, now=None):
        child = record.child
        return self.create_notification(
            record,
            Notification.TYPE_OVERDUE,
            title=f"Overdue Vaccination for {child.first_name}",
            body=(
                f"{child.first_name}'s {record.vaccine.name} vaccination (dose {record.dose_number}) is "
                f"{days_overdue} days overdue. Please schedule an appointment as soon as possible."
            ),
            now=now,
        )

    def create_notification(self, record, notification_type, title, body, delivery_methods=None, now=None):
        notification = Notification.objects.create(
            recipient=record.child.parent,
            vaccination_record=record,
            notification_type=notification_type,
            title=title,
            body=body,
            delivery_methods=list(delivery_methods or self.config.delivery_methods),
            created_at=now or timezone.now(),
        )
        logger.info(f"Notification created: {notification.pk} ({notification_type}) for vaccination {record.pk}")
        return notification

    def deliver(self, notification, now=None):
        """
        Dispatch and persist the outcome. An undelivered notification is
        stored as ``failed`` and ``DispatchFailure`` is raised.
        """
        try:
            outcome = self.dispatcher.dispatch(notification)
        except Exception as e:
            delivered, error, channels = False, str(e), []
        else:
            delivered, error, channels = outcome.delivered, outcome.error, outcome.channels

        notification.attempts += 1
        notification.delivery_log = list(notification.delivery_log) + channels
        if delivered:
            notification.status = Notification.STATUS_SENT
            notification.sent_at = now or timezone.now()
            notification.error = ''
        else:
            notification.status = Notification.STATUS_FAILED
            notification.error = error or ''
        notification.save(update_fields=['attempts', 'delivery_log', 'status', 'sent_at', 'error'])

        logger.info(f"Notification {notification.pk} processed: {notification.status}")
        if not delivered:
            raise DispatchFailure(notification.pk, error)
        return notification
