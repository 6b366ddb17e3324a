from datetime import date, timedelta

import pytest
from django.db import OperationalError

from core.exceptions import DispatchFailure
from medical import lifecycle
from medical.models import VaccinationRecord
from notifications.models import Notification
from notifications.reminders import ReminderEngine

pytestmark = pytest.mark.django_db


@pytest.fixture
def engine(dispatcher, config):
    return ReminderEngine(dispatcher=dispatcher, config=config)


@pytest.fixture
def make_record(make_vaccine, make_child):
    vaccine = make_vaccine('MMR')
    child = make_child(date(2023, 1, 1))

    def make(scheduled_date, dose_number=1, status=VaccinationRecord.SCHEDULED):
        return VaccinationRecord.objects.create(
            child=child, vaccine=vaccine, dose_number=dose_number,
            scheduled_date=scheduled_date, status=status,
        )
    return make


# --- upcoming pass ---

def test_reminder_sent_for_each_lead_day(engine, dispatcher, make_record, at):
    records = [make_record(date(2024, 3, 1) + timedelta(days=lead), dose_number=i + 1)
               for i, lead in enumerate((1, 3, 7, 14))]
    make_record(date(2024, 3, 3), dose_number=9)

    result = engine.process_upcoming(now=at(2024, 3, 1))

    assert result.succeeded == 4
    assert {n.vaccination_record_id for n in dispatcher.sent} == {r.pk for r in records}
    reminders = Notification.objects.filter(notification_type=Notification.TYPE_REMINDER)
    assert reminders.count() == 4
    assert all(n.status == Notification.STATUS_SENT for n in reminders)


def test_reminder_text_and_recipient(engine, make_record, parent, at):
    record = make_record(date(2024, 3, 4))

    engine.process_upcoming(now=at(2024, 3, 1))

    notification = Notification.objects.get(vaccination_record=record)
    assert notification.recipient == parent
    assert notification.title == "Vaccination Reminder for Sam"
    assert "in 3 days" in notification.body
    assert notification.attempts == 1
    assert notification.sent_at == at(2024, 3, 1)


def test_running_twice_in_a_day_sends_one_reminder(engine, dispatcher, make_record, at):
    make_record(date(2024, 3, 2))

    first = engine.process_upcoming(now=at(2024, 3, 1, hour=9))
    second = engine.process_upcoming(now=at(2024, 3, 1, hour=15))

    assert first.succeeded == 1
    assert second.succeeded == 0
    assert second.skipped == 1
    assert Notification.objects.filter(notification_type=Notification.TYPE_REMINDER).count() == 1
    assert len(dispatcher.sent) == 1


def test_only_scheduled_records_are_reminded(engine, make_record, at):
    make_record(date(2024, 3, 2), status=VaccinationRecord.CANCELLED)

    result = engine.process_upcoming(now=at(2024, 3, 1))

    assert result.succeeded == 0
    assert not Notification.objects.exists()


def test_failed_delivery_is_stored_and_counted(failing_dispatcher, config, make_record, at):
    engine = ReminderEngine(dispatcher=failing_dispatcher, config=config)
    record = make_record(date(2024, 3, 2))

    result = engine.process_upcoming(now=at(2024, 3, 1))

    assert result.failed == 1
    assert result.failures[0]['item'] == record.pk
    assert result.failures[0]['error_type'] == 'DispatchFailure'
    notification = Notification.objects.get(vaccination_record=record)
    assert notification.status == Notification.STATUS_FAILED
    assert notification.error == 'channel down'
    assert notification.sent_at is None


def test_one_bad_record_does_not_stop_the_pass(engine, make_record, at, monkeypatch):
    bad = make_record(date(2024, 3, 2), dose_number=1)
    good = make_record(date(2024, 3, 2), dose_number=2)
    original = engine.create_reminder

    def create_reminder(record, lead_days, now=None):
        if record.pk == bad.pk:
            raise RuntimeError("store timeout")
        return original(record, lead_days, now=now)

    monkeypatch.setattr(engine, 'create_reminder', create_reminder)
    result = engine.process_upcoming(now=at(2024, 3, 1))

    assert result.succeeded == 1
    assert result.failed == 1
    assert Notification.objects.filter(vaccination_record=good).exists()


def test_failed_dedup_lookup_does_not_stop_the_pass(engine, make_record, at, monkeypatch):
    bad = make_record(date(2024, 3, 2), dose_number=1)
    good = make_record(date(2024, 3, 2), dose_number=2)
    original = engine.has_recent_notification

    def has_recent_notification(record, notification_type, since):
        if record.pk == bad.pk:
            raise OperationalError("statement timeout")
        return original(record, notification_type, since)

    monkeypatch.setattr(engine, 'has_recent_notification', has_recent_notification)
    result = engine.process_upcoming(now=at(2024, 3, 1))

    assert result.succeeded == 1
    assert result.failed == 1
    assert result.failures[0]['item'] == bad.pk
    assert result.failures[0]['error_type'] == 'OperationalError'
    assert Notification.objects.filter(vaccination_record=good).exists()
    assert not Notification.objects.filter(vaccination_record=bad).exists()


# --- overdue pass ---

def test_overdue_after_eight_days_alerts_once(engine, dispatcher, make_record, at):
    record = make_record(date(2024, 1, 1))

    result = engine.process_overdue(now=at(2024, 1, 9))

    record.refresh_from_db()
    assert record.status == VaccinationRecord.OVERDUE
    assert result.counters['marked_overdue'] == 1
    assert result.succeeded == 1
    alerts = Notification.objects.filter(vaccination_record=record, notification_type=Notification.TYPE_OVERDUE)
    assert alerts.count() == 1
    assert "8 days overdue" in alerts.get().body

    engine.process_overdue(now=at(2024, 1, 10))
    assert alerts.count() == 1
    assert len(dispatcher.sent) == 1


def test_seven_days_is_overdue_six_is_not(engine, make_record, at):
    seven = make_record(date(2024, 1, 1), dose_number=1)
    six = make_record(date(2024, 1, 2), dose_number=2)

    engine.process_overdue(now=at(2024, 1, 8))

    seven.refresh_from_db()
    six.refresh_from_db()
    assert seven.status == VaccinationRecord.OVERDUE
    assert six.status == VaccinationRecord.SCHEDULED


def test_recent_overdue_alert_suppresses_another(engine, dispatcher, make_record, parent, at):
    record = make_record(date(2024, 1, 1))
    Notification.objects.create(
        recipient=parent, vaccination_record=record, notification_type=Notification.TYPE_OVERDUE,
        title='Overdue', body='...', status=Notification.STATUS_SENT, created_at=at(2024, 1, 5),
    )

    result = engine.process_overdue(now=at(2024, 1, 9))

    record.refresh_from_db()
    assert record.status == VaccinationRecord.OVERDUE
    assert result.skipped == 1
    assert dispatcher.sent == []


def test_reminder_and_overdue_alert_coexist(engine, make_record, at):
    record = make_record(date(2024, 1, 2))

    engine.process_upcoming(now=at(2024, 1, 1))
    engine.process_overdue(now=at(2024, 1, 9))

    types = set(Notification.objects.filter(vaccination_record=record).values_list('notification_type', flat=True))
    assert types == {Notification.TYPE_REMINDER, Notification.TYPE_OVERDUE}


def test_overdue_alert_failure_keeps_overdue_status(failing_dispatcher, config, make_record, at):
    engine = ReminderEngine(dispatcher=failing_dispatcher, config=config)
    record = make_record(date(2024, 1, 1))

    result = engine.process_overdue(now=at(2024, 1, 9))

    record.refresh_from_db()
    assert record.status == VaccinationRecord.OVERDUE
    assert result.failed == 1
    assert Notification.objects.get(vaccination_record=record).status == Notification.STATUS_FAILED


# --- resend and completion ---

def test_resend_failed_and_stale_pending(engine, dispatcher, make_record, parent, at):
    record = make_record(date(2024, 3, 2))
    now = at(2024, 3, 1)

    def notification(status, created_at):
        return Notification.objects.create(
            recipient=parent, vaccination_record=record, title='t', body='b',
            status=status, created_at=created_at, delivery_methods=['email'],
        )

    failed = notification(Notification.STATUS_FAILED, now - timedelta(days=1))
    stale = notification(Notification.STATUS_PENDING, now - timedelta(hours=2))
    fresh = notification(Notification.STATUS_PENDING, now - timedelta(minutes=10))
    sent = notification(Notification.STATUS_SENT, now - timedelta(days=1))

    result = engine.resend_failed(now=now)

    assert result.succeeded == 2
    assert {n.pk for n in dispatcher.sent} == {failed.pk, stale.pk}
    failed.refresh_from_db()
    assert failed.status == Notification.STATUS_SENT
    fresh.refresh_from_db()
    assert fresh.status == Notification.STATUS_PENDING
    sent.refresh_from_db()
    assert sent.attempts == 0


def test_resend_limited_to_given_ids(engine, dispatcher, make_record, parent, at):
    record = make_record(date(2024, 3, 2))
    _, second = [
        Notification.objects.create(
            recipient=parent, vaccination_record=record, title='t', body='b',
            status=Notification.STATUS_FAILED,
        )
        for _ in range(2)
    ]

    engine.resend_failed(notification_ids=[second.pk])

    assert [n.pk for n in dispatcher.sent] == [second.pk]


def test_deliver_raises_after_persisting_failure(failing_dispatcher, config, make_record, parent):
    engine = ReminderEngine(dispatcher=failing_dispatcher, config=config)
    notification = Notification.objects.create(
        recipient=parent, vaccination_record=make_record(date(2024, 3, 2)), title='t', body='b',
    )

    with pytest.raises(DispatchFailure):
        engine.deliver(notification)

    notification.refresh_from_db()
    assert notification.status == Notification.STATUS_FAILED
    assert notification.attempts == 1


def test_completion_notice_uses_email_only(engine, make_record, at):
    record = make_record(date(2024, 1, 1))
    lifecycle.mark_completed(record, administered_date=date(2024, 1, 2), now=at(2024, 1, 2))

    notification = engine.notify_completed(record, now=at(2024, 1, 2))

    assert notification.notification_type == Notification.TYPE_COMPLETED
    assert notification.delivery_methods == ['email']
    assert "January 02, 2024" in notification.body


def test_no_completion_notice_for_open_record(engine, make_record):
    assert engine.notify_completed(make_record(date(2024, 1, 1))) is None
    assert not Notification.objects.exists()
