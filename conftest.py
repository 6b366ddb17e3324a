from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from core.conf import get_scheduler_config
from medical.models import AgeWindow, Child, Vaccine, VaccineDose
from notifications.services import DispatchOutcome
from users.models import CustomUser

NEW_YORK = ZoneInfo('America/New_York')


class FakeDispatcher:
    """Stands in for NotificationDispatcher; remembers what it was asked to send."""

    def __init__(self, delivered=True, error='channel down'):
        self.delivered = delivered
        self.error = error
        self.sent = []

    def dispatch(self, notification):
        self.sent.append(notification)
        if self.delivered:
            return DispatchOutcome(delivered=True, channels=[{'method': 'email', 'status': 'sent'}])
        return DispatchOutcome(
            delivered=False,
            error=self.error,
            channels=[{'method': 'email', 'status': 'failed', 'error': self.error}],
        )


@pytest.fixture(autouse=True)
def scheduler_settings(settings):
    settings.TIME_ZONE = 'America/New_York'
    settings.VACCINATION_SCHEDULER = {
        'TIME_ZONE': 'America/New_York',
        'AUTO_SCHEDULE_ON_CREATE': False,
    }
    return settings


@pytest.fixture
def config():
    return get_scheduler_config()


@pytest.fixture
def at():
    """Noon, New York time, on the given day."""
    def make(year, month, day, hour=12, minute=0):
        return datetime(year, month, day, hour, minute, tzinfo=NEW_YORK)
    return make


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def failing_dispatcher():
    return FakeDispatcher(delivered=False)


@pytest.fixture
def parent(db):
    return CustomUser.objects.create_user(
        username='parent', password='pass1234', email='parent@example.com',
        first_name='Dana', role=CustomUser.ROLE_PARENT,
    )


@pytest.fixture
def other_parent(db):
    return CustomUser.objects.create_user(
        username='other_parent', password='pass1234', email='other@example.com',
        role=CustomUser.ROLE_PARENT,
    )


@pytest.fixture
def doctor(db):
    return CustomUser.objects.create_user(
        username='doctor', password='pass1234', email='doctor@example.com',
        role=CustomUser.ROLE_DOCTOR,
    )


@pytest.fixture
def scheduler_admin(db):
    return CustomUser.objects.create_user(
        username='ops', password='pass1234', role=CustomUser.ROLE_ADMIN,
    )


@pytest.fixture
def make_vaccine(db):
    """
    Build a vaccine with its windows and doses.

    ``windows`` is a list of ``(min_age, max_age, unit)``, ``doses`` a list of
    ``(dose_number, age_in_days)``.
    """
    def make(name='MMR', windows=((0, 24, 'months'),), doses=((1, 365),), is_active=True):
        vaccine = Vaccine.objects.create(name=name, is_active=is_active)
        for min_age, max_age, unit in windows:
            AgeWindow.objects.create(vaccine=vaccine, min_age=min_age, max_age=max_age, unit=unit)
        for dose_number, days in doses:
            VaccineDose.objects.create(
                vaccine=vaccine, dose_number=dose_number, age_in_days=days,
                description=f"Dose {dose_number}",
            )
        return vaccine
    return make


@pytest.fixture
def make_child(parent):
    def make(date_of_birth, first_name='Sam', owner=None):
        return Child.objects.create(
            first_name=first_name, last_name='Rivera',
            date_of_birth=date_of_birth, parent=owner or parent,
        )
    return make
