from datetime import datetime
from zoneinfo import ZoneInfo

from dateutil import rrule

WEEKDAYS = {
    'MO': rrule.MO, 'TU': rrule.TU, 'WE': rrule.WE, 'TH': rrule.TH,
    'FR': rrule.FR, 'SA': rrule.SA, 'SU': rrule.SU,
}


class Trigger:
    """
    Wall-clock trigger: every day at ``hour:minute``, or once a week on
    ``weekday`` (``'MO'`` .. ``'SU'``), evaluated in ``tz``.
    """

    def __init__(self, hour, minute=0, weekday=None, tz='UTC'):
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValueError(f"Invalid trigger time {hour:02d}:{minute:02d}")
        if weekday is not None and weekday not in WEEKDAYS:
            raise ValueError(f"Invalid weekday {weekday!r}")
        self.hour = hour
        self.minute = minute
        self.weekday = weekday
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    @classmethod
    def from_config(cls, job, tz):
        return cls(
            hour=job['hour'],
            minute=job.get('minute', 0),
            weekday=job.get('weekday'),
            tz=job.get('tz', tz),
        )

    def next_after(self, moment: datetime) -> datetime:
        """First firing strictly after ``moment`` (an aware datetime)."""
        local = moment.astimezone(self.tz).replace(microsecond=0)
        if self.weekday is None:
            rule = rrule.rrule(rrule.DAILY, dtstart=local, byhour=self.hour, byminute=self.minute, bysecond=0)
        else:
            rule = rrule.rrule(
                rrule.WEEKLY, dtstart=local, byweekday=WEEKDAYS[self.weekday],
                byhour=self.hour, byminute=self.minute, bysecond=0,
            )
        return rule.after(moment.astimezone(self.tz))

    def __repr__(self):
        day = f"{self.weekday} " if self.weekday else "daily "
        return f"<Trigger {day}{self.hour:02d}:{self.minute:02d} {self.tz}>"
