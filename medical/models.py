from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .ages import AGE_UNIT_CHOICES, age_in_days
from .validators import validate_past_date


class Vaccine(models.Model):
    name = models.CharField(max_length=200, unique=True, verbose_name="Vaccine name")
    short_name = models.CharField(max_length=20, blank=True, null=True, verbose_name="Short name")
    description = models.TextField(blank=True, null=True, verbose_name="Description")
    is_active = models.BooleanField(default=True, verbose_name="Active")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        if self.short_name:
            return f"{self.name} ({self.short_name})"
        return self.name

    class Meta:
        ordering = ['name']
        verbose_name = "Vaccine"
        verbose_name_plural = "Vaccines"


class AgeWindow(models.Model):
    """
    An age range during which a child may receive the vaccine.

    A vaccine may carry several windows (routine + catch-up periods);
    the child is eligible when any one of them matches.
    """
    vaccine = models.ForeignKey(Vaccine, on_delete=models.CASCADE, related_name='age_windows')
    min_age = models.FloatField(validators=[MinValueValidator(0)], verbose_name="Minimum age")
    max_age = models.FloatField(validators=[MinValueValidator(0)], verbose_name="Maximum age")
    unit = models.CharField(max_length=10, choices=AGE_UNIT_CHOICES, default='months', verbose_name="Unit")

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(min_age__lte=F('max_age')), name='age_window_min_lte_max'),
            models.CheckConstraint(condition=Q(min_age__gte=0), name='age_window_min_non_negative'),
        ]
        verbose_name = "Age window"
        verbose_name_plural = "Age windows"

    def clean(self):
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValidationError({'max_age': "Maximum age must not be lower than minimum age."})

    def __str__(self):
        return f"{self.vaccine.name}: {self.min_age:g}-{self.max_age:g} {self.unit}"


class VaccineDose(models.Model):
    vaccine = models.ForeignKey(Vaccine, on_delete=models.CASCADE, related_name='doses')
    dose_number = models.PositiveIntegerField(validators=[MinValueValidator(1)], verbose_name="Dose number")
    age_in_days = models.PositiveIntegerField(verbose_name="Age at dose (days)", help_text="0 means at birth")
    description = models.CharField(max_length=255, blank=True, default='', verbose_name="Description")

    class Meta:
        ordering = ['age_in_days', 'dose_number']
        constraints = [
            models.UniqueConstraint(fields=['vaccine', 'dose_number'], name='unique_vaccine_dose'),
            models.CheckConstraint(condition=Q(dose_number__gte=1), name='dose_number_positive'),
        ]
        verbose_name = "Vaccine dose"
        verbose_name_plural = "Vaccine doses"

    def __str__(self):
        return f"{self.vaccine.name} - dose {self.dose_number} (day {self.age_in_days})"


class Child(models.Model):
    GENDER_CHOICES = (
        ('M', 'Male'),
        ('F', 'Female'),
        ('O', 'Other'),
    )

    first_name = models.CharField(max_length=100, verbose_name="First name")
    last_name = models.CharField(max_length=100, verbose_name="Last name")
    gender = models.CharField(max_length=1, choices=GENDER_CHOICES, blank=True, verbose_name="Gender")
    date_of_birth = models.DateField(validators=[validate_past_date], verbose_name="Date of birth")

    parent = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='children', verbose_name="Parent")

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def age_in_days(self, today=None):
        return age_in_days(self.date_of_birth, today or timezone.localdate())

    class Meta:
        ordering = ['last_name', 'first_name']
        verbose_name = "Child"
        verbose_name_plural = "Children"


class VaccinationRecord(models.Model):
    SCHEDULED = 'scheduled'
    OVERDUE = 'overdue'
    COMPLETED = 'completed'
    MISSED = 'missed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = (
        (SCHEDULED, 'Scheduled'),
        (OVERDUE, 'Overdue'),
        (COMPLETED, 'Completed'),
        (MISSED, 'Missed'),
        (CANCELLED, 'Cancelled'),
    )
    OPEN_STATUSES = (SCHEDULED, OVERDUE)
    TERMINAL_STATUSES = (COMPLETED, MISSED, CANCELLED)

    child = models.ForeignKey(Child, on_delete=models.CASCADE, related_name='vaccination_records')
    vaccine = models.ForeignKey(Vaccine, on_delete=models.PROTECT, related_name='vaccination_records')
    dose_number = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    scheduled_date = models.DateField(verbose_name="Scheduled date")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=SCHEDULED, verbose_name="Status")
    status_reason = models.TextField(blank=True, default='', verbose_name="Reason for status change")
    status_changed_at = models.DateTimeField(null=True, blank=True)

    administered_date = models.DateField(null=True, blank=True, verbose_name="Administered on")
    administered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='administered_vaccinations', verbose_name="Administered by",
    )
    batch_number = models.CharField(max_length=50, blank=True, default='', verbose_name="Batch number")
    notes = models.TextField(blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['scheduled_date', 'id']
        constraints = [
            # at most one live record per child/vaccine/dose; cancelled rows are history
            models.UniqueConstraint(
                fields=['child', 'vaccine', 'dose_number'],
                condition=~Q(status='cancelled'),
                name='unique_active_vaccination_dose',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'scheduled_date']),
            models.Index(fields=['child', 'status']),
        ]
        verbose_name = "Vaccination record"
        verbose_name_plural = "Vaccination records"

    def __str__(self):
        return f"{self.child} - {self.vaccine.name} dose {self.dose_number} ({self.scheduled_date}, {self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def days_overdue(self, today=None):
        today = today or timezone.localdate()
        if self.scheduled_date >= today:
            return 0
        return (today - self.scheduled_date).days
