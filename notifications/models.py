from django.conf import settings
from django.db import models
from django.utils import timezone


class Notification(models.Model):
    """
    A message to a caregiver, optionally tied to the vaccination record that
    triggered it. Rows double as the dedup history for the reminder passes.
    """
    TYPE_REMINDER = 'reminder'
    TYPE_OVERDUE = 'overdue'
    TYPE_COMPLETED = 'completed'
    TYPE_GENERAL = 'general'
    NOTIFICATION_TYPES = (
        (TYPE_REMINDER, 'Upcoming vaccination reminder'),
        (TYPE_OVERDUE, 'Overdue vaccination alert'),
        (TYPE_COMPLETED, 'Vaccination completed'),
        (TYPE_GENERAL, 'General'),
    )

    STATUS_PENDING = 'pending'
    STATUS_SENT = 'sent'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_FAILED, 'Failed'),
    )
    RESOLVED_STATUSES = (STATUS_SENT, STATUS_FAILED)

    METHOD_EMAIL = 'email'
    METHOD_SMS = 'sms'
    METHOD_PUSH = 'push'

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications", verbose_name="Recipient")
    vaccination_record = models.ForeignKey(
        'medical.VaccinationRecord', on_delete=models.SET_NULL, null=True, blank=True,
        related_name='notifications', verbose_name="Vaccination record",
    )
    notification_type = models.CharField(max_length=20, choices=NOTIFICATION_TYPES, default=TYPE_GENERAL, verbose_name="Type")
    title = models.CharField(max_length=200, verbose_name="Title")
    body = models.TextField(verbose_name="Message")

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, verbose_name="Status")
    delivery_methods = models.JSONField(default=list, blank=True, verbose_name="Requested channels")
    delivery_log = models.JSONField(default=list, blank=True, verbose_name="Delivery attempts")
    error = models.TextField(blank=True, default='', verbose_name="Last error")
    attempts = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True, verbose_name="Created at")
    sent_at = models.DateTimeField(null=True, blank=True, verbose_name="Sent at")

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['vaccination_record', 'notification_type', 'created_at']),
            models.Index(fields=['status', 'created_at']),
        ]
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"

    def __str__(self):
        return f"{self.title} -> {self.recipient.username}"
