from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class CustomUserManager(UserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', 'ADMIN')
        return super().create_superuser(username, email, password, **extra_fields)


class CustomUser(AbstractUser):
    objects = CustomUserManager()

    ROLE_PARENT = 'PARENT'
    ROLE_DOCTOR = 'DOCTOR'
    ROLE_ADMIN = 'ADMIN'
    USER_TYPE_CHOICES = (
        (ROLE_PARENT, 'Parent / caregiver'),
        (ROLE_DOCTOR, 'Healthcare provider'),
        (ROLE_ADMIN, 'System administrator'),
    )

    role = models.CharField(max_length=20, choices=USER_TYPE_CHOICES, default=ROLE_PARENT, verbose_name="Account type")
    phone = models.CharField(max_length=20, blank=True, null=True, verbose_name="Phone number")

    # delivery targets and opt-ins used by the notification dispatcher
    fcm_token = models.CharField(max_length=255, blank=True, null=True, verbose_name="Push token")
    notify_email = models.BooleanField(default=True, verbose_name="Email notifications")
    notify_sms = models.BooleanField(default=True, verbose_name="SMS notifications")
    notify_push = models.BooleanField(default=True, verbose_name="Push notifications")

    def __str__(self):
        return self.username

    @property
    def is_provider(self):
        return self.is_superuser or self.role in (self.ROLE_DOCTOR, self.ROLE_ADMIN)
