import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import firebase_admin
from django.conf import settings
from django.core.mail import send_mail
from firebase_admin import credentials, messaging

from .models import Notification

logger = logging.getLogger(__name__)

# --- Initialize Firebase App (Safe Singleton) ---
try:
    cred_path = getattr(settings, 'FIREBASE_CREDENTIALS', '')

    if cred_path and os.path.exists(cred_path):
        if not firebase_admin._apps:
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin initialized")
        FIREBASE_READY = True
    else:
        logger.warning(f"Firebase key not found at {cred_path}. Push runs in SIMULATION MODE")
        FIREBASE_READY = False
except Exception as e:
    logger.error(f"Failed to initialize Firebase: {e}")
    FIREBASE_READY = False


@dataclass
class DispatchOutcome:
    delivered: bool
    error: Optional[str] = None
    channels: List[dict] = field(default_factory=list)


class NotificationDispatcher:
    """
    Sends a Notification over the channels it requests.

    Push goes through Firebase Cloud Messaging ("simulation" when no key is
    configured), email through Django's mail backend, SMS through Twilio.
    A channel is used only when the recipient opted in and has an address
    for it. The notification counts as delivered when any channel succeeds.
    The caller owns persisting the outcome.
    """

    def __init__(self):
        self._twilio_client = None

    def dispatch(self, notification):
        user = notification.recipient
        channels = []

        for method in notification.delivery_methods or [Notification.METHOD_EMAIL]:
            sender = getattr(self, f'send_{method}', None)
            if sender is None:
                channels.append({'method': method, 'status': 'failed', 'error': 'Unknown delivery method'})
                continue
            if not self._wants(user, method):
                channels.append({'method': method, 'status': 'skipped', 'error': 'Recipient opted out'})
                continue
            try:
                detail = sender(user, notification)
            except Exception as e:
                logger.error(f"Failed to send {method} notification {notification.pk}: {e}")
                channels.append({'method': method, 'status': 'failed', 'error': str(e)})
                continue
            channels.append({'method': method, 'status': 'sent', 'detail': detail})

        delivered = any(c['status'] == 'sent' for c in channels)
        error = None
        if not delivered:
            errors = [f"{c['method']}: {c['error']}" for c in channels if c.get('error')]
            error = '; '.join(errors) or 'No delivery channel available'
        return DispatchOutcome(delivered=delivered, error=error, channels=channels)

    def _wants(self, user, method):
        return getattr(user, f'notify_{method}', True)

    def send_push(self, user, notification):
        if not user.fcm_token:
            raise ValueError("No FCM token found for user")

        # --- Simulation Mode (Fallback) ---
        if not FIREBASE_READY:
            logger.info(f"Simulating FCM send to {user.username}: {notification.title}")
            return f"Simulated (No Key): SIMULATION_MODE_ID_{user.pk}"

        message = messaging.Message(
            notification=messaging.Notification(
                title=notification.title,
                body=notification.body,
            ),
            token=user.fcm_token,
            data={
                'type': notification.notification_type,
                'notification_id': str(notification.pk),
                'click_action': 'FLUTTER_NOTIFICATION_CLICK',
            },
        )
        response = messaging.send(message)
        return f"Success: {response}"

    def send_email(self, user, notification):
        if not user.email:
            raise ValueError("No email address for user")
        subject = f"Vaccination {notification.get_notification_type_display()}: {notification.title}"
        sent = send_mail(subject, notification.body, settings.DEFAULT_FROM_EMAIL, [user.email])
        if not sent:
            raise RuntimeError("Mail backend accepted no messages")
        return f"Email sent to {user.email}"

    def send_sms(self, user, notification):
        if not user.phone:
            raise ValueError("No phone number for user")
        client = self._get_twilio_client()
        from_number = getattr(settings, 'TWILIO_PHONE_NUMBER', None)
        if client is None or not from_number:
            raise RuntimeError("Twilio is not configured")

        message = client.messages.create(
            body=f"Hello {user.first_name or user.username}, {notification.body} - Vaccination Tracking",
            from_=from_number,
            to=user.phone,
        )
        return f"SMS sid {message.sid}"

    def _get_twilio_client(self):
        if self._twilio_client is None:
            sid = getattr(settings, 'TWILIO_ACCOUNT_SID', None)
            token = getattr(settings, 'TWILIO_AUTH_TOKEN', None)
            if sid and token:
                from twilio.rest import Client
                self._twilio_client = Client(sid, token)
        return self._twilio_client
