"""Client notifications: channels, dispatch, preferences and reminders.

Sending is best effort. A failed or refused send is reported as ``False``
and logged; it never undoes the booking change that triggered it.
"""
import time
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import requests

from booking import config
from booking.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from booking.http_client import create_http_session, post_json
from booking.logging_config import get_logger
from booking.models import Appointment, AppointmentStatus, NotificationPreferences, WhatsAppConfig
from booking.storage import KeyValueStore, load_model, save_model

logger = get_logger(__name__)


def confirmation_message(appointment: Appointment) -> str:
    return (
        f"Hello {appointment.client.name}, your appointment for {appointment.service.name} "
        f"is confirmed for {appointment.starts_at:%Y-%m-%d %H:%M}. Thank you for booking with us!"
    )


def cancellation_message(appointment: Appointment) -> str:
    return (
        f"Hello {appointment.client.name}, your appointment for {appointment.service.name} "
        f"on {appointment.starts_at:%Y-%m-%d %H:%M} has been cancelled. "
        f"Please contact us for more information."
    )


def reminder_message(appointment: Appointment) -> str:
    return (
        f"Hello {appointment.client.name}, this is a reminder of your {appointment.service.name} "
        f"appointment on {appointment.starts_at:%Y-%m-%d} at {appointment.starts_at:%H:%M}. "
        f"We look forward to seeing you!"
    )


class EmailNotifier:
    """Simulated email channel: logs the message and reports success."""

    channel = "email"

    def __init__(self, delay_seconds: float = 0.0, sleep: Callable[[float], None] = time.sleep):
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def _send(self, kind: str, appointment: Appointment, message: str) -> bool:
        if self.delay_seconds:
            self._sleep(self.delay_seconds)
        logger.info(
            "email_sent",
            kind=kind,
            appointment_id=appointment.id,
            recipient=appointment.client.email,
            message=message,
        )
        return True

    def send_confirmation(self, appointment: Appointment) -> bool:
        return self._send("confirmation", appointment, confirmation_message(appointment))

    def send_cancellation(self, appointment: Appointment) -> bool:
        return self._send("cancellation", appointment, cancellation_message(appointment))

    def send_reminder(self, appointment: Appointment) -> bool:
        return self._send("reminder", appointment, reminder_message(appointment))


class WhatsAppNotifier:
    """
    WhatsApp channel backed by an HTTP messaging provider.

    The provider configuration is persisted; without it (or without a
    client phone number) sends report ``False``.
    """

    channel = "whatsapp"

    def __init__(
        self,
        store: KeyValueStore,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.store = store
        self.session = session or create_http_session()
        self.breaker = breaker or CircuitBreaker("whatsapp", failure_threshold=5, reset_timeout=60)

    def set_config(self, whatsapp_config: WhatsAppConfig) -> None:
        save_model(self.store, config.WHATSAPP_CONFIG_KEY, whatsapp_config)
        logger.info("whatsapp_configured", sender_id=whatsapp_config.sender_id)

    def get_config(self) -> Optional[WhatsAppConfig]:
        return load_model(self.store, config.WHATSAPP_CONFIG_KEY, WhatsAppConfig)

    def is_configured(self) -> bool:
        return self.get_config() is not None

    def send_message(self, phone: Optional[str], message: str) -> bool:
        whatsapp_config = self.get_config()
        if whatsapp_config is None:
            logger.warning("whatsapp_not_configured")
            return False
        if not phone:
            logger.info("whatsapp_skipped", reason="missing_phone")
            return False

        url = f"{whatsapp_config.base_url.rstrip('/')}/send"
        payload = {"from": whatsapp_config.sender_id, "to": phone, "text": message}
        headers = {"Authorization": f"Bearer {whatsapp_config.api_key}"}

        try:
            self.breaker.call(post_json, self.session, url, payload, headers=headers)
        except CircuitBreakerOpen as e:
            logger.warning("whatsapp_refused", reason=str(e))
            return False
        except requests.exceptions.RequestException as e:
            logger.error("whatsapp_failed", error=str(e))
            return False

        logger.info("whatsapp_sent", to=phone)
        return True

    def send_confirmation(self, appointment: Appointment) -> bool:
        return self.send_message(appointment.client.phone, confirmation_message(appointment))

    def send_cancellation(self, appointment: Appointment) -> bool:
        return self.send_message(appointment.client.phone, cancellation_message(appointment))

    def send_reminder(self, appointment: Appointment) -> bool:
        return self.send_message(appointment.client.phone, reminder_message(appointment))


class NotificationDispatcher:
    """Fans a notification out to every channel; delivered if any channel succeeded."""

    def __init__(self, channels: Iterable):
        self.channels = list(channels)

    def _dispatch(self, kind: str, appointment: Appointment) -> bool:
        delivered = False
        for channel in self.channels:
            name = getattr(channel, "channel", type(channel).__name__)
            try:
                sent = getattr(channel, f"send_{kind}")(appointment)
            except Exception:
                logger.exception("notification_failed", kind=kind, channel=name, appointment_id=appointment.id)
                continue
            if not sent:
                logger.info("notification_not_delivered", kind=kind, channel=name, appointment_id=appointment.id)
            delivered = delivered or bool(sent)
        return delivered

    def send_confirmation(self, appointment: Appointment) -> bool:
        return self._dispatch("confirmation", appointment)

    def send_cancellation(self, appointment: Appointment) -> bool:
        return self._dispatch("cancellation", appointment)

    def send_reminder(self, appointment: Appointment) -> bool:
        return self._dispatch("reminder", appointment)


class NotificationPreferencesStore:
    """Per-user notification preferences."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str) -> str:
        return f"{config.NOTIFICATION_PREFS_KEY_PREFIX}{user_id}"

    def get(self, user_id: str) -> NotificationPreferences:
        return load_model(self.store, self._key(user_id), NotificationPreferences) or NotificationPreferences()

    def save(self, user_id: str, preferences: NotificationPreferences) -> None:
        save_model(self.store, self._key(user_id), preferences)

    def update(
        self,
        user_id: str,
        email: Optional[bool] = None,
        whatsapp: Optional[bool] = None,
        reminder_hours: Optional[int] = None,
    ) -> NotificationPreferences:
        current = self.get(user_id).model_dump()
        for field, value in (("email", email), ("whatsapp", whatsapp), ("reminder_hours", reminder_hours)):
            if value is not None:
                current[field] = value
        preferences = NotificationPreferences(**current)
        self.save(user_id, preferences)
        return preferences


def appointments_due_for_reminder(
    appointments: Iterable[Appointment],
    email: str,
    preferences: NotificationPreferences,
    now: datetime,
) -> List[Appointment]:
    """Scheduled appointments of ``email`` starting within the reminder window."""
    window_seconds = preferences.reminder_hours * 3600
    due = []
    for apt in appointments:
        if apt.status != AppointmentStatus.SCHEDULED:
            continue
        if apt.client.email.lower() != email.lower():
            continue
        seconds_until = (apt.starts_at - now).total_seconds()
        if 0 < seconds_until <= window_seconds:
            due.append(apt)
    return sorted(due, key=lambda apt: apt.starts_at)
