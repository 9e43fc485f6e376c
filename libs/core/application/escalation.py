"""Accident lifecycle: pending -> confirmed | cancelled, then cooldown.

Every transition out of ``PENDING`` happens under one lock and checks that the
event being resolved is still the active one, so the escalation timer and a
user cancellation can never both resolve the same accident. Collaborator calls
(persistence updates, alerts) run after the lock is released.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Callable

from libs.core.application import events as event_types
from libs.core.application.contracts import (
    AccidentRepository,
    AlertNotifier,
    AlertPayload,
    CollaboratorError,
    ScheduledCall,
    Scheduler,
    SettingsRepository,
)
from libs.core.application.events import EventBus
from libs.core.domain.entities import (
    AccidentEvent,
    AccidentSnapshot,
    AccidentStatus,
    AlertKind,
    UserSettings,
)

logger = logging.getLogger(__name__)

CONFIRMATION_WINDOW_SEC = 30.0
REARM_COOLDOWN_SEC = 5.0

DEFAULT_USER_EMAIL = "telegram-user"
DEFAULT_PRIMARY_CONTACT = "telegram-group"


class EscalationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class EscalationTimings:
    confirmation_window_sec: float = CONFIRMATION_WINDOW_SEC
    rearm_cooldown_sec: float = REARM_COOLDOWN_SEC


class EscalationStateMachine:
    """Owns at most one active accident for a vehicle stream."""

    def __init__(
        self,
        vehicle_id: str,
        accident_repository: AccidentRepository,
        notifier: AlertNotifier,
        settings_repository: SettingsRepository,
        scheduler: Scheduler,
        events: EventBus,
        timings: EscalationTimings | None = None,
        on_cancelled: Callable[[], None] | None = None,
    ) -> None:
        self._vehicle_id = vehicle_id
        self._accidents = accident_repository
        self._notifier = notifier
        self._settings = settings_repository
        self._scheduler = scheduler
        self._events = events
        self._timings = timings or EscalationTimings()
        self._on_cancelled = on_cancelled

        self._lock = threading.Lock()
        self._state = EscalationState.IDLE
        self._triggered = False
        self._active: AccidentEvent | None = None
        self._active_payload: AlertPayload | None = None
        self._timeout_call: ScheduledCall | None = None
        self._rearm_call: ScheduledCall | None = None

    @property
    def state(self) -> EscalationState:
        with self._lock:
            return self._state

    @property
    def active_event(self) -> AccidentEvent | None:
        with self._lock:
            return self._active

    @property
    def is_armed(self) -> bool:
        with self._lock:
            return not self._triggered

    def try_trigger(self, snapshot: AccidentSnapshot) -> AccidentEvent | None:
        """Open a pending accident unless one is active or cooling down."""
        with self._lock:
            if self._active is not None or self._triggered:
                logger.debug(
                    "Trigger ignored for %s: state=%s",
                    self._vehicle_id,
                    self._state.value,
                )
                return None
            self._triggered = True

        try:
            settings = self._settings.get()
            event = self._accidents.create(snapshot)
        except CollaboratorError as error:
            with self._lock:
                self._triggered = False
            logger.warning(
                "Accident record creation failed for %s: %s", self._vehicle_id, error
            )
            self._events.publish(
                event_types.ACCIDENT_PERSISTENCE_FAILED,
                vehicle_id=self._vehicle_id,
                stage="create",
                error=str(error),
            )
            return None

        payload = self._build_payload(event, settings)
        with self._lock:
            self._active = event
            self._active_payload = payload
            self._state = EscalationState.PENDING
            self._timeout_call = self._scheduler.call_later(
                self._timings.confirmation_window_sec,
                partial(self._on_timeout, event.accident_id),
            )

        logger.info(
            "ACCIDENT DETECTED (%s) vehicle=%s accident=%s danger=%.1f",
            event.vehicle_type.value.upper(),
            self._vehicle_id,
            event.accident_id,
            event.danger_percentage,
        )
        self._publish_lifecycle(event_types.ACCIDENT_PENDING, event)
        self._notify(AlertKind.USER_CONFIRMATION, payload)
        return event

    def cancel(self) -> AccidentEvent | None:
        """Resolve the pending accident as cancelled; no-op if none is pending."""
        with self._lock:
            event = self._active
            if event is None or self._state != EscalationState.PENDING:
                logger.warning(
                    "Cancel ignored for %s: no pending accident (state=%s)",
                    self._vehicle_id,
                    self._state.value,
                )
                return None
            timeout_call = self._release_active()
            event.status = AccidentStatus.CANCELLED
            event.user_responded = True
            event.resolved_at = _utc_now_iso()

        if timeout_call is not None:
            timeout_call.cancel()

        logger.info("Accident %s cancelled by user", event.accident_id)
        self._persist_resolution(event)
        if self._on_cancelled is not None:
            self._on_cancelled()
        self._schedule_rearm()
        self._publish_lifecycle(event_types.ACCIDENT_CANCELLED, event)
        return event

    def shutdown(self) -> None:
        """Drop outstanding timers; the active record stays as persisted.

        A machine with no active accident is left armed, since the dropped
        re-arm call would otherwise never release the latch.
        """
        with self._lock:
            calls = [self._timeout_call, self._rearm_call]
            self._timeout_call = None
            self._rearm_call = None
            if self._active is None:
                self._triggered = False
                self._state = EscalationState.IDLE
        for call in calls:
            if call is not None:
                call.cancel()

    def _on_timeout(self, accident_id: str) -> None:
        with self._lock:
            event = self._active
            if (
                event is None
                or event.accident_id != accident_id
                or self._state != EscalationState.PENDING
            ):
                return
            payload = self._active_payload
            self._release_active()
            event.status = AccidentStatus.CONFIRMED
            event.resolved_at = _utc_now_iso()

        logger.info(
            "No response for accident %s; sending emergency alert", event.accident_id
        )
        if payload is not None:
            event.emails_sent = self._notify(AlertKind.EMERGENCY_ALERT, payload)
        self._persist_resolution(event)
        self._schedule_rearm()
        self._publish_lifecycle(event_types.ACCIDENT_CONFIRMED, event)

    def _release_active(self) -> ScheduledCall | None:
        # Caller holds the lock.
        timeout_call = self._timeout_call
        self._timeout_call = None
        self._active = None
        self._active_payload = None
        self._state = EscalationState.COOLDOWN
        return timeout_call

    def _schedule_rearm(self) -> None:
        with self._lock:
            self._rearm_call = self._scheduler.call_later(
                self._timings.rearm_cooldown_sec,
                self._rearm,
            )

    def _rearm(self) -> None:
        with self._lock:
            if self._active is not None:
                return
            self._triggered = False
            self._state = EscalationState.IDLE
            self._rearm_call = None
        logger.info("Accident detection re-armed for %s", self._vehicle_id)
        self._events.publish(event_types.ACCIDENT_REARMED, vehicle_id=self._vehicle_id)

    def _build_payload(
        self, event: AccidentEvent, settings: UserSettings | None
    ) -> AlertPayload:
        user_email = DEFAULT_USER_EMAIL
        primary = DEFAULT_PRIMARY_CONTACT
        secondary = ""
        if settings is not None:
            user_email = settings.user_email or DEFAULT_USER_EMAIL
            primary = settings.emergency_contact_1 or DEFAULT_PRIMARY_CONTACT
            secondary = settings.emergency_contact_2 or ""

        return {
            "accident_id": event.accident_id,
            "vehicle_id": event.vehicle_id,
            "latitude": event.location.latitude,
            "longitude": event.location.longitude,
            "danger_percentage": event.danger_percentage,
            "user_email": user_email,
            "contacts": [contact for contact in (primary, secondary) if contact],
        }

    def _notify(self, kind: AlertKind, payload: AlertPayload) -> bool:
        try:
            self._notifier.send_alert(kind, payload)
        except CollaboratorError as error:
            logger.warning(
                "Failed to send %s for accident %s: %s",
                kind.value,
                payload["accident_id"],
                error,
            )
            self._events.publish(
                event_types.ACCIDENT_NOTIFICATION_FAILED,
                vehicle_id=self._vehicle_id,
                accident_id=payload["accident_id"],
                kind=kind.value,
                error=str(error),
            )
            return False
        return True

    def _persist_resolution(self, event: AccidentEvent) -> None:
        try:
            self._accidents.update_status(
                accident_id=event.accident_id,
                update={
                    "status": event.status,
                    "user_responded": event.user_responded,
                    "emails_sent": event.emails_sent,
                    "resolved_at": event.resolved_at,
                },
            )
        except CollaboratorError as error:
            logger.warning(
                "Failed to persist %s status for accident %s: %s",
                event.status.value,
                event.accident_id,
                error,
            )
            self._events.publish(
                event_types.ACCIDENT_PERSISTENCE_FAILED,
                vehicle_id=self._vehicle_id,
                accident_id=event.accident_id,
                stage="update_status",
                error=str(error),
            )

    def _publish_lifecycle(self, event_type: str, event: AccidentEvent) -> None:
        self._events.publish(
            event_type,
            vehicle_id=self._vehicle_id,
            accident_id=event.accident_id,
            status=event.status.value,
            danger_percentage=event.danger_percentage,
            latitude=event.location.latitude,
            longitude=event.location.longitude,
        )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
