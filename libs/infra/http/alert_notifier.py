"""Outbound alert delivery over HTTP."""

from __future__ import annotations

import json
import logging
from urllib import request
from urllib.error import HTTPError, URLError

from libs.core.application.contracts import AlertPayload, CollaboratorError
from libs.core.domain.entities import AlertKind

logger = logging.getLogger(__name__)


class HttpAlertNotifier:
    """Posts alert payloads as JSON to an alert-dispatch endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        auth_token: str | None = None,
        timeout_sec: float = 15.0,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._auth_token = auth_token
        self._timeout_sec = timeout_sec

    def send_alert(self, kind: AlertKind, payload: AlertPayload) -> None:
        body = build_alert_body(kind=kind, payload=payload)
        try:
            _post_json(
                url=self._endpoint_url,
                payload=body,
                auth_token=self._auth_token,
                timeout_sec=self._timeout_sec,
            )
        except (HTTPError, URLError, OSError, ValueError) as error:
            raise CollaboratorError(f"{kind.value} delivery failed: {error}") from error
        logger.info("Sent %s for accident %s", kind.value, payload["accident_id"])


class LoggingAlertNotifier:
    """Used when no alert endpoint is configured."""

    def send_alert(self, kind: AlertKind, payload: AlertPayload) -> None:
        logger.warning(
            "No alert endpoint configured; %s for accident %s not delivered "
            "(danger=%.1f, location=%.6f,%.6f)",
            kind.value,
            payload["accident_id"],
            payload["danger_percentage"],
            payload["latitude"],
            payload["longitude"],
        )


def build_alert_body(kind: AlertKind, payload: AlertPayload) -> dict[str, object]:
    contacts = payload["contacts"]
    return {
        "userEmail": payload["user_email"],
        "contact1": contacts[0] if contacts else "",
        "contact2": contacts[1] if len(contacts) > 1 else "",
        "latitude": payload["latitude"],
        "longitude": payload["longitude"],
        "dangerPercentage": payload["danger_percentage"],
        "accidentId": payload["accident_id"],
        "vehicleId": payload["vehicle_id"],
        "emailType": kind.value,
    }


def _post_json(
    url: str,
    payload: dict[str, object],
    auth_token: str | None,
    timeout_sec: float,
) -> dict[str, object]:
    headers = {"Content-Type": "application/json"}
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"
    req = request.Request(
        url=url,
        data=json.dumps(payload).encode("utf-8"),
        headers=headers,
        method="POST",
    )
    with request.urlopen(req, timeout=timeout_sec) as response:
        raw = response.read().decode("utf-8")
    return json.loads(raw) if raw.strip() else {}
