"""Client for the scale telemetry feed (Firebase Realtime Database REST layout).

Devices publish their latest reading under ``devices/<id>/berat_terakhir``.
Values are read with plain REST GETs (``<path>.json``), so no Firebase SDK is needed.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from ..config import settings
from ..domain_errors import DomainError

logger = logging.getLogger(__name__)


class IoTFeedError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(
            code="IOT_FEED_UNAVAILABLE",
            http_status=502,
            message="IoT feed unavailable",
            details={"reason": message},
        )


class IoTFeedClient:
    def __init__(
        self,
        base_url: str | None,
        *,
        auth_token: str | None = None,
        timeout: float = 5,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def _get(self, path: str) -> Any:
        if not self.configured:
            raise IoTFeedError("IOT_FEED_URL is not configured")

        params = {"auth": self.auth_token} if self.auth_token else None
        try:
            response = self.session.get(f"{self.base_url}/{path}.json", params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("IoT feed request for %s failed: %s", path, exc)
            raise IoTFeedError(str(exc)) from exc

        if response.status_code >= 400:
            reason = f"HTTP_{response.status_code}: {response.text[:200]}"
            logger.warning("IoT feed rejected %s: %s", path, reason)
            raise IoTFeedError(reason)
        return response.json()

    def read_latest_weight(self, device_id: str) -> Any:
        """Raw latest value for ``device_id``; None when the device never published."""
        return self._get(f"devices/{device_id}/berat_terakhir")


def get_iot_feed() -> IoTFeedClient:
    return IoTFeedClient(
        settings.IOT_FEED_URL,
        auth_token=settings.IOT_FEED_AUTH_TOKEN,
        timeout=settings.IOT_FEED_TIMEOUT_SECONDS,
    )
