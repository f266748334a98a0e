"""Device connection liveness for IoT scales.

A device is ``connected`` while it keeps publishing readings. Every observed
reading stamps ``last_update``; ``tick`` flips any device that has been quiet
for longer than the timeout to disconnected. State is held in a store so the
Celery poller and the API processes can share it through Redis.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Protocol

import redis
from redis.exceptions import RedisError

from ..config import settings

logger = logging.getLogger(__name__)

RFID_CHANNEL = "rfid_system"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class DeviceLiveness:
    device_id: str
    connected: bool = False
    last_update: datetime | None = None
    current_weight: float | None = None
    last_synced_weight: float | None = None

    def to_json(self) -> str:
        data = asdict(self)
        data["last_update"] = self.last_update.isoformat() if self.last_update else None
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "DeviceLiveness":
        data = json.loads(raw)
        if data.get("last_update"):
            data["last_update"] = datetime.fromisoformat(data["last_update"])
        return cls(**data)


class LivenessStoreError(Exception):
    """The shared liveness store could not be read or written."""


class LivenessStore(Protocol):
    def get(self, device_id: str) -> DeviceLiveness | None:
        ...

    def put(self, state: DeviceLiveness) -> None:
        ...

    def all(self) -> list[DeviceLiveness]:
        ...


class InMemoryLivenessStore:
    """Per-process store."""

    def __init__(self) -> None:
        self._states: dict[str, DeviceLiveness] = {}

    def get(self, device_id: str) -> DeviceLiveness | None:
        return self._states.get(device_id)

    def put(self, state: DeviceLiveness) -> None:
        self._states[state.device_id] = state

    def all(self) -> list[DeviceLiveness]:
        return list(self._states.values())


class RedisLivenessStore:
    """Shared store: one hash field per device, JSON encoded."""

    def __init__(self, client, key: str = "iot:liveness") -> None:
        self.client = client
        self.key = key

    def get(self, device_id: str) -> DeviceLiveness | None:
        try:
            raw = self.client.hget(self.key, device_id)
        except RedisError as exc:
            raise LivenessStoreError(f"read {device_id}: {exc}") from exc
        return DeviceLiveness.from_json(raw) if raw else None

    def put(self, state: DeviceLiveness) -> None:
        try:
            self.client.hset(self.key, state.device_id, state.to_json())
        except RedisError as exc:
            raise LivenessStoreError(f"write {state.device_id}: {exc}") from exc

    def all(self) -> list[DeviceLiveness]:
        try:
            raw_states = self.client.hgetall(self.key).values()
        except RedisError as exc:
            raise LivenessStoreError(f"read all: {exc}") from exc
        return [DeviceLiveness.from_json(raw) for raw in raw_states]


class LivenessTracker:
    def __init__(
        self,
        store: LivenessStore,
        *,
        timeout_seconds: int = 10,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.timeout = timedelta(seconds=timeout_seconds)
        self.clock = clock

    def observe(self, device_id: str, weight: float | None = None, at: datetime | None = None) -> DeviceLiveness:
        """Mark the device connected as of ``at`` (default: now)."""
        state = self.store.get(device_id) or DeviceLiveness(device_id=device_id)
        state.connected = True
        state.last_update = _as_utc(at) or self.clock()
        if weight is not None:
            state.current_weight = weight
        self.store.put(state)
        return state

    def observe_rfid_scan(self, at: datetime | None = None) -> DeviceLiveness:
        return self.observe(RFID_CHANNEL, at=at)

    def mark_synced(self, device_id: str, weight: float) -> None:
        state = self.store.get(device_id) or DeviceLiveness(device_id=device_id)
        state.last_synced_weight = weight
        self.store.put(state)

    def tick(self, now: datetime | None = None) -> list[str]:
        """Disconnect devices quiet for longer than the timeout; return their ids."""
        now = _as_utc(now) or self.clock()
        dropped: list[str] = []
        for state in self.store.all():
            if not state.connected or state.last_update is None:
                continue
            if now - _as_utc(state.last_update) > self.timeout:
                state.connected = False
                self.store.put(state)
                dropped.append(state.device_id)
        if dropped:
            logger.info("IoT devices disconnected: %s", ", ".join(sorted(dropped)))
        return dropped

    def get(self, device_id: str) -> DeviceLiveness | None:
        return self.store.get(device_id)

    def snapshot(self) -> dict[str, DeviceLiveness]:
        return {state.device_id: state for state in self.store.all() if state.device_id != RFID_CHANNEL}


@lru_cache()
def get_liveness_tracker() -> LivenessTracker:
    """Process-wide tracker built from IOT_LIVENESS_STORE.

    The Redis client connects lazily, so an outage at first use is not cached;
    callers handle LivenessStoreError per operation.
    """
    if settings.IOT_LIVENESS_STORE.lower() == "redis":
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
        store: LivenessStore = RedisLivenessStore(client)
    else:
        store = InMemoryLivenessStore()
    return LivenessTracker(store, timeout_seconds=settings.IOT_LIVENESS_TIMEOUT_SECONDS)
