"""IoT bridge use-cases: device webhook, feed reads, liveness and syncing readings into records."""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any

from ..config import settings
from ..domain_errors import PersistenceError, bad_request, not_found
from ..persistence.repositories import Repositories
from ..schemas import IoTSyncRequest, IoTWebhookPayload
from ..services.approval import now_utc
from ..services.iot_feed import IoTFeedClient, IoTFeedError
from ..services.liveness import RFID_CHANNEL, LivenessStoreError, LivenessTracker
from .weight_records import parse_weight

logger = logging.getLogger(__name__)

IOT_RECORDER = "IoT_System"


def is_valid_reading(weight: float) -> bool:
    return settings.IOT_VALID_MIN_WEIGHT <= weight <= settings.IOT_VALID_MAX_WEIGHT


def _batch_number() -> str:
    return f"IOT_{int(time.time() * 1000)}"


def _material_name(repos: Repositories, material_id: int) -> str | None:
    material = repos.materials.find_by_id(material_id)
    return material["name"] if material else None


def _insert_device_record(
    *,
    repos: Repositories,
    device_id: str,
    weight: float,
    material_id: int,
    notes: str,
    created_at: datetime,
    user_id: int | None = None,
) -> dict:
    now = now_utc()
    return repos.records.insert(
        {
            "item_id": material_id,
            "item_name": _material_name(repos, material_id),
            "total_weight": weight,
            "unit": "kg",
            "source": f"IoT_{device_id}",
            "destination": settings.IOT_DEFAULT_DESTINATION,
            "batch_number": _batch_number(),
            "notes": notes,
            "status": "pending",
            "recorded_by": IOT_RECORDER,
            "user_id": user_id,
            "timestamp": created_at,
            "created_at": created_at,
            "updated_at": now,
        }
    )


def _best_effort_liveness(update, *args, **kwargs) -> None:
    """Liveness is advisory; a store outage never fails a stored reading."""
    try:
        update(*args, **kwargs)
    except LivenessStoreError:
        logger.warning("Liveness update via %s skipped", update.__name__, exc_info=True)


def _log_rfid_scan(*, repos: Repositories, rfid_id: str, device_id: str, record_id: int, scan_time: datetime) -> None:
    """Secondary write; a failure here never fails the reading itself."""
    try:
        repos.rfid_logs.insert(
            {
                "rfid_id": rfid_id,
                "device_id": device_id,
                "weight_record_id": record_id,
                "scan_time": scan_time,
            }
        )
    except PersistenceError:
        logger.exception("RFID log insert failed for record %s (rfid %s)", record_id, rfid_id)


def ingest_webhook_use_case(
    *,
    repos: Repositories,
    payload: IoTWebhookPayload,
    tracker: LivenessTracker,
) -> dict:
    """Store a device-pushed reading as a pending weight record."""
    if not payload.device_id or payload.weight in (None, "", 0):
        raise bad_request("IOT_FIELDS_REQUIRED", "device_id and weight are required")

    weight = parse_weight(payload.weight)
    if weight is None or weight <= 0:
        raise bad_request("INVALID_WEIGHT", "Invalid weight value")

    received_at = now_utc()
    created_at = payload.timestamp or received_at
    record = _insert_device_record(
        repos=repos,
        device_id=payload.device_id,
        weight=weight,
        material_id=settings.IOT_DEFAULT_MATERIAL_ID,
        notes=f"Auto-recorded from {payload.device_id}",
        created_at=created_at,
    )

    if payload.rfid_id:
        _log_rfid_scan(
            repos=repos,
            rfid_id=payload.rfid_id,
            device_id=payload.device_id,
            record_id=record["id"],
            scan_time=created_at,
        )
        _best_effort_liveness(tracker.observe_rfid_scan, at=received_at)

    _best_effort_liveness(tracker.observe, payload.device_id, weight, at=received_at)
    logger.info("IoT reading %.3f kg from %s stored as record %s", weight, payload.device_id, record["id"])
    return {
        "message": "Data saved successfully",
        "weight_record_id": record["id"],
        "record": record,
        "timestamp": received_at,
    }


def current_weight_use_case(*, feed: IoTFeedClient, tracker: LivenessTracker, device_id: str | None = None) -> dict:
    device = device_id or settings.IOT_DEFAULT_DEVICE_ID
    raw = feed.read_latest_weight(device)
    if raw is None or raw == "":
        raise not_found("WEIGHT_DATA_NOT_FOUND", "No weight data found")

    weight = parse_weight(raw)
    if weight is None or weight < 0:
        raise bad_request("INVALID_WEIGHT_DATA", "Invalid weight data")

    try:
        state = tracker.get(device)
        if state is None or state.current_weight != weight:
            tracker.observe(device, weight)
    except LivenessStoreError:
        logger.warning("Liveness update for %s skipped", device, exc_info=True)
    return {
        "weight": weight,
        "device_id": device,
        "timestamp": now_utc(),
        "is_valid": is_valid_reading(weight),
    }


def iot_status_use_case(*, tracker: LivenessTracker) -> dict:
    try:
        tracker.tick()
        states = tracker.snapshot()
        rfid = tracker.get(RFID_CHANNEL)
    except LivenessStoreError:
        # Without the store nothing is known to be online.
        logger.warning("Liveness store unavailable; reporting all devices offline", exc_info=True)
        states, rfid = {}, None

    devices: dict[str, dict[str, Any]] = {}
    for device_id in dict.fromkeys([*settings.iot_device_ids, *states.keys()]):
        state = states.get(device_id)
        devices[device_id] = {
            "status": "online" if state and state.connected else "offline",
            "last_update": state.last_update if state else None,
            "current_weight": state.current_weight if state else None,
        }

    return {
        "feed_connected": any(device["status"] == "online" for device in devices.values()),
        "devices": devices,
        "rfid_system": {
            "status": "active" if rfid and rfid.connected else "idle",
            "last_scan": rfid.last_update if rfid else None,
        },
    }


def sync_reading_use_case(
    *,
    repos: Repositories,
    feed: IoTFeedClient,
    tracker: LivenessTracker,
    data: IoTSyncRequest,
    current_user,
) -> dict:
    """Manual sync: store the given (or currently published) reading as a record."""
    device = data.device_id or settings.IOT_DEFAULT_DEVICE_ID
    weight = parse_weight(data.weight) if data.weight not in (None, "") else parse_weight(feed.read_latest_weight(device))
    if weight is None or weight <= 0:
        raise bad_request("INVALID_WEIGHT", "No valid weight reading to sync")

    material_id = data.material_id or settings.IOT_DEFAULT_MATERIAL_ID
    if repos.materials.find_by_id(material_id) is None:
        raise not_found("MATERIAL_NOT_FOUND", f"Material with ID {material_id} not found")

    synced_at = now_utc()
    record = _insert_device_record(
        repos=repos,
        device_id=device,
        weight=weight,
        material_id=material_id,
        notes="Synced from IoT scale",
        created_at=synced_at,
        user_id=current_user.id,
    )
    if data.rfid_id:
        _log_rfid_scan(repos=repos, rfid_id=data.rfid_id, device_id=device, record_id=record["id"], scan_time=synced_at)
        _best_effort_liveness(tracker.observe_rfid_scan, at=synced_at)

    _best_effort_liveness(tracker.mark_synced, device, weight)
    return {"message": "Data synced successfully", "synced_at": synced_at, "weight_record_id": record["id"]}


def should_auto_sync(weight: float, last_synced: float | None) -> bool:
    """Large enough move from the last synced value, and above the noise floor."""
    moved = abs(weight - (last_synced or 0.0)) >= settings.IOT_AUTO_SYNC_THRESHOLD
    return moved and weight > settings.IOT_AUTO_SYNC_MIN_WEIGHT


def poll_iot_feed_use_case(
    *,
    feed: IoTFeedClient,
    tracker: LivenessTracker,
    repos: Repositories | None = None,
    device_ids: list[str] | None = None,
) -> dict:
    """One polling pass: observe changed readings, expire quiet devices, auto-sync."""
    observed: list[str] = []
    synced: list[int] = []
    for device_id in device_ids or settings.iot_device_ids:
        try:
            weight = parse_weight(feed.read_latest_weight(device_id))
        except IoTFeedError:
            logger.warning("IoT feed read failed for %s", device_id)
            continue
        if weight is None:
            continue

        state = tracker.get(device_id)
        if state is None or state.current_weight != weight:
            state = tracker.observe(device_id, weight)
            observed.append(device_id)

        if settings.IOT_AUTO_SYNC_ENABLED and repos is not None and should_auto_sync(weight, state.last_synced_weight):
            record = _insert_device_record(
                repos=repos,
                device_id=device_id,
                weight=weight,
                material_id=settings.IOT_AUTO_SYNC_MATERIAL_ID,
                notes="Auto-synced from IoT scale",
                created_at=now_utc(),
            )
            tracker.mark_synced(device_id, weight)
            synced.append(record["id"])

    disconnected = tracker.tick()
    return {"observed": observed, "disconnected": disconnected, "synced_record_ids": synced}
