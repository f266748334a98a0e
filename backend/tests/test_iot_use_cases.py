from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from veroscale.config import settings
from veroscale.domain_errors import DomainError
from veroscale.schemas import IoTSyncRequest, IoTWebhookPayload
from veroscale.services.iot_feed import IoTFeedError
from veroscale.services.liveness import LivenessTracker, RedisLivenessStore
from veroscale.use_cases.iot import (
    current_weight_use_case,
    ingest_webhook_use_case,
    iot_status_use_case,
    poll_iot_feed_use_case,
    should_auto_sync,
    sync_reading_use_case,
)


class _FeedStub:
    def __init__(self, readings=None, failing=()):
        self.readings = readings or {}
        self.failing = set(failing)

    def read_latest_weight(self, device_id):
        if device_id in self.failing:
            raise IoTFeedError("connection refused")
        return self.readings.get(device_id)


def _user(*, id=1, role="operator"):
    return SimpleNamespace(id=id, role=role, name="Olga Operator", email="o@example.com")


@pytest.fixture(autouse=True)
def _iot_settings(monkeypatch):
    monkeypatch.setattr(settings, "IOT_DEFAULT_MATERIAL_ID", 1)
    monkeypatch.setattr(settings, "IOT_DEFAULT_DEVICE_ID", "esp32_timbangan_001")
    monkeypatch.setattr(settings, "IOT_DEVICE_IDS", "esp32_timbangan_001")
    monkeypatch.setattr(settings, "IOT_AUTO_SYNC_ENABLED", False)


def test_webhook_stores_pending_device_record(backend, repos, tracker) -> None:
    backend.seed("ref_items", id=1, name="Mixed Scrap", weight=1.0)
    stamp = datetime(2026, 4, 2, 9, 30, tzinfo=timezone.utc)

    result = ingest_webhook_use_case(
        repos=repos,
        payload=IoTWebhookPayload(device_id="esp32_a", weight="7.25", timestamp=stamp),
        tracker=tracker,
    )

    record = result["record"]
    assert result["weight_record_id"] == record["id"]
    assert record["status"] == "pending"
    assert record["total_weight"] == 7.25
    assert record["item_id"] == 1
    assert record["item_name"] == "Mixed Scrap"
    assert record["source"] == "IoT_esp32_a"
    assert record["destination"] == "Warehouse"
    assert record["batch_number"].startswith("IOT_")
    assert record["notes"] == "Auto-recorded from esp32_a"
    assert record["recorded_by"] == "IoT_System"
    assert record["created_at"] == stamp
    assert tracker.get("esp32_a").connected is True
    assert backend.tables["rfid_logs"] == []


def test_webhook_with_rfid_writes_scan_log(backend, repos, tracker) -> None:
    result = ingest_webhook_use_case(
        repos=repos, payload=IoTWebhookPayload(device_id="esp32_a", weight=3, rfid_id="CARD-9"), tracker=tracker
    )

    log = backend.tables["rfid_logs"][0]
    assert log["rfid_id"] == "CARD-9"
    assert log["device_id"] == "esp32_a"
    assert log["weight_record_id"] == result["weight_record_id"]


def test_webhook_survives_rfid_log_failure(backend, repos, tracker) -> None:
    backend.fail_on.add(("rfid_logs", "insert"))

    result = ingest_webhook_use_case(
        repos=repos, payload=IoTWebhookPayload(device_id="esp32_a", weight=3, rfid_id="CARD-9"), tracker=tracker
    )

    assert result["message"] == "Data saved successfully"
    assert len(backend.tables["weight_records"]) == 1


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"weight": 3}, "IOT_FIELDS_REQUIRED"),
        ({"device_id": "esp32_a"}, "IOT_FIELDS_REQUIRED"),
        ({"device_id": "esp32_a", "weight": 0}, "IOT_FIELDS_REQUIRED"),
        ({"device_id": "esp32_a", "weight": "abc"}, "INVALID_WEIGHT"),
        ({"device_id": "esp32_a", "weight": -2}, "INVALID_WEIGHT"),
    ],
)
def test_webhook_validation(backend, repos, tracker, payload, code) -> None:
    with pytest.raises(DomainError) as exc:
        ingest_webhook_use_case(repos=repos, payload=IoTWebhookPayload(**payload), tracker=tracker)

    assert exc.value.http_status == 400
    assert exc.value.code == code
    assert backend.tables["weight_records"] == []


@pytest.mark.parametrize(("raw", "valid"), [("0.01", True), ("1000", True), ("0.005", False), (1000.5, False)])
def test_current_weight_validity_window(tracker, raw, valid) -> None:
    result = current_weight_use_case(feed=_FeedStub({"esp32_timbangan_001": raw}), tracker=tracker)

    assert result["device_id"] == "esp32_timbangan_001"
    assert result["is_valid"] is valid


def test_current_weight_missing_is_404_and_garbage_is_400(tracker) -> None:
    with pytest.raises(DomainError) as exc:
        current_weight_use_case(feed=_FeedStub(), tracker=tracker, device_id="scale-x")
    assert exc.value.http_status == 404

    with pytest.raises(DomainError) as exc:
        current_weight_use_case(feed=_FeedStub({"scale-x": "-1"}), tracker=tracker, device_id="scale-x")
    assert exc.value.http_status == 400


def test_status_reports_configured_devices_offline_until_seen(tracker) -> None:
    result = iot_status_use_case(tracker=tracker)
    assert result["feed_connected"] is False
    assert result["devices"]["esp32_timbangan_001"]["status"] == "offline"
    assert result["rfid_system"] == {"status": "idle", "last_scan": None}

    tracker.observe("esp32_timbangan_001", 2.0)
    result = iot_status_use_case(tracker=tracker)
    assert result["feed_connected"] is True
    assert result["devices"]["esp32_timbangan_001"]["current_weight"] == 2.0


def test_manual_sync_uses_feed_reading_when_weight_missing(backend, repos, tracker) -> None:
    backend.seed("ref_items", id=1, name="Mixed Scrap", weight=1.0)

    result = sync_reading_use_case(
        repos=repos,
        feed=_FeedStub({"esp32_timbangan_001": "4.4"}),
        tracker=tracker,
        data=IoTSyncRequest.model_validate({"deviceId": "esp32_timbangan_001"}),
        current_user=_user(),
    )

    record = backend.tables["weight_records"][0]
    assert result["weight_record_id"] == record["id"]
    assert record["total_weight"] == 4.4
    assert record["user_id"] == 1
    assert tracker.get("esp32_timbangan_001").last_synced_weight == 4.4


def test_manual_sync_unknown_material_is_404(repos, tracker) -> None:
    with pytest.raises(DomainError) as exc:
        sync_reading_use_case(
            repos=repos,
            feed=_FeedStub(),
            tracker=tracker,
            data=IoTSyncRequest.model_validate({"deviceId": "d", "weight": 2, "materialId": 9}),
            current_user=_user(),
        )

    assert exc.value.http_status == 404


@pytest.mark.parametrize(
    ("weight", "last", "expected"),
    [(0.5, None, True), (0.5, 0.45, False), (0.75, 0.5, True), (0.04, None, False)],
)
def test_auto_sync_threshold(weight, last, expected) -> None:
    assert should_auto_sync(weight, last) is expected


def test_poll_observes_changes_and_auto_syncs(monkeypatch, backend, repos, tracker) -> None:
    monkeypatch.setattr(settings, "IOT_AUTO_SYNC_ENABLED", True)
    monkeypatch.setattr(settings, "IOT_AUTO_SYNC_MATERIAL_ID", 1)
    feed = _FeedStub({"a": "1.50", "b": "0.02"}, failing={"c"})

    first = poll_iot_feed_use_case(feed=feed, tracker=tracker, repos=repos, device_ids=["a", "b", "c"])
    assert first["observed"] == ["a", "b"]
    assert len(first["synced_record_ids"]) == 1

    second = poll_iot_feed_use_case(feed=feed, tracker=tracker, repos=repos, device_ids=["a", "b", "c"])
    assert second["observed"] == []
    assert second["synced_record_ids"] == []
    assert len(backend.tables["weight_records"]) == 1
    assert backend.tables["weight_records"][0]["notes"] == "Auto-synced from IoT scale"


class _DownRedis:
    def hget(self, key, field):
        raise RedisConnectionError("redis down")

    def hset(self, key, field, value):
        raise RedisConnectionError("redis down")

    def hgetall(self, key):
        raise RedisConnectionError("redis down")


@pytest.fixture
def down_tracker() -> LivenessTracker:
    return LivenessTracker(RedisLivenessStore(_DownRedis()), timeout_seconds=10)


def test_webhook_keeps_stored_reading_when_liveness_store_is_down(backend, repos, down_tracker) -> None:
    backend.seed("ref_items", id=1, name="Mixed Scrap", weight=1.0)

    result = ingest_webhook_use_case(
        repos=repos,
        payload=IoTWebhookPayload(device_id="esp32_a", weight=4, rfid_id="RF-1"),
        tracker=down_tracker,
    )

    assert result["message"] == "Data saved successfully"
    assert len(backend.tables["weight_records"]) == 1
    assert len(backend.tables["rfid_logs"]) == 1


def test_status_reports_offline_when_liveness_store_is_down(down_tracker) -> None:
    status = iot_status_use_case(tracker=down_tracker)

    assert status["feed_connected"] is False
    assert status["devices"]["esp32_timbangan_001"]["status"] == "offline"
    assert status["rfid_system"] == {"status": "idle", "last_scan": None}


def test_current_weight_and_sync_ignore_liveness_outage(backend, repos, down_tracker) -> None:
    backend.seed("ref_items", id=1, name="Mixed Scrap", weight=1.0)
    feed = _FeedStub({"esp32_timbangan_001": "2.5"})

    reading = current_weight_use_case(feed=feed, tracker=down_tracker)
    synced = sync_reading_use_case(
        repos=repos, feed=feed, tracker=down_tracker, data=IoTSyncRequest(), current_user=_user()
    )

    assert reading["weight"] == 2.5
    assert synced["weight_record_id"] == backend.tables["weight_records"][0]["id"]
