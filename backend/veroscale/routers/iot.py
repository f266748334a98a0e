"""IoT scale endpoints: device webhook, live readings, status and manual sync."""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from ..auth import AuthenticatedUser, PermissionChecker
from ..config import settings
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import (
    CurrentWeightResponse,
    IoTStatusResponse,
    IoTSyncRequest,
    IoTSyncResponse,
    IoTWebhookPayload,
    IoTWebhookResponse,
)
from ..services.iot_feed import IoTFeedClient, get_iot_feed
from ..services.liveness import LivenessTracker, get_liveness_tracker
from ..use_cases.iot import (
    current_weight_use_case,
    ingest_webhook_use_case,
    iot_status_use_case,
    sync_reading_use_case,
)

router = APIRouter(prefix="/iot", tags=["iot"])
logger = logging.getLogger(__name__)


def verify_webhook_secret(x_iot_secret: Optional[str] = Header(None)) -> None:
    """Devices must send X-IoT-Secret when IOT_WEBHOOK_SECRET is set."""
    if not settings.IOT_WEBHOOK_SECRET:
        return
    if not x_iot_secret or not secrets.compare_digest(x_iot_secret, settings.IOT_WEBHOOK_SECRET):
        logger.warning("Rejected IoT webhook with invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


@router.post("/webhook", response_model=IoTWebhookResponse, dependencies=[Depends(verify_webhook_secret)])
def iot_webhook(
    payload: IoTWebhookPayload,
    repos: Repositories = Depends(get_repositories),
    tracker: LivenessTracker = Depends(get_liveness_tracker),
):
    """Device push of a weight reading (optionally with an RFID scan)."""
    return ingest_webhook_use_case(repos=repos, payload=payload, tracker=tracker)


@router.get("/current-weight", response_model=CurrentWeightResponse)
def current_weight(
    device: Optional[str] = Query(None),
    feed: IoTFeedClient = Depends(get_iot_feed),
    tracker: LivenessTracker = Depends(get_liveness_tracker),
):
    return current_weight_use_case(feed=feed, tracker=tracker, device_id=device)


@router.get("/status", response_model=IoTStatusResponse)
def iot_status(tracker: LivenessTracker = Depends(get_liveness_tracker)):
    """Connection state of the configured scales and the RFID reader."""
    return iot_status_use_case(tracker=tracker)


@router.post("/sync", response_model=IoTSyncResponse)
def sync_reading(
    data: IoTSyncRequest,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canSyncIoT")),
    repos: Repositories = Depends(get_repositories),
    feed: IoTFeedClient = Depends(get_iot_feed),
    tracker: LivenessTracker = Depends(get_liveness_tracker),
):
    return sync_reading_use_case(repos=repos, feed=feed, tracker=tracker, data=data, current_user=current_user)
