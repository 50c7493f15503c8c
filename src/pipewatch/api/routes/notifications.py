"""Notification channel test route."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from pipewatch.api.deps import get_notifier
from pipewatch.api.schemas.notifications import TestNotificationRequest
from pipewatch.core.errors import NotificationDeliveryError
from pipewatch.core.notifications import NotificationSender
from pipewatch.models.alert import Alert
from pipewatch.models.rules import AlertSeverity

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.post("/test")
async def send_test_notification(
    request: TestNotificationRequest,
    notifier: NotificationSender = Depends(get_notifier),
) -> dict[str, str]:
    alert = Alert(
        rule_id="test",
        rule_name="Test Notification",
        severity=AlertSeverity.INFO,
        message="This is a test notification from pipewatch.",
        project_name="test-project",
        build_id="test",
        build_number=1,
    )
    try:
        await notifier.send(request.type, request.configuration, alert)
    except NotificationDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return {"status": "sent"}
