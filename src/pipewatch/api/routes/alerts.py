"""Alert query and transition routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pipewatch.api.deps import get_dispatcher
from pipewatch.api.schemas.alerts import (
    AcknowledgeAlertRequest,
    AlertsResponse,
    ResolveAlertRequest,
)
from pipewatch.core.dispatcher import AlertDispatcher
from pipewatch.core.errors import AlertNotFoundError, InvalidAlertTransitionError
from pipewatch.models.alert import Alert, AlertStatistics, AlertStatus
from pipewatch.models.metric import MetricPeriod
from pipewatch.models.rules import AlertSeverity

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get("", response_model=AlertsResponse)
async def list_alerts(
    status_filter: AlertStatus | None = Query(default=AlertStatus.ACTIVE, alias="status"),
    project: str | None = None,
    severity: AlertSeverity | None = None,
    limit: int | None = Query(default=None, ge=1),
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> AlertsResponse:
    items = await dispatcher.list_alerts(
        status=status_filter,
        project_name=project,
        severity=severity,
        limit=limit,
    )
    return AlertsResponse(items=items)


@router.get("/statistics", response_model=AlertStatistics)
async def alert_statistics(
    period: MetricPeriod = MetricPeriod.LAST_DAY,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> AlertStatistics:
    return await dispatcher.statistics(period)


@router.get("/{alert_id}")
async def get_alert(
    alert_id: str,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> dict[str, Alert]:
    try:
        alert = await dispatcher.get(alert_id)
    except AlertNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"alert": alert}


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    request: AcknowledgeAlertRequest,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> dict[str, Alert]:
    try:
        alert = await dispatcher.acknowledge(alert_id, request.acknowledged_by)
    except AlertNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidAlertTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"alert": alert}


@router.post("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: str,
    request: ResolveAlertRequest,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> dict[str, Alert]:
    try:
        alert = await dispatcher.resolve(alert_id, request.resolved_by, request.resolution)
    except AlertNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidAlertTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"alert": alert}
