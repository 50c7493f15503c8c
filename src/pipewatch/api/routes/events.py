"""Event log routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pipewatch.api.deps import get_store
from pipewatch.api.schemas.events import EventResponse, EventsResponse
from pipewatch.db.store import SQLiteStore
from pipewatch.models.events import EventType

router = APIRouter(prefix="/api/v1/events", tags=["events"])


@router.get("", response_model=EventsResponse)
async def list_events(
    project: str | None = None,
    event_type: str | None = None,
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
    store: SQLiteStore = Depends(get_store),
) -> EventsResponse:
    parsed_event_type: EventType | None = None
    if event_type is not None:
        try:
            parsed_event_type = EventType(event_type)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid event_type",
            ) from exc

    events = await store.list_events(
        project_name=project,
        event_type=parsed_event_type,
        since=since,
        until=until,
    )
    return EventsResponse(
        items=[
            EventResponse(
                id=event.id,
                event_type=event.event_type.value,
                project_name=event.project_name,
                payload=event.payload,
                timestamp=event.timestamp,
            )
            for event in events
        ]
    )
