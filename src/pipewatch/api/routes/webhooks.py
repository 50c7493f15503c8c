"""Webhook ingestion routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from pipewatch.api.deps import get_pipeline
from pipewatch.api.schemas.webhooks import IngestResponse
from pipewatch.core.errors import PayloadValidationError
from pipewatch.core.pipeline import BuildPipeline
from pipewatch.log import bind_context, clear_context

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/{source}", status_code=status.HTTP_202_ACCEPTED, response_model=IngestResponse)
async def ingest_build(
    source: str,
    payload: dict[str, Any] = Body(...),
    pipeline: BuildPipeline = Depends(get_pipeline),
) -> IngestResponse:
    bind_context(source=source)
    try:
        result = await pipeline.ingest_build(payload, source)
    except PayloadValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    finally:
        clear_context()
    return IngestResponse(
        id=result.build.id,
        build_id=result.build.build_id,
        project_name=result.build.project_name,
        status=result.build.status,
        alert_ids=[alert.id for alert in result.alerts],
    )
