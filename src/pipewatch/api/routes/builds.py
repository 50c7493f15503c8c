"""Build listing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pipewatch.api.deps import get_aggregator
from pipewatch.api.schemas.builds import BuildsResponse
from pipewatch.core.aggregator import ALL_PROJECTS, MetricsAggregator
from pipewatch.models.build import Build

router = APIRouter(prefix="/api/v1/builds", tags=["builds"])


@router.get("", response_model=BuildsResponse)
async def list_builds(
    project: str = ALL_PROJECTS,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    aggregator: MetricsAggregator = Depends(get_aggregator),
) -> BuildsResponse:
    return BuildsResponse(items=await aggregator.get_recent_builds(project, limit, offset))


@router.get("/{project_name}/{build_id}")
async def get_build(
    project_name: str,
    build_id: str,
    aggregator: MetricsAggregator = Depends(get_aggregator),
) -> dict[str, Build]:
    build = await aggregator.get_build(project_name, build_id)
    if build is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Build not found")
    return {"build": build}
