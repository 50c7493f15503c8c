"""Alert rule management routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from pipewatch.api.deps import Services, get_rule_registry, get_services
from pipewatch.api.schemas.rules import (
    CreateRuleRequest,
    RulesResponse,
    SetRuleEnabledRequest,
    UpdateRuleRequest,
)
from pipewatch.core.errors import RuleNotFoundError
from pipewatch.core.rule_registry import RuleRegistry
from pipewatch.models.rules import AlertRule

router = APIRouter(prefix="/api/v1/rules", tags=["rules"])


@router.get("", response_model=RulesResponse)
async def list_rules(registry: RuleRegistry = Depends(get_rule_registry)) -> RulesResponse:
    return RulesResponse(items=await registry.list())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rule(
    request: CreateRuleRequest,
    services: Services = Depends(get_services),
) -> dict[str, str]:
    cooldown = request.cooldown_minutes
    if cooldown is None:
        cooldown = services.settings.default_cooldown_minutes
    rule = AlertRule(
        name=request.name,
        description=request.description,
        condition=request.condition,
        channels=request.channels,
        severity=request.severity,
        message_template=request.message_template,
        cooldown_minutes=cooldown,
        enabled=request.enabled,
    )
    await services.registry.create(rule)
    return {"id": rule.id}


@router.get("/{rule_id}")
async def get_rule(
    rule_id: str,
    registry: RuleRegistry = Depends(get_rule_registry),
) -> dict[str, AlertRule]:
    try:
        rule = await registry.get(rule_id)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"rule": rule}


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    request: UpdateRuleRequest,
    registry: RuleRegistry = Depends(get_rule_registry),
) -> dict[str, AlertRule]:
    changes = {
        key: value
        for key, value in request.model_dump(exclude_unset=True).items()
        if value is not None or key == "message_template"
    }
    try:
        rule = await registry.update(rule_id, changes)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"rule": rule}


@router.post("/{rule_id}/enabled")
async def set_rule_enabled(
    rule_id: str,
    request: SetRuleEnabledRequest,
    registry: RuleRegistry = Depends(get_rule_registry),
) -> dict[str, AlertRule]:
    try:
        rule = await registry.set_enabled(rule_id, request.enabled)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"rule": rule}


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: str,
    registry: RuleRegistry = Depends(get_rule_registry),
) -> None:
    try:
        await registry.delete(rule_id)
    except RuleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
