"""
Rules API
Administrative endpoints for threshold rules.

Endpoints:
    POST   /rules              → Create rule
    GET    /rules              → List rules, newest first
    GET    /rules/{id}         → Get rule by ID
    PUT    /rules/{id}         → Update rule
    PUT    /rules/{id}/toggle  → Enable or disable rule
    DELETE /rules/{id}         → Delete rule (its alerts are kept)
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from rules_engine.alerts.alert_rule import AlertRule, Comparator, MAX_COOLDOWN_SECONDS
from rules_engine.alerts.storage.base_storage import BaseRuleStorage

router = APIRouter(prefix="/rules", tags=["Rules"])


def get_rule_storage(request: Request) -> BaseRuleStorage:
    return request.app.state.engine.storage


# =============================================================================
# Request Models
# =============================================================================

class RuleCreateRequest(BaseModel):
    """Request body for creating a rule"""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "tenantId": "3f1c2b9e-7d4a-4c1e-9a57-0b6f2d8e5a11",
                "deviceId": "a6e4f0d2-1b3c-4e5f-8a9b-0c1d2e3f4a5b",
                "type": "temperature",
                "op": ">",
                "threshold": 28.0,
                "cooldownSeconds": 300,
                "enabled": True,
            }
        },
    )

    tenant_id: UUID = Field(alias="tenantId")
    device_id: Optional[UUID] = Field(default=None, alias="deviceId")
    type: str = Field(min_length=1)
    op: str
    threshold: float
    cooldown_seconds: Optional[int] = Field(default=None, alias="cooldownSeconds", ge=0, le=MAX_COOLDOWN_SECONDS)
    enabled: Optional[bool] = None
    message: Optional[str] = None
    tenant_slug: Optional[str] = Field(default=None, alias="tenantSlug")


class RuleUpdateRequest(BaseModel):
    """Request body for updating a rule; the tenant cannot change"""
    model_config = ConfigDict(populate_by_name=True)

    device_id: Optional[UUID] = Field(default=None, alias="deviceId")
    type: str = Field(min_length=1)
    op: str
    threshold: float
    cooldown_seconds: Optional[int] = Field(default=None, alias="cooldownSeconds", ge=0, le=MAX_COOLDOWN_SECONDS)
    enabled: Optional[bool] = None
    message: Optional[str] = None
    tenant_slug: Optional[str] = Field(default=None, alias="tenantSlug")


class RuleToggleRequest(BaseModel):
    """Request body for toggling a rule"""
    model_config = ConfigDict(populate_by_name=True)

    is_active: bool = Field(alias="isActive")


def _parse_op(op: str) -> Comparator:
    try:
        return Comparator.parse(op)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _not_found(rule_id: str):
    return HTTPException(404, f"Rule not found: {rule_id}")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", status_code=201)
def create_rule(request: RuleCreateRequest, response: Response,
                storage: BaseRuleStorage = Depends(get_rule_storage)):
    """
    Create a threshold rule.

    Omitting deviceId applies the rule to every device of the tenant.
    Operators: >, >=, <, <=, ==, !=
    """
    try:
        rule = AlertRule(
            tenant_id=str(request.tenant_id),
            device_id=str(request.device_id) if request.device_id else None,
            type=request.type,
            op=_parse_op(request.op),
            threshold=request.threshold,
            cooldown_seconds=request.cooldown_seconds,
            enabled=True if request.enabled is None else request.enabled,
            message=request.message,
            tenant_slug=request.tenant_slug,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    storage.create_rule(rule)
    response.headers["Location"] = f"/rules/{rule.id}"
    return rule.to_dict()


@router.get("")
def list_rules(storage: BaseRuleStorage = Depends(get_rule_storage)):
    """Get all rules, newest first"""
    return [r.to_dict() for r in storage.list_rules()]


@router.get("/{rule_id}")
def get_rule(rule_id: str, storage: BaseRuleStorage = Depends(get_rule_storage)):
    """Get a specific rule"""
    rule = storage.get_rule(rule_id)
    if rule is None:
        raise _not_found(rule_id)
    return rule.to_dict()


@router.put("/{rule_id}")
def update_rule(rule_id: str, request: RuleUpdateRequest,
                storage: BaseRuleStorage = Depends(get_rule_storage)):
    """
    Update a rule.

    cooldownSeconds and enabled keep their current values when omitted;
    message is replaced (omitting it clears the custom message).
    """
    fields = {
        'type': request.type,
        'op': _parse_op(request.op),
        'threshold': request.threshold,
        'message': request.message,
    }
    if request.cooldown_seconds is not None:
        fields['cooldown_seconds'] = request.cooldown_seconds
    if request.enabled is not None:
        fields['enabled'] = request.enabled
    if 'device_id' in request.model_fields_set:
        fields['device_id'] = str(request.device_id) if request.device_id else None
    if 'tenant_slug' in request.model_fields_set:
        fields['tenant_slug'] = request.tenant_slug

    try:
        rule = storage.update_rule(rule_id, **fields)
    except ValueError as e:
        raise HTTPException(400, str(e))

    if rule is None:
        raise _not_found(rule_id)
    return rule.to_dict()


@router.put("/{rule_id}/toggle")
def toggle_rule(rule_id: str, request: RuleToggleRequest,
                storage: BaseRuleStorage = Depends(get_rule_storage)):
    """Enable or disable a rule"""
    rule = storage.set_rule_enabled(rule_id, request.is_active)
    if rule is None:
        raise _not_found(rule_id)
    return rule.to_dict()


@router.delete("/{rule_id}", status_code=204)
def delete_rule(rule_id: str, storage: BaseRuleStorage = Depends(get_rule_storage)):
    """Delete a rule. Alerts it raised stay in history."""
    if not storage.delete_rule(rule_id):
        raise _not_found(rule_id)
    return Response(status_code=204)
