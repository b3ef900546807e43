"""
Alerts API
Read and delete raised alerts.

Endpoints:
    GET    /alerts        → List alerts (newest first, at most 200)
    DELETE /alerts/{id}   → Delete one alert
    DELETE /alerts        → Delete a batch of alerts (JSON array of ids)
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from rules_engine.alerts.storage.base_storage import BaseAlertStorage

router = APIRouter(prefix="/alerts", tags=["Alerts"])


def get_alert_storage(request: Request) -> BaseAlertStorage:
    return request.app.state.engine.storage


@router.get("")
def list_alerts(
    tenant_id: Optional[UUID] = Query(None, alias="tenantId"),
    device_id: Optional[UUID] = Query(None, alias="deviceId"),
    type: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None, alias="from"),
    end: Optional[datetime] = Query(None, alias="to"),
    storage: BaseAlertStorage = Depends(get_alert_storage),
):
    """List latest alerts with optional filters"""
    alerts = storage.list_alerts(
        tenant_id=str(tenant_id) if tenant_id else None,
        device_id=str(device_id) if device_id else None,
        type=type.strip() if type and type.strip() else None,
        start=start,
        end=end,
    )
    return [a.to_dict() for a in alerts]


@router.delete("/{alert_id}", status_code=204)
def delete_alert(alert_id: str, storage: BaseAlertStorage = Depends(get_alert_storage)):
    """Delete a single alert"""
    if not storage.delete_alert(alert_id):
        raise HTTPException(404, f"Alert not found: {alert_id}")
    return Response(status_code=204)


@router.delete("", status_code=204)
async def delete_alerts(request: Request, storage: BaseAlertStorage = Depends(get_alert_storage)):
    """
    Delete multiple alerts.

    Body is a JSON array of alert ids. Unknown ids are ignored; 404 only when
    none of them matched.
    """
    body = await request.body()
    if not body.strip():
        raise HTTPException(400, "No IDs provided")

    try:
        ids = json.loads(body)
    except ValueError as e:
        raise HTTPException(400, f"Error parsing request: {e}")

    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise HTTPException(400, "Invalid IDs format")

    try:
        deleted = await run_in_threadpool(storage.delete_alerts, ids)
    except ValueError as e:
        raise HTTPException(400, str(e))

    if deleted == 0:
        raise HTTPException(404, "No matching alerts")
    return Response(status_code=204)
