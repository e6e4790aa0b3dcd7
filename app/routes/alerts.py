"""
Alert endpoints - submission, lifecycle transitions and queries.

Transitions run through the lifecycle engine; their side effects are
dispatched after the write and never change the response.
Store and geocoder calls are synchronous, so handlers either run in the
threadpool (plain def) or hand the engine call to it before dispatching.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool

from app.dependencies import (
    get_alert_service,
    get_current_identity,
    get_lifecycle_engine,
    get_outbox,
)
from app.models.alert import (
    AlertCreate,
    AlertPriority,
    AlertResolve,
    AlertStatus,
    AlertType,
    AlertUpdate,
    DeviceAlertCreate,
)
from app.models.user import Identity
from app.services.alert_lifecycle import AlertLifecycleEngine
from app.services.alert_service import AlertService
from app.services.outbox import SideEffectOutbox

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("")
def list_alerts(
    status_filter: Optional[AlertStatus] = Query(None, alias="status"),
    type: Optional[AlertType] = Query(None),
    priority: Optional[AlertPriority] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    alerts: AlertService = Depends(get_alert_service),
):
    """
    Alerts visible to the caller, newest first.

    - admin: all alerts
    - citizen / family: own alerts and alerts of users listing them as family
    - police / hospital / fire: alerts of their type or assigned to them
    """
    return alerts.list_alerts(
        identity,
        status=status_filter.value if status_filter else None,
        type=type.value if type else None,
        priority=priority.value if priority else None,
        page=page,
        limit=limit,
    )


@router.get("/nearby/{type}")
def nearby_alerts(
    type: AlertType,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(10, gt=0, description="Radius in km"),
    identity: Identity = Depends(get_current_identity),
    alerts: AlertService = Depends(get_alert_service),
):
    """Pending and active alerts of ``type`` near a point, nearest first."""
    found = alerts.nearby_alerts(type.value, lat, lng, radius_km=radius)
    return {"count": len(found), "alerts": found}


@router.get("/{alert_id}")
def get_alert(
    alert_id: str,
    identity: Identity = Depends(get_current_identity),
    alerts: AlertService = Depends(get_alert_service),
):
    return alerts.get_alert(alert_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_alert(
    alert: AlertCreate,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
    outbox: SideEffectOutbox = Depends(get_outbox),
):
    """
    Submit an alert as the caller.

    Matching responders get a targeted ``newAlert`` and a notification,
    the reporter's family get a ``family_alert`` notification, and every
    connected client gets ``new-alert`` for the live map.
    """
    result = await run_in_threadpool(engine.create, identity, alert)
    await outbox.dispatch(result.effects)
    return {
        "message": "Alert created successfully",
        "alert": result.alert,
        "notified_responders": result.notified_responders,
    }


@router.post("/iot", status_code=status.HTTP_201_CREATED)
async def create_device_alert(
    alert: DeviceAlertCreate,
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
    outbox: SideEffectOutbox = Depends(get_outbox),
):
    """
    Sensor entry point. No credential; the alert starts active and is
    attributed to the shared device account.
    """
    result = await run_in_threadpool(engine.create_from_device, alert)
    await outbox.dispatch(result.effects)
    return {"message": "IoT alert created successfully", "alert": result.alert}


@router.put("/{alert_id}")
def update_alert(
    alert_id: str,
    changes: AlertUpdate,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
):
    result = engine.update(identity, alert_id, changes)
    return {"message": "Alert updated successfully", "alert": result.alert}


@router.put("/{alert_id}/respond")
async def respond_to_alert(
    alert_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
    outbox: SideEffectOutbox = Depends(get_outbox),
):
    result = await run_in_threadpool(engine.respond, identity, alert_id)
    await outbox.dispatch(result.effects)
    return {"message": "Successfully responded to alert", "alert": result.alert}


@router.put("/{alert_id}/resolve")
async def resolve_alert(
    alert_id: str,
    body: Optional[AlertResolve] = None,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
    outbox: SideEffectOutbox = Depends(get_outbox),
):
    result = await run_in_threadpool(engine.resolve, identity, alert_id, notes=body.notes if body else None)
    await outbox.dispatch(result.effects)
    return {"message": "Alert resolved successfully", "alert": result.alert}


@router.put("/{alert_id}/cancel")
def cancel_alert(
    alert_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
):
    result = engine.cancel(identity, alert_id)
    return {"message": "Alert cancelled successfully", "alert": result.alert}


@router.delete("/{alert_id}")
def delete_alert(
    alert_id: str,
    identity: Identity = Depends(get_current_identity),
    engine: AlertLifecycleEngine = Depends(get_lifecycle_engine),
):
    engine.delete(identity, alert_id)
    return {"message": "Alert deleted successfully"}
