"""
Event sync routes.

POST /sync/notubiz runs a bulk pass; POST /notifications/notubiz handles a
single change notification from NotuBiz.
"""

from typing import Any

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from notubiz_sync.features.event_sync.domain.errors import ConfigurationError
from notubiz_sync.features.event_sync.domain.models import SyncScope
from notubiz_sync.features.event_sync.services.notification_service import notification_service
from notubiz_sync.features.event_sync.services.sync_service import event_sync_service
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["event-sync"])


class NotificationRequest(BaseModel):
    actie: str = Field(..., min_length=1)
    resourceId: str | int
    resourceUrl: str | None = None
    configuration: dict[str, Any] | None = None


def _scope_from(configuration: dict[str, Any] | None) -> SyncScope:
    try:
        if configuration:
            return SyncScope.from_configuration(configuration)
        return SyncScope.from_settings()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


@router.post("/sync/notubiz")
async def run_notubiz_sync(configuration: dict[str, Any] | None = Body(default=None)) -> dict:
    """Synchronize every event in the window and return the run summary."""
    scope = _scope_from(configuration)

    try:
        result = await event_sync_service.run(scope)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    except Exception as exc:
        logger.error(
            "NotuBiz sync run failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        raise HTTPException(status_code=500, detail="NotuBiz sync failed") from exc

    return result.to_dict()


@router.post("/notifications/notubiz")
async def handle_notubiz_notification(request: NotificationRequest) -> dict:
    scope = _scope_from(request.configuration)
    payload = request.model_dump(exclude={"configuration"})

    try:
        outcome = await notification_service.handle(payload, scope)
    except Exception as exc:
        logger.error(
            "NotuBiz notification failed",
            source_id=str(request.resourceId),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        raise HTTPException(status_code=500, detail="NotuBiz notification failed") from exc

    return {"status": outcome.status, **outcome.to_response()}
