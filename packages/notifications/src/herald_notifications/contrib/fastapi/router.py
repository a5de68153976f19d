"""Intake API routes.

Authentication belongs to the gateway in front of this router.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, status
from starlette.responses import JSONResponse

from ...exceptions import (
    NotificationValidationError,
    RequestNotFoundError,
    RoutingError,
)

if TYPE_CHECKING:
    from ...service import NotificationService

logger = logging.getLogger("herald.api")

# CamelCase wire names for fields the validator reports in snake_case.
_WIRE_FIELDS = {
    "tenant_id": "tenantId",
    "template_name": "templateName",
    "scheduled_time": "scheduledTime",
    "client_request_id": "clientRequestId",
}


def validation_error_body(error: NotificationValidationError) -> dict[str, Any]:
    return {
        "error": error.kind.value,
        "field": _WIRE_FIELDS.get(error.field, error.field),
        "detail": error.message,
    }


def create_notifications_router(
    service: NotificationService,
    *,
    prefix: str = "/api/v1/notifications",
) -> APIRouter:
    """Build the router for *service*.

    - ``POST /send``: 202 ``{"requestId"}``, 400 on validation errors.
    - ``POST /schedule``: same, ``scheduledTime`` required.
    - ``GET /{request_id}/status``: per-channel status rows, 404 if unknown.
    """
    router = APIRouter(prefix=prefix, tags=["notifications"])

    async def _accept(payload: dict[str, Any], *, scheduled: bool) -> JSONResponse:
        try:
            if scheduled:
                request = await service.schedule(payload)
            else:
                request = await service.submit(payload)
        except NotificationValidationError as e:
            return JSONResponse(validation_error_body(e), status_code=status.HTTP_400_BAD_REQUEST)
        except RoutingError as e:
            logger.error("Intake of %s incomplete: %s", e.request_id, e)
            return JSONResponse(
                {"error": "RoutingFailed", "requestId": e.request_id, "detail": str(e)},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return JSONResponse(
            {"requestId": request.request_id}, status_code=status.HTTP_202_ACCEPTED
        )

    @router.post("/send", status_code=status.HTTP_202_ACCEPTED)
    async def send_notification(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        return await _accept(payload, scheduled=False)

    @router.post("/schedule", status_code=status.HTTP_202_ACCEPTED)
    async def schedule_notification(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        return await _accept(payload, scheduled=True)

    @router.get("/{request_id}/status")
    async def notification_status(request_id: str) -> JSONResponse:
        try:
            rows = await service.get_status(request_id)
        except RequestNotFoundError:
            return JSONResponse(
                {"error": "NotFound", "detail": f"Unknown request {request_id}"},
                status_code=status.HTTP_404_NOT_FOUND,
            )
        return JSONResponse([row.to_dict() for row in rows])

    return router
