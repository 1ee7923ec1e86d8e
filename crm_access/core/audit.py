"""Audit interception for mutating routes.

Routers opt in with ``route_class=AuditRoute`` and mark each mutating
endpoint with ``Depends(audited("update", "user"))``. Once the endpoint has
produced a response, a successful status (< 400) from an authenticated
caller appends a background task that writes the audit entry after the
response is sent. The request path never awaits the write.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Request, Response
from fastapi.routing import APIRoute
from starlette.background import BackgroundTask, BackgroundTasks

from crm_access.services.audit_service import audit_service


@dataclass(frozen=True)
class AuditTarget:
    action: str
    entity_type: str
    id_param: Optional[str] = None


def audited(action: str, entity_type: str, id_param: Optional[str] = None) -> Callable:
    """Dependency marking the route as an audited ``action x entity_type``."""

    async def mark_audited(request: Request) -> None:
        request.state.audit_target = AuditTarget(action, entity_type, id_param)

    return mark_audited


REDACTED = "[redacted]"


def _redact(payload: Any) -> Any:
    # Never persist credentials in the audit trail
    if isinstance(payload, dict):
        return {
            key: REDACTED if "password" in key.lower() else _redact(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [_redact(item) for item in payload]
    return payload


async def _request_payload(request: Request) -> Any:
    body = await request.body()
    if not body:
        return None
    try:
        return _redact(json.loads(body))
    except ValueError:
        return body.decode("utf-8", errors="replace")


def _resolve_entity_id(request: Request, response: Response, target: AuditTarget) -> Optional[str]:
    params = request.path_params
    if target.id_param and params.get(target.id_param) is not None:
        return str(params[target.id_param])
    if not target.id_param and len(params) == 1:
        return str(next(iter(params.values())))

    body = getattr(response, "body", None)
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None


def _attach(response: Response, task: BackgroundTask) -> None:
    if response.background is None:
        response.background = task
    else:
        response.background = BackgroundTasks(tasks=[response.background, task])


class AuditRoute(APIRoute):
    """Route class that records audited mutations after they succeed."""

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def audited_handler(request: Request) -> Response:
            response = await original_handler(request)

            target = getattr(request.state, "audit_target", None)
            claims = getattr(request.state, "claims", None)
            if target is None or claims is None or response.status_code >= 400:
                return response

            _attach(
                response,
                BackgroundTask(
                    audit_service.record,
                    user_id=claims.id,
                    action=target.action,
                    entity_type=target.entity_type,
                    entity_id=_resolve_entity_id(request, response, target),
                    changes=await _request_payload(request),
                    ip_address=request.client.host if request.client else None,
                ),
            )
            return response

        return audited_handler
