"""Event mutation routes: create, update and recurrence-scoped delete."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ...core.timezone_utils import parse_instant
from ...domain.exceptions import InvalidRequestError
from ...domain.models import DeleteScope
from ...domain.series import UPDATABLE_FIELDS, parse_scope
from ...domain.series_builder import SeriesRule, create_recurring_events, create_single_event
from ...storage.sync_client import notify_changes
from ..middleware.identity import require_active_membership, require_user_id
from .timeline_routes import resolve_request_timezone

logger = logging.getLogger(__name__)


class CreateEventRequest(BaseModel):
    """Body of ``POST /api/events`` (camelCase or snake_case keys)."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")

    organization_id: str
    title: str
    start_date: str
    end_date: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    is_philanthropy: bool = False
    recurrence: Optional[SeriesRule] = None

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


async def _read_json_object(request: Any) -> dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        raise InvalidRequestError("Request body must be valid JSON.") from None
    if not isinstance(data, dict):
        raise InvalidRequestError("Request body must be a JSON object.")
    return data


def _parse_instant_field(
    value: Optional[str], name: str, local_tz: Any
) -> Optional[datetime.datetime]:
    if value is None:
        return None
    try:
        return parse_instant(value, local_tz)
    except ValueError:
        raise InvalidRequestError(f"{name} must be a valid ISO date.") from None


def _extract_changes(body: dict[str, Any]) -> dict[str, Any]:
    """Map a PATCH body (camelCase or snake_case) onto updatable row fields."""
    changes: dict[str, Any] = {}
    for key, value in body.items():
        field = key if key in UPDATABLE_FIELDS else _snake_case(key)
        if field in ("organization_id", "scope"):
            continue
        changes[field] = value
    return changes


def _snake_case(name: str) -> str:
    return "".join(f"_{char.lower()}" if char.isupper() else char for char in name)


def register_event_routes(app: Any, deps: Any) -> None:
    """Register event create/update/delete routes.

    Args:
        app: aiohttp web application
        deps: AppDependencies container
    """
    from aiohttp import web

    async def create_event(request: Any) -> Any:
        """Create a single event, or every instance of a recurring one."""
        user_id = require_user_id(request, deps.identity_header)
        body = await _read_json_object(request)
        try:
            payload = CreateEventRequest.model_validate(body)
        except ValidationError as e:
            raise InvalidRequestError(_first_error(e)) from None

        await require_active_membership(deps.store, user_id, payload.organization_id)

        local_tz = resolve_request_timezone(request.query.get("tz"), deps.default_timezone)
        start = _parse_instant_field(payload.start_date, "startDate", local_tz)
        end = _parse_instant_field(payload.end_date, "endDate", local_tz)
        if end is not None and start is not None and end < start:
            raise InvalidRequestError("endDate must not be before startDate.")

        base = payload.model_dump(exclude={"recurrence"})
        base.update(start_date=start, end_date=end, created_by_user_id=user_id)

        if payload.recurrence is None:
            rows = [await create_single_event(deps.store, base)]
        else:
            rows = await create_recurring_events(deps.store, base, payload.recurrence, local_tz)

        event_ids = [row.id for row in rows]
        await notify_changes(deps.sync_client, event_ids, payload.organization_id, "create")
        return web.json_response(
            {"eventIds": event_ids, "groupId": rows[0].recurrence_group_id}, status=201
        )

    async def update_event(request: Any) -> Any:
        """Update one event, or it and the later events of its series."""
        user_id = require_user_id(request, deps.identity_header)
        event_id = request.match_info["event_id"]
        org_id = request.query.get("organizationId")
        if not org_id:
            raise InvalidRequestError("organizationId is required.")
        scope = parse_scope(request.query.get("scope"))

        await require_active_membership(deps.store, user_id, org_id)

        changes = _extract_changes(await _read_json_object(request))
        updated_ids = await deps.series_resolver.update(event_id, org_id, changes, scope)

        await notify_changes(deps.sync_client, updated_ids, org_id, "update")
        return web.json_response({"updatedIds": updated_ids})

    async def delete_event(request: Any) -> Any:
        """Soft-delete an event with this_only, this_and_future or all_in_series scope."""
        user_id = require_user_id(request, deps.identity_header)
        event_id = request.match_info["event_id"]
        org_id = request.query.get("organizationId")
        if not org_id:
            raise InvalidRequestError("organizationId is required.")
        scope = parse_scope(request.query.get("scope"), default=DeleteScope.THIS_ONLY)

        await require_active_membership(deps.store, user_id, org_id)

        deleted_ids = await deps.series_resolver.delete(event_id, org_id, scope)
        deps.health_tracker.record_deletion(len(deleted_ids))

        # Sync happens only after the deletion is committed
        await notify_changes(deps.sync_client, deleted_ids, org_id, "delete")
        return web.json_response({"deletedIds": deleted_ids})

    app.router.add_post("/api/events", create_event)
    app.router.add_patch("/api/events/{event_id}", update_event)
    app.router.add_delete("/api/events/{event_id}", delete_event)
