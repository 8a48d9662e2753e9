"""Data models for the orgcal_lite timeline engine."""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..core.timezone_utils import serialize_iso_utc


class SourceType(str, Enum):
    """Origin of a unified timeline item."""

    EVENT = "event"
    SCHEDULE = "schedule"
    FEED = "feed"
    CLASS = "class"


class OccurrenceType(str, Enum):
    """Supported academic schedule occurrence patterns."""

    SINGLE = "single"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DeleteScope(str, Enum):
    """Which rows of a recurring series a deletion touches."""

    THIS_ONLY = "this_only"
    THIS_AND_FUTURE = "this_and_future"
    ALL_IN_SERIES = "all_in_series"


class FeedScope(str, Enum):
    """Visibility of a connected calendar feed row."""

    ORG = "org"
    PERSONAL = "personal"


class MembershipStatus(str, Enum):
    """Organization membership status."""

    ACTIVE = "active"
    PENDING = "pending"
    REVOKED = "revoked"


class UnifiedEvent(BaseModel):
    """Common normalized shape all four sources are projected into.

    Instances are immutable and request-scoped.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
    )

    id: str = Field(..., description="Source-prefixed unique ID")
    title: str
    start_at: datetime.datetime
    end_at: Optional[datetime.datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    source_type: SourceType
    source_name: str
    badges: tuple[str, ...] = ()
    event_id: Optional[str] = Field(default=None, description="Back-reference for event items")

    @field_validator("start_at", "end_at")
    @classmethod
    def _require_aware(cls, value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError("instants must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _check_ordering(self) -> UnifiedEvent:
        if self.end_at is not None and self.start_at > self.end_at:
            raise ValueError(f"start_at {self.start_at} is after end_at {self.end_at}")
        return self

    @field_serializer("start_at", "end_at")
    def serialize_instant(self, dt: Optional[datetime.datetime]) -> Optional[str]:
        """Serialize instants to ISO-8601 UTC."""
        return serialize_iso_utc(dt)

    @field_serializer("badges")
    def serialize_badges(self, badges: tuple[str, ...]) -> list[str]:
        return list(badges)

    def to_api_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON payload; ``eventId`` only appears for event items."""
        payload = self.model_dump(by_alias=True, mode="json")
        if payload.get("eventId") is None:
            payload.pop("eventId", None)
        return payload


class EventRow(BaseModel):
    """Direct organization event row."""

    id: str
    organization_id: str
    title: str
    start_date: datetime.datetime
    end_date: Optional[datetime.datetime] = None
    location: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    is_philanthropy: bool = False
    recurrence_group_id: Optional[str] = None
    recurrence_index: Optional[int] = None
    recurrence_rule: Optional[dict[str, Any]] = None
    created_by_user_id: Optional[str] = None
    deleted_at: Optional[datetime.datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class EventChanges(BaseModel):
    """Field changes accepted by an event update; only supplied fields are applied."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    event_type: Optional[str] = None
    is_philanthropy: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("title must not be blank")
        return value

    @field_validator("is_philanthropy")
    @classmethod
    def _reject_null_flag(cls, value: Optional[bool]) -> bool:
        if value is None:
            raise ValueError("must be true or false")
        return value


class ScheduleEventRow(BaseModel):
    """Imported schedule event with explicit instants."""

    id: str
    org_id: str
    title: str
    start_at: datetime.datetime
    end_at: datetime.datetime
    location: Optional[str] = None
    status: str = "confirmed"
    source_id: Optional[str] = None
    source_title: Optional[str] = None


class FeedEventRow(BaseModel):
    """Event mirrored from a connected ICS/Google calendar feed."""

    model_config = ConfigDict(use_enum_values=True)

    id: str
    organization_id: str
    title: Optional[str] = None
    start_at: datetime.datetime
    end_at: Optional[datetime.datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    feed_id: Optional[str] = None
    scope: FeedScope = FeedScope.PERSONAL
    user_id: Optional[str] = None
    provider: Optional[str] = None


class AcademicScheduleRule(BaseModel):
    """Compact recurring class schedule, expanded into occurrences at read time.

    ``start_date``/``end_date`` are local calendar dates and ``start_time``/``end_time``
    local wall-clock times; neither is ever treated as an instant.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: str
    organization_id: str
    user_id: str
    title: str
    start_date: datetime.date
    end_date: Optional[datetime.date] = None
    start_time: datetime.time
    end_time: datetime.time
    occurrence_type: OccurrenceType
    day_of_week: Optional[frozenset[int]] = None
    day_of_month: Optional[int] = None
    deleted_at: Optional[datetime.datetime] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_local_date(cls, value: Any) -> Any:
        # A full timestamp here would silently shift the date in some zones
        if isinstance(value, str) and len(value.strip()) != 10:
            raise ValueError(f"expected a YYYY-MM-DD local date, got {value!r}")
        if isinstance(value, datetime.datetime):
            raise ValueError("expected a local date, not an instant")
        return value

    @field_validator("day_of_week")
    @classmethod
    def _check_weekdays(cls, value: Optional[frozenset[int]]) -> Optional[frozenset[int]]:
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError("day_of_week values must be in 0..6 (0 = Sunday)")
        return value

    @field_validator("day_of_month")
    @classmethod
    def _check_day_of_month(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 1 <= value <= 31:
            raise ValueError("day_of_month must be in 1..31")
        return value

    @model_validator(mode="after")
    def _check_pattern_fields(self) -> AcademicScheduleRule:
        if self.occurrence_type == OccurrenceType.WEEKLY.value and not self.day_of_week:
            raise ValueError("weekly schedules require day_of_week")
        if self.occurrence_type == OccurrenceType.MONTHLY.value and self.day_of_month is None:
            raise ValueError("monthly schedules require day_of_month")
        return self


class Membership(BaseModel):
    """A user's role and status within an organization."""

    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    organization_id: str
    role: str = "active_member"
    status: MembershipStatus = MembershipStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE.value


class TimelineMeta(BaseModel):
    """Pagination metadata for a timeline page."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    count: int
    total: int
    page: int
    limit: int
    has_more: bool
    truncated: bool


class TimelinePage(BaseModel):
    """One page of the merged timeline."""

    model_config = ConfigDict(frozen=True)

    events: tuple[UnifiedEvent, ...]
    meta: TimelineMeta

    def to_api_dict(self) -> dict[str, Any]:
        """Return the ``{events, meta}`` response envelope."""
        return {
            "events": [event.to_api_dict() for event in self.events],
            "meta": self.meta.model_dump(by_alias=True),
        }


class SeriesDeleteResult(BaseModel):
    """Outcome of a recurrence-scoped deletion."""

    deleted_ids: list[str] = Field(default_factory=list)
    error: Optional[str] = None

    def to_api_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"deletedIds": self.deleted_ids}
        if self.error is not None:
            payload["error"] = self.error
        return payload


class SchemaCapabilities(BaseModel):
    """Optional storage features, resolved once at startup."""

    model_config = ConfigDict(frozen=True)

    events_recurrence_column: bool = True
