"""Integration tests for the orgcal_lite HTTP API.

Exercises the full application (middlewares, routes, aggregator, store and
sync client) through aiohttp's test client.
"""

import datetime

import pytest
from aiohttp.test_utils import AioHTTPTestCase

from orgcal_lite.api.server import _make_app
from orgcal_lite.domain.models import (
    AcademicScheduleRule,
    EventRow,
    FeedEventRow,
    Membership,
    ScheduleEventRow,
)
from orgcal_lite.storage.memory_store import JsonCalendarStore
from orgcal_lite.storage.sync_client import LoggingSyncClient

pytestmark = pytest.mark.integration

UTC = datetime.UTC
MEMBER = {"X-User-Id": "user-1"}
OUTSIDER = {"X-User-Id": "user-2"}
PENDING = {"X-User-Id": "user-3"}


def seed_store() -> JsonCalendarStore:
    store = JsonCalendarStore()
    store.add_membership(Membership(user_id="user-1", organization_id="org-1"))
    store.add_membership(Membership(user_id="user-3", organization_id="org-1", status="pending"))

    first = datetime.datetime(2026, 3, 3, 2, tzinfo=UTC)  # Monday 18:00 in Los Angeles
    store.add_events(
        [
            EventRow(
                id=f"g1-{index}",
                organization_id="org-1",
                title="Chapter meeting",
                start_date=first + datetime.timedelta(weeks=index),
                end_date=first + datetime.timedelta(weeks=index, hours=1),
                event_type="meeting",
                recurrence_group_id="g1",
                recurrence_index=index,
            )
            for index in range(5)
        ]
    )
    store.add_schedule_events(
        [
            ScheduleEventRow(
                id="s1",
                org_id="org-1",
                title="Home game",
                start_at=datetime.datetime(2026, 3, 5, 1, tzinfo=UTC),
                end_at=datetime.datetime(2026, 3, 5, 4, tzinfo=UTC),
                source_title="Athletics",
            )
        ]
    )
    store.add_feed_events(
        [
            FeedEventRow(
                id="f1",
                organization_id="org-1",
                title="Rush week",
                start_at=datetime.datetime(2026, 3, 6, 8, tzinfo=UTC),
                all_day=True,
                scope="org",
            )
        ]
    )
    store.add_class_rules(
        [
            AcademicScheduleRule(
                id="bio",
                organization_id="org-1",
                user_id="user-1",
                title="Biology 101",
                start_date=datetime.date(2026, 1, 5),
                end_date=datetime.date(2026, 5, 1),
                start_time=datetime.time(9),
                end_time=datetime.time(10),
                occurrence_type="weekly",
                day_of_week=[1, 3],
            )
        ]
    )
    return store


class CalendarApiTestCase(AioHTTPTestCase):
    async def get_application(self):
        self.store = seed_store()
        self.sync_client = LoggingSyncClient()
        config = {"default_timezone": "America/Los_Angeles", "adapter_timeout_seconds": 2.0}
        return _make_app(config, self.store, self.sync_client)


class TestUnifiedTimeline(CalendarApiTestCase):
    async def test_unified_events_when_member_then_merged_sorted_envelope(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08"},
            headers=MEMBER,
        )

        assert resp.status == 200
        body = await resp.json()
        assert [event["id"] for event in body["events"]] == [
            "class:bio:2026-03-02",
            "event:g1-0",
            "class:bio:2026-03-04",
            "schedule:s1",
            "feed:f1",
        ]
        assert body["meta"] == {
            "count": 5,
            "total": 5,
            "page": 1,
            "limit": 2000,
            "hasMore": False,
            "truncated": False,
        }
        team_event = body["events"][1]
        assert team_event["startAt"] == "2026-03-03T02:00:00.000Z"
        assert team_event["eventId"] == "g1-0"
        assert team_event["badges"] == ["meeting", "recurring"]

    async def test_unified_events_when_weekly_class_mon_wed_then_two_occurrences(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={
                "orgId": "org-1",
                "start": "2026-03-02",
                "end": "2026-03-08",
                "sources": "classes",
            },
            headers=MEMBER,
        )

        body = await resp.json()
        assert [event["startAt"] for event in body["events"]] == [
            "2026-03-02T17:00:00.000Z",
            "2026-03-04T17:00:00.000Z",
        ]
        assert all(event["sourceType"] == "class" for event in body["events"])

    async def test_unified_events_when_paged_then_has_more(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08", "limit": "2", "page": "2"},
            headers=MEMBER,
        )

        body = await resp.json()
        assert [event["id"] for event in body["events"]] == ["class:bio:2026-03-04", "schedule:s1"]
        assert body["meta"]["hasMore"] is True
        assert body["meta"]["count"] == 2

    async def test_unified_events_when_no_identity_then_401(self):
        resp = await self.client.get("/api/calendar/unified-events")

        assert resp.status == 401
        assert await resp.json() == {"error": "unauthorized", "message": "Unauthorized"}

    async def test_unified_events_when_params_missing_then_400(self):
        resp = await self.client.get(
            "/api/calendar/unified-events", params={"orgId": "org-1"}, headers=MEMBER
        )

        assert resp.status == 400
        assert (await resp.json())["error"] == "invalid_request"

    async def test_unified_events_when_not_member_then_403_before_window_check(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-08", "end": "2026-03-02"},
            headers=OUTSIDER,
        )

        assert resp.status == 403

    async def test_unified_events_when_membership_pending_then_403(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08"},
            headers=PENDING,
        )

        assert resp.status == 403

    async def test_unified_events_when_start_after_end_then_400(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-08", "end": "2026-03-02"},
            headers=MEMBER,
        )

        assert resp.status == 400
        assert (await resp.json())["error"] == "invalid_window"

    async def test_unified_events_when_range_too_large_then_400(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-01-01", "end": "2027-06-01"},
            headers=MEMBER,
        )

        assert resp.status == 400
        assert (await resp.json())["error"] == "window_too_large"

    async def test_unified_events_when_unknown_timezone_then_400(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08", "tz": "Mars/Olympus"},
            headers=MEMBER,
        )

        assert resp.status == 400

    async def test_member_events_when_called_then_only_feeds_and_schedules(self):
        resp = await self.client.get(
            "/api/calendar/events",
            params={"organizationId": "org-1", "start": "2026-03-02", "end": "2026-03-08"},
            headers=MEMBER,
        )

        assert resp.status == 200
        body = await resp.json()
        assert [event["id"] for event in body["events"]] == ["schedule:s1", "feed:f1"]
        assert body["meta"]["limit"] == 200


class TestEventMutations(CalendarApiTestCase):
    async def test_delete_when_this_and_future_then_rows_removed_and_synced(self):
        resp = await self.client.delete(
            "/api/events/g1-2",
            params={"organizationId": "org-1", "scope": "this_and_future"},
            headers=MEMBER,
        )

        assert resp.status == 200
        assert await resp.json() == {"deletedIds": ["g1-2", "g1-3", "g1-4"]}
        assert list(self.sync_client.sent) == [
            {"id": event_id, "organizationId": "org-1", "operation": "delete"}
            for event_id in ("g1-2", "g1-3", "g1-4")
        ]

        timeline = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-01", "end": "2026-04-05", "sources": "events"},
            headers=MEMBER,
        )
        body = await timeline.json()
        assert [event["eventId"] for event in body["events"]] == ["g1-0", "g1-1"]

    async def test_delete_when_default_scope_then_only_target(self):
        resp = await self.client.delete(
            "/api/events/g1-0", params={"organizationId": "org-1"}, headers=MEMBER
        )

        assert await resp.json() == {"deletedIds": ["g1-0"]}

    async def test_delete_when_event_missing_then_404_and_no_sync(self):
        resp = await self.client.delete(
            "/api/events/nope", params={"organizationId": "org-1"}, headers=MEMBER
        )

        assert resp.status == 404
        assert (await resp.json())["error"] == "event_not_found"
        assert list(self.sync_client.sent) == []

    async def test_delete_when_not_member_then_403(self):
        resp = await self.client.delete(
            "/api/events/g1-0", params={"organizationId": "org-1"}, headers=OUTSIDER
        )

        assert resp.status == 403
        assert not self.store.get_event_sync("g1-0").is_deleted

    async def test_delete_when_scope_unknown_then_400(self):
        resp = await self.client.delete(
            "/api/events/g1-0",
            params={"organizationId": "org-1", "scope": "everything"},
            headers=MEMBER,
        )

        assert resp.status == 400

    async def test_create_when_recurring_then_instances_created_and_synced(self):
        payload = {
            "organizationId": "org-1",
            "title": "Study hall",
            "startDate": "2026-03-09T18:00:00",
            "endDate": "2026-03-09T20:00:00",
            "recurrence": {"occurrenceType": "weekly", "recurrenceEndDate": "2026-03-23"},
        }

        resp = await self.client.post("/api/events", json=payload, headers=MEMBER)

        assert resp.status == 201
        body = await resp.json()
        assert len(body["eventIds"]) == 3
        assert body["groupId"]
        rows = [self.store.get_event_sync(event_id) for event_id in body["eventIds"]]
        assert [row.start_date.astimezone(UTC).hour for row in rows] == [1, 1, 1]
        assert all(row.created_by_user_id == "user-1" for row in rows)
        assert [item["operation"] for item in self.sync_client.sent] == ["create"] * 3

    async def test_create_when_single_then_no_group(self):
        resp = await self.client.post(
            "/api/events",
            json={"organizationId": "org-1", "title": "Formal", "startDate": "2026-04-10T19:00:00Z"},
            headers=MEMBER,
        )

        assert resp.status == 201
        body = await resp.json()
        assert body["groupId"] is None
        assert len(body["eventIds"]) == 1

    async def test_create_when_body_invalid_then_400(self):
        for case in (
            {"organizationId": "org-1", "startDate": "2026-04-10"},
            {"organizationId": "org-1", "title": "x", "startDate": "not a date"},
            {"organizationId": "org-1", "title": "x", "startDate": "2026-04-10", "endDate": "2026-04-09"},
        ):
            resp = await self.client.post("/api/events", json=case, headers=MEMBER)
            assert resp.status == 400, case

    async def test_create_when_not_member_then_403(self):
        resp = await self.client.post(
            "/api/events",
            json={"organizationId": "org-1", "title": "x", "startDate": "2026-04-10"},
            headers=OUTSIDER,
        )

        assert resp.status == 403

    async def test_update_when_this_and_future_then_later_rows_renamed_and_synced(self):
        resp = await self.client.patch(
            "/api/events/g1-3",
            params={"organizationId": "org-1", "scope": "this_and_future"},
            json={"title": "Moved meeting", "isPhilanthropy": True},
            headers=MEMBER,
        )

        assert resp.status == 200
        assert await resp.json() == {"updatedIds": ["g1-3", "g1-4"]}
        assert self.store.get_event_sync("g1-4").title == "Moved meeting"
        assert self.store.get_event_sync("g1-4").is_philanthropy is True
        assert self.store.get_event_sync("g1-2").title == "Chapter meeting"
        assert [item["operation"] for item in self.sync_client.sent] == ["update", "update"]

    async def test_update_when_date_field_then_400(self):
        resp = await self.client.patch(
            "/api/events/g1-0",
            params={"organizationId": "org-1"},
            json={"startDate": "2026-05-01"},
            headers=MEMBER,
        )

        assert resp.status == 400

    async def test_update_when_title_null_then_400_and_row_untouched(self):
        resp = await self.client.patch(
            "/api/events/g1-0",
            params={"organizationId": "org-1"},
            json={"title": None},
            headers=MEMBER,
        )

        assert resp.status == 400
        assert (await resp.json())["error"] == "invalid_request"
        assert self.store.get_event_sync("g1-0").title == "Chapter meeting"
        assert list(self.sync_client.sent) == []

    async def test_update_when_event_already_deleted_then_404_and_no_sync(self):
        await self.client.delete(
            "/api/events/g1-0", params={"organizationId": "org-1"}, headers=MEMBER
        )
        self.sync_client.sent.clear()

        resp = await self.client.patch(
            "/api/events/g1-0",
            params={"organizationId": "org-1"},
            json={"title": "Ghost"},
            headers=MEMBER,
        )

        assert resp.status == 404
        assert (await resp.json())["error"] == "event_not_found"
        assert self.store.get_event_sync("g1-0").title == "Chapter meeting"
        assert list(self.sync_client.sent) == []


class TestHealth(CalendarApiTestCase):
    async def test_health_when_no_failures_then_ok(self):
        resp = await self.client.get("/api/health")

        assert resp.status == 200
        body = await resp.json()
        assert body["status"] == "ok"
        assert body["timeline_status"]["default_timezone"] == "America/Los_Angeles"
        assert body["timeline_status"]["events_recurrence_column"] is True
        assert body["sync"] == {"endpoint_configured": False}
        assert {"root", "orgcal_lite", "httpx"} <= set(body["logging"])

    async def test_health_when_timeline_served_then_counters_reported(self):
        await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08"},
            headers=MEMBER,
        )

        body = await (await self.client.get("/api/health")).json()

        assert body["timeline_status"]["requests"] == 1
        assert set(body["sources"]) == {"events", "schedules", "feeds", "classes"}


class FeedOutageStore(JsonCalendarStore):
    async def fetch_feed_events(self, org_id, user_id, window_start, window_end):
        raise ConnectionError("feed table unavailable")


class TestPartialFailure(AioHTTPTestCase):
    async def get_application(self):
        source = seed_store()
        store = FeedOutageStore()
        store.add_membership(Membership(user_id="user-1", organization_id="org-1"))
        store.add_events([source.get_event_sync("g1-0")])
        store.add_schedule_events(source._schedule_events)
        store.add_class_rules(source._class_rules)
        return _make_app({"default_timezone": "America/Los_Angeles"}, store, LoggingSyncClient())

    async def test_unified_events_when_feed_source_fails_then_200_with_other_sources(self):
        resp = await self.client.get(
            "/api/calendar/unified-events",
            params={"orgId": "org-1", "start": "2026-03-02", "end": "2026-03-08"},
            headers=MEMBER,
        )

        assert resp.status == 200
        body = await resp.json()
        assert {event["sourceType"] for event in body["events"]} == {"event", "schedule", "class"}
        assert body["meta"]["total"] == 4

        health = await self.client.get("/api/health")
        assert health.status == 503
        health_body = await health.json()
        assert health_body["sources"]["feeds"]["failures"] == 1
        assert health_body["adapter_calls"]["by_label"]["feeds"]["error"] == 1
        assert health_body["adapter_calls"]["by_label"]["events"]["ok"] == 1
