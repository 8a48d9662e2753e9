"""Unit tests for orgcal_lite.storage.memory_store.JsonCalendarStore."""

import datetime
import json

import pytest

from orgcal_lite.domain.exceptions import StorageError
from orgcal_lite.domain.models import EventRow, Membership
from orgcal_lite.storage.memory_store import JsonCalendarStore

pytestmark = pytest.mark.unit

UTC = datetime.UTC


def make_row(event_id: str, org_id: str = "org-1", day: int = 2) -> EventRow:
    return EventRow(
        id=event_id,
        organization_id=org_id,
        title=event_id,
        start_date=datetime.datetime(2026, 3, day, 18, tzinfo=UTC),
    )


def test_load_when_file_missing_then_empty_store(tmp_path) -> None:
    store = JsonCalendarStore(tmp_path / "missing.json")

    assert store.get_event_sync("anything") is None


def test_load_when_file_valid_then_rows_available(tmp_path) -> None:
    data_file = tmp_path / "calendar.json"
    data_file.write_text(
        json.dumps(
            {
                "events": [
                    {
                        "id": "e1",
                        "organization_id": "org-1",
                        "title": "Meeting",
                        "start_date": "2026-03-02T18:00:00Z",
                    }
                ],
                "memberships": [
                    {"user_id": "user-1", "organization_id": "org-1", "status": "active"}
                ],
                "academic_schedules": [
                    {
                        "id": "r1",
                        "organization_id": "org-1",
                        "user_id": "user-1",
                        "title": "Chem",
                        "start_date": "2026-01-05",
                        "start_time": "09:00:00",
                        "end_time": "10:00:00",
                        "occurrence_type": "daily",
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    store = JsonCalendarStore(data_file)

    assert store.get_event_sync("e1").title == "Meeting"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"events": [{"id": "no-fields"}]}'])
def test_load_when_file_invalid_then_storage_error(tmp_path, content) -> None:
    data_file = tmp_path / "calendar.json"
    data_file.write_text(content, encoding="utf-8")

    with pytest.raises(StorageError):
        JsonCalendarStore(data_file)


@pytest.mark.asyncio
async def test_mutations_when_persisted_then_reloaded_by_new_store(tmp_path) -> None:
    data_file = tmp_path / "calendar.json"
    store = JsonCalendarStore(data_file)
    store.add_membership(Membership(user_id="user-1", organization_id="org-1"))
    await store.insert_events([make_row("e1"), make_row("e2")])
    await store.soft_delete_events(["e1"], "org-1", datetime.datetime(2026, 3, 1, tzinfo=UTC))

    reloaded = JsonCalendarStore(data_file)

    assert reloaded.get_event_sync("e1").is_deleted
    assert not reloaded.get_event_sync("e2").is_deleted
    assert (await reloaded.get_membership("user-1", "org-1")).is_active
    assert not list(tmp_path.glob("tmp*"))


@pytest.mark.asyncio
async def test_soft_delete_when_rows_already_deleted_or_other_org_then_skipped(store) -> None:
    store.add_events([make_row("e1"), make_row("e2", org_id="org-2")])
    when = datetime.datetime(2026, 3, 1, tzinfo=UTC)

    first = await store.soft_delete_events(["e1", "e2", "missing"], "org-1", when)
    second = await store.soft_delete_events(["e1"], "org-1", when)

    assert first == 1
    assert second == 0
    assert not store.get_event_sync("e2").is_deleted


@pytest.mark.asyncio
async def test_insert_events_when_duplicate_id_then_nothing_inserted(store) -> None:
    store.add_events([make_row("e1")])

    with pytest.raises(StorageError):
        await store.insert_events([make_row("e2"), make_row("e1")])

    assert store.get_event_sync("e2") is None


@pytest.mark.asyncio
async def test_update_events_when_invalid_value_then_storage_error(store) -> None:
    store.add_events([make_row("e1")])

    with pytest.raises(StorageError):
        await store.update_events(["e1"], "org-1", {"is_philanthropy": "not-a-bool"})

    assert store.get_event_sync("e1").is_philanthropy is False


@pytest.mark.asyncio
async def test_update_events_when_row_soft_deleted_then_skipped(store) -> None:
    store.add_events([make_row("e1"), make_row("e2")])
    await store.soft_delete_events(["e1"], "org-1", datetime.datetime(2026, 3, 1, tzinfo=UTC))

    updated = await store.update_events(["e1", "e2"], "org-1", {"title": "Renamed"})

    assert [row.id for row in updated] == ["e2"]
    assert store.get_event_sync("e1").title == "e1"

@pytest.mark.asyncio
async def test_list_series_when_rows_deleted_then_only_live_rows(store) -> None:
    rows = [
        make_row("a").model_copy(update={"recurrence_group_id": "g", "recurrence_index": 0}),
        make_row("b").model_copy(update={"recurrence_group_id": "g", "recurrence_index": 1}),
    ]
    store.add_events(rows)
    await store.soft_delete_events(["a"], "org-1", datetime.datetime(2026, 3, 1, tzinfo=UTC))

    series = await store.list_series("g", "org-1")

    assert [row.id for row in series] == ["b"]


@pytest.mark.asyncio
async def test_get_membership_when_unknown_then_none(store) -> None:
    assert await store.get_membership("user-9", "org-1") is None
    assert await store.get_event("e1", "org-1") is None
