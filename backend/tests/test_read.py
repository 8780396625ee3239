"""
Tests for cached reads, filtered finds and list pages.
"""

import pytest

from datastore.crud.read import (
    get,
    get_by_id,
    get_many,
    list_cursor,
    list_dropdown,
    list_pagination,
    list_pagination_with_include,
)
from shared.utils.exceptions import NotFoundError, ValidationError
from tests.models import Device, Site


class TestGetById:
    """Read-through cache by id."""

    def test_miss_reads_store_and_populates_cache(self, db_session, cache, seed_devices):
        entity = get_by_id(db_session, Device, "d-01", cache=cache)

        assert entity["id"] == "d-01"
        assert entity["name"] == "device-01"
        assert cache.store["device:d-01"] == entity

    def test_hit_does_not_query_store(self, db_session, cache, seed_devices, statements):
        first = get_by_id(db_session, Device, "d-02", cache=cache)
        statements.clear()

        second = get_by_id(db_session, Device, "d-02", cache=cache)

        assert second == first
        assert statements == []

    def test_missing_id_raises_not_found(self, db_session, cache, seed_devices):
        with pytest.raises(NotFoundError) as exc_info:
            get_by_id(db_session, Device, "d-404", cache=cache)

        assert exc_info.value.status_code == 404
        assert exc_info.value.entity_id == "d-404"
        assert "device:d-404" not in cache.store

    def test_include_and_fields_shape_snapshot(self, db_session, seed_sensors):
        entity = get_by_id(db_session, Device, "d-01", include=["sensors"], fields=["id", "name"])

        assert set(entity) == {"id", "name", "sensors"}
        assert [sensor["id"] for sensor in entity["sensors"]] == ["s-1", "s-2"]

    def test_snapshot_is_json_safe(self, db_session, seed_devices):
        entity = get_by_id(db_session, Device, "d-03")
        assert isinstance(entity["created_at"], str)

    def test_unknown_include_is_rejected(self, db_session, seed_devices):
        with pytest.raises(ValidationError):
            get_by_id(db_session, Device, "d-01", include=["owner"])


class TestGetAndGetMany:
    """Uncached filtered finds."""

    def test_get_returns_first_match(self, db_session, cache, seed_devices):
        entity = get(db_session, Device, where={"status": "INACTIVE"})
        assert entity["id"] == "d-02"
        assert cache.calls == []

    def test_get_returns_none_without_match(self, db_session, seed_devices):
        assert get(db_session, Device, where={"name": "nope"}) is None

    def test_get_many_applies_operators(self, db_session, seed_devices):
        entities = get_many(
            db_session,
            Device,
            where={"id": {"in": ["d-01", "d-02", "d-03"]}, "status": {"not": "INACTIVE"}},
        )
        assert [entity["id"] for entity in entities] == ["d-01", "d-03"]

    def test_unknown_operator_is_rejected(self, db_session, seed_devices):
        with pytest.raises(ValidationError):
            get_many(db_session, Device, where={"name": {"near": "x"}})


class TestListDropdown:
    """Name search limited to id/name."""

    def test_search_matches_substring(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx({"search": "ice-1"})
        assert list_dropdown(ctx, db_session, Device) == [{"id": "d-10", "name": "device-10"}]

    def test_search_treats_wildcards_literally(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx({"search": "%"})
        assert list_dropdown(ctx, db_session, Device) == []

    def test_no_search_lists_everything(self, db_session, ctx, seed_devices):
        rows = list_dropdown(ctx, db_session, Device)
        assert len(rows) == 10
        assert set(rows[0]) == {"id", "name"}


class TestListPagination:
    """Offset pages."""

    def test_second_page_of_ten_rows(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx({"filters": {"pagination": {"page": 2, "limit": 3}}})

        page = list_pagination(ctx, db_session, Device)

        assert [row["id"] for row in page.result] == ["d-04", "d-05", "d-06"]
        assert page.meta.total == 10
        assert page.meta.total_pages == 4
        assert set(page.result[0]) == {"id", "name"}

    def test_request_filters_and_caller_where_share_the_count(
        self, db_session, make_ctx, seed_devices
    ):
        ctx = make_ctx(
            {
                "filters": {
                    "pagination": {"page": 1, "limit": 2},
                    "field": {"status": "ACTIVE"},
                }
            }
        )

        page = list_pagination(ctx, db_session, Device, where={"id": {"lte": "d-05"}})

        assert [row["id"] for row in page.result] == ["d-01", "d-03"]
        assert page.meta.total == 3

    def test_caller_where_overrides_request_filter(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx({"filters": {"field": {"status": "ACTIVE"}}})
        page = list_pagination(ctx, db_session, Device, where={"status": "INACTIVE"})
        assert page.meta.total == 5

    def test_sort_descending(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx(
            {
                "filters": {
                    "pagination": {"limit": 2},
                    "sort": {"by": "name", "mode": "desc"},
                }
            }
        )
        page = list_pagination(ctx, db_session, Device)
        assert [row["name"] for row in page.result] == ["device-10", "device-09"]

    def test_unknown_sort_column_is_rejected(self, db_session, make_ctx, seed_devices):
        ctx = make_ctx({"filters": {"sort": {"by": "colour"}}})
        with pytest.raises(ValidationError):
            list_pagination(ctx, db_session, Device)

    def test_with_include_returns_selected_fields(self, db_session, make_ctx, seed_sensors):
        ctx = make_ctx({"filters": {"pagination": {"limit": 1}}})

        page = list_pagination_with_include(
            ctx, db_session, Device, fields=["id", "status"], include=["sensors"]
        )

        assert page.result == [
            {
                "id": "d-01",
                "status": "ACTIVE",
                "sensors": [
                    {"id": "s-1", "name": "temperature", "device_id": "d-01"},
                    {"id": "s-2", "name": "humidity", "device_id": "d-01"},
                ],
            }
        ]


class TestListCursor:
    """Keyset pages continued by the id of the last row."""

    def _page(self, db_session, make_ctx, cursor=None, limit=2, **filters):
        pagination = {"limit": limit}
        if cursor is not None:
            pagination["cursor"] = cursor
        ctx = make_ctx({"filters": {"pagination": pagination, **filters}})
        return list_cursor(ctx, db_session, Device, where={"id": {"lte": "d-05"}})

    def test_pages_cover_all_rows_without_gaps(self, db_session, make_ctx, seed_devices):
        seen = []
        cursor = None
        for _ in range(3):
            page = self._page(db_session, make_ctx, cursor)
            seen.extend(row["id"] for row in page.result)
            cursor = page.meta.last_cursor
            assert page.meta.total == 5

        assert seen == ["d-01", "d-02", "d-03", "d-04", "d-05"]
        assert cursor == "d-05"

        last = self._page(db_session, make_ctx, cursor)
        assert last.result == []
        assert last.meta.last_cursor == ""

    def test_sorted_by_name_descending(self, db_session, make_ctx, seed_devices):
        sort = {"sort": {"by": "name", "mode": "desc"}}
        first = self._page(db_session, make_ctx, None, 3, **sort)
        second = self._page(db_session, make_ctx, first.meta.last_cursor, 3, **sort)

        assert [row["id"] for row in first.result] == ["d-05", "d-04", "d-03"]
        assert [row["id"] for row in second.result] == ["d-02", "d-01"]

    def test_unknown_cursor_raises_not_found(self, db_session, make_ctx, seed_devices):
        with pytest.raises(NotFoundError):
            self._page(db_session, make_ctx, "d-99")


class TestListCursorNullableSort:
    """NULL sort values rank below every value and are never skipped."""

    def _walk(self, db_session, make_ctx, sort, limit):
        pages = []
        cursor = None
        while True:
            pagination = {"limit": limit}
            if cursor:
                pagination["cursor"] = cursor
            ctx = make_ctx({"filters": {"pagination": pagination, "sort": sort}})
            page = list_cursor(ctx, db_session, Site)
            if not page.result:
                return pages
            pages.append([row["id"] for row in page.result])
            cursor = page.meta.last_cursor

    def test_ascending_puts_nulls_first(self, db_session, make_ctx, seed_sites):
        pages = self._walk(db_session, make_ctx, {"by": "parent_id"}, 2)

        assert pages == [
            ["s-hq", "s-warehouse"],
            ["s-room-101", "s-orphan"],
            ["s-floor-1", "s-floor-2"],
        ]

    def test_descending_puts_nulls_last(self, db_session, make_ctx, seed_sites):
        pages = self._walk(db_session, make_ctx, {"by": "parent_id", "mode": "desc"}, 4)

        assert pages == [
            ["s-floor-2", "s-floor-1", "s-orphan", "s-room-101"],
            ["s-warehouse", "s-hq"],
        ]
