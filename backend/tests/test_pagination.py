"""
Tests for query parameter parsing and page metadata.
"""

import json

import pytest

from datastore.pagination import (
    cursor_meta,
    pagination_meta,
    parse_cursor_query,
    parse_pagination_query,
)
from shared.config.constants import SortMode
from shared.config.settings import settings
from shared.utils.exceptions import ValidationError


class TestParsePaginationQuery:
    """Offset pagination parsing."""

    def test_defaults_without_filters(self):
        query = parse_pagination_query({})
        assert query.page == 1
        assert query.limit == settings.default_page_size
        assert query.offset == 0
        assert query.sort.by == "id"
        assert query.sort.mode == SortMode.ASC
        assert query.field == {}

    def test_offset_from_page_and_limit(self):
        query = parse_pagination_query(
            {"filters": {"pagination": {"page": 2, "limit": 3}}}
        )
        assert query.offset == 3
        assert query.limit == 3

    def test_json_encoded_sections_are_decoded(self):
        query = parse_pagination_query(
            {
                "filters": {
                    "pagination": json.dumps({"page": "3", "limit": "5"}),
                    "sort": json.dumps({"by": "name", "mode": "DESC"}),
                    "field": json.dumps({"status": "ACTIVE"}),
                }
            }
        )
        assert (query.page, query.limit, query.offset) == (3, 5, 10)
        assert query.sort.by == "name"
        assert query.sort.descending
        assert query.field == {"status": "ACTIVE"}

    def test_limit_is_capped(self):
        query = parse_pagination_query(
            {"filters": {"pagination": {"limit": settings.max_page_size + 50}}}
        )
        assert query.limit == settings.max_page_size

    def test_page_below_one_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_pagination_query({"filters": {"pagination": {"page": 0}}})
        assert exc_info.value.code == "R400"

    def test_non_numeric_limit_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_pagination_query({"filters": {"pagination": {"limit": "many"}}})

    def test_invalid_json_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_pagination_query({"filters": {"pagination": "{not json"}})
        assert "pagination" in exc_info.value.detail

    def test_unknown_sort_mode_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_pagination_query({"filters": {"sort": {"by": "name", "mode": "sideways"}}})


class TestParseCursorQuery:
    """Cursor pagination parsing."""

    def test_missing_and_empty_cursor_mean_first_page(self):
        assert parse_cursor_query({}).cursor is None
        assert parse_cursor_query({"filters": {"pagination": {"cursor": ""}}}).cursor is None

    def test_numeric_cursor_becomes_text(self):
        query = parse_cursor_query({"filters": {"pagination": {"cursor": 42, "limit": 2}}})
        assert query.cursor == "42"
        assert query.limit == 2


class TestMeta:
    """Result metadata."""

    def test_total_pages_rounds_up(self):
        meta = pagination_meta(total=10, page=2, limit=3)
        assert meta.total_pages == 4
        assert meta.model_dump() == {"total": 10, "page": 2, "limit": 3, "total_pages": 4}

    def test_empty_result_has_zero_pages(self):
        assert pagination_meta(total=0, page=1, limit=10).total_pages == 0

    def test_last_cursor_is_id_of_final_row(self):
        meta = cursor_meta(result=[{"id": "a"}, {"id": "b"}], total=5)
        assert meta.last_cursor == "b"
        assert meta.total == 5

    def test_last_cursor_is_empty_for_empty_page(self):
        assert cursor_meta(result=[], total=5).last_cursor == ""
