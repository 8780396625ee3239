"""
Tests for audited delete and batch delete.
"""

import pytest
from sqlalchemy import select

from datastore.crud.delete import delete, delete_batch
from datastore.crud.read import get_by_id
from datastore.models import Audit
from shared.config.constants import AuditAction
from shared.utils.exceptions import NotFoundError
from tests.models import Device


class TestDelete:
    """Single-row delete."""

    def test_delete_audits_and_returns_snapshot(self, db_session, cache, ctx, seed_devices):
        snapshot = delete(True, ctx, "d-03", db_session, Device, cache=cache)

        assert snapshot["id"] == "d-03"
        assert db_session.get(Device, "d-03") is None

        [record] = db_session.scalars(select(Audit)).all()
        assert record.action == AuditAction.DELETE
        assert record.previous == snapshot
        assert record.incoming == {}
        assert record.change_count == 0

    def test_delete_invalidates_cache(self, db_session, cache, ctx, seed_devices):
        get_by_id(db_session, Device, "d-03", cache=cache)
        assert "device:d-03" in cache.store

        delete(False, ctx, "d-03", db_session, Device, cache=cache)

        assert "device:d-03" not in cache.store
        with pytest.raises(NotFoundError):
            get_by_id(db_session, Device, "d-03", cache=cache)

    def test_missing_id_fails_before_mutation(self, db_session, cache, ctx, seed_devices):
        with pytest.raises(NotFoundError):
            delete(True, ctx, "d-404", db_session, Device, cache=cache)
        assert db_session.scalars(select(Audit)).all() == []

    def test_where_mismatch_keeps_row(self, db_session, ctx, seed_devices):
        with pytest.raises(NotFoundError):
            delete(True, ctx, "d-01", db_session, Device, where={"status": "INACTIVE"})
        assert db_session.get(Device, "d-01") is not None

    def test_delete_cascades_to_sensors(self, db_session, ctx, seed_sensors):
        snapshot = delete(True, ctx, "d-01", db_session, Device, include=["sensors"])
        assert len(snapshot["sensors"]) == 2


class TestDeleteBatch:
    """Bulk delete is not audited but invalidates cached ids."""

    def test_deletes_matching_rows(self, db_session, cache, seed_devices):
        result = delete_batch(["d-01", "d-02", "d-03"], db_session, Device, cache=cache)

        assert result.count == 3
        assert db_session.scalars(select(Device.id).order_by(Device.id)).all()[0] == "d-04"
        assert db_session.scalars(select(Audit)).all() == []

    def test_where_limits_batch(self, db_session, seed_devices):
        result = delete_batch(
            ["d-01", "d-02", "d-03"], db_session, Device, where={"status": "INACTIVE"}
        )
        assert result.count == 1

    def test_only_cached_ids_are_invalidated(self, db_session, cache, seed_devices):
        get_by_id(db_session, Device, "d-01", cache=cache)
        cache.calls.clear()

        delete_batch(["d-01", "d-02"], db_session, Device, cache=cache)

        assert ("delete", "device:d-01") in cache.calls
        assert ("delete", "device:d-02") not in cache.calls
        assert cache.store == {}

    def test_empty_ids(self, db_session, seed_devices):
        assert delete_batch([], db_session, Device).count == 0
