"""
Tests for caller-side session helpers.
"""

from unittest.mock import MagicMock

import pytest

from shared.infrastructure.db import build_engine, get_db_context, safe_commit


class TestSessionHelpers:
    """The caller owns the transaction lifecycle."""

    def test_sqlite_engine_skips_server_pool_options(self):
        engine = build_engine("sqlite:///:memory:")
        assert engine.dialect.name == "sqlite"

    def test_context_closes_session(self):
        session = MagicMock()
        factory = MagicMock(return_value=session)

        with get_db_context(factory) as db:
            assert db is session

        session.close.assert_called_once()

    def test_safe_commit_rolls_back_on_failure(self):
        session = MagicMock()
        session.commit.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            safe_commit(session)

        session.rollback.assert_called_once()
