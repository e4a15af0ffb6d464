"""Tests for freeagent.store token persistence."""

import os
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from freeagent.api.auth import TokenSet
from freeagent.store import database_exists, delete_tokens, init_database, list_profiles, load_tokens, save_tokens


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "freeagent" / "freeagent.db"


def make_tokens(access: str = "access-1", refresh: str | None = "refresh-1") -> TokenSet:
    return TokenSet(access, refresh, datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc) + timedelta(hours=1))


class TestSchema:
    def test_init_database_is_private(self, db_path: Path) -> None:
        """Should create the database readable by the owner only."""
        assert not database_exists(db_path)

        init_database(db_path)

        assert database_exists(db_path)
        assert stat.S_IMODE(os.stat(db_path).st_mode) == 0o600


class TestTokens:
    """Tests for saving and loading tokens."""

    def test_load_missing_profile(self, db_path: Path) -> None:
        """Should create the schema on first use and find nothing."""
        assert load_tokens("default", db_path) is None

    def test_save_and_load(self, db_path: Path) -> None:
        save_tokens("default", make_tokens(), db_path)

        loaded = load_tokens("default", db_path)

        assert loaded == make_tokens()
        assert loaded.expires_at.tzinfo is not None

    def test_save_replaces_existing(self, db_path: Path) -> None:
        save_tokens("default", make_tokens(), db_path)
        save_tokens("default", make_tokens("access-2", None), db_path)

        loaded = load_tokens("default", db_path)

        assert loaded.access_token == "access-2"
        assert loaded.refresh_token is None
        assert len(list_profiles(db_path)) == 1

    def test_profiles_are_separate(self, db_path: Path) -> None:
        save_tokens("work", make_tokens("w"), db_path)
        save_tokens("default", make_tokens("d"), db_path)

        assert [row["profile"] for row in list_profiles(db_path)] == ["default", "work"]
        assert load_tokens("work", db_path).access_token == "w"

    def test_delete_tokens(self, db_path: Path) -> None:
        save_tokens("default", make_tokens(), db_path)

        assert delete_tokens("default", db_path) is True
        assert delete_tokens("default", db_path) is False
        assert load_tokens("default", db_path) is None
