"""Token persistence queries."""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from freeagent.api.auth import TokenSet
from freeagent.store.schema import get_db_path, init_database


def _connect(db_path: Path | None = None) -> sqlite3.Connection:
    """Create a database connection with row factory, creating the schema if needed.

    Args:
        db_path: Path to the database file. If None, uses default location.

    Returns:
        Database connection with row_factory configured.
    """
    if db_path is None:
        db_path = get_db_path()
    if not db_path.exists():
        init_database(db_path)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def save_tokens(profile: str, tokens: TokenSet, db_path: Path | None = None) -> None:
    """Insert or replace the tokens for a profile.

    Args:
        profile: Profile name.
        tokens: Tokens to store.
        db_path: Path to the database file. If None, uses default location.

    Raises:
        sqlite3.Error: If database operation fails.
    """
    now = datetime.now(timezone.utc).isoformat()
    conn = _connect(db_path)
    try:
        with conn:
            conn.execute(
                """
                INSERT INTO tokens (profile, access_token, refresh_token, token_type, expires_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(profile) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    token_type = excluded.token_type,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (
                    profile,
                    tokens.access_token,
                    tokens.refresh_token,
                    tokens.token_type,
                    tokens.expires_at.isoformat(),
                    now,
                ),
            )
    finally:
        conn.close()


def load_tokens(profile: str, db_path: Path | None = None) -> TokenSet | None:
    """Load the stored tokens for a profile.

    Returns:
        TokenSet, or None if the profile has never logged in.
    """
    conn = _connect(db_path)
    try:
        row = conn.execute(
            "SELECT access_token, refresh_token, token_type, expires_at FROM tokens WHERE profile = ?",
            (profile,),
        ).fetchone()
    finally:
        conn.close()

    if row is None:
        return None

    expires_at = datetime.fromisoformat(row["expires_at"])
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return TokenSet(
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        expires_at=expires_at,
        token_type=row["token_type"],
    )


def delete_tokens(profile: str, db_path: Path | None = None) -> bool:
    """Forget the tokens for a profile.

    Returns:
        True if tokens were removed, False if none were stored.
    """
    conn = _connect(db_path)
    try:
        with conn:
            cursor = conn.execute("DELETE FROM tokens WHERE profile = ?", (profile,))
        return cursor.rowcount > 0
    finally:
        conn.close()


def list_profiles(db_path: Path | None = None) -> list[dict[str, str]]:
    """List profiles with stored tokens, ordered by name."""
    conn = _connect(db_path)
    try:
        rows = conn.execute("SELECT profile, expires_at, updated_at FROM tokens ORDER BY profile").fetchall()
    finally:
        conn.close()
    return [dict(row) for row in rows]
