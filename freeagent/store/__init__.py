"""Database store layer - persists OAuth tokens between runs.

This module re-exports all public database functions for easy importing.
"""

from freeagent.store.schema import database_exists, get_db_path, init_database
from freeagent.store.tokens import delete_tokens, list_profiles, load_tokens, save_tokens

__all__ = [
    # Schema
    "database_exists",
    "get_db_path",
    "init_database",
    # Tokens
    "delete_tokens",
    "list_profiles",
    "load_tokens",
    "save_tokens",
]
