"""
Store facade.

`STORAGE_MODE=json` (default) uses `JsonStore`; `STORAGE_MODE=db` uses the SQL
store in `typearena.db.store`. Admin users always live in the JSON users file.
"""

import os

from .json_store import (
    JsonStore,
    generate_code,
    get_users_with_default_admin,
    save_users,
)

STORAGE_MODE = os.getenv("STORAGE_MODE", "json").strip().lower()

_store = None


def is_json_mode() -> bool:
    return STORAGE_MODE != "db"


def get_store():
    """Return the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        if is_json_mode():
            _store = JsonStore()
        else:
            from typearena.db.store import SqlStore

            _store = SqlStore()
    return _store


def set_store(store) -> None:
    """Swap the process-wide store (tests point it at a temp directory)."""
    global _store
    _store = store


__all__ = [
    "STORAGE_MODE",
    "JsonStore",
    "generate_code",
    "get_store",
    "get_users_with_default_admin",
    "is_json_mode",
    "save_users",
    "set_store",
]
