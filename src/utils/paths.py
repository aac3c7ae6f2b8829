"""File path resolution using platformdirs.

The data directory holds the default SQLite database. Resolution order:
  1. CHATBRIDGE_DATA_DIR (explicit override, used by containers and tests)
  2. Platform user data dir:
       macOS: ~/Library/Application Support/chatbridge/
       Linux: ~/.local/share/chatbridge/
       Windows: %LOCALAPPDATA%/chatbridge/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "chatbridge"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB)."""
    override = os.environ.get("CHATBRIDGE_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "chatbridge.db"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    get_data_dir().mkdir(parents=True, exist_ok=True)
