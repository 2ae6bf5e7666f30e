from __future__ import annotations

from db.settings import SETTINGS, DbSettings


def get_db_settings() -> DbSettings:
    # No engine lives here: every request step opens (and disposes) its own via db.connection.
    return SETTINGS
