# config/settings/local.py
import os
import tempfile

from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

# SQLite unless explicitly pointed at PostgreSQL.
# SQLite has no row locks (select_for_update is a no-op), so every atomic block
# opens with BEGIN IMMEDIATE: writers queue on the database lock for up to
# `timeout` seconds instead of failing with "database is locked".
# The test database is a file so threads see the same locking as a real server.
if os.getenv("DB_ENGINE", "sqlite").lower() not in ("postgres", "postgresql"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("DB_NAME_SQLITE", str(BASE_DIR / "db.sqlite3")),  # noqa: F405
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": int(os.getenv("DB_SQLITE_TIMEOUT", "20")),
            },
            "TEST": {
                "NAME": os.getenv(
                    "DB_NAME_SQLITE_TEST",
                    os.path.join(tempfile.gettempdir(), "hm_beds_test.sqlite3"),
                ),
            },
        }
    }
