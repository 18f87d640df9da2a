"""Root conftest: test env and a throwaway database apply to ALL test paths (tests/, apps/linkvault/tests/)."""

import os
import tempfile

import pytest

# Ensure ENV=test before any app module reads it
os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")

# DATABASE_TEST_URL points the suite at Postgres; otherwise a SQLite file per session.
# Must be set before apps.linkvault.db is imported (engine is built at import).
DATABASE_TEST_URL = os.getenv("DATABASE_TEST_URL")
_SQLITE_DIR = tempfile.mkdtemp(prefix="linkvault_test_")
os.environ["DATABASE_URL"] = DATABASE_TEST_URL or "sqlite:///" + os.path.join(_SQLITE_DIR, "linkvault_test.db")


@pytest.fixture(autouse=True)
def db_schema():
    """Fresh schema for every test: drop_all + create_all."""
    from apps.linkvault.db import drop_tables, ensure_tables

    drop_tables()
    ensure_tables()
    yield


@pytest.fixture
def archive_config():
    """Small limits and a fast backoff so tests stay quick."""
    from apps.linkvault.config import ArchiveConfig

    return ArchiveConfig(
        connect_timeout=1.0,
        read_timeout=1.0,
        total_timeout=30.0,
        max_redirects=3,
        max_content_size=64 * 1024,
        max_retries=3,
        retry_backoff_base=2.0,
        user_agent_contact_url="https://linkvault.test/contact",
        environment="test",
    )
