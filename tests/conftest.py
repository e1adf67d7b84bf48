"""Pytest configuration helpers.

Puts `backend/` on `sys.path` so tests can import the `reelforge` package
without an editable install, and provides an isolated SQLite database for
the SQL-backed collaborators.
"""
import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from reelforge.database import build_engine, build_session_factory, init_db  # noqa: E402


@pytest.fixture
async def session_factory(tmp_path):
    """Fresh SQLite file database with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'reelforge.db'}")
    await init_db(engine)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()
