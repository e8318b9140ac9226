"""
Shared fixtures for store integration tests.

Needs a migrated Postgres (``alembic upgrade head``) reachable at DATABASE_URL;
the tests are skipped otherwise.
"""

from __future__ import annotations

import os
from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from flat_booking.db.engine import get_engine
from flat_booking.store.sql import SqlStore

TEST_FLAT_ID = 990001


@pytest.fixture(scope="module")
def engine() -> Engine:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set")
    return get_engine(database_url)


@pytest.fixture
def sql_store(engine: Engine) -> SqlStore:
    return SqlStore(engine)


@pytest.fixture
def test_flat(engine: Engine) -> Generator[int, None, None]:
    """Create a flat for reservation tests and remove it (and its reservations) afterwards."""
    with engine.begin() as conn:
        conn.execute(
            text(
                """
                INSERT INTO flats (id, slug, nome, preco_noite)
                VALUES (:id, 'flat-test', 'Flat Teste', 250)
                ON CONFLICT (id) DO NOTHING
                """
            ),
            {"id": TEST_FLAT_ID},
        )

    yield TEST_FLAT_ID

    with engine.begin() as conn:
        conn.execute(text("DELETE FROM reservas WHERE flat_id = :id"), {"id": TEST_FLAT_ID})
        conn.execute(text("DELETE FROM flats WHERE id = :id"), {"id": TEST_FLAT_ID})
