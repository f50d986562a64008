"""
Shared pytest fixtures.

Unit tests run against a mocked ``AsyncSession``.  Integration tests get a
fresh in-memory SQLite database (via aiosqlite) per test, seeded with the
``users`` table holding Alice (id 1) and Bob (id 2).
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

from typing import Any, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlmodel import Field, SQLModel  # noqa: E402

from tablerepo.core.config import Settings  # noqa: E402
from tablerepo.db.session import create_engine, create_sessionmaker  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Domain objects used across the suite
# ────────────────────────────────────────────────────────────────────────────


class User(SQLModel, table=True):
    """SQLModel table backing the ``users`` scenario."""

    __tablename__ = "users"  # type: ignore[assignment]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)


class Person:
    """Plain domain object built from keyword arguments."""

    def __init__(self, id: Any = None, name: Optional[str] = None):
        self.id = id
        self.name = name

    def __repr__(self) -> str:
        return f"<Person id={self.id} name={self.name!r}>"


def make_person(row: dict) -> Person:
    """``build`` callable for :class:`Person`."""
    return Person(**row)


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession on a dialect that supports INSERT ... RETURNING."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get_bind = MagicMock()
    session.get_bind.return_value.dialect.insert_returning = True
    return session


def make_result(rows=None, scalar=None, rowcount=0, lastrowid=None) -> MagicMock:
    """Build a mocked SQLAlchemy ``Result``."""
    result = MagicMock()
    result.mappings.return_value.all.return_value = rows or []
    result.scalar_one.return_value = scalar
    result.rowcount = rowcount
    result.lastrowid = lastrowid
    return result


@pytest.fixture()
def sqlite_settings():
    """Settings selecting a private in-memory SQLite database."""
    return Settings(USE_SQLITE=True, _env_file=None)  # type: ignore[call-arg]


@pytest_asyncio.fixture()
async def engine(sqlite_settings):
    """A fresh in-memory SQLite engine with the ``users`` table created."""
    test_engine = create_engine(sqlite_settings)
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture()
async def session(engine):
    """An AsyncSession on a ``users`` table seeded with Alice and Bob."""
    async with create_sessionmaker(engine)() as db:
        await db.execute(
            insert(User.__table__),
            [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bob"}],
        )
        await db.commit()
        yield db
