"""
Tests for schema helpers and the session context manager.
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import db.session
from db import create_tables, drop_tables, get_db_session
from exceptions import DatabaseError
from models import LocalUser


@pytest.fixture
async def bare_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    yield engine
    await engine.dispose()


async def table_names(engine):
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


@pytest.mark.unit
class TestSchema:

    async def test_create_and_drop_tables(self, bare_engine):
        created = await create_tables(bind=bare_engine)

        assert created.index("zoom_meetings") < created.index("zoom_meeting_details")
        assert created.index("zoom_meeting_details") < created.index("zoom_meeting_participants")
        assert set(await table_names(bare_engine)) == set(created)

        await drop_tables(bind=bare_engine)
        assert await table_names(bare_engine) == []


@pytest.mark.unit
class TestSessionScope:

    async def test_commits_on_success(self, test_engine, monkeypatch):
        maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        monkeypatch.setattr(db.session, "async_session_maker", maker)

        async with get_db_session() as session:
            session.add(LocalUser(email="joe@test.com", first_name="Joe", last_name="Smith"))

        async with maker() as session:
            assert await session.get(LocalUser, 1) is not None

    async def test_error_in_block_rolls_back_and_propagates(self, test_engine, monkeypatch):
        maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        monkeypatch.setattr(db.session, "async_session_maker", maker)

        with pytest.raises(RuntimeError):
            async with get_db_session() as session:
                session.add(LocalUser(email="joe@test.com", first_name="Joe", last_name="Smith"))
                await session.flush()
                raise RuntimeError("boom")

        async with maker() as session:
            assert await session.get(LocalUser, 1) is None

    async def test_failed_commit_raises_database_error(self, test_engine, monkeypatch):
        maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        monkeypatch.setattr(db.session, "async_session_maker", maker)

        with pytest.raises(DatabaseError):
            async with get_db_session() as session:
                session.add(LocalUser(email="joe@test.com", first_name="Joe", last_name="Smith"))
                session.add(LocalUser(email="joe@test.com", first_name="Joseph", last_name="Smith"))
