"""
Pytest configuration and fixtures.
"""
import pytest
from datetime import datetime
from typing import Dict, List

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from models import (
    Base,
    Enrolment,
    LocalUser,
    MeetingDetails,
    ZoomMeeting,
    MEETING_EXISTS,
)
from schemas import ParticipationRecord


# ============================================
# DATABASE FIXTURES
# ============================================

@pytest.fixture(scope="function")
async def test_engine():
    """Create a test database engine using in-memory SQLite."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_db_session(test_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# ============================================
# FAKE ZOOM
# ============================================

class FakeZoomService:
    """Stands in for ZoomService; reports are keyed by occurrence UUID."""

    def __init__(self, reports: Dict[str, object] = None):
        self.reports = reports or {}
        self.participant_calls: List[tuple] = []
        self.instances: Dict[int, list] = {}
        self.details: Dict[str, object] = {}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    async def get_meeting_participants(self, uuid, webinar=False):
        self.participant_calls.append((uuid, webinar))
        report = self.reports.get(uuid, [])
        if isinstance(report, Exception):
            raise report
        return [ParticipationRecord.model_validate(r) for r in report]

    async def get_past_meeting_instances(self, meeting_id):
        result = self.instances.get(meeting_id, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def get_past_meeting_details(self, uuid):
        result = self.details[uuid]
        if isinstance(result, Exception):
            raise result
        return result


# ============================================
# MOCK DATA FIXTURES
# ============================================

def participant(name, email=None, join="2019-01-01T00:00:00Z", leave="2019-01-01T00:01:00Z",
                duration=60, uuid="PARTICIPANTUUID", user_id=123456789):
    """Raw participant dict as returned by the Zoom report API."""
    return {
        "id": uuid,
        "user_id": user_id,
        "name": name,
        "user_email": email or "",
        "join_time": join,
        "leave_time": leave,
        "duration": duration,
    }


@pytest.fixture
async def course_setup(test_db_session):
    """One course (id 7) with two enrolled users, a meeting and one occurrence."""
    session = test_db_session
    joe = LocalUser(email="joe@test.com", first_name="Joe", last_name="Smith")
    ann = LocalUser(email="ann@test.com", first_name="Ann", last_name="Lee")
    outsider = LocalUser(email="guest@test.com", first_name="Gus", last_name="Guest")
    session.add_all([joe, ann, outsider])
    await session.flush()
    session.add_all([
        Enrolment(course_id=7, user_id=joe.id),
        Enrolment(course_id=7, user_id=ann.id),
    ])
    meeting = ZoomMeeting(
        course_id=7,
        name="Lecture",
        meeting_id=111222333,
        start_time=datetime(2019, 1, 1),
        duration=3600,
        exists_on_zoom=MEETING_EXISTS,
    )
    session.add(meeting)
    await session.flush()
    details = MeetingDetails(
        zoom_id=meeting.id,
        meeting_id=meeting.meeting_id,
        uuid="OCCURRENCE-1",
        topic="Lecture",
        start_time=datetime(2019, 1, 1),
    )
    session.add(details)
    await session.commit()
    return {"joe": joe, "ann": ann, "outsider": outsider, "meeting": meeting, "details": details}
