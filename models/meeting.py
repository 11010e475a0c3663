"""
Meeting-related database models.
"""
from sqlalchemy import Column, String, Integer, BigInteger, Text, Boolean, DateTime, ForeignKey
from models.base import Base
from utils import utcnow

MEETING_EXISTS = 'exists'
MEETING_EXPIRED = 'expired'


class ZoomMeeting(Base):
    """A Zoom meeting or webinar attached to a course activity."""

    __tablename__ = 'zoom_meetings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    name = Column(String(300), nullable=False)
    meeting_id = Column(BigInteger, nullable=False, default=0, index=True)  # 0 once expired
    webinar = Column(Boolean, nullable=False, default=False)
    host_id = Column(String(255), nullable=True)
    start_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # seconds
    timezone = Column(String(64), nullable=True)
    recurring = Column(Boolean, nullable=False, default=False)
    password = Column(String(64), nullable=True)
    option_jbh = Column(Boolean, nullable=False, default=False)
    option_waiting_room = Column(Boolean, nullable=False, default=False)
    option_host_video = Column(Boolean, nullable=False, default=False)
    option_participants_video = Column(Boolean, nullable=False, default=False)
    option_mute_upon_entry = Column(Boolean, nullable=False, default=False)
    join_url = Column(Text, nullable=False, default='')
    start_url = Column(Text, nullable=False, default='')
    exists_on_zoom = Column(String(16), nullable=False, default=MEETING_EXISTS, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ZoomMeeting(id={self.id}, meeting_id={self.meeting_id}, exists_on_zoom='{self.exists_on_zoom}')>"


class MeetingDetails(Base):
    """One held occurrence of a meeting, identified by its Zoom UUID."""

    __tablename__ = 'zoom_meeting_details'

    id = Column(Integer, primary_key=True, autoincrement=True)
    zoom_id = Column(Integer, ForeignKey('zoom_meetings.id', ondelete='CASCADE'), nullable=True, index=True)
    meeting_id = Column(BigInteger, nullable=False, index=True)
    uuid = Column(String(255), nullable=False, unique=True, index=True)
    topic = Column(String(300), nullable=True)
    start_time = Column(DateTime, nullable=True, index=True)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # seconds
    participants_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<MeetingDetails(id={self.id}, meeting_id={self.meeting_id}, uuid='{self.uuid}')>"
