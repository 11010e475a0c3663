"""
Attendance totals derived from Zoom participation reports.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from models.base import Base
from utils import utcnow


class MeetingParticipant(Base):
    """Attendance total for one local user in one meeting occurrence."""

    __tablename__ = 'zoom_meeting_participants'
    __table_args__ = (UniqueConstraint('details_id', 'user_id', name='uq_participant_details_user'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    details_id = Column(Integer, ForeignKey('zoom_meeting_details.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    zoom_user_id = Column(String(255), nullable=True)
    uuid = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    join_time = Column(DateTime, nullable=True)
    leave_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # seconds, summed over sessions
    sessions = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<MeetingParticipant(details_id={self.details_id}, user_id={self.user_id}, duration={self.duration})>"
