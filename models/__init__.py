"""
Database models package.
Import all models here for easy access and metadata registration.
"""
from models.base import Base
from models.user import LocalUser, Enrolment
from models.meeting import ZoomMeeting, MeetingDetails, MEETING_EXISTS, MEETING_EXPIRED
from models.participant import MeetingParticipant
from models.processing import ProcessingLog

__all__ = [
    'Base',
    'LocalUser',
    'Enrolment',
    'ZoomMeeting',
    'MeetingDetails',
    'MEETING_EXISTS',
    'MEETING_EXPIRED',
    'MeetingParticipant',
    'ProcessingLog'
]
