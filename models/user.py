"""
Local user and course enrolment models.
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from models.base import Base
from utils import utcnow


class LocalUser(Base):
    """A user of the hosting course-management system."""

    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=True, unique=True, index=True)
    first_name = Column(String(255), nullable=False, default='')
    last_name = Column(String(255), nullable=False, default='')
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<LocalUser(id={self.id}, email='{self.email}')>"


class Enrolment(Base):
    """Course membership; scopes name matching during report sync."""

    __tablename__ = 'enrolments'
    __table_args__ = (UniqueConstraint('course_id', 'user_id', name='uq_enrolment_course_user'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Enrolment(course_id={self.course_id}, user_id={self.user_id})>"
