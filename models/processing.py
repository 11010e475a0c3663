"""
Report sync run log.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, Float
from models.base import Base
from utils import utcnow


class ProcessingLog(Base):
    """Log of report sync executions."""

    __tablename__ = 'processing_logs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    selector = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False)  # success, partial, failed
    meetings_found = Column(Integer, default=0)
    meetings_processed = Column(Integer, default=0)
    meetings_skipped = Column(Integer, default=0)
    participants_matched = Column(Integer, default=0)
    participants_unmatched = Column(Integer, default=0)
    errors_count = Column(Integer, default=0)
    duration_seconds = Column(Float, nullable=True)
    error_details = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ProcessingLog(id={self.id}, run_timestamp='{self.run_timestamp}', status='{self.status}')>"
