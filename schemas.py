"""
Pydantic models for Zoom payloads, meeting options and sync results.
"""
from datetime import date, datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from exceptions import MeetingOptionsError
from utils import parse_zoom_datetime, to_naive_utc


class MeetingType(IntEnum):
    """Zoom meeting/webinar type codes."""
    SCHEDULED_MEETING = 2
    RECURRING_MEETING = 3
    RECURRING_FIXED_MEETING = 8
    WEBINAR = 5
    RECURRING_WEBINAR = 6
    RECURRING_FIXED_WEBINAR = 9


RECURRING_TYPES = {
    MeetingType.RECURRING_MEETING,
    MeetingType.RECURRING_FIXED_MEETING,
    MeetingType.RECURRING_WEBINAR,
    MeetingType.RECURRING_FIXED_WEBINAR,
}

# Enabling either option clears the other
EXCLUSIVE_OPTIONS = {
    "join_before_host": "waiting_room",
    "waiting_room": "join_before_host",
}


class MeetingOptions(BaseModel):
    """Boolean meeting features; join before host and waiting room exclude each other."""

    model_config = ConfigDict(validate_assignment=True)

    join_before_host: bool = False
    waiting_room: bool = False
    host_video: bool = False
    participants_video: bool = False
    mute_upon_entry: bool = False

    @model_validator(mode="after")
    def check_exclusive(self) -> "MeetingOptions":
        if self.join_before_host and self.waiting_room:
            raise MeetingOptionsError("join_before_host and waiting_room are mutually exclusive")
        return self

    def set_option(self, name: str, enabled: bool) -> "MeetingOptions":
        """
        Toggle an option the way the editing form does.

        Args:
            name: Option field name
            enabled: New value

        Returns:
            self, for chaining
        """
        if name not in type(self).model_fields:
            raise MeetingOptionsError(f"Unknown meeting option: {name}")
        other = EXCLUSIVE_OPTIONS.get(name)
        if enabled and other:
            setattr(self, other, False)
        setattr(self, name, enabled)
        return self

    @classmethod
    def from_zoom_settings(cls, data: Optional[dict]) -> "MeetingOptions":
        """Build options from a Zoom `settings` object, waiting room wins a conflict."""
        data = data or {}
        options = cls()
        options.set_option("host_video", bool(data.get("host_video", False)))
        options.set_option("participants_video", bool(data.get("participant_video", False)))
        options.set_option("mute_upon_entry", bool(data.get("mute_upon_entry", False)))
        options.set_option("join_before_host", bool(data.get("join_before_host", False)))
        if data.get("waiting_room"):
            options.set_option("waiting_room", True)
        return options

    def to_zoom_settings(self) -> dict:
        return {
            "join_before_host": self.join_before_host,
            "waiting_room": self.waiting_room,
            "host_video": self.host_video,
            "participant_video": self.participants_video,
            "mute_upon_entry": self.mute_upon_entry,
        }


class MeetingRequest(BaseModel):
    """Scheduling fields submitted when an activity is saved or restored."""

    topic: str = Field(..., min_length=1, max_length=300)
    host_id: str = Field(default="me")
    start_time: Optional[datetime] = None
    duration: int = Field(default=3600, ge=0, description="Duration in seconds")
    timezone: Optional[str] = None
    recurring: bool = False
    webinar: bool = False
    password: Optional[str] = Field(default=None, max_length=10)
    options: MeetingOptions = Field(default_factory=MeetingOptions)

    @field_validator("start_time")
    @classmethod
    def naive_utc_start(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @property
    def meeting_type(self) -> MeetingType:
        if self.webinar:
            return MeetingType.RECURRING_WEBINAR if self.recurring else MeetingType.WEBINAR
        return MeetingType.RECURRING_MEETING if self.recurring else MeetingType.SCHEDULED_MEETING


class MeetingInfo(BaseModel):
    """A meeting as Zoom reports it, normalised to local units (seconds, naive UTC)."""

    meeting_id: int
    topic: str = ""
    start_time: Optional[datetime] = None
    duration: int = 0
    timezone: Optional[str] = None
    password: Optional[str] = None
    join_url: str = ""
    start_url: str = ""
    recurring: bool = False
    options: MeetingOptions = Field(default_factory=MeetingOptions)

    @classmethod
    def from_zoom(cls, data: dict) -> "MeetingInfo":
        try:
            meeting_type = MeetingType(int(data.get("type", MeetingType.SCHEDULED_MEETING)))
        except ValueError:
            meeting_type = MeetingType.SCHEDULED_MEETING
        return cls(
            meeting_id=int(data["id"]),
            topic=data.get("topic", ""),
            start_time=parse_zoom_datetime(data.get("start_time")),
            duration=int(data.get("duration") or 0) * 60,
            timezone=data.get("timezone"),
            password=data.get("password"),
            # Strip any query parameters Zoom appends to the join link
            join_url=(data.get("join_url") or "").split("?", 1)[0],
            start_url=data.get("start_url") or "",
            recurring=meeting_type in RECURRING_TYPES,
            options=MeetingOptions.from_zoom_settings(data.get("settings")),
        )


class MeetingInstance(BaseModel):
    """A past occurrence of a meeting as listed by Zoom."""

    uuid: str
    topic: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    participants_count: Optional[int] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v):
        if isinstance(v, str):
            return parse_zoom_datetime(v)
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v


class ParticipationRecord(BaseModel):
    """One join/leave span for one attendee, as returned by the report API."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str = ""
    user_email: Optional[str] = None
    join_time: Optional[datetime] = None
    leave_time: Optional[datetime] = None
    duration: int = Field(default=0, description="Seconds in the meeting")

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("user_email", mode="before")
    @classmethod
    def blank_email(cls, v):
        if not v:
            return None
        return str(v).strip()

    @field_validator("name", mode="before")
    @classmethod
    def none_name(cls, v):
        return v or ""

    @field_validator("join_time", "leave_time", mode="before")
    @classmethod
    def parse_times(cls, v):
        if isinstance(v, str):
            return parse_zoom_datetime(v)
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v


class SyncSelector(BaseModel):
    """Exactly one of course, meeting id or meeting UUID, plus an optional date range."""

    course_id: Optional[int] = None
    meeting_id: Optional[int] = None
    meeting_uuid: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def check_exactly_one(self) -> "SyncSelector":
        given = [v for v in (self.course_id, self.meeting_id, self.meeting_uuid) if v]
        if len(given) != 1:
            raise ValueError("exactly one of course_id, meeting_id or meeting_uuid is required")
        if self.start and self.end and self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    def describe(self) -> str:
        if self.course_id:
            return f"courseid={self.course_id}"
        if self.meeting_id:
            return f"meetingid={self.meeting_id}"
        return f"meetinguuid={self.meeting_uuid}"


class SyncStats(BaseModel):
    """Counters for one report sync run."""

    meetings_found: int = 0
    meetings_processed: int = 0
    meetings_skipped: int = 0
    meetings_failed: int = 0
    participants_matched: int = 0
    participants_unmatched: int = 0
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0

    @property
    def errors_count(self) -> int:
        return self.meetings_failed

    @property
    def status(self) -> str:
        if not self.meetings_failed:
            return "success"
        return "partial" if self.meetings_processed else "failed"
