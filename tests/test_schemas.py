"""
Tests for Pydantic models.
"""
import itertools
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from exceptions import MeetingOptionsError
from schemas import (
    MeetingInfo,
    MeetingOptions,
    MeetingRequest,
    MeetingType,
    ParticipationRecord,
    SyncSelector,
    SyncStats,
)


@pytest.mark.unit
class TestMeetingOptions:
    """Join before host and waiting room exclude each other."""

    def test_enabling_join_before_host_clears_waiting_room(self):
        options = MeetingOptions(waiting_room=True)
        options.set_option("join_before_host", True)

        assert options.join_before_host is True
        assert options.waiting_room is False

    def test_enabling_waiting_room_clears_join_before_host(self):
        options = MeetingOptions(join_before_host=True)
        options.set_option("waiting_room", True)

        assert options.waiting_room is True
        assert options.join_before_host is False

    def test_disabling_does_not_touch_the_other_option(self):
        options = MeetingOptions(waiting_room=True)
        options.set_option("join_before_host", False)

        assert options.waiting_room is True

    @pytest.mark.parametrize(
        "sequence",
        list(itertools.product(
            [("join_before_host", True), ("join_before_host", False),
             ("waiting_room", True), ("waiting_room", False),
             ("host_video", True)],
            repeat=3,
        )),
    )
    def test_exclusivity_holds_for_every_toggle_sequence(self, sequence):
        options = MeetingOptions()
        for name, enabled in sequence:
            options.set_option(name, enabled)
            assert not (options.join_before_host and options.waiting_room)
            assert getattr(options, name) is enabled

    def test_both_enabled_is_rejected(self):
        with pytest.raises(ValidationError):
            MeetingOptions(join_before_host=True, waiting_room=True)

    def test_direct_assignment_of_conflict_is_rejected(self):
        options = MeetingOptions(join_before_host=True)
        with pytest.raises(ValidationError):
            options.waiting_room = True

    def test_unknown_option_fails(self):
        with pytest.raises(MeetingOptionsError):
            MeetingOptions().set_option("auto_recording", True)

    def test_from_zoom_settings_prefers_waiting_room(self):
        options = MeetingOptions.from_zoom_settings(
            {"join_before_host": True, "waiting_room": True, "participant_video": True}
        )
        assert options.waiting_room is True
        assert options.join_before_host is False
        assert options.participants_video is True

    def test_to_zoom_settings(self):
        data = MeetingOptions(join_before_host=True, participants_video=True).to_zoom_settings()
        assert data["join_before_host"] is True
        assert data["waiting_room"] is False
        assert data["participant_video"] is True


@pytest.mark.unit
class TestMeetingRequest:

    @pytest.mark.parametrize("recurring,webinar,expected", [
        (False, False, MeetingType.SCHEDULED_MEETING),
        (True, False, MeetingType.RECURRING_MEETING),
        (False, True, MeetingType.WEBINAR),
        (True, True, MeetingType.RECURRING_WEBINAR),
    ])
    def test_meeting_type(self, recurring, webinar, expected):
        request = MeetingRequest(topic="Lecture", recurring=recurring, webinar=webinar)
        assert request.meeting_type == expected

    def test_empty_topic_fails(self):
        with pytest.raises(ValidationError):
            MeetingRequest(topic="")

    def test_long_password_fails(self):
        with pytest.raises(ValidationError):
            MeetingRequest(topic="Lecture", password="x" * 11)

    def test_aware_start_time_converted_to_naive_utc(self):
        new_york = timezone(timedelta(hours=-5))
        request = MeetingRequest(topic="T", start_time=datetime(2030, 1, 1, 5, 0, tzinfo=new_york))

        assert request.start_time == datetime(2030, 1, 1, 10, 0)
        assert request.start_time.tzinfo is None

    def test_naive_start_time_kept(self):
        request = MeetingRequest(topic="T", start_time=datetime(2030, 1, 1, 5, 0))

        assert request.start_time == datetime(2030, 1, 1, 5, 0)


@pytest.mark.unit
class TestMeetingInfo:

    def test_from_zoom_normalises_units(self):
        info = MeetingInfo.from_zoom({
            "id": 85746065432,
            "topic": "Lecture",
            "type": 8,
            "start_time": "2020-03-01T10:00:00Z",
            "duration": 90,
            "join_url": "https://zoom.us/j/85746065432?pwd=abc",
            "start_url": "https://zoom.us/s/85746065432?zak=token",
            "settings": {"waiting_room": True},
        })

        assert info.meeting_id == 85746065432
        assert info.duration == 90 * 60
        assert info.start_time == datetime(2020, 3, 1, 10, 0)
        assert info.join_url == "https://zoom.us/j/85746065432"
        assert info.start_url.endswith("zak=token")
        assert info.recurring is True
        assert info.options.waiting_room is True


@pytest.mark.unit
class TestParticipationRecord:

    def test_parses_zoom_payload(self):
        record = ParticipationRecord.model_validate({
            "id": "ARANDOMSTRINGFORUUID",
            "user_id": 123456789,
            "name": "SMITH, JOE",
            "user_email": "joe@test.com",
            "join_time": "2019-01-01T00:00:00Z",
            "leave_time": "2019-01-01T00:01:00Z",
            "duration": 60,
            "attentiveness_score": "100.0%",
        })

        assert record.user_id == "123456789"
        assert record.join_time == datetime(2019, 1, 1, 0, 0)
        assert record.leave_time == datetime(2019, 1, 1, 0, 1)
        assert record.duration == 60

    def test_blank_email_becomes_none(self):
        record = ParticipationRecord.model_validate({"name": "Guest", "user_email": ""})
        assert record.user_email is None
        assert record.id is None


@pytest.mark.unit
class TestSyncSelector:

    def test_exactly_one_selector_required(self):
        with pytest.raises(ValidationError):
            SyncSelector()
        with pytest.raises(ValidationError):
            SyncSelector(course_id=1, meeting_id=2)

    def test_describe(self):
        assert SyncSelector(course_id=5).describe() == "courseid=5"
        assert SyncSelector(meeting_id=99).describe() == "meetingid=99"
        assert SyncSelector(meeting_uuid="abc==").describe() == "meetinguuid=abc=="

    def test_start_after_end_fails(self):
        with pytest.raises(ValidationError):
            SyncSelector(course_id=1, start=date(2020, 2, 1), end=date(2020, 1, 1))


@pytest.mark.unit
class TestSyncStats:

    def test_status(self):
        assert SyncStats(meetings_processed=2).status == "success"
        assert SyncStats(meetings_processed=1, meetings_failed=1).status == "partial"
        assert SyncStats(meetings_failed=1).status == "failed"
