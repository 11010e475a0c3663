"""
Meeting lifecycle: save, restore, refresh and delete course meetings.

A meeting whose remote creation fails is still stored, marked expired with
meeting id 0 and no URLs, so the course activity survives without Zoom.
"""
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import ZoomNotFoundError
from logging_config import get_logger
from models import (
    MEETING_EXISTS,
    MEETING_EXPIRED,
    MeetingDetails,
    MeetingParticipant,
    ZoomMeeting,
)
from monitoring import meetings_saved_total, record_error
from schemas import MeetingInfo, MeetingOptions, MeetingRequest
from zoom_service import ZOOM_CALL_ERRORS, ZoomService

logger = get_logger(__name__)


def apply_request(meeting: ZoomMeeting, request: MeetingRequest) -> None:
    """Copy locally submitted scheduling fields onto the stored meeting."""
    meeting.name = request.topic
    meeting.host_id = request.host_id
    meeting.start_time = request.start_time
    meeting.duration = request.duration
    meeting.timezone = request.timezone
    meeting.recurring = request.recurring
    meeting.webinar = request.webinar
    meeting.password = request.password
    _apply_options(meeting, request.options)


def apply_info(meeting: ZoomMeeting, info: MeetingInfo) -> Dict[str, tuple]:
    """
    Copy Zoom's view of a meeting onto the stored row.

    Returns:
        Changed fields as {field: (old, new)}
    """
    values = {
        "meeting_id": info.meeting_id,
        "name": info.topic or meeting.name,
        "start_time": info.start_time if info.start_time is not None else meeting.start_time,
        "duration": info.duration,
        "timezone": info.timezone or meeting.timezone,
        "recurring": info.recurring,
        "password": info.password if info.password is not None else meeting.password,
        "join_url": info.join_url,
        "start_url": info.start_url,
        "option_jbh": info.options.join_before_host,
        "option_waiting_room": info.options.waiting_room,
        "option_host_video": info.options.host_video,
        "option_participants_video": info.options.participants_video,
        "option_mute_upon_entry": info.options.mute_upon_entry,
    }
    changes = {}
    for field, value in values.items():
        old = getattr(meeting, field)
        if old != value:
            # start_url carries a token that changes on every fetch
            if field != "start_url":
                changes[field] = (old, value)
            setattr(meeting, field, value)
    return changes


def _apply_options(meeting: ZoomMeeting, options: MeetingOptions) -> None:
    meeting.option_jbh = options.join_before_host
    meeting.option_waiting_room = options.waiting_room
    meeting.option_host_video = options.host_video
    meeting.option_participants_video = options.participants_video
    meeting.option_mute_upon_entry = options.mute_upon_entry


def mark_expired(meeting: ZoomMeeting) -> None:
    """Detach a meeting from Zoom: no id, no URLs."""
    meeting.meeting_id = 0
    meeting.join_url = ""
    meeting.start_url = ""
    meeting.exists_on_zoom = MEETING_EXPIRED


async def save_meeting(
    session: AsyncSession,
    zoom: ZoomService,
    request: MeetingRequest,
    course_id: int,
    instance: Optional[ZoomMeeting] = None,
) -> ZoomMeeting:
    """
    Create or update a course meeting locally and on Zoom.

    Args:
        session: Database session
        zoom: Zoom API client
        request: Scheduling fields from the editing form
        course_id: Owning course
        instance: Existing meeting to update, None to create

    Returns:
        The stored meeting (flushed, not committed)
    """
    if instance is None:
        meeting = ZoomMeeting(course_id=course_id)
        apply_request(meeting, request)
        await _create_or_expire(zoom, meeting, request)
        session.add(meeting)
        await session.flush()
        return meeting

    apply_request(instance, request)
    if instance.exists_on_zoom == MEETING_EXISTS and instance.meeting_id:
        try:
            await zoom.update_meeting(instance.meeting_id, request)
            meetings_saved_total.labels(operation="update", status="success").inc()
        except ZoomNotFoundError:
            logger.warning("zoom_meeting_gone_on_update", meeting_id=instance.meeting_id, zoom_id=instance.id)
            meetings_saved_total.labels(operation="update", status="expired").inc()
            mark_expired(instance)
    await session.flush()
    return instance


async def restore_meeting(
    session: AsyncSession,
    zoom: ZoomService,
    snapshot: MeetingRequest,
    course_id: int,
    date_offset: timedelta = timedelta(0),
) -> ZoomMeeting:
    """
    Recreate a meeting from a course backup snapshot.

    The start time is shifted by the course date offset before a new Zoom
    meeting is requested; a failed request leaves an expired meeting.
    """
    if snapshot.start_time is not None and date_offset:
        snapshot = snapshot.model_copy(update={"start_time": snapshot.start_time + date_offset})
    meeting = ZoomMeeting(course_id=course_id)
    apply_request(meeting, snapshot)
    await _create_or_expire(zoom, meeting, snapshot)
    session.add(meeting)
    await session.flush()
    logger.info(
        "zoom_meeting_restored",
        zoom_id=meeting.id,
        course_id=course_id,
        exists_on_zoom=meeting.exists_on_zoom,
    )
    return meeting


async def _create_or_expire(zoom: ZoomService, meeting: ZoomMeeting, request: MeetingRequest) -> None:
    try:
        info = await zoom.create_meeting(request)
    except ZOOM_CALL_ERRORS as e:
        logger.warning("zoom_meeting_create_failed", course_id=meeting.course_id, error=str(e))
        meetings_saved_total.labels(operation="create", status="expired").inc()
        record_error(type(e).__name__, "meeting_service")
        mark_expired(meeting)
        return

    apply_info(meeting, info)
    meeting.exists_on_zoom = MEETING_EXISTS
    meetings_saved_total.labels(operation="create", status="success").inc()


async def refresh_meetings(session: AsyncSession, zoom: ZoomService) -> Dict[str, int]:
    """
    Re-read every meeting still believed to exist on Zoom.

    Meetings deleted on Zoom are marked expired; other API errors are logged
    and the meeting is left untouched.

    Returns:
        Counters: checked, updated, expired, errors
    """
    stats = {"checked": 0, "updated": 0, "expired": 0, "errors": 0}
    result = await session.execute(
        select(ZoomMeeting).where(ZoomMeeting.exists_on_zoom == MEETING_EXISTS).order_by(ZoomMeeting.id)
    )
    for meeting in result.scalars().all():
        stats["checked"] += 1
        try:
            info = await zoom.get_meeting(meeting.meeting_id, webinar=meeting.webinar)
        except ZoomNotFoundError:
            mark_expired(meeting)
            stats["expired"] += 1
            logger.info("zoom_meeting_marked_expired", zoom_id=meeting.id, course_id=meeting.course_id)
            continue
        except ZOOM_CALL_ERRORS as e:
            stats["errors"] += 1
            record_error(type(e).__name__, "meeting_service")
            logger.error("zoom_meeting_refresh_failed", zoom_id=meeting.id, error=str(e))
            continue

        changes = apply_info(meeting, info)
        if changes:
            stats["updated"] += 1
            for field, (old, new) in changes.items():
                logger.info("zoom_meeting_field_changed", zoom_id=meeting.id, field=field, old=str(old), new=str(new))

    await session.flush()
    return stats


async def delete_meeting(session: AsyncSession, zoom: ZoomService, meeting: ZoomMeeting) -> None:
    """
    Delete a course meeting on Zoom and locally, with its occurrences and attendance.

    A meeting already gone from Zoom is not an error.
    """
    if meeting.exists_on_zoom == MEETING_EXISTS and meeting.meeting_id:
        try:
            await zoom.delete_meeting(meeting.meeting_id, webinar=meeting.webinar)
        except ZoomNotFoundError:
            logger.info("zoom_meeting_already_gone", zoom_id=meeting.id, meeting_id=meeting.meeting_id)

    details_ids = select(MeetingDetails.id).where(MeetingDetails.zoom_id == meeting.id)
    await session.execute(delete(MeetingParticipant).where(MeetingParticipant.details_id.in_(details_ids)))
    await session.execute(delete(MeetingDetails).where(MeetingDetails.zoom_id == meeting.id))
    await session.delete(meeting)
    await session.flush()
