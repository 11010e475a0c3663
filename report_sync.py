"""
Report sync: reconcile Zoom participation reports with local attendance.

For every selected meeting occurrence the participation records are fetched,
matched to local users and folded into one attendance total per user. The
stored totals of an occurrence are replaced as a whole, so repeated runs over
unchanged data leave the table unchanged.
"""
import uuid as uuid_lib
from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from exceptions import NoMeetingsFoundError, ReportQuotaExhaustedError
from logging_config import LogContext, get_logger
from models import (
    MEETING_EXISTS,
    Enrolment,
    LocalUser,
    MeetingDetails,
    MeetingParticipant,
    ProcessingLog,
    ZoomMeeting,
)
from monitoring import (
    record_error,
    report_meetings_synced_total,
    report_participants_total,
    report_sync_duration,
    track_time,
)
from participant_matcher import ParticipantMatcher, clean_display_name
from schemas import ParticipationRecord, SyncSelector, SyncStats
from utils import format_duration, utcnow
from zoom_service import ZOOM_CALL_ERRORS, ZoomService

logger = get_logger(__name__)

MAX_ERROR_DETAILS = 20


class Occurrence(NamedTuple):
    """Plain copy of a MeetingDetails row; survives session rollbacks."""
    id: int
    meeting_id: int
    uuid: str
    zoom_id: Optional[int]


class MeetingRef(NamedTuple):
    id: int
    course_id: int
    webinar: bool


class ReportSyncJob:
    """Fetch → match → aggregate → replace, one meeting occurrence at a time."""

    def __init__(
        self,
        session: AsyncSession,
        zoom: ZoomService,
        report_call_limit: Optional[int] = None,
        match_by_name: Optional[bool] = None,
    ):
        self.session = session
        self.zoom = zoom
        self.report_call_limit = report_call_limit if report_call_limit is not None else settings.report_call_limit
        self.match_by_name = settings.match_by_name if match_by_name is None else match_by_name
        self.calls_made = 0
        self._meeting_cache: Dict[tuple, Optional[MeetingRef]] = {}
        self._enrolment_cache: Dict[int, List[LocalUser]] = {}

    @property
    def calls_left(self) -> Optional[int]:
        if self.report_call_limit is None:
            return None
        return max(self.report_call_limit - self.calls_made, 0)

    async def resolve_meetings(self, selector: SyncSelector) -> List[MeetingDetails]:
        """
        Find the stored meeting occurrences a selector points at.

        Args:
            selector: course id, meeting id or meeting UUID plus optional date range

        Returns:
            MeetingDetails rows ordered by id
        """
        query = select(MeetingDetails)
        if selector.course_id:
            query = query.join(ZoomMeeting, ZoomMeeting.id == MeetingDetails.zoom_id).where(
                ZoomMeeting.course_id == selector.course_id
            )
        elif selector.meeting_id:
            query = query.where(MeetingDetails.meeting_id == selector.meeting_id)
        else:
            query = query.where(MeetingDetails.uuid == selector.meeting_uuid)

        if selector.start:
            query = query.where(MeetingDetails.start_time >= datetime.combine(selector.start, time.min))
        if selector.end:
            query = query.where(
                MeetingDetails.start_time < datetime.combine(selector.end + timedelta(days=1), time.min)
            )

        result = await self.session.execute(query.order_by(MeetingDetails.id))
        return list(result.scalars().all())

    @track_time(report_sync_duration)
    async def run(self, selector: SyncSelector) -> SyncStats:
        """
        Sync every occurrence matched by the selector.

        Raises:
            NoMeetingsFoundError: nothing to sync, nothing written
            ReportQuotaExhaustedError: report call budget used up mid-run
        """
        run_start = utcnow()
        details = await self.resolve_meetings(selector)
        if not details:
            raise NoMeetingsFoundError(f"No meeting details found for {selector.describe()}")

        occurrences = [Occurrence(d.id, d.meeting_id, d.uuid, d.zoom_id) for d in details]
        stats = SyncStats(meetings_found=len(occurrences))
        errors: List[str] = []

        with LogContext(run_id=uuid_lib.uuid4().hex, selector=selector.describe()):
            logger.info("report_sync_started", meetings=len(occurrences))
            try:
                for occurrence in occurrences:
                    with LogContext(details_id=occurrence.id, meeting_uuid=occurrence.uuid):
                        await self._sync_occurrence(occurrence, stats, errors)
            finally:
                await self._write_log(selector, stats, errors, run_start)

            logger.info(
                "report_sync_finished",
                status=stats.status,
                processed=stats.meetings_processed,
                skipped=stats.meetings_skipped,
                failed=stats.meetings_failed,
                matched=stats.participants_matched,
                unmatched=stats.participants_unmatched,
                elapsed=format_duration((utcnow() - run_start).total_seconds()),
            )
        return stats

    async def _sync_occurrence(self, occurrence: Occurrence, stats: SyncStats, errors: List[str]) -> None:
        meeting = await self._get_meeting(occurrence)
        if meeting is None:
            # The activity was deleted; its reports are no longer needed
            logger.info("report_sync_meeting_missing", meeting_id=occurrence.meeting_id)
            stats.meetings_skipped += 1
            report_meetings_synced_total.labels(status="skipped").inc()
            return

        if self.calls_left is not None and self.calls_left < 1:
            raise ReportQuotaExhaustedError("Zoom report API calls have been exhausted")
        self.calls_made += 1

        try:
            records = await self.zoom.get_meeting_participants(occurrence.uuid, webinar=meeting.webinar)
        except ZOOM_CALL_ERRORS as e:
            stats.meetings_failed += 1
            errors.append(f"{occurrence.uuid}: {e}")
            record_error(type(e).__name__, "report_sync")
            report_meetings_synced_total.labels(status="failed").inc()
            logger.error(
                "report_sync_fetch_failed", error=str(e), status_code=getattr(e, "status_code", None)
            )
            return

        try:
            enrolled = await self._get_enrolled_users(meeting.course_id)
            outcome = await self.sync_occurrence(occurrence.id, records, enrolled)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            # Rolled-back instances are expired; reload them on next use
            self._meeting_cache.clear()
            self._enrolment_cache.clear()
            stats.meetings_failed += 1
            errors.append(f"{occurrence.uuid}: {e}")
            record_error(type(e).__name__, "report_sync")
            report_meetings_synced_total.labels(status="failed").inc()
            logger.error("report_sync_write_failed", error=str(e))
            return

        stats.meetings_processed += 1
        stats.participants_matched += outcome["matched"]
        stats.participants_unmatched += outcome["unmatched"]
        stats.rows_inserted += outcome["inserted"]
        stats.rows_updated += outcome["updated"]
        stats.rows_deleted += outcome["deleted"]
        report_meetings_synced_total.labels(status="success").inc()
        logger.info("report_sync_meeting_done", **outcome)

    async def sync_occurrence(
        self,
        details_id: int,
        records: Iterable[ParticipationRecord],
        enrolled_users: List[LocalUser],
    ) -> Dict[str, int]:
        """
        Replace the attendance totals of one occurrence.

        Args:
            details_id: MeetingDetails id
            records: Participation records fetched from Zoom
            enrolled_users: Users enrolled in the meeting's course

        Returns:
            Counters: matched, unmatched, inserted, updated, deleted
        """
        records = list(records)
        directory_users = await self._directory_users(records, enrolled_users)
        matcher = ParticipantMatcher(enrolled_users, directory_users, match_by_name=self.match_by_name)

        per_user: Dict[int, List[ParticipationRecord]] = defaultdict(list)
        users: Dict[int, LocalUser] = {}
        outcome = {"matched": 0, "unmatched": 0, "inserted": 0, "updated": 0, "deleted": 0}

        for record in records:
            user = matcher.match(record)
            if user is None:
                outcome["unmatched"] += 1
                logger.debug("participant_unmatched", name=record.name, email=record.user_email)
                continue
            outcome["matched"] += 1
            per_user[user.id].append(record)
            users[user.id] = user

        report_participants_total.labels(result="matched").inc(outcome["matched"])
        report_participants_total.labels(result="unmatched").inc(outcome["unmatched"])

        totals = {user_id: self._fold(users[user_id], spans) for user_id, spans in per_user.items()}

        result = await self.session.execute(
            select(MeetingParticipant).where(MeetingParticipant.details_id == details_id)
        )
        for row in result.scalars().all():
            values = totals.pop(row.user_id, None)
            if values is None:
                await self.session.delete(row)
                outcome["deleted"] += 1
                continue
            changed = False
            for field, value in values.items():
                if getattr(row, field) != value:
                    setattr(row, field, value)
                    changed = True
            if changed:
                outcome["updated"] += 1

        for user_id, values in totals.items():
            self.session.add(MeetingParticipant(details_id=details_id, user_id=user_id, **values))
            outcome["inserted"] += 1

        await self.session.flush()
        return outcome

    @staticmethod
    def _fold(user: LocalUser, spans: List[ParticipationRecord]) -> Dict:
        """Fold one user's join/leave spans into a single total."""
        spans = sorted(spans, key=lambda r: (r.join_time or datetime.min, r.id or "", r.user_id or ""))
        first = spans[0]
        join_times = [r.join_time for r in spans if r.join_time is not None]
        leave_times = [r.leave_time for r in spans if r.leave_time is not None]
        return {
            "zoom_user_id": first.user_id,
            "uuid": first.id,
            "name": user.full_name or clean_display_name(first.name),
            "user_email": next((r.user_email for r in spans if r.user_email), user.email),
            "join_time": min(join_times) if join_times else None,
            "leave_time": max(leave_times) if leave_times else None,
            "duration": sum(r.duration for r in spans),
            "sessions": len(spans),
        }

    async def _get_meeting(self, occurrence: Occurrence) -> Optional[MeetingRef]:
        key = (occurrence.zoom_id, occurrence.meeting_id)
        if key not in self._meeting_cache:
            query = select(ZoomMeeting)
            if occurrence.zoom_id is not None:
                query = query.where(ZoomMeeting.id == occurrence.zoom_id)
            else:
                query = query.where(ZoomMeeting.meeting_id == occurrence.meeting_id).order_by(ZoomMeeting.id)
            meeting = (await self.session.execute(query.limit(1))).scalars().first()
            self._meeting_cache[key] = (
                MeetingRef(meeting.id, meeting.course_id, meeting.webinar) if meeting is not None else None
            )
        return self._meeting_cache[key]

    async def _get_enrolled_users(self, course_id: int) -> List[LocalUser]:
        if course_id not in self._enrolment_cache:
            result = await self.session.execute(
                select(LocalUser)
                .join(Enrolment, Enrolment.user_id == LocalUser.id)
                .where(Enrolment.course_id == course_id)
                .order_by(LocalUser.id)
            )
            self._enrolment_cache[course_id] = list(result.scalars().all())
        return self._enrolment_cache[course_id]

    async def _directory_users(
        self, records: List[ParticipationRecord], enrolled_users: List[LocalUser]
    ) -> List[LocalUser]:
        """Users outside the course whose email appears in the report."""
        enrolled_emails = {u.email.lower() for u in enrolled_users if u.email}
        emails = {r.user_email.lower() for r in records if r.user_email} - enrolled_emails
        if not emails:
            return []
        result = await self.session.execute(select(LocalUser).where(func.lower(LocalUser.email).in_(emails)))
        return list(result.scalars().all())

    async def _write_log(self, selector: SyncSelector, stats: SyncStats, errors: List[str], run_start) -> None:
        duration = (utcnow() - run_start).total_seconds()
        self.session.add(ProcessingLog(
            run_timestamp=run_start,
            selector=selector.describe(),
            status=stats.status,
            meetings_found=stats.meetings_found,
            meetings_processed=stats.meetings_processed,
            meetings_skipped=stats.meetings_skipped,
            participants_matched=stats.participants_matched,
            participants_unmatched=stats.participants_unmatched,
            errors_count=stats.errors_count,
            duration_seconds=duration,
            error_details="\n".join(errors[:MAX_ERROR_DETAILS]) or None,
        ))
        await self.session.commit()

    async def discover_instances(self, course_id: Optional[int] = None, meeting_id: Optional[int] = None) -> int:
        """
        Record ended occurrences of existing meetings that have no details row yet.

        Args:
            course_id: Limit to meetings of one course
            meeting_id: Limit to one Zoom meeting id

        Returns:
            Number of MeetingDetails rows inserted
        """
        query = select(ZoomMeeting).where(
            ZoomMeeting.exists_on_zoom == MEETING_EXISTS, ZoomMeeting.meeting_id != 0
        )
        if course_id:
            query = query.where(ZoomMeeting.course_id == course_id)
        if meeting_id:
            query = query.where(ZoomMeeting.meeting_id == meeting_id)
        meetings = (await self.session.execute(query.order_by(ZoomMeeting.id))).scalars().all()

        inserted = 0
        for meeting in meetings:
            try:
                instances = await self.zoom.get_past_meeting_instances(meeting.meeting_id)
            except ZOOM_CALL_ERRORS as e:
                record_error(type(e).__name__, "report_sync")
                logger.warning("past_instances_failed", meeting_id=meeting.meeting_id, error=str(e))
                continue

            for instance in instances:
                exists = await self.session.execute(
                    select(MeetingDetails.id).where(MeetingDetails.uuid == instance.uuid)
                )
                if exists.first() is not None:
                    continue
                try:
                    instance = await self.zoom.get_past_meeting_details(instance.uuid)
                except ZOOM_CALL_ERRORS as e:
                    logger.warning("past_meeting_details_failed", uuid=instance.uuid, error=str(e))
                self.session.add(MeetingDetails(
                    zoom_id=meeting.id,
                    meeting_id=meeting.meeting_id,
                    uuid=instance.uuid,
                    topic=instance.topic or meeting.name,
                    start_time=instance.start_time,
                    end_time=instance.end_time,
                    duration=instance.duration,
                    participants_count=instance.participants_count,
                ))
                inserted += 1

        await self.session.commit()
        logger.info("past_instances_recorded", inserted=inserted)
        return inserted
