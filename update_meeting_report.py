#!/usr/bin/env python3
"""
CLI script to manually resynchronize the meeting report for a given course,
meeting id or meeting UUID.

Meeting details need to already exist (or be discovered with --discover).
This requeries the participant data and relinks it to local users.

Example:
    python update_meeting_report.py --courseid=1234
"""
import argparse
import asyncio
import sys
from datetime import date
from typing import List, Optional

from pydantic import ValidationError

from config import settings
from db import get_db_session
from exceptions import ConfigurationError, NoMeetingsFoundError, ReportQuotaExhaustedError
from logging_config import get_logger, setup_logging
from report_sync import ReportSyncJob
from schemas import SyncSelector
from zoom_service import ZoomService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="update_meeting_report",
        description="Resynchronize Zoom meeting reports for a course, meeting id or meeting UUID.",
        epilog="Example: python update_meeting_report.py --courseid=1234",
        allow_abbrev=False,
    )
    selector = parser.add_mutually_exclusive_group(required=True)
    selector.add_argument("-c", "--courseid", dest="course_id", type=int, help="Course ID")
    selector.add_argument("-m", "--meetingid", dest="meeting_id", type=int, help="Zoom meeting ID")
    selector.add_argument("-u", "--meetinguuid", dest="meeting_uuid", help="Zoom meeting UUID")
    parser.add_argument("--start", type=date.fromisoformat, help="Only occurrences starting on/after (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, help="Only occurrences starting on/before (YYYY-MM-DD)")
    parser.add_argument(
        "--discover", action="store_true",
        help="Record ended occurrences missing locally before syncing (course or meeting id only)"
    )
    return parser


async def run(selector: SyncSelector, discover: bool = False) -> int:
    """
    Run one sync for the selector.

    Returns:
        Process exit status
    """
    async with ZoomService.from_settings() as zoom:
        async with get_db_session() as session:
            job = ReportSyncJob(session, zoom)
            if discover and not selector.meeting_uuid:
                await job.discover_instances(course_id=selector.course_id, meeting_id=selector.meeting_id)
            try:
                stats = await job.run(selector)
            except NoMeetingsFoundError:
                print("No meeting details found.", file=sys.stderr)
                return 1
            except ReportQuotaExhaustedError:
                print("Error: Zoom report API calls have been exhausted.", file=sys.stderr)
                return 1

    print(
        f"Processed {stats.meetings_processed}/{stats.meetings_found} meetings "
        f"({stats.meetings_skipped} skipped, {stats.meetings_failed} failed); "
        f"participants matched: {stats.participants_matched}, unmatched: {stats.participants_unmatched}; "
        f"rows inserted: {stats.rows_inserted}, updated: {stats.rows_updated}, deleted: {stats.rows_deleted}"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Unknown flags and a missing selector exit with status 2."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        selector = SyncSelector(
            course_id=args.course_id,
            meeting_id=args.meeting_id,
            meeting_uuid=args.meeting_uuid,
            start=args.start,
            end=args.end,
        )
    except ValidationError as e:
        parser.error(e.errors()[0]["msg"])

    setup_logging(debug=settings.debug, json_logs=settings.json_logs)
    try:
        return asyncio.run(run(selector, discover=args.discover))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
