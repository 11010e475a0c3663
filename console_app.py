"""
HTTP console for the meeting report sync.

Runs the update_meeting_report CLI for a course and streams its output back
as preformatted text. Access requires the shared console token.
Run with: python console_app.py
"""
import asyncio
import html
import secrets
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.responses import Response, StreamingResponse

from config import settings
from logging_config import get_logger
from monitoring import get_metrics

logger = get_logger(__name__)

CLI_SCRIPT = Path(__file__).resolve().parent / "update_meeting_report.py"


# ============================================
# DEPENDENCY INJECTION
# ============================================

async def require_console_access(x_console_token: Optional[str] = Header(default=None)) -> None:
    """
    Check the shared console token.

    Raises:
        HTTPException: 503 if no token is configured, 403 if it does not match
    """
    if not settings.console_token:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Console not configured. Please set CONSOLE_TOKEN in .env file"
        )
    if not x_console_token or not secrets.compare_digest(x_console_token, settings.console_token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid console token")


async def stream_cli_output(args: list) -> AsyncIterator[str]:
    """Spawn the CLI and yield its merged stdout/stderr, HTML-escaped, inside <pre>."""
    process = await asyncio.create_subprocess_exec(
        sys.executable, str(CLI_SCRIPT), *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    yield "<h1>Get meeting reports</h1>\n<pre>"
    while True:
        line = await process.stdout.readline()
        if not line:
            break
        yield html.escape(line.decode("utf-8", errors="replace"))
    returncode = await process.wait()
    logger.info("console_cli_finished", args=args, returncode=returncode)
    yield f"</pre>\n<p>Exit status: {returncode}</p>\n"


# ============================================
# CREATE FASTAPI APP
# ============================================

app = FastAPI(
    title="Zoom Meeting Reports Console",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
)


@app.get("/console/meeting-report", dependencies=[Depends(require_console_access)])
async def meeting_report(
    courseid: int = Query(..., gt=0),
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
):
    """Run the report sync for one course; start defaults to three days ago, end to today."""
    today = date.today()
    start = start or today - timedelta(days=3)
    end = end or today
    if start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end")

    args = [f"--courseid={courseid}", f"--start={start.isoformat()}", f"--end={end.isoformat()}"]
    logger.info("console_cli_started", args=args)
    return StreamingResponse(stream_cli_output(args), media_type="text/html")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "zoom_configured": settings.is_zoom_configured}


@app.get("/metrics")
async def metrics():
    return Response(content=get_metrics(), media_type="text/plain; version=0.0.4")


if __name__ == "__main__":
    uvicorn.run("console_app:app", host="0.0.0.0", port=8000, reload=settings.debug)
