"""
Service for interacting with the Zoom API: meetings, webinars and participation reports.
"""
import base64
import time
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from config import settings
from exceptions import (
    APIError,
    ConfigurationError,
    RateLimitError,
    ZoomAPIError,
    ZoomNotFoundError,
    ZoomServerError,
)
from logging_config import get_logger
from monitoring import zoom_requests_total, zoom_request_duration
from rate_limiters import RateLimiters, rate_limiters as default_rate_limiters
from schemas import MeetingInfo, MeetingInstance, MeetingRequest, ParticipationRecord
from utils import format_zoom_datetime, retry_policy

logger = get_logger(__name__)

# Zoom error codes meaning the meeting/webinar is gone
MEETING_GONE_CODES = {3001, 3301}

# Refresh the bearer token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60

# What a Zoom call can end with once retries are exhausted
ZOOM_CALL_ERRORS = (APIError, httpx.TransportError)


def encode_meeting_uuid(uuid: str) -> str:
    """
    Encode a meeting UUID for use in a URL path.

    Zoom requires double encoding when the UUID starts with '/' or contains '//'.
    """
    encoded = quote(uuid, safe="")
    if uuid.startswith("/") or "//" in uuid:
        encoded = quote(encoded, safe="")
    return encoded


class ZoomService:
    """Service to interact with the Zoom API using Server-to-Server OAuth."""

    ZOOM_API_BASE = "https://api.zoom.us/v2"
    ZOOM_OAUTH_URL = "https://zoom.us/oauth/token"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        account_id: str,
        api_base: str = None,
        oauth_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        page_size: int = None,
        limiters: RateLimiters = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """Initialize Zoom service with OAuth credentials."""
        self.client_id = client_id
        self.client_secret = client_secret
        self.account_id = account_id
        self.api_base = (api_base or settings.zoom_api_base or self.ZOOM_API_BASE).rstrip("/")
        self.oauth_url = oauth_url or settings.zoom_oauth_url or self.ZOOM_OAUTH_URL
        self.timeout = timeout or settings.http_timeout
        self.max_retries = max_retries or settings.max_retries
        self.page_size = page_size or settings.report_page_size
        self.limiters = limiters or default_rate_limiters
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.access_token: Optional[str] = None
        self.token_expires_at: float = 0.0

    @classmethod
    def from_settings(cls, **kwargs) -> "ZoomService":
        """Create a service from the global settings."""
        if not settings.is_zoom_configured:
            raise ConfigurationError(
                "Zoom API is not configured. Set ZOOM_CLIENT_ID, ZOOM_CLIENT_SECRET and ZOOM_ACCOUNT_ID"
            )
        return cls(settings.zoom_client_id, settings.zoom_client_secret, settings.zoom_account_id, **kwargs)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ZoomService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def _get_access_token(self) -> str:
        """
        Get Server-to-Server OAuth access token.

        Returns:
            Access token string
        """
        credentials = f"{self.client_id}:{self.client_secret}"
        encoded_credentials = base64.b64encode(credentials.encode()).decode()

        headers = {
            "Authorization": f"Basic {encoded_credentials}",
            "Content-Type": "application/x-www-form-urlencoded"
        }
        params = {"grant_type": "account_credentials", "account_id": self.account_id}

        try:
            response = await self.client.post(self.oauth_url, headers=headers, params=params)
        except httpx.TransportError as e:
            logger.error("zoom_token_request_failed", error=str(e))
            raise

        if response.status_code != 200:
            logger.error("zoom_token_rejected", status_code=response.status_code)
            raise ZoomAPIError(
                f"Could not obtain Zoom access token: {response.text}",
                status_code=response.status_code
            )

        data = response.json()
        self.access_token = data.get("access_token")
        self.token_expires_at = time.monotonic() + int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN

        logger.info("zoom_access_token_obtained")
        return self.access_token

    async def _ensure_token(self) -> None:
        """Ensure we have a valid access token."""
        if not self.access_token or time.monotonic() >= self.token_expires_at:
            await self._get_access_token()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        endpoint: str,
        params: Dict = None,
        json: Dict = None,
        report: bool = False,
    ) -> Optional[Dict]:
        """
        Make an API call with rate limiting and bounded retries.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            ZoomNotFoundError, ZoomAPIError and subclasses
        """
        async for attempt in retry_policy(max_attempts=self.max_retries):
            with attempt:
                response = await self._send(method, path, endpoint, params=params, json=json, report=report)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _send(self, method, path, endpoint, params=None, json=None, report=False) -> httpx.Response:
        if report:
            await self.limiters.acquire_zoom_report_limit()
        else:
            await self.limiters.acquire_zoom_general_limit()

        await self._ensure_token()
        url = f"{self.api_base}{path}"

        start_time = time.time()
        response = await self.client.request(method, url, headers=self._headers(), params=params, json=json)
        if response.status_code == 401:
            # Token revoked or expired early; fetch a new one once
            logger.info("zoom_token_refresh", endpoint=endpoint)
            await self._get_access_token()
            response = await self.client.request(method, url, headers=self._headers(), params=params, json=json)
        zoom_request_duration.labels(endpoint=endpoint).observe(time.time() - start_time)
        zoom_requests_total.labels(endpoint=endpoint, status=str(response.status_code)).inc()

        if response.status_code < 400:
            return response

        raise self._error_from_response(response, endpoint)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }

    @staticmethod
    def _error_from_response(response: httpx.Response, endpoint: str) -> ZoomAPIError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        message = (body.get("message") if isinstance(body, dict) else None) or response.text
        status_code = response.status_code

        logger.warning("zoom_api_error", endpoint=endpoint, status_code=status_code, code=code, message=message)

        if status_code == 404 or code in MEETING_GONE_CODES:
            return ZoomNotFoundError(message, status_code=status_code, code=code)
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                platform="zoom"
            )
        if status_code >= 500:
            return ZoomServerError(message, status_code=status_code, code=code)
        return ZoomAPIError(message, status_code=status_code, code=code)

    # ------------------------------------------------------------------
    # Meetings
    # ------------------------------------------------------------------

    def build_meeting_payload(self, request: MeetingRequest) -> Dict:
        """Translate a meeting request into the body Zoom expects (minutes, ISO 'Z' times)."""
        payload = {
            "topic": request.topic,
            "type": int(request.meeting_type),
            "duration": int(round(request.duration / 60)),
            "timezone": request.timezone or settings.default_timezone,
            "settings": request.options.to_zoom_settings(),
        }
        if request.start_time is not None and not request.recurring:
            payload["start_time"] = format_zoom_datetime(request.start_time)
        if request.password:
            payload["password"] = request.password
        return payload

    async def create_meeting(self, request: MeetingRequest) -> MeetingInfo:
        """
        Create a meeting or webinar on Zoom.

        Args:
            request: Scheduling fields

        Returns:
            The created meeting
        """
        kind = "webinars" if request.webinar else "meetings"
        data = await self._request(
            "POST",
            f"/users/{quote(request.host_id, safe='')}/{kind}",
            endpoint=f"create_{kind}",
            json=self.build_meeting_payload(request),
        )
        info = MeetingInfo.from_zoom(data)
        logger.info("zoom_meeting_created", meeting_id=info.meeting_id, webinar=request.webinar)
        return info

    async def update_meeting(self, meeting_id: int, request: MeetingRequest) -> None:
        """Push changed scheduling fields to an existing meeting or webinar."""
        kind = "webinars" if request.webinar else "meetings"
        payload = self.build_meeting_payload(request)
        payload.pop("type")
        await self._request("PATCH", f"/{kind}/{meeting_id}", endpoint=f"update_{kind}", json=payload)
        logger.info("zoom_meeting_updated", meeting_id=meeting_id, webinar=request.webinar)

    async def get_meeting(self, meeting_id: int, webinar: bool = False) -> MeetingInfo:
        """Fetch the current state of a meeting or webinar."""
        kind = "webinars" if webinar else "meetings"
        data = await self._request("GET", f"/{kind}/{meeting_id}", endpoint=f"get_{kind}")
        return MeetingInfo.from_zoom(data)

    async def delete_meeting(self, meeting_id: int, webinar: bool = False) -> None:
        """Delete a meeting or webinar. Raises ZoomNotFoundError if it is already gone."""
        kind = "webinars" if webinar else "meetings"
        await self._request("DELETE", f"/{kind}/{meeting_id}", endpoint=f"delete_{kind}")
        logger.info("zoom_meeting_deleted", meeting_id=meeting_id, webinar=webinar)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def get_meeting_participants(self, uuid: str, webinar: bool = False) -> List[ParticipationRecord]:
        """
        Get every participation record for one meeting occurrence.

        Follows `next_page_token` until the report is exhausted.

        Args:
            uuid: Meeting occurrence UUID (a meeting id also works for the latest occurrence)
            webinar: Whether to query the webinar report

        Returns:
            List of participation records
        """
        kind = "webinars" if webinar else "meetings"
        path = f"/report/{kind}/{encode_meeting_uuid(uuid)}/participants"
        params = {"page_size": self.page_size}
        records: List[ParticipationRecord] = []
        pages = 0

        while True:
            data = await self._request("GET", path, endpoint="report_participants", params=params, report=True) or {}
            pages += 1
            records.extend(ParticipationRecord.model_validate(p) for p in data.get("participants", []))
            next_page_token = data.get("next_page_token")
            if not next_page_token:
                break
            params = {**params, "next_page_token": next_page_token}

        logger.info("zoom_participants_fetched", uuid=uuid, records=len(records), pages=pages)
        return records

    async def get_past_meeting_instances(self, meeting_id: int) -> List[MeetingInstance]:
        """List the UUIDs of ended occurrences of a meeting."""
        data = await self._request(
            "GET", f"/past_meetings/{meeting_id}/instances", endpoint="past_meeting_instances"
        ) or {}
        return [MeetingInstance.model_validate(m) for m in data.get("meetings", []) if m.get("uuid")]

    async def get_past_meeting_details(self, uuid: str) -> MeetingInstance:
        """Fetch topic, times and attendee count for one ended occurrence."""
        data = await self._request(
            "GET", f"/past_meetings/{encode_meeting_uuid(uuid)}", endpoint="past_meeting_details"
        ) or {}
        data.setdefault("uuid", uuid)
        if data.get("duration") is not None:
            data["duration"] = int(data["duration"]) * 60
        return MeetingInstance.model_validate(data)
