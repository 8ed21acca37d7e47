"""Google Calendar API client."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib import error as urlerror
from urllib import parse as urlparse
from urllib import request as urlrequest

from ..errors import CollaboratorError, ValidationError
from .types import CalendarInfo, CanonicalEvent, ExistingEvent, format_timestamp

if TYPE_CHECKING:
    from ..board import Board
    from ..config import Settings


logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"

# refresh this many seconds before the token actually expires
TOKEN_EXPIRY_MARGIN = 60


class CalendarError(CollaboratorError):
    """Raised when Calendar API operations fail."""


@dataclass(slots=True)
class CalendarAccountConfig:
    """Google Calendar OAuth configuration."""

    client_id: str
    client_secret: str
    refresh_token: str


def account_from_settings(settings: "Settings") -> CalendarAccountConfig:
    return CalendarAccountConfig(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        refresh_token=settings.google_refresh_token,
    )


class GoogleCalendarClient:
    """Authenticated handle for the calendar and event operations a sync needs."""

    def __init__(
        self,
        account: CalendarAccountConfig,
        *,
        timezone_name: str,
        timeout_seconds: int = 30,
    ) -> None:
        self.account = account
        self.timezone_name = timezone_name
        self.timeout_seconds = timeout_seconds
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Calendars
    # ------------------------------------------------------------------
    def list_calendars(self) -> List[CalendarInfo]:
        """List every calendar on the account's calendar list."""
        calendars: List[CalendarInfo] = []
        page_token: Optional[str] = None
        while True:
            params = {"pageToken": page_token} if page_token else None
            response = self._request("/users/me/calendarList", params=params)
            calendars.extend(CalendarInfo.from_api(item) for item in response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                return calendars

    def create_calendar(self, description: str, summary: str) -> CalendarInfo:
        body = {
            "summary": summary,
            "description": description,
            "timeZone": self.timezone_name,
        }
        try:
            response = self._request("/calendars", method="POST", body=body)
        except CalendarError as exc:
            raise CalendarError(f"Issue creating new calendar {summary}: {exc}") from exc
        logger.info(f"Created calendar '{summary}' ({response.get('id')})")
        return CalendarInfo.from_api(response)

    def get_calendar(self, calendar_id: str) -> CalendarInfo:
        encoded_id = urlparse.quote(calendar_id, safe="")
        try:
            response = self._request(f"/calendars/{encoded_id}")
        except CalendarError as exc:
            raise CalendarError(f"Issue getting calendar {calendar_id}: {exc}") from exc
        return CalendarInfo.from_api(response)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> List[ExistingEvent]:
        """List the events between ``time_min`` and ``time_max``.

        Recurring events are expanded into instances and cancelled events
        are skipped.
        """
        encoded_id = urlparse.quote(calendar_id, safe="")
        events: List[ExistingEvent] = []
        page_token: Optional[str] = None
        while True:
            params = {
                "timeMin": format_timestamp(time_min),
                "timeMax": format_timestamp(time_max),
                "singleEvents": "true",
                "maxResults": "2500",
            }
            if page_token:
                params["pageToken"] = page_token

            try:
                response = self._request(f"/calendars/{encoded_id}/events", params=params)
            except CalendarError as exc:
                raise CalendarError(f"Issue getting events: {exc}") from exc

            for item in response.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                events.append(ExistingEvent.from_api(item))

            page_token = response.get("nextPageToken")
            if not page_token:
                return events

    def insert_event(self, calendar_id: str, event: CanonicalEvent) -> None:
        encoded_id = urlparse.quote(calendar_id, safe="")
        try:
            self._request(
                f"/calendars/{encoded_id}/events",
                method="POST",
                body=event.to_api_body(),
            )
        except CalendarError as exc:
            raise CalendarError(f"Issue creating event {event.summary}: {exc}") from exc

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        encoded_cal_id = urlparse.quote(calendar_id, safe="")
        encoded_event_id = urlparse.quote(event_id, safe="")
        try:
            self._request(
                f"/calendars/{encoded_cal_id}/events/{encoded_event_id}",
                method="DELETE",
            )
        except CalendarError as exc:
            raise CalendarError(f"Issue deleting event {event_id}: {exc}") from exc

    def update_event(self, calendar_id: str, event_id: str, event: CanonicalEvent) -> None:
        """Replace an event's fields with the canonical event (full PUT)."""
        encoded_cal_id = urlparse.quote(calendar_id, safe="")
        encoded_event_id = urlparse.quote(event_id, safe="")
        try:
            self._request(
                f"/calendars/{encoded_cal_id}/events/{encoded_event_id}",
                method="PUT",
                body=event.to_api_body(),
            )
        except CalendarError as exc:
            raise CalendarError(f"Issue updating event {event.summary}: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        payload = urlparse.urlencode(
            {
                "client_id": self.account.client_id,
                "client_secret": self.account.client_secret,
                "refresh_token": self.account.refresh_token,
                "grant_type": "refresh_token",
            }
        ).encode("utf-8")

        req = urlrequest.Request(
            TOKEN_URL,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            method="POST",
        )

        try:
            with urlrequest.urlopen(req, timeout=15) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise CalendarError(f"Calendar token response is not JSON: {exc}") from exc
        except urlerror.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise CalendarError(
                f"Calendar token request failed ({exc.code}): {detail}"
            ) from exc
        except urlerror.URLError as exc:
            raise CalendarError(f"Calendar token network error: {exc}") from exc

        token = data.get("access_token")
        if not token:
            raise CalendarError("Calendar token response missing access_token.")

        expires_in = float(data.get("expires_in", 3600))
        self._access_token = str(token)
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        return self._access_token

    def _request(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated request to the Calendar API."""
        access_token = self._get_access_token()

        url = f"{CALENDAR_API_BASE}{endpoint}"
        if params:
            url = f"{url}?{urlparse.urlencode(params)}"

        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urlrequest.Request(url, data=data, headers=headers, method=method)
        logger.debug(f"{method} {url}")

        try:
            with urlrequest.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
                if resp.status == 204 or not raw:  # No content
                    return {}
                return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CalendarError(f"Calendar API returned a non-JSON response: {exc}") from exc
        except urlerror.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise CalendarError(
                f"Calendar API request failed ({exc.code}): {detail}"
            ) from exc
        except urlerror.URLError as exc:
            raise CalendarError(f"Calendar API network error: {exc}") from exc


# ============================================================================
# Board calendar selection
# ============================================================================


def find_or_create_board_calendar(client: GoogleCalendarClient, board: "Board") -> CalendarInfo:
    """Return the calendar owned by ``board``, creating it when missing.

    A calendar belongs to a board when its description is the board id.

    Raises:
        ValidationError: if more than one calendar claims the board.
        CalendarError: if listing, fetching or creating fails.
    """
    try:
        calendars = client.list_calendars()
    except CalendarError as exc:
        raise CalendarError(f"Unable to retrieve list of calendars: {exc}") from exc

    matches = [cal for cal in calendars if cal.description == board.id]

    if len(matches) > 1:
        ids = ", ".join(cal.id for cal in matches)
        raise ValidationError(
            f"More than one calendar has the board id '{board.id}' as its description: {ids}. "
            "Remove the id from all but one of them."
        )

    if not matches:
        logger.info(f"No calendar found for board {board.id}, creating '{board.name}'")
        return client.create_calendar(description=board.id, summary=board.name)

    return client.get_calendar(matches[0].id)
