from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..auth.credentials import AuthorizedCredential
from ..feed.errors import UpstreamUnauthorized, UpstreamUnavailable
from ..feed.models import CalendarDescriptor, Event, EventPage

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[AuthorizedCredential], Any]


class GoogleCalendarClient:
    """Client issuing single Google Calendar v3 calls with a bearer token."""

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        page_size: int = 250,
        service_factory: ServiceFactory | None = None,
        logger_instance: logging.Logger | None = None,
    ) -> None:
        self._timeout = timeout
        self._page_size = page_size
        self._service_factory = service_factory or self._build_service
        self._logger = logger_instance or logger

    # Calendar operations -----------------------------------------------------------
    def list_calendars(self, credential: AuthorizedCredential) -> List[CalendarDescriptor]:
        service = self._service_factory(credential)
        response = self._execute(service.calendarList().list(), "list calendars")
        calendars = [CalendarDescriptor.from_provider(item) for item in response.get("items", [])]
        self._logger.info("Loaded %s calendars from Google Calendar", len(calendars))
        return calendars

    def list_events(
        self,
        credential: AuthorizedCredential,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        page_token: str | None = None,
    ) -> EventPage:
        service = self._service_factory(credential)
        request = service.events().list(
            calendarId=calendar_id,
            timeMin=time_min.isoformat(),
            timeMax=time_max.isoformat(),
            orderBy="startTime",
            singleEvents=True,
            maxResults=self._page_size,
            pageToken=page_token,
        )
        response = self._execute(request, f"list events of {calendar_id}")
        items = tuple(Event.from_provider(calendar_id, item) for item in response.get("items", []))
        return EventPage(items=items, next_page_token=response.get("nextPageToken"))

    # Internal helpers -------------------------------------------------------------
    def _execute(self, request: Any, action: str) -> dict[str, Any]:
        try:
            return request.execute()
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            if status == 401:
                self._logger.warning("Google Calendar rejected access token during %s", action)
                raise UpstreamUnauthorized(f"Access token rejected during {action}") from exc
            self._logger.exception("Google Calendar call failed (%s): %s", action, exc)
            raise UpstreamUnavailable(f"Failed to {action}") from exc
        except Exception as exc:
            self._logger.exception("Google Calendar call failed (%s): %s", action, exc)
            raise UpstreamUnavailable(f"Failed to {action}") from exc

    def _build_service(self, credential: AuthorizedCredential) -> Any:
        google_credentials = Credentials(token=credential.access_token)
        http = AuthorizedHttp(google_credentials, http=httplib2.Http(timeout=self._timeout))
        return build("calendar", "v3", http=http, cache_discovery=False)
