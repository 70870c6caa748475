"""REST API exposing the merged calendar feed."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, NoReturn, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response, status
from pydantic import BaseModel

from ..config import FeedConfig
from ..feed.errors import CredentialNeedsRefresh, FeedError, Unauthenticated, UpstreamUnavailable
from ..feed.models import AllDayStart, CalendarDescriptor, Event, EventStart, TimedStart
from ..feed.service import CalendarFeedService, build_service, calendar_ids_from

logger = logging.getLogger(__name__)


class CalendarResponse(BaseModel):
    id: str
    summary: Optional[str]
    color: Optional[str]
    primary: bool


class EventBoundaryResponse(BaseModel):
    dateTime: Optional[dt.datetime] = None
    date: Optional[dt.date] = None


class EventResponse(BaseModel):
    id: Optional[str]
    calendarId: str
    summary: Optional[str]
    description: Optional[str] = None
    location: Optional[str] = None
    htmlLink: Optional[str] = None
    start: EventBoundaryResponse
    end: EventBoundaryResponse


class UserStatusResponse(BaseModel):
    authenticated: bool
    principal: Optional[str] = None
    needsRefresh: bool = False


def _serialize_boundary(boundary: EventStart) -> EventBoundaryResponse:
    if isinstance(boundary, TimedStart):
        return EventBoundaryResponse(dateTime=boundary.instant)
    if isinstance(boundary, AllDayStart):
        return EventBoundaryResponse(date=boundary.day)
    return EventBoundaryResponse()


def _serialize_event(event: Event) -> EventResponse:
    payload = event.payload
    return EventResponse(
        id=event.event_id,
        calendarId=event.calendar_id,
        summary=event.summary,
        description=payload.get("description"),
        location=payload.get("location"),
        htmlLink=payload.get("htmlLink"),
        start=_serialize_boundary(event.start),
        end=_serialize_boundary(event.end),
    )


def _serialize_calendar(calendar: CalendarDescriptor) -> CalendarResponse:
    return CalendarResponse(
        id=calendar.id,
        summary=calendar.summary,
        color=calendar.color,
        primary=calendar.primary,
    )


def _principal(x_authenticated_user: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_authenticated_user or None


def _raise_http(exc: FeedError) -> NoReturn:
    if isinstance(exc, CredentialNeedsRefresh):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Calendar access needs to be refreshed.",
        ) from exc
    if isinstance(exc, Unauthenticated):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in.",
        ) from exc
    if isinstance(exc, UpstreamUnavailable):
        logger.error("Calendar provider failure: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Calendar provider is unavailable.",
        ) from exc
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


def create_app(
    service: Optional[CalendarFeedService] = None,
    config: Optional[FeedConfig] = None,
) -> FastAPI:
    if service is None:
        config = config or FeedConfig.from_env()
        service = build_service(config)

    title = f"{config.application_name} API" if config is not None else "Daily Calendar Feed API"
    app = FastAPI(title=title)
    app.state.feed_service = service

    def load_events(principal: Optional[str], calendar_ids: List[str], days: Optional[int]) -> List[EventResponse]:
        try:
            events = service.get_events(principal, calendar_ids, days)
        except FeedError as exc:
            _raise_http(exc)
        return [_serialize_event(event) for event in events]

    @app.get("/api/calendar/list", response_model=List[CalendarResponse])
    def get_calendar_list(principal: Optional[str] = Depends(_principal)) -> List[CalendarResponse]:
        try:
            calendars = service.get_calendars(principal)
        except FeedError as exc:
            _raise_http(exc)
        return [_serialize_calendar(calendar) for calendar in calendars]

    @app.get("/api/calendar/events", response_model=List[EventResponse])
    def get_calendar_events(
        calendar_id: Optional[str] = Query(default=None, alias="calendarId"),
        days: Optional[int] = Query(default=None, ge=1),
        principal: Optional[str] = Depends(_principal),
    ) -> List[EventResponse]:
        return load_events(principal, calendar_ids_from([calendar_id] if calendar_id else None), days)

    @app.get("/api/calendar/events/all", response_model=List[EventResponse])
    def get_all_calendar_events(
        calendar_ids: Optional[List[str]] = Query(default=None, alias="calendarIds"),
        days: Optional[int] = Query(default=None, ge=1),
        principal: Optional[str] = Depends(_principal),
    ) -> List[EventResponse]:
        return load_events(principal, calendar_ids_from(calendar_ids), days)

    @app.get("/api/auth/me", response_model=UserStatusResponse)
    def get_current_user(principal: Optional[str] = Depends(_principal)) -> UserStatusResponse:
        user = service.current_user(principal)
        return UserStatusResponse(
            authenticated=user.authenticated,
            principal=user.principal,
            needsRefresh=user.needs_refresh,
        )

    @app.post("/api/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
    def logout(principal: Optional[str] = Depends(_principal)) -> Response:
        if principal:
            service.logout(principal)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
