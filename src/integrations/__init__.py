"""Integration layer for external calendar providers."""

from .google_calendar import GoogleCalendarClient

__all__ = [
    "GoogleCalendarClient",
]
