"""
Shared request dependencies: filter parsing and per-request dashboards.

Dashboards are cheap to build; the state they share across requests is
the module-level view cache.
"""

from datetime import date
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Query, status
from pydantic import ValidationError

from app.config import settings
from app.coordination import EmailDashboard, PublicationDashboard
from app.models.domain.analytics import DateRange
from app.services.analytics import resolve_timezone


def get_timezone(
    tz: str | None = Query(None, description="IANA time zone the calendar days are read in"),
) -> ZoneInfo:
    try:
        return resolve_timezone(tz or settings.DEFAULT_TIMEZONE)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


def get_date_range(
    start: date | None = Query(None, description="First day, inclusive (YYYY-MM-DD)"),
    end: date | None = Query(None, description="Last day, inclusive (YYYY-MM-DD)"),
) -> DateRange | None:
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start and end must be given together",
        )
    try:
        return DateRange(start=start, end=end)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors()[0]["msg"]
        )


def get_publication_dashboard(
    date_range: DateRange | None = Depends(get_date_range),
    tz: ZoneInfo = Depends(get_timezone),
) -> PublicationDashboard:
    dashboard = PublicationDashboard(tz=tz)
    dashboard.apply_filters(date_range)
    return dashboard


def get_email_dashboard(
    date_range: DateRange | None = Depends(get_date_range),
    tz: ZoneInfo = Depends(get_timezone),
) -> EmailDashboard:
    dashboard = EmailDashboard(tz=tz)
    dashboard.apply_filters(date_range)
    return dashboard
