"""
Emails API Routes
List, trend, global KPIs, pending queue, CRUD and batch reclassification.

Stats, by-state, top-recipients and pending ignore the date filter.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from app.auth.verify import actor_id, optional_auth_dependency
from app.coordination import EmailDashboard
from app.infrastructure.observability.logging import get_logger
from app.models.api.records_request import BatchReclassifyRequest, CreateEmailsRequest
from app.models.api.records_response import (
    BatchReclassifyResponse,
    EmailPageResponse,
    TrendResponse,
)
from app.models.domain.analytics import EmailStats, GroupCount
from app.models.domain.records import EmailInput, EmailMessage, EmailPatch
from app.models.domain.views import ViewKind

from .dependencies import get_email_dashboard

logger = get_logger(__name__)

router = APIRouter(prefix="/emails", tags=["emails"])


@router.get("", response_model=EmailPageResponse)
async def list_emails(
    page: int = Query(1, ge=1, description="1-based page number"),
    dashboard: EmailDashboard = Depends(get_email_dashboard),
):
    """Filtered emails, newest first, one page at a time."""
    listing = await dashboard.list_page(page)
    return EmailPageResponse(
        items=listing.items,
        page=listing.number,
        page_size=dashboard.page_size,
        total=listing.total,
        total_pages=listing.total_pages,
    )


@router.get("/trend", response_model=TrendResponse)
async def email_trend(dashboard: EmailDashboard = Depends(get_email_dashboard)):
    trend_range = dashboard.trend_range()
    points = await dashboard.load(ViewKind.TREND)
    return TrendResponse(
        start=trend_range.start,
        end=trend_range.end,
        timezone=dashboard.tz.key,
        points=list(points),
    )


@router.get("/stats", response_model=EmailStats)
async def email_stats(dashboard: EmailDashboard = Depends(get_email_dashboard)):
    """Classification totals over the whole mailbox."""
    return await dashboard.load(ViewKind.STATS)


@router.get("/by-state", response_model=list[GroupCount])
async def emails_by_state(dashboard: EmailDashboard = Depends(get_email_dashboard)):
    return await dashboard.load(ViewKind.BY_STATE)


@router.get("/top-recipients", response_model=list[GroupCount])
async def top_recipients(dashboard: EmailDashboard = Depends(get_email_dashboard)):
    return await dashboard.load(ViewKind.TOP_RECIPIENTS)


@router.get("/pending", response_model=list[EmailMessage])
async def pending_emails(dashboard: EmailDashboard = Depends(get_email_dashboard)):
    """Emails still missing estado or municipio."""
    return await dashboard.load(ViewKind.PENDING)


@router.post("/reclassify", response_model=BatchReclassifyResponse)
async def reclassify_emails(
    request: BatchReclassifyRequest, dashboard: EmailDashboard = Depends(get_email_dashboard)
):
    """
    Apply the patches concurrently. Answers 207 with the failed ids when
    some of them fail; the others stay applied.
    """
    result = await dashboard.batch_reclassify(request.patches)
    result.raise_for_failures()
    return BatchReclassifyResponse(succeeded=result.succeeded, failures=[], failed_ids=[])


@router.get("/{email_id}", response_model=EmailMessage)
async def get_email(email_id: str, dashboard: EmailDashboard = Depends(get_email_dashboard)):
    return await dashboard.get(email_id)


@router.post("", response_model=EmailMessage, status_code=status.HTTP_201_CREATED)
async def create_email(
    payload: EmailInput,
    claims: dict | None = Depends(optional_auth_dependency),
    dashboard: EmailDashboard = Depends(get_email_dashboard),
):
    return await dashboard.create(payload, actor_id(claims))


@router.post("/batch", response_model=list[EmailMessage], status_code=status.HTTP_201_CREATED)
async def create_emails(
    request: CreateEmailsRequest,
    claims: dict | None = Depends(optional_auth_dependency),
    dashboard: EmailDashboard = Depends(get_email_dashboard),
):
    emails = await dashboard.create_many(request.items, actor_id(claims))
    logger.info("Emails imported", count=len(emails))
    return emails


@router.patch("/{email_id}", response_model=EmailMessage)
async def update_email(
    email_id: str, patch: EmailPatch, dashboard: EmailDashboard = Depends(get_email_dashboard)
):
    return await dashboard.update(email_id, patch)


@router.delete("/{email_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_email(email_id: str, dashboard: EmailDashboard = Depends(get_email_dashboard)):
    await dashboard.delete(email_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
