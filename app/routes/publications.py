"""
Publications API Routes
List, trend, stats, report export and CRUD for social-media publications.

Domain errors (RecordNotFound, Unauthenticated, StoreUnavailable,
NothingToExport) propagate to the handlers registered in app.main.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from app.auth.verify import actor_id, optional_auth_dependency
from app.coordination import PublicationDashboard
from app.infrastructure.observability.logging import get_logger
from app.models.api.records_request import CreatePublicationsRequest
from app.models.api.records_response import PublicationPageResponse, TrendResponse
from app.models.domain.analytics import PublicationStats
from app.models.domain.records import Publication, PublicationInput, PublicationPatch
from app.models.domain.views import ViewKind
from app.services.report_service import REPORT_FILENAME

from .dependencies import get_publication_dashboard

logger = get_logger(__name__)

router = APIRouter(prefix="/publications", tags=["publications"])


@router.get("", response_model=PublicationPageResponse)
async def list_publications(
    page: int = Query(1, ge=1, description="1-based page number"),
    dashboard: PublicationDashboard = Depends(get_publication_dashboard),
):
    """Filtered publications, newest first, one page at a time."""
    listing = await dashboard.list_page(page)
    return PublicationPageResponse(
        items=listing.items,
        page=listing.number,
        page_size=dashboard.page_size,
        total=listing.total,
        total_pages=listing.total_pages,
    )


@router.get("/trend", response_model=TrendResponse)
async def publication_trend(dashboard: PublicationDashboard = Depends(get_publication_dashboard)):
    """Daily counts over the filter, or the last 7 local days without one."""
    trend_range = dashboard.trend_range()
    points = await dashboard.load(ViewKind.TREND)
    return TrendResponse(
        start=trend_range.start,
        end=trend_range.end,
        timezone=dashboard.tz.key,
        points=list(points),
    )


@router.get("/stats", response_model=PublicationStats)
async def publication_stats(dashboard: PublicationDashboard = Depends(get_publication_dashboard)):
    """Totals over the filtered set."""
    return await dashboard.load(ViewKind.STATS)


@router.get("/report.pdf")
async def publication_report(dashboard: PublicationDashboard = Depends(get_publication_dashboard)):
    content = await dashboard.export_report()
    logger.info("Publication report exported", signature=dashboard.signature, size_bytes=len(content))
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{REPORT_FILENAME}"'},
    )


@router.get("/{publication_id}", response_model=Publication)
async def get_publication(
    publication_id: str, dashboard: PublicationDashboard = Depends(get_publication_dashboard)
):
    return await dashboard.get(publication_id)


@router.post("", response_model=Publication, status_code=status.HTTP_201_CREATED)
async def create_publication(
    payload: PublicationInput,
    claims: dict | None = Depends(optional_auth_dependency),
    dashboard: PublicationDashboard = Depends(get_publication_dashboard),
):
    return await dashboard.create(payload, actor_id(claims))


@router.post("/batch", response_model=list[Publication], status_code=status.HTTP_201_CREATED)
async def create_publications(
    request: CreatePublicationsRequest,
    claims: dict | None = Depends(optional_auth_dependency),
    dashboard: PublicationDashboard = Depends(get_publication_dashboard),
):
    """Create several publications in one transaction."""
    return await dashboard.create_many(request.items, actor_id(claims))


@router.patch("/{publication_id}", response_model=Publication)
async def update_publication(
    publication_id: str,
    patch: PublicationPatch,
    dashboard: PublicationDashboard = Depends(get_publication_dashboard),
):
    return await dashboard.update(publication_id, patch)


@router.delete("/{publication_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_publication(
    publication_id: str, dashboard: PublicationDashboard = Depends(get_publication_dashboard)
):
    await dashboard.delete(publication_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
