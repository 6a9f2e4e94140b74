# app/models/api/records_response.py
"""
Response models for the publications and emails routes.
"""

from datetime import date

from pydantic import BaseModel, Field

from app.models.domain.analytics import BatchItemFailure, TrendPoint
from app.models.domain.records import EmailMessage, Publication


class PublicationPageResponse(BaseModel):
    items: list[Publication] = Field(..., description="Publications on this page, newest first")
    page: int = Field(..., description="1-based page number")
    page_size: int = Field(..., description="Items per page")
    total: int = Field(..., description="Publications matching the filter")
    total_pages: int = Field(..., description="Number of pages, at least 1")


class EmailPageResponse(BaseModel):
    items: list[EmailMessage] = Field(..., description="Emails on this page, newest first")
    page: int = Field(..., description="1-based page number")
    page_size: int = Field(..., description="Items per page")
    total: int = Field(..., description="Emails matching the filter")
    total_pages: int = Field(..., description="Number of pages, at least 1")


class TrendResponse(BaseModel):
    start: date = Field(..., description="First day of the series")
    end: date = Field(..., description="Last day of the series")
    timezone: str = Field(..., description="Time zone the days are read in")
    points: list[TrendPoint] = Field(..., description="One point per calendar day")


class BatchReclassifyResponse(BaseModel):
    succeeded: list[EmailMessage] = Field(default_factory=list, description="Updated emails")
    failures: list[BatchItemFailure] = Field(default_factory=list, description="Failed patches")
    failed_ids: list[str] = Field(default_factory=list, description="Ids of the failed patches")
