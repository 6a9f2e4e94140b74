# app/models/api/records_request.py
"""
Request bodies for the publications and emails routes.
Single-record payloads reuse the domain write models directly.
"""

from pydantic import BaseModel, Field

from app.models.domain.records import EmailInput, PublicationInput, ReclassifyPatch


class CreatePublicationsRequest(BaseModel):
    """Bulk create; all publications are inserted or none are."""

    items: list[PublicationInput] = Field(..., min_length=1, description="Publications to create")


class CreateEmailsRequest(BaseModel):
    items: list[EmailInput] = Field(..., min_length=1, description="Emails to create")


class BatchReclassifyRequest(BaseModel):
    """Batch of {id, estado, municipio} patches applied concurrently."""

    patches: list[ReclassifyPatch] = Field(..., min_length=1, description="Reclassification patches")
