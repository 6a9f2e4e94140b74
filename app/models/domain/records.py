"""
Record models for the two dashboard domains.

Publications (social_posts) and inbound emails (emails) share the same
lifecycle but carry different payloads. `Record` is the tagged union the
analytics layer works on; `record_timestamp` is the single place that
knows which column each variant is bucketed by.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
)


class RecordDomain(StrEnum):
    PUBLICATIONS = "publications"
    EMAILS = "emails"


class Publication(BaseModel):
    """A social-media publication row."""

    domain: Literal["publications"] = "publications"

    id: str
    user_id: str
    data_publicacao: datetime
    link: str
    tema: str
    texto: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EmailMessage(BaseModel):
    """An inbound email row. Columns this service does not inspect are kept as extras."""

    model_config = ConfigDict(extra="allow")

    domain: Literal["emails"] = "emails"

    id: str
    user_id: str | None = None
    destinatario: str
    data_envio: datetime
    estado: str | None = None
    municipio: str | None = None
    classificado: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


Record = Publication | EmailMessage


def record_timestamp(record: Record) -> datetime:
    """Instant a record is filtered and bucketed by. Naive values are read as UTC."""
    if isinstance(record, Publication):
        value = record.data_publicacao
    else:
        value = record.data_envio

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def is_classified(estado: str | None, municipio: str | None) -> bool:
    """An email counts as classified once both location fields are filled."""
    return bool(estado and estado.strip() and municipio and municipio.strip())


# ---------------------------------------------------------------------------
# Write models
# ---------------------------------------------------------------------------

_HTTP_URL = TypeAdapter(HttpUrl)


def _check_link(value: str) -> str:
    """Accept only http(s) URLs, but keep the text exactly as entered."""
    try:
        _HTTP_URL.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"link must be an http(s) URL: {value!r}") from e
    return value


Link = Annotated[str, AfterValidator(_check_link)]


class PublicationInput(BaseModel):
    data_publicacao: datetime
    link: Link
    tema: str = Field(..., min_length=1, max_length=100)
    texto: str = Field(..., min_length=1, max_length=2000)

    def to_row(self) -> dict[str, Any]:
        return {
            "data_publicacao": self.data_publicacao,
            "link": self.link,
            "tema": self.tema,
            "texto": self.texto,
        }


class PublicationPatch(BaseModel):
    data_publicacao: datetime | None = None
    link: Link | None = None
    tema: str | None = Field(None, min_length=1, max_length=100)
    texto: str | None = Field(None, min_length=1, max_length=2000)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class EmailInput(BaseModel):
    destinatario: str = Field(..., min_length=1)
    data_envio: datetime
    estado: str | None = None
    municipio: str | None = None
    classificado: bool | None = None

    def to_row(self) -> dict[str, Any]:
        classificado = self.classificado
        if classificado is None:
            classificado = is_classified(self.estado, self.municipio)
        return {
            "destinatario": self.destinatario,
            "data_envio": self.data_envio,
            "estado": self.estado,
            "municipio": self.municipio,
            "classificado": classificado,
        }


class EmailPatch(BaseModel):
    destinatario: str | None = Field(None, min_length=1)
    data_envio: datetime | None = None
    estado: str | None = None
    municipio: str | None = None
    classificado: bool | None = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class ReclassifyPatch(BaseModel):
    """One item of a batch reclassification."""

    id: str
    estado: str | None = None
    municipio: str | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "estado": self.estado,
            "municipio": self.municipio,
            "classificado": is_classified(self.estado, self.municipio),
        }
