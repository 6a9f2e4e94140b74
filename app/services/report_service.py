"""
Publication report export.

`build_publication_report` turns the filtered publications into a
`ReportDocument` (header lines plus truncated table rows); `render`
lays it out as a PDF with fpdf2.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.analytics import DateRange
from app.models.domain.errors import NothingToExport
from app.models.domain.records import Publication, record_timestamp
from app.services.analytics import local_date

logger = get_logger(__name__)

REPORT_TITLE = "Relatório de Publicações - Redes Sociais"
REPORT_FILENAME = "publicacoes-redes-sociais.pdf"
TABLE_HEADERS = ("Data", "Tema", "Texto", "Link")
COLUMN_WIDTHS = (25, 40, 75, 50)
HEADER_FILL = (59, 130, 246)

DATE_FORMAT = "%d/%m/%Y"


@dataclass(frozen=True)
class ReportRow:
    date: str
    tema: str
    texto: str
    link: str

    def cells(self) -> tuple[str, str, str, str]:
        return (self.date, self.tema, self.texto, self.link)


@dataclass
class ReportDocument:
    title: str
    period: str
    total: int
    generated_at: str
    rows: list[ReportRow] = field(default_factory=list)

    @property
    def header_lines(self) -> list[str]:
        return [self.period, f"Total de publicações: {self.total}", f"Gerado em: {self.generated_at}"]


def truncate(value: str, limit: int) -> str:
    """First `limit` characters, with "..." appended only when something was cut."""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def describe_period(date_range: DateRange | None) -> str:
    if date_range is None:
        return "Período: Todos"
    return (
        f"Período: {date_range.start.strftime(DATE_FORMAT)} "
        f"a {date_range.end.strftime(DATE_FORMAT)}"
    )


def build_publication_report(
    publications: Sequence[Publication],
    date_range: DateRange | None,
    tz: tzinfo,
    now: datetime | None = None,
) -> ReportDocument:
    if not publications:
        raise NothingToExport("Nenhuma publicação para exportar")

    generated = (now or datetime.now(tz)).astimezone(tz)
    rows = [
        ReportRow(
            date=local_date(record_timestamp(publication), tz).strftime(DATE_FORMAT),
            tema=publication.tema,
            texto=truncate(publication.texto, settings.REPORT_TEXT_MAX_CHARS),
            link=truncate(publication.link, settings.REPORT_LINK_MAX_CHARS),
        )
        for publication in publications
    ]
    return ReportDocument(
        title=REPORT_TITLE,
        period=describe_period(date_range),
        total=len(publications),
        generated_at=generated.strftime(f"{DATE_FORMAT} %H:%M:%S"),
        rows=rows,
    )


def _latin1(text: str) -> str:
    # Core fonts only cover latin-1
    return text.encode("latin-1", errors="replace").decode("latin-1")


class PublicationReportPDF(FPDF):
    """A4 portrait report with a page-number footer."""

    def __init__(self):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.set_auto_page_break(auto=True, margin=20)
        self.alias_nb_pages()

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(128, 128, 128)
        self.cell(0, 10, _latin1(f"Página {self.page_no()}/{{nb}}"), align="C")

    def title_block(self, document: ReportDocument):
        self.set_font("Helvetica", "B", 18)
        self.set_text_color(0, 0, 0)
        self.cell(0, 10, _latin1(document.title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)

        self.set_font("Helvetica", "", 10)
        self.set_text_color(100, 100, 100)
        for line in document.header_lines:
            self.cell(0, 6, _latin1(line), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(4)

    def table_header(self):
        self.set_font("Helvetica", "B", 8)
        self.set_fill_color(*HEADER_FILL)
        self.set_text_color(255, 255, 255)
        for title, width in zip(TABLE_HEADERS, COLUMN_WIDTHS):
            self.cell(width, 7, title, border=1, fill=True)
        self.ln()

    def table_row(self, row: ReportRow):
        if self.will_page_break(6):
            self.add_page()
            self.table_header()

        self.set_font("Helvetica", "", 8)
        self.set_text_color(40, 40, 40)
        for value, width in zip(row.cells(), COLUMN_WIDTHS):
            # Overflowing tema values are clipped to the cell
            self.cell(width, 6, _latin1(value), border=1)
        self.ln()


def render(document: ReportDocument) -> bytes:
    pdf = PublicationReportPDF()
    pdf.add_page()
    pdf.title_block(document)
    pdf.table_header()
    for row in document.rows:
        pdf.table_row(row)

    content = bytes(pdf.output())
    logger.info("Publication report rendered", rows=len(document.rows), size_bytes=len(content))
    return content
