"""
Persistence for inbound emails (emails table).
"""

from app.db.helpers import DatabaseError, fetch_all
from app.models.domain.records import EmailMessage, RecordDomain
from app.repositories.record_repository import RecordRepository


class EmailRepository(RecordRepository[EmailMessage]):
    DOMAIN = RecordDomain.EMAILS
    TABLE = "emails"
    TIMESTAMP_COLUMN = "data_envio"
    WRITABLE_COLUMNS = frozenset(
        {"destinatario", "data_envio", "estado", "municipio", "classificado"}
    )
    MODEL = EmailMessage

    async def list_pending(self) -> list[EmailMessage]:
        """Emails still waiting for a state/municipality, newest first."""
        query = f"""
            SELECT * FROM {self.TABLE}
            WHERE classificado = false
            ORDER BY {self.TIMESTAMP_COLUMN} DESC
        """
        try:
            rows = await fetch_all(query)
        except DatabaseError as e:
            raise self._store_error("list_pending", e) from e
        return [self._row_to_record(row) for row in rows]


email_repository = EmailRepository()
