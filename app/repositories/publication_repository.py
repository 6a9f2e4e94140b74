"""
Persistence for social-media publications (social_posts table).
"""

from app.models.domain.records import Publication, RecordDomain
from app.repositories.record_repository import RecordRepository


class PublicationRepository(RecordRepository[Publication]):
    DOMAIN = RecordDomain.PUBLICATIONS
    TABLE = "social_posts"
    TIMESTAMP_COLUMN = "data_publicacao"
    WRITABLE_COLUMNS = frozenset({"data_publicacao", "link", "tema", "texto"})
    MODEL = Publication


publication_repository = PublicationRepository()
