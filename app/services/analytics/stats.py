"""Summary stats derived from records already fetched."""

from collections.abc import Iterable

from app.models.domain.analytics import EmailStats, PublicationStats
from app.models.domain.records import EmailMessage, Publication


def publication_stats(publications: Iterable[Publication]) -> PublicationStats:
    return PublicationStats(total=sum(1 for _ in publications))


def email_stats(emails: Iterable[EmailMessage | bool]) -> EmailStats:
    """Totals from email records or bare `classificado` flags."""
    total = 0
    classified = 0
    for item in emails:
        flag = item if isinstance(item, bool) else item.classificado
        total += 1
        if flag:
            classified += 1
    return EmailStats(total=total, classified=classified, pending=total - classified)
