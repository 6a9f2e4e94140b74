"""
Record store access shared by both dashboard domains.

Each subclass maps one table onto one record model. Methods are plain
pass-throughs: no analytics, no caching. Every store failure is raised as
StoreUnavailable; the caller decides what to do with it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, ClassVar, Generic, TypeVar

from app.db.helpers import (
    DatabaseError,
    execute_query,
    fetch_all,
    fetch_many_in_transaction,
    fetch_one,
)
from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import RecordNotFound, StoreUnavailable
from app.models.domain.records import EmailMessage, Publication, RecordDomain

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", Publication, EmailMessage)


class RecordRepository(Generic[RecordT]):
    """CRUD against one record table, ordered by its timestamp column."""

    DOMAIN: ClassVar[RecordDomain]
    TABLE: ClassVar[str]
    TIMESTAMP_COLUMN: ClassVar[str]
    WRITABLE_COLUMNS: ClassVar[frozenset[str]]
    MODEL: ClassVar[type]

    def _row_to_record(self, row: dict[str, Any]) -> RecordT:
        data = dict(row)
        data["id"] = str(data["id"])
        if data.get("user_id") is not None:
            data["user_id"] = str(data["user_id"])
        return self.MODEL.model_validate(data)

    def _checked_columns(self, row: dict[str, Any]) -> list[str]:
        columns = list(row)
        unknown = set(columns) - self.WRITABLE_COLUMNS - {"user_id"}
        if unknown:
            raise ValueError(f"Unknown {self.TABLE} columns: {sorted(unknown)}")
        return columns

    def _store_error(self, operation: str, error: DatabaseError) -> StoreUnavailable:
        logger.error(
            "Record store operation failed",
            table=self.TABLE,
            operation=operation,
            error=str(error),
        )
        return StoreUnavailable(str(error), operation=f"{self.TABLE}.{operation}")

    async def list(self) -> list[RecordT]:
        """All records, newest first."""
        query = f"SELECT * FROM {self.TABLE} ORDER BY {self.TIMESTAMP_COLUMN} DESC"
        try:
            rows = await fetch_all(query)
        except DatabaseError as e:
            raise self._store_error("list", e) from e
        return [self._row_to_record(row) for row in rows]

    async def list_by_timestamp_range(
        self, start: datetime, end_exclusive: datetime
    ) -> list[RecordT]:
        """Records with start <= timestamp < end_exclusive, newest first."""
        query = f"""
            SELECT * FROM {self.TABLE}
            WHERE {self.TIMESTAMP_COLUMN} >= %s
              AND {self.TIMESTAMP_COLUMN} < %s
            ORDER BY {self.TIMESTAMP_COLUMN} DESC
        """
        try:
            rows = await fetch_all(query, (start, end_exclusive))
        except DatabaseError as e:
            raise self._store_error("list_by_timestamp_range", e) from e
        return [self._row_to_record(row) for row in rows]

    async def get_by_id(self, record_id: str) -> RecordT | None:
        query = f"SELECT * FROM {self.TABLE} WHERE id = %s"
        try:
            row = await fetch_one(query, (record_id,))
        except DatabaseError as e:
            raise self._store_error("get_by_id", e) from e
        return self._row_to_record(row) if row else None

    async def insert(self, row: dict[str, Any]) -> RecordT:
        columns = self._checked_columns(row)
        query = f"""
            INSERT INTO {self.TABLE} ({", ".join(columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            RETURNING *
        """
        try:
            created = await fetch_one(query, tuple(row[column] for column in columns))
        except DatabaseError as e:
            raise self._store_error("insert", e) from e
        if not created:
            raise StoreUnavailable(
                f"Insert into {self.TABLE} returned no row", operation=f"{self.TABLE}.insert"
            )

        record = self._row_to_record(created)
        logger.info("Record inserted", table=self.TABLE, record_id=record.id)
        return record

    async def insert_many(self, rows: Sequence[dict[str, Any]]) -> list[RecordT]:
        """Insert all rows in one transaction; nothing is committed if any row fails."""
        if not rows:
            return []

        columns = self._checked_columns(rows[0])
        for row in rows[1:]:
            if list(row) != columns:
                raise ValueError(f"insert_many rows for {self.TABLE} must share the same columns")

        query = f"""
            INSERT INTO {self.TABLE} ({", ".join(columns)})
            VALUES ({", ".join(["%s"] * len(columns))})
            RETURNING *
        """
        params = [tuple(row[column] for column in columns) for row in rows]
        try:
            created = await fetch_many_in_transaction(query, params)
        except DatabaseError as e:
            raise self._store_error("insert_many", e) from e

        logger.info("Records inserted", table=self.TABLE, batch_size=len(created))
        return [self._row_to_record(row) for row in created]

    async def update(self, record_id: str, patch: dict[str, Any]) -> RecordT:
        """Apply a partial patch and return the updated record."""
        if not patch:
            existing = await self.get_by_id(record_id)
            if existing is None:
                raise RecordNotFound(self.DOMAIN, record_id)
            return existing

        columns = self._checked_columns(patch)
        assignments = ", ".join(f"{column} = %s" for column in columns)
        query = f"""
            UPDATE {self.TABLE}
            SET {assignments}, updated_at = NOW()
            WHERE id = %s
            RETURNING *
        """
        params = tuple(patch[column] for column in columns) + (record_id,)
        try:
            row = await fetch_one(query, params)
        except DatabaseError as e:
            raise self._store_error("update", e) from e
        if not row:
            raise RecordNotFound(self.DOMAIN, record_id)
        return self._row_to_record(row)

    async def delete(self, record_id: str) -> None:
        query = f"DELETE FROM {self.TABLE} WHERE id = %s"
        try:
            affected = await execute_query(query, (record_id,))
        except DatabaseError as e:
            raise self._store_error("delete", e) from e
        if affected == 0:
            raise RecordNotFound(self.DOMAIN, record_id)
        logger.info("Record deleted", table=self.TABLE, record_id=record_id)
