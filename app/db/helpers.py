# app/db/helpers.py
"""
Database helper functions for common patterns.
Reduces boilerplate in the repository layer.
"""

from collections.abc import Sequence
from typing import Any

import psycopg

from app.db.pool import get_db_connection, get_db_transaction
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Pool lifecycle problems (not initialized, closed) surface as RuntimeError
_STORE_ERRORS = (psycopg.Error, RuntimeError)


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Dict with row data or None if no results
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row if row else None
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return row if row else None

    except _STORE_ERRORS as e:
        logger.error("Database fetch_one error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_one") from e


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        List of dicts with row data
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

    except _STORE_ERRORS as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_all") from e


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """
    Execute query and return number of affected rows.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Number of affected rows
    """
    try:
        if connection:
            cursor = await connection.execute(query, params)
            return cursor.rowcount
        else:
            async with await get_db_connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.rowcount

    except _STORE_ERRORS as e:
        logger.error("Database execute error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="execute") from e


async def fetch_many_in_transaction(
    query: str, params_seq: Sequence[tuple]
) -> list[dict[str, Any]]:
    """
    Run one RETURNING statement per params tuple inside a single transaction.

    Either every row is written and returned, or the transaction is rolled
    back and nothing is committed.

    Example:
        rows = await fetch_many_in_transaction(
            "INSERT INTO social_posts (...) VALUES (%s, %s) RETURNING *",
            [(a, b), (c, d)],
        )
    """
    rows: list[dict[str, Any]] = []
    try:
        async with await get_db_transaction() as conn:
            async with conn.cursor() as cur:
                for params in params_seq:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    if row:
                        rows.append(row)

        logger.debug("Transaction completed successfully", statement_count=len(params_seq))
        return rows

    except _STORE_ERRORS as e:
        logger.error("Transaction failed", statement_count=len(params_seq), error=str(e))
        raise DatabaseError(f"Transaction failed: {e}", operation="transaction") from e
