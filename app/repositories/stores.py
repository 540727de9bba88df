"""
Capability-scoped database access.

ScopedStore reads on behalf of the calling user: each query runs in a
transaction that impersonates the Supabase ``authenticated`` role with the
caller's JWT claims, so row level security policies apply exactly as they
do for the browser client.

PrivilegedStore performs the writes of a purchase with the service
connection (RLS bypassed) inside a single database transaction. It is only
used after the caller has been validated through a ScopedStore.
"""

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql

from app.db.helpers import execute_query, fetch_one, with_db_retry
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger
from app.models.domain.listing_domain import CreditTransaction, Listing, Profile

logger = get_logger(__name__)

LISTING_SELECT_COLUMNS = """
    id, user_id, expires_at, is_premium, promotion_mode,
    promotion_start_at, promotion_end_at, last_bumped_at,
    is_paused, paused_at, remaining_expires_at_duration, remaining_promotion_duration
"""

PROFILE_SELECT_COLUMNS = "id, credits, role"


def _row_to_listing(row: dict | None) -> Listing | None:
    if not row:
        return None
    return Listing(**{**row, "id": str(row["id"]), "user_id": str(row["user_id"])})


def _row_to_profile(row: dict | None) -> Profile | None:
    if not row:
        return None
    return Profile(
        id=str(row["id"]),
        credits=row["credits"] or 0,
        role=row.get("role") or "user",
    )


class ScopedStore:
    """Reads subject to row level security for the caller in ``claims``."""

    def __init__(self, claims: dict[str, Any]):
        self._claims = claims

    @asynccontextmanager
    async def _scoped_connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        async with db_pool.transaction() as conn:
            # Same GUC PostgREST sets, so auth.uid() resolves inside policies
            await conn.execute(
                "SELECT set_config('request.jwt.claims', %s, true)",
                (json.dumps(self._claims),),
            )
            await conn.execute("SET LOCAL ROLE authenticated")
            yield conn

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_listing(self, listing_id: str) -> Listing | None:
        query = f"SELECT {LISTING_SELECT_COLUMNS} FROM listings WHERE id = %s"
        async with self._scoped_connection() as conn:
            row = await fetch_one(query, (listing_id,), connection=conn)
        return _row_to_listing(row)

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_profile(self, user_id: str) -> Profile | None:
        query = f"SELECT {PROFILE_SELECT_COLUMNS} FROM profiles WHERE id = %s"
        async with self._scoped_connection() as conn:
            row = await fetch_one(query, (user_id,), connection=conn)
        return _row_to_profile(row)


class PrivilegedSession:
    """Write operations bound to one open service-role transaction."""

    def __init__(self, connection: psycopg.AsyncConnection):
        self._conn = connection

    @asynccontextmanager
    async def savepoint(self) -> AsyncGenerator[None, None]:
        """Nested block whose failure rolls back only its own statements."""
        async with self._conn.transaction():
            yield

    async def update_listing(self, listing_id: str, fields: dict[str, Any]) -> int:
        """Update the given listing columns; returns affected row count."""
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        query = sql.SQL("UPDATE listings SET {} WHERE id = %s").format(assignments)
        params = (*fields.values(), listing_id)
        return await execute_query(query, params, connection=self._conn)

    async def debit_credits(self, user_id: str, cost: int) -> int | None:
        """
        Subtract ``cost`` only while the balance covers it.

        Returns:
            The new balance, or None when the balance was insufficient
            (or the profile vanished)
        """
        query = """
            UPDATE profiles
            SET credits = credits - %s
            WHERE id = %s AND credits >= %s
            RETURNING credits
        """
        row = await fetch_one(query, (cost, user_id, cost), connection=self._conn)
        return row["credits"] if row else None

    async def lock_profile(self, user_id: str) -> Profile | None:
        query = f"SELECT {PROFILE_SELECT_COLUMNS} FROM profiles WHERE id = %s FOR UPDATE"
        row = await fetch_one(query, (user_id,), connection=self._conn)
        return _row_to_profile(row)

    async def set_credits(self, user_id: str, credits: int) -> int:
        query = "UPDATE profiles SET credits = %s WHERE id = %s"
        return await execute_query(query, (credits, user_id), connection=self._conn)

    async def insert_credit_transaction(self, transaction: CreditTransaction) -> None:
        query = """
            INSERT INTO credit_transactions (user_id, amount, type, package_name)
            VALUES (%s, %s, %s, %s)
        """
        await execute_query(
            query,
            (transaction.user_id, transaction.amount, transaction.type, transaction.package_name),
            connection=self._conn,
        )


class PrivilegedStore:
    """Entry point for service-role writes."""

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[PrivilegedSession, None]:
        """Commit on success, roll back everything on exception."""
        async with db_pool.transaction() as conn:
            yield PrivilegedSession(conn)
