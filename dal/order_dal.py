"""Async Data Access Layer for the ORDERS table (the order sink).

Provides OrderDAL with the small set of operations the orchestrator and the
management routes need, built on `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from models.catalog_models import OrderRecord
from utils.database_init import AsyncDatabaseInitializer


class OrderDAL:
    """Data access layer for confirmed ORDERS rows."""

    _COLUMNS = (
        "id",
        "date",
        "phone",
        "name",
        "details",
        "observations",
        "file_path",
        "status",
        "created_at",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_order(self, record: OrderRecord) -> int:
        """Insert a new ORDERS row and return its id (the sink's row index)."""
        created_at = record.created_at or int(time.time())

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO ORDERS ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.date,
                    record.phone,
                    record.name,
                    record.details,
                    record.observations,
                    record.file_path,
                    record.status,
                    created_at,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_order(self, order_id: int) -> Optional[OrderRecord]:
        """Return the OrderRecord for `order_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ORDERS WHERE id = ?",
                (order_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_orders(self, limit: int = 50, offset: int = 0) -> List[OrderRecord]:
        """List ORDERS rows, newest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM ORDERS ORDER BY id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> OrderRecord:
        """Convert a DB row tuple into an OrderRecord."""
        return OrderRecord(
            id=row[0],
            date=row[1],
            phone=row[2],
            name=row[3],
            details=row[4],
            observations=row[5],
            file_path=row[6],
            status=row[7],
            created_at=row[8],
        )
