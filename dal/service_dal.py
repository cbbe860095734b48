"""Async Data Access Layer for the SERVICE and ADDITIONAL_INFO tables.

The spreadsheet export is the source of truth; these tables are the cached
copy the catalog service reads when the export is unavailable.
"""

from __future__ import annotations

import json
import time
from typing import Dict, Iterable, List, Sequence

from models.catalog_models import ServiceInfo
from utils.database_init import AsyncDatabaseInitializer


class ServiceDAL:
    """Data access layer for catalog rows."""

    _COLUMNS = (
        "name",
        "category",
        "type",
        "price",
        "available_widths",
        "available_finishes",
        "min_dpi",
        "formats",
        "file_validation_criteria",
        "updated_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def replace_services(self, services: Iterable[ServiceInfo]) -> int:
        """Replace the whole catalog in one transaction and return the row count."""
        updated_at = int(time.time())
        rows = [self._record_to_row(service, updated_at) for service in services]
        placeholders = ", ".join("?" for _ in self._COLUMNS)

        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM SERVICE")
            await conn.executemany(
                f"INSERT INTO SERVICE ({self._COLUMN_LIST}) VALUES ({placeholders})",
                rows,
            )
            await conn.commit()
        return len(rows)

    async def list_services(self) -> List[ServiceInfo]:
        """Return every cached service ordered by category then name."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM SERVICE ORDER BY category, name"
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def replace_additional_info(self, info: Dict[str, str]) -> None:
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM ADDITIONAL_INFO")
            await conn.executemany(
                "INSERT INTO ADDITIONAL_INFO (key, value) VALUES (?, ?)",
                list(info.items()),
            )
            await conn.commit()

    async def load_additional_info(self) -> Dict[str, str]:
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT key, value FROM ADDITIONAL_INFO ORDER BY key")
            rows = await cur.fetchall()
            return {row[0]: row[1] for row in rows}

    @staticmethod
    def _record_to_row(service: ServiceInfo, updated_at: int) -> tuple:
        return (
            service.name,
            service.category,
            service.type,
            service.price,
            json.dumps(service.available_widths),
            json.dumps(service.available_finishes),
            service.min_dpi,
            json.dumps(service.formats),
            service.file_validation_criteria,
            updated_at,
        )

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ServiceInfo:
        """Convert a DB row tuple into a ServiceInfo."""
        return ServiceInfo(
            name=row[0],
            category=row[1],
            type=row[2],
            price=row[3],
            available_widths=json.loads(row[4] or "[]"),
            available_finishes=json.loads(row[5] or "{}"),
            min_dpi=row[6],
            formats=json.loads(row[7] or "[]"),
            file_validation_criteria=row[8],
        )
