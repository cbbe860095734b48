"""Spreadsheet-backed product catalog and order sink.

The catalog comes from a spreadsheet export (CSV, one service per row) and
is cached in SQLite so the bot keeps working when the export is missing.
Confirmed orders are appended to the ORDERS table.

Expected catalog columns (Spanish headers from the shop sheet are accepted
too): name, category, type, price, widths, sellado, ojetillos, bolsillo,
min_dpi, formats, criteria. Lists use `;` as separator.
"""

from __future__ import annotations

import asyncio
import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

import aiosqlite
from rapidfuzz import fuzz, process

from dal.order_dal import OrderDAL
from dal.service_dal import ServiceDAL
from models.catalog_models import OrderRecord, SaveResult, ServiceInfo
from utils.database_init import AsyncDatabaseInitializer

LOGGER = logging.getLogger(__name__)

FINISH_COLUMNS = ("sellado", "ojetillos", "bolsillo")
HEADER_ALIASES = {
    "nombre": "name",
    "categoria": "category",
    "categoría": "category",
    "tipo": "type",
    "precio": "price",
    "anchos": "widths",
    "dpi": "min_dpi",
    "formatos": "formats",
    "criterios": "criteria",
}
TRUTHY = {"1", "true", "si", "sí", "yes", "x"}


class CatalogError(RuntimeError):
    """Raised when the catalog or the order sink cannot be reached."""


def _number(raw: Optional[str]) -> Optional[float]:
    if raw is None or not str(raw).strip():
        return None
    text = str(raw).strip().replace("$", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric catalog value %r", raw)
        return None


def _split(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in str(raw).split(";") if part.strip()]


def parse_service_row(row: Dict[str, str]) -> Optional[ServiceInfo]:
    """Convert one spreadsheet row into a ServiceInfo, or None if unusable."""
    normalized = {HEADER_ALIASES.get(key.strip().lower(), key.strip().lower()): (value or "").strip()
                  for key, value in row.items() if key}
    name = normalized.get("name")
    category = normalized.get("category")
    if not name or not category:
        return None
    widths = [value for value in (_number(part) for part in _split(normalized.get("widths"))) if value is not None]
    min_dpi = _number(normalized.get("min_dpi"))
    return ServiceInfo(
        name=name,
        category=category,
        type=normalized.get("type") or None,
        price=_number(normalized.get("price")),
        available_widths=widths,
        available_finishes={finish: normalized.get(finish, "").lower() in TRUTHY for finish in FINISH_COLUMNS},
        min_dpi=int(min_dpi) if min_dpi is not None else None,
        formats=[fmt.lower() for fmt in _split(normalized.get("formats"))],
        file_validation_criteria=normalized.get("criteria") or None,
    )


def read_catalog_csv(path: Path) -> List[ServiceInfo]:
    """Read the catalog export; blocking, run it in a thread."""
    with open(path, newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        services = [service for service in (parse_service_row(row) for row in reader) if service]
    LOGGER.info("Read %d services from %s", len(services), path)
    return services


def read_additional_info_csv(path: Path) -> Dict[str, str]:
    """Read `key,value` rows (opening hours, payment methods, pickup address...)."""
    with open(path, newline="", encoding="utf-8-sig") as fh:
        reader = csv.reader(fh)
        return {row[0].strip(): row[1].strip() for row in reader if len(row) >= 2 and row[0].strip()}


class CatalogService:
    """Read-mostly catalog shared by every session, plus the order sink."""

    def __init__(
        self,
        db_initializer: AsyncDatabaseInitializer,
        csv_path: Optional[Path] = None,
        additional_info_path: Optional[Path] = None,
    ) -> None:
        self.csv_path = csv_path
        self.additional_info_path = additional_info_path
        self.services_dal = ServiceDAL(db_initializer)
        self.orders_dal = OrderDAL(db_initializer)
        self._by_category: Dict[str, List[ServiceInfo]] = {}
        self._by_name: Dict[str, ServiceInfo] = {}
        self.additional_info: Dict[str, str] = {}

    async def refresh(self) -> int:
        """Reload the catalog from the spreadsheet export, falling back to the cache."""
        try:
            if self.csv_path is not None and self.csv_path.exists():
                services = await asyncio.to_thread(read_catalog_csv, self.csv_path)
                await self.services_dal.replace_services(services)
            else:
                if self.csv_path is not None:
                    LOGGER.warning("Catalog export %s not found; using cached catalog", self.csv_path)
                services = await self.services_dal.list_services()

            if self.additional_info_path is not None and self.additional_info_path.exists():
                info = await asyncio.to_thread(read_additional_info_csv, self.additional_info_path)
                await self.services_dal.replace_additional_info(info)
            else:
                info = await self.services_dal.load_additional_info()
        except (OSError, csv.Error, aiosqlite.Error) as exc:
            LOGGER.error("Catalog refresh failed: %s", exc)
            raise CatalogError("Could not load the product catalog") from exc

        self._index(services)
        self.additional_info = info
        LOGGER.info("Catalog loaded: %d services in %d categories", len(services), len(self._by_category))
        return len(services)

    def _index(self, services: List[ServiceInfo]) -> None:
        by_category: Dict[str, List[ServiceInfo]] = {}
        for service in services:
            by_category.setdefault(service.category, []).append(service)
        self._by_category = by_category
        self._by_name = {service.name.casefold(): service for service in services}

    def load(self, services: List[ServiceInfo], additional_info: Optional[Dict[str, str]] = None) -> None:
        """Install an in-memory catalog directly (host bootstrap and tests)."""
        self._index(services)
        if additional_info is not None:
            self.additional_info = dict(additional_info)

    def get_services(self) -> Dict[str, List[ServiceInfo]]:
        return {category: list(items) for category, items in self._by_category.items()}

    async def get_service_info(self, name: str) -> Optional[ServiceInfo]:
        if not name:
            return None
        return self._by_name.get(name.strip().casefold())

    def find_similar(self, name: str, limit: int = 3, score_cutoff: float = 60.0) -> List[str]:
        """Suggest catalog names close to a service the user asked for."""
        if not name or not self._by_name:
            return []
        choices = {key: service.name for key, service in self._by_name.items()}
        matches = process.extract(
            name.casefold(),
            list(choices),
            scorer=fuzz.token_sort_ratio,
            limit=limit,
            score_cutoff=score_cutoff,
        )
        return [choices[match[0]] for match in matches]

    async def save_order(self, record: OrderRecord) -> SaveResult:
        try:
            row_index = await self.orders_dal.create_order(record)
        except aiosqlite.Error as exc:
            LOGGER.error("Saving order for %s failed: %s", record.phone, exc)
            return SaveResult(success=False, error=str(exc))
        LOGGER.info("Order saved at row %s", row_index)
        return SaveResult(success=True, row_index=row_index)

    async def run_periodic_refresh(self, interval_seconds: float = 3_600) -> None:
        """
        Reload the catalog at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between refreshes.
        """
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                await self.refresh()
            except asyncio.CancelledError:
                break
            except CatalogError:
                # Keep serving the previous catalog; try again on the next tick.
                continue
