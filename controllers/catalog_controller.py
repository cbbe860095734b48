from dataclasses import asdict
from typing import Any, Dict, List

from fastapi import HTTPException, Request

from services.catalog.catalog_service import CatalogError, CatalogService


def _catalog(request: Request) -> CatalogService:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=500, detail="Catalog unavailable")
    return catalog


async def list_services(request: Request) -> Dict[str, List[Dict[str, Any]]]:
    """Return the cached catalog grouped by category."""
    services = _catalog(request).get_services()
    return {category: [asdict(service) for service in items] for category, items in services.items()}


async def refresh_catalog(request: Request) -> Dict[str, Any]:
    """Reload the catalog from the spreadsheet export right away."""
    try:
        count = await _catalog(request).refresh()
    except CatalogError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"refreshed": True, "services": count}


async def list_orders(request: Request, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
    orders = await _catalog(request).orders_dal.list_orders(limit=limit, offset=offset)
    return [asdict(order) for order in orders]


async def get_order(request: Request, order_id: int) -> Dict[str, Any]:
    order = await _catalog(request).orders_dal.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return asdict(order)
