from fastapi import APIRouter, HTTPException, Query, Request

from controllers.catalog_controller import get_order, list_orders, list_services, refresh_catalog

router = APIRouter()


@router.get("/catalog/services")
async def list_services_route(request: Request):
	"""Return the catalog grouped by category."""
	try:
		return await list_services(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/catalog/refresh")
async def refresh_catalog_route(request: Request):
	try:
		return await refresh_catalog(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/orders")
async def list_orders_route(
	request: Request,
	limit: int = Query(50, ge=1, le=500),
	offset: int = Query(0, ge=0),
):
	"""Return confirmed orders, newest first."""
	try:
		return await list_orders(request, limit=limit, offset=offset)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/orders/{order_id}")
async def get_order_route(request: Request, order_id: int):
	try:
		return await get_order(request, order_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
