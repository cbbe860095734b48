"""FastAPI routes for operator session and blacklist management."""

from fastapi import APIRouter, HTTPException, Request

from controllers.session_controller import get_session, list_blacklist, remove_from_blacklist, reset_session

router = APIRouter()


@router.get("/sessions/{user_id}")
async def get_session_route(request: Request, user_id: str):
	try:
		return await get_session(request, user_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/sessions/{user_id}/reset")
async def reset_session_route(request: Request, user_id: str):
	try:
		return await reset_session(request, user_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/blacklist")
async def list_blacklist_route(request: Request):
	try:
		return await list_blacklist(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/blacklist/{user_id}")
async def remove_blacklist_route(request: Request, user_id: str):
	try:
		return await remove_from_blacklist(request, user_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
