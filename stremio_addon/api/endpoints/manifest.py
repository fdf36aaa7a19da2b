"""
Manifest Endpoint
Returns the addon manifest, with and without user data
"""
from typing import Optional
from fastapi import APIRouter, Path, Request, Response
from fastapi.responses import JSONResponse
from stremio_addon.api.middleware import unescape_segment

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


async def _negotiate(request: Request, user_data: Optional[str]) -> Response:
    body, status = await request.app.state.negotiator.negotiate(user_data)
    if body is None:
        return Response(status_code=status, headers=NO_CACHE_HEADERS)
    return JSONResponse(body, status_code=status, headers=NO_CACHE_HEADERS)


@router.get("/manifest.json")
async def get_manifest(request: Request):
    """Manifest for clients without stored configuration"""
    return await _negotiate(request, None)


@router.get("/{user_data}/manifest.json")
async def get_configured_manifest(
    request: Request,
    user_data: str = Path(..., description="Encoded user data"),
):
    """Manifest for clients installing with configuration"""
    return await _negotiate(request, unescape_segment(user_data))
