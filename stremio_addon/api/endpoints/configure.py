"""
Configuration Endpoint
Serves the addon's configuration page and the root redirect
"""
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

router = APIRouter()
redirect_router = APIRouter()


@router.get("/configure", response_class=HTMLResponse)
@router.get("/{user_data}/configure", response_class=HTMLResponse)
async def configure_page(request: Request):
    """Serve configuration page"""
    return HTMLResponse(request.app.state.options.configure_html)


@redirect_router.get("/")
async def root_redirect(request: Request):
    """Send visitors of the addon root somewhere useful"""
    return RedirectResponse(request.app.state.options.redirect_url)
