"""
Resource Endpoints
Generated catalog/meta/stream/... routes, with and without user data
"""
from typing import Iterable
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from stremio_addon.api.middleware import unescape_segment


def _route_paths(resource: str):
    yield f"/{resource}/{{type}}/{{id}}.json"
    yield f"/{resource}/{{type}}/{{id}}/{{extra}}.json"
    yield f"/{{user_data}}/{resource}/{{type}}/{{id}}.json"
    yield f"/{{user_data}}/{resource}/{{type}}/{{id}}/{{extra}}.json"


def _make_endpoint(resource: str):
    async def get_resource(request: Request):
        params = request.path_params
        body, status = await request.app.state.dispatcher.dispatch(
            resource,
            params["type"],
            params["id"],
            segment=unescape_segment(params.get("user_data")),
            extra=params.get("extra"),
        )
        if body is None:
            return Response(status_code=status)

        response = JSONResponse(body, status_code=status)
        max_age = request.app.state.options.cache_max_age
        if max_age:
            response.headers["Cache-Control"] = f"max-age={max_age}, public"
        return response

    get_resource.__name__ = f"get_{resource}"
    return get_resource


def build_router(resources: Iterable[str]) -> APIRouter:
    """
    Create the routes of the declared resources

    Resource names are literal path parts, so a path naming an undeclared
    resource falls through to custom endpoints.
    """
    router = APIRouter()
    for resource in resources:
        endpoint = _make_endpoint(resource)
        for path in _route_paths(resource):
            router.add_api_route(path, endpoint, methods=["GET"], name=f"{resource}:{path}")
    return router
