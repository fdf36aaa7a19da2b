"""
Addon Runtime
Validates the manifest, wires handlers, middleware and endpoints into a
FastAPI application and serves it
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from stremio_addon.api.endpoints import configure, health, manifest as manifest_endpoints, resource
from stremio_addon.api.middleware import Middleware, MiddlewareChain, UserDataPathMiddleware, request_logger
from stremio_addon.core.config import AddonOptions, settings
from stremio_addon.core.errors import AddonError, InvalidManifestError
from stremio_addon.models.stremio import Manifest
from stremio_addon.services.dispatcher import ResourceDispatcher
from stremio_addon.services.negotiator import ManifestCallback, ManifestNegotiator
from stremio_addon.services.registry import Handler, HandlerRegistry
from stremio_addon.utils.token import UserDataCodec

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def validate_manifest(manifest: Manifest):
    """
    Check the manifest template before the addon is created

    Raises:
        InvalidManifestError: on the first violation found
    """
    for field in ("id", "name", "version"):
        if not getattr(manifest, field):
            raise InvalidManifestError(f"Manifest field '{field}' must not be empty")

    if not manifest.resources:
        raise InvalidManifestError("Manifest must declare at least one resource")

    if manifest.idPrefixes is not None:
        _validate_id_prefixes(manifest.idPrefixes, "manifest")

    seen = set()
    for item in manifest.resources:
        if not item.name:
            raise InvalidManifestError("Resource name must not be empty")
        if item.name in seen:
            raise InvalidManifestError(f"Resource '{item.name}' is declared twice")
        seen.add(item.name)
        if not item.types:
            raise InvalidManifestError(f"Resource '{item.name}' must declare at least one type")
        if item.idPrefixes is not None:
            _validate_id_prefixes(item.idPrefixes, f"resource '{item.name}'")


def _validate_id_prefixes(prefixes: List[str], owner: str):
    if not prefixes:
        raise InvalidManifestError(f"idPrefixes of {owner} must not be empty when declared")
    if not all(prefixes):
        raise InvalidManifestError(f"idPrefixes of {owner} must not contain empty prefixes")


class Addon:
    """
    A Stremio addon: manifest, handlers, user data schema and extensions.

    Everything is registered at startup. The first access to ``app`` (or a
    call to ``run``) builds the FastAPI application and freezes the addon.
    """

    def __init__(
        self,
        manifest: Manifest,
        manifest_callback: Optional[ManifestCallback] = None,
        catalog_handlers: Optional[Dict[str, Handler]] = None,
        meta_handlers: Optional[Dict[str, Handler]] = None,
        stream_handlers: Optional[Dict[str, Handler]] = None,
        subtitles_handlers: Optional[Dict[str, Handler]] = None,
        options: Optional[AddonOptions] = None,
    ):
        validate_manifest(manifest)
        self.manifest = manifest.model_copy(deep=True)
        self.manifest_callback = manifest_callback
        self.options = options or AddonOptions()
        self.registry = HandlerRegistry(timeout=self.options.handler_timeout)
        self.middleware = MiddlewareChain()
        self.endpoints: List[Tuple[str, str, Callable[..., Any]]] = []
        self.shutdown_hooks: List[Callable[[], Awaitable[None]]] = []
        self.codec: Optional[UserDataCodec] = None
        self._app: Optional[FastAPI] = None

        for resource_name, handlers in (
            ("catalog", catalog_handlers),
            ("meta", meta_handlers),
            ("stream", stream_handlers),
            ("subtitles", subtitles_handlers),
        ):
            for item_type, handler in (handlers or {}).items():
                self.add_handler(resource_name, item_type, handler)

    def _check_not_started(self):
        if self._app is not None:
            raise AddonError("The addon can't be changed after it started serving")

    def _check_declared(self, resource_name: str):
        if self.manifest.resource(resource_name) is None:
            raise AddonError(f"Resource '{resource_name}' is not declared in the manifest")

    def register_user_data(self, schema: Type[Any]):
        """Register the one schema user data in request paths is decoded into"""
        self._check_not_started()
        if self.codec is not None:
            raise AddonError("A user data schema is already registered")
        self.codec = UserDataCodec(schema, base64_encoded=self.options.user_data_is_base64)

    def add_handler(self, resource_name: str, item_type: str, handler: Handler):
        self._check_not_started()
        self._check_declared(resource_name)
        self.registry.register(resource_name, item_type, handler)

    def set_default_handler(self, resource_name: str, handler: Handler):
        """Handler for types of the resource without a dedicated handler"""
        self._check_not_started()
        self._check_declared(resource_name)
        self.registry.register_default(resource_name, handler)

    def add_middleware(self, path_prefix: str, middleware: Middleware):
        """Run middleware before any request whose path starts with the prefix"""
        self._check_not_started()
        self.middleware.add(path_prefix, middleware)

    def add_endpoint(self, method: str, path: str, handler: Callable[..., Any]):
        """Add a route that is only matched after all generated routes"""
        self._check_not_started()
        self.endpoints.append((method.upper(), path, handler))

    def add_shutdown_hook(self, hook: Callable[[], Awaitable[None]]):
        """Await the coroutine function when the server shuts down"""
        self._check_not_started()
        self.shutdown_hooks.append(hook)

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            self._app = create_app(self)
        return self._app

    def run(self):
        """Serve the addon until the process is terminated"""
        app = self.app
        logger.info(
            f"Starting addon {self.manifest.id} on http://{self.options.bind_addr}:{self.options.port}"
        )
        uvicorn.run(
            app,
            host=self.options.bind_addr,
            port=self.options.port,
            log_level=self.options.log_level.lower(),
        )


def create_app(addon: Addon) -> FastAPI:
    """Create and configure the FastAPI application of an addon"""

    options = addon.options
    addon.registry.freeze()
    addon.middleware.freeze()

    for item in addon.manifest.resources:
        for item_type in item.types:
            if not addon.registry.has_handler(item.name, item_type):
                logger.warning(f"No {item.name} handler for declared type {item_type}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving addon {addon.manifest.id} {addon.manifest.version}")
        yield
        for hook in addon.shutdown_hooks:
            await hook()
        meta_client = options.meta_client
        if meta_client is not None and hasattr(meta_client, "close"):
            await meta_client.close()
        logger.info(f"Stopped addon {addon.manifest.id}")

    app = FastAPI(
        title=addon.manifest.name,
        description=addon.manifest.description,
        version=addon.manifest.version,
        docs_url="/docs" if options.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if options.debug else None,
        lifespan=lifespan,
    )

    negotiator = ManifestNegotiator(addon.manifest, addon.manifest_callback, addon.codec)
    app.state.options = options
    app.state.negotiator = negotiator
    app.state.dispatcher = ResourceDispatcher(
        addon.manifest,
        addon.registry,
        codec=addon.codec,
        meta_client=options.meta_client,
        put_meta_in_request=options.put_meta_in_request,
    )

    # Starlette runs the last added middleware first
    app.add_middleware(UserDataPathMiddleware)
    if len(addon.middleware):
        app.add_middleware(BaseHTTPMiddleware, dispatch=addon.middleware)
    if not options.disable_request_logging:
        app.add_middleware(
            BaseHTTPMiddleware,
            dispatch=request_logger(options.log_ips, options.log_user_agent),
        )
    # Stremio web and desktop clients need CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Generated routes first, so custom endpoints can't shadow them
    app.include_router(health.router)
    app.include_router(manifest_endpoints.router)
    if options.configure_html:
        app.include_router(configure.router)
    if options.redirect_url:
        app.include_router(configure.redirect_router)
    app.include_router(resource.build_router(item.name for item in addon.manifest.resources))

    for method, path, handler in addon.endpoints:
        app.add_api_route(path, handler, methods=[method])

    return app
