"""
Resource Handler Registry
Maps (resource, content type) pairs to addon handlers
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union
from starlette.concurrency import run_in_threadpool
from stremio_addon.core.errors import AddonError, HandlerNotImplemented
from stremio_addon.models.request import ResourceRequest

logger = logging.getLogger(__name__)

Handler = Callable[[ResourceRequest], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class Envelope:
    """Response envelope of a resource"""
    key: str
    single: bool = False

    def wrap(self, payload: Any) -> Dict[str, Any]:
        return {self.key: payload}

    def empty(self) -> Dict[str, Any]:
        return {self.key: None if self.single else []}


ENVELOPES: Dict[str, Envelope] = {
    "catalog": Envelope("metas"),
    "meta": Envelope("meta", single=True),
    "stream": Envelope("streams"),
    "subtitles": Envelope("subtitles"),
    "addon_catalog": Envelope("addons"),
}


def envelope_for(resource: str) -> Envelope:
    """Envelope for a resource, "<name>s" for resources outside the protocol's list"""
    return ENVELOPES.get(resource) or Envelope(f"{resource}s")


class HandlerRegistry:
    """Registry of addon handlers, frozen once the server starts"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout
        self._handlers: Dict[Tuple[str, str], Handler] = {}
        self._defaults: Dict[str, Handler] = {}
        self._frozen = False

    def freeze(self):
        self._frozen = True

    def _check_mutable(self):
        if self._frozen:
            raise AddonError("Handlers can't be registered after the addon started serving")

    def register(self, resource: str, item_type: str, handler: Handler):
        """Register the handler for one (resource, type) pair"""
        self._check_mutable()
        key = (resource, item_type)
        if key in self._handlers:
            raise AddonError(f"A {resource} handler for type '{item_type}' is already registered")
        self._handlers[key] = handler
        logger.debug(f"Registered {resource} handler for type {item_type}")

    def register_default(self, resource: str, handler: Handler):
        """Register the handler used for types without a dedicated handler"""
        self._check_mutable()
        if resource in self._defaults:
            raise AddonError(f"A default {resource} handler is already registered")
        self._defaults[resource] = handler

    def has_handler(self, resource: str, item_type: str) -> bool:
        return (resource, item_type) in self._handlers or resource in self._defaults

    def lookup(self, resource: str, item_type: str) -> Handler:
        """
        Find the handler for a request

        Raises:
            HandlerNotImplemented: neither an exact nor a default handler exists
        """
        handler = self._handlers.get((resource, item_type)) or self._defaults.get(resource)
        if handler is None:
            raise HandlerNotImplemented(resource, item_type)
        return handler

    async def dispatch(self, request: ResourceRequest) -> Any:
        """
        Invoke the matching handler

        Sync handlers run in the threadpool so they don't block the event loop.
        NotFound and any handler error propagate to the caller.

        Raises:
            HandlerNotImplemented: no handler for the pair
            asyncio.TimeoutError: the handler exceeded the deadline
        """
        handler = self.lookup(request.resource, request.type)

        if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
            getattr(handler, "__call__", None)
        ):
            call = handler(request)
        else:
            call = run_in_threadpool(handler, request)

        if self.timeout:
            return await asyncio.wait_for(call, timeout=self.timeout)
        return await call
