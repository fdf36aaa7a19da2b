#!/usr/bin/env python3
"""
Demo addon serving free Blender movie streams, customizable via user data
Example usage: python demo_custom_addon.py

For testing you can install
http://localhost:8080/eyJ1c2VySWQiOiIxMjMiLCJ0b2tlbiI6ImFiYyIsInByZWZlcnJlZFN0cmVhbVR5cGUiOiJodHRwIn0=/manifest.json
which carries {"userId":"123","token":"abc","preferredStreamType":"http"}.
"""
import asyncio
import logging
from typing import Dict, Optional
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from stremio_addon.core.app import Addon
from stremio_addon.core.config import AddonOptions
from stremio_addon.core.errors import NotFound
from stremio_addon.models.request import ResourceRequest
from stremio_addon.models.stremio import Manifest, ResourceItem, StreamItem

logger = logging.getLogger("demo_custom_addon")

VERSION = "0.1.0"

MANIFEST = Manifest(
    id="com.example.blender-streams-custom",
    name="Custom Blender movie streams",
    description="Stream addon for free movies that were made with Blender, customizable via user data",
    version=VERSION,
    resources=[ResourceItem(name="stream", types=["movie"])],
    types=["movie"],
    idPrefixes=["tt"],
)

STREAMS = [
    StreamItem(infoHash="dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c", title="1080p (torrent)", fileIdx=1),
    StreamItem(
        url="http://distribution.bbb3d.renderfarming.net/video/mp4/bbb_sunflower_1080p_30fps_normal.mp4",
        title="1080p (HTTP stream)",
    ),
]

BIG_BUCK_BUNNY = "tt1254207"


class Customer(BaseModel):
    """User data decoded from each request path"""
    user_id: str = Field(..., alias="userId")
    token: str
    preferred_stream_type: str = Field("", alias="preferredStreamType")


# Dummy "DB" of users
ALLOWED_USERS = [
    Customer(userId="123", token="abc"),
    Customer(userId="456", token="def"),
]


def manifest_callback(customer: Optional[Customer]) -> int:
    """Prevent installations by unknown users"""
    if customer is None:
        return 401
    for allowed in ALLOWED_USERS:
        if customer.user_id == allowed.user_id and customer.token == allowed.token:
            logger.info(f"A user installed our addon: {customer.user_id}")
            return 200
    return 403


async def movie_handler(request: ResourceRequest):
    """Serve Big Buck Bunny, in the stream type the user prefers"""
    if request.id != BIG_BUCK_BUNNY:
        raise NotFound()

    customer: Optional[Customer] = request.user_data
    if customer is None:
        return STREAMS

    logger.info(f"User requested stream: {customer.user_id}")
    if customer.preferred_stream_type == "torrent":
        return [STREAMS[0]]
    if customer.preferred_stream_type == "http":
        return [STREAMS[1]]
    return STREAMS


class RouteStats:
    """
    Middleware counting requests per route and logging the counts periodically

    The lock guards both the increment and the report and is never held
    while the request is processed further.
    """

    def __init__(self, interval: float = 10):
        self.interval = interval
        self.counts: Dict[str, int] = {}
        self.lock = asyncio.Lock()
        self.task: Optional[asyncio.Task] = None

    async def __call__(self, request, call_next):
        if self.task is None:
            self.task = asyncio.create_task(self._report_loop())

        async with self.lock:
            route = request.url.path
            self.counts[route] = self.counts.get(route, 0) + 1

        return await call_next(request)

    async def snapshot(self) -> Dict[str, int]:
        async with self.lock:
            return dict(self.counts)

    async def close(self):
        """Stop the report task"""
        if self.task is None:
            return
        self.task.cancel()
        try:
            await self.task
        except asyncio.CancelledError:
            pass
        self.task = None

    async def _report_loop(self):
        while True:
            await asyncio.sleep(self.interval)
            logger.info(f"Route stats: {await self.snapshot()}")


async def ping():
    return PlainTextResponse("pong")


def create_addon(options: Optional[AddonOptions] = None) -> Addon:
    """Assemble the demo addon"""
    options = options or AddonOptions(user_data_is_base64=True)
    addon = Addon(
        MANIFEST,
        manifest_callback=manifest_callback,
        stream_handlers={"movie": movie_handler},
        options=options,
    )
    addon.register_user_data(Customer)
    stats = RouteStats()
    addon.add_middleware("/", stats)
    addon.add_shutdown_hook(stats.close)
    addon.add_endpoint("GET", "/ping", ping)
    return addon


if __name__ == "__main__":
    create_addon().run()
