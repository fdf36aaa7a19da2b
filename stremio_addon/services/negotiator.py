"""
Manifest Negotiator
Produces the manifest document for a request, gated by the addon's
authorization callback
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union
from starlette.concurrency import run_in_threadpool
from stremio_addon.core.errors import ConfigurationDecodeError
from stremio_addon.models.stremio import Manifest
from stremio_addon.utils.token import UserDataCodec, decode_user_data

logger = logging.getLogger(__name__)

# Receives the decoded user data (or None) and returns an HTTP status code
ManifestCallback = Callable[[Optional[Any]], Union[int, Awaitable[int]]]


def manifest_body(manifest: Manifest) -> Dict[str, Any]:
    """Serialize a manifest the way Stremio expects it"""
    return manifest.model_dump(mode="json", exclude_none=True)


class ManifestNegotiator:
    """Negotiates the manifest for the plain and the configured manifest route"""

    def __init__(
        self,
        manifest: Manifest,
        callback: Optional[ManifestCallback] = None,
        codec: Optional[UserDataCodec] = None,
    ):
        # Template, only ever read
        self.manifest = manifest
        self.callback = callback
        self.codec = codec

    async def authorize(self, user_data: Optional[Any]) -> int:
        """Run the authorization callback, 200 when the addon has none"""
        if self.callback is None:
            return 200
        if inspect.iscoroutinefunction(self.callback):
            return int(await self.callback(user_data))
        return int(await run_in_threadpool(self.callback, user_data))

    def render(self, configured: bool) -> Manifest:
        """
        Derive the manifest returned to one request

        The plain route means the client has no stored configuration yet, so
        a configurable addon must report that configuration is required there.
        The configured route keeps the template's flags.
        """
        manifest = self.manifest.model_copy(deep=True)
        hints = manifest.behaviorHints
        if not configured and hints is not None and hints.configurable:
            manifest = manifest.model_copy(
                update={"behaviorHints": hints.model_copy(update={"configurationRequired": True})}
            )
        return manifest

    async def negotiate(self, segment: Optional[str]) -> Tuple[Optional[Dict[str, Any]], int]:
        """
        Negotiate the manifest for a request

        Args:
            segment: Configuration segment of the path, None on "/manifest.json"

        Returns:
            (manifest body or None, HTTP status)
        """
        try:
            user_data = decode_user_data(self.codec, segment)
        except ConfigurationDecodeError as e:
            logger.info(f"Rejected manifest request with invalid user data: {e}")
            return None, 400

        try:
            status = await self.authorize(user_data)
        except Exception:
            logger.exception("Manifest callback failed")
            return None, 500

        if not 200 <= status < 300:
            logger.debug(f"Manifest callback denied the request with status {status}")
            return None, status

        return manifest_body(self.render(configured=segment is not None)), status
