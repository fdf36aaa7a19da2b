"""
Resource Dispatcher
Turns a resource path into a handler call and maps the outcome to a
protocol response
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl
from pydantic import BaseModel
from stremio_addon.core.errors import ConfigurationDecodeError, HandlerNotImplemented, NotFound
from stremio_addon.models.request import ResourceRequest
from stremio_addon.models.stremio import Manifest, Meta
from stremio_addon.services.cinemeta import MetaFetcher
from stremio_addon.services.registry import HandlerRegistry, envelope_for
from stremio_addon.utils.token import UserDataCodec, decode_user_data

logger = logging.getLogger(__name__)

# Resources whose ids are IMDb based item ids, for which metadata can be attached
META_RESOURCES = ("stream", "subtitles")


class HandlerResultError(Exception):
    """A handler returned a value that can't be serialized for its resource"""


def parse_extra(segment: Optional[str]) -> Dict[str, str]:
    """Parse the catalog extra segment, e.g. "skip=20&genre=Action" """
    if not segment:
        return {}
    return dict(parse_qsl(segment, keep_blank_values=True))


def serialize_item(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", exclude_none=True)
    return item


class ResourceDispatcher:
    """Dispatches resource requests to the handler registry"""

    def __init__(
        self,
        manifest: Manifest,
        registry: HandlerRegistry,
        codec: Optional[UserDataCodec] = None,
        meta_client: Optional[MetaFetcher] = None,
        put_meta_in_request: bool = False,
    ):
        self.manifest = manifest
        self.registry = registry
        self.codec = codec
        self.meta_client = meta_client
        self.put_meta_in_request = put_meta_in_request and meta_client is not None

    def accepts_id(self, resource: str, item_id: str) -> bool:
        """Check the id against the resource's own id prefix filter"""
        item = self.manifest.resource(resource)
        if item is None or not item.idPrefixes:
            return True
        return any(item_id.startswith(prefix) for prefix in item.idPrefixes)

    async def fetch_meta(self, item_type: str, item_id: str) -> Optional[Meta]:
        """Look up metadata for the request, None if unavailable"""
        if not item_id.startswith("tt"):
            return None
        # Series episode ids look like "tt0903747:1:2"
        imdb_id = item_id.split(":", 1)[0]
        try:
            return await self.meta_client.get_meta(item_type, imdb_id)
        except NotFound:
            logger.info(f"No meta found for {item_type} {imdb_id}")
        except Exception as e:
            logger.warning(f"Failed to fetch meta for {item_type} {imdb_id}: {e}")
        return None

    def render(self, resource: str, result: Any) -> Dict[str, Any]:
        """Wrap a handler result in the resource's envelope"""
        envelope = envelope_for(resource)
        if result is None:
            return envelope.empty()
        if envelope.single:
            if isinstance(result, (list, tuple)):
                raise HandlerResultError(f"{resource} handler must return a single item")
            return envelope.wrap(serialize_item(result))
        if not isinstance(result, (list, tuple)):
            raise HandlerResultError(f"{resource} handler must return a list of items")
        return envelope.wrap([serialize_item(item) for item in result])

    async def dispatch(
        self,
        resource: str,
        item_type: str,
        item_id: str,
        segment: Optional[str] = None,
        extra: Optional[str] = None,
    ) -> Tuple[Optional[Dict[str, Any]], int]:
        """
        Serve one resource request

        Args:
            resource: Resource name from the path
            item_type: Content type from the path
            item_id: Item id from the path, without ".json"
            segment: Configuration segment, None on unconfigured paths
            extra: Catalog extra segment

        Returns:
            (response body or None, HTTP status)
        """
        try:
            user_data = decode_user_data(self.codec, segment)
        except ConfigurationDecodeError as e:
            logger.info(f"Rejected {resource} request with invalid user data: {e}")
            return None, 400

        if not self.accepts_id(resource, item_id):
            logger.debug(f"Id {item_id} doesn't match the {resource} id prefixes")
            return envelope_for(resource).empty(), 200

        meta = None
        if self.put_meta_in_request and resource in META_RESOURCES:
            meta = await self.fetch_meta(item_type, item_id)

        request = ResourceRequest(
            resource=resource,
            type=item_type,
            id=item_id,
            user_data=user_data,
            extra=parse_extra(extra),
            meta=meta,
        )

        try:
            result = await self.registry.dispatch(request)
            body = self.render(resource, result)
        except NotFound:
            logger.debug(f"{resource} handler found nothing for {item_type} {item_id}")
            return envelope_for(resource).empty(), 200
        except HandlerNotImplemented as e:
            logger.warning(str(e))
            return None, 501
        except asyncio.TimeoutError:
            logger.error(
                f"{resource} handler for {item_type} {item_id} timed out "
                f"after {self.registry.timeout}s"
            )
            return None, 500
        except Exception:
            logger.exception(f"{resource} handler failed for {item_type} {item_id}")
            return None, 500

        return body, 200
