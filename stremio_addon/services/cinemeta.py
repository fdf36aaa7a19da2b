"""
Cinemeta API Client
Metadata lookup for IMDb ids, usable as the addon's meta client
"""
import aiohttp
import logging
from typing import Any, Dict, Optional, Protocol
from stremio_addon.core.errors import NotFound
from stremio_addon.models.stremio import Meta

logger = logging.getLogger(__name__)


class MetaFetcher(Protocol):
    """What the runtime needs from a metadata service"""

    async def get_meta(self, media_type: str, imdb_id: str) -> Meta:
        ...


class CinemetaClient:
    """Async client for Stremio's Cinemeta addon"""

    BASE_URL = "https://v3-cinemeta.strem.io/meta"

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        """Close aiohttp session"""
        if self.session and not self.session.closed:
            await self.session.close()

    async def _request(self, media_type: str, imdb_id: str) -> Optional[Dict[str, Any]]:
        """Fetch the raw Cinemeta response, None on 404"""
        url = f"{self.base_url}/{media_type}/{imdb_id}.json"
        session = await self.get_session()
        async with session.get(url) as response:
            if response.status == 404:
                return None
            response.raise_for_status()
            return await response.json()

    async def get_meta(self, media_type: str, imdb_id: str) -> Meta:
        """
        Fetch meta by IMDb id

        Args:
            media_type: "movie" or "series"
            imdb_id: IMDb id, e.g. "tt1254207"

        Raises:
            NotFound: Cinemeta has no meta for the id
        """
        data = await self._request(media_type, imdb_id)
        # Cinemeta answers unknown ids with an empty object instead of a 404
        meta = (data or {}).get("meta")
        if not meta:
            logger.debug("Cinemeta has no %s meta for %s", media_type, imdb_id)
            raise NotFound(f"No {media_type} meta for {imdb_id}")
        return Meta.model_validate(meta)

    async def get_movie(self, imdb_id: str) -> Meta:
        return await self.get_meta("movie", imdb_id)

    async def get_tv_show(self, imdb_id: str) -> Meta:
        return await self.get_meta("series", imdb_id)
