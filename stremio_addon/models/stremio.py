"""
Stremio Protocol Models
Pydantic models for the Stremio addon protocol
"""
from datetime import datetime
from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional


class BehaviorHints(BaseModel):
    """Manifest behavior hints"""
    adult: Optional[bool] = None
    p2p: Optional[bool] = None
    configurable: Optional[bool] = None
    # Forced to true on the "/manifest.json" route whenever `configurable` is set
    configurationRequired: Optional[bool] = None


class ResourceItem(BaseModel):
    """Resource declaration in manifest"""
    name: str
    types: List[str]  # Stremio supports "movie", "series", "channel" and "tv"
    idPrefixes: Optional[List[str]] = None


class ExtraItem(BaseModel):
    """Extra property of a catalog (e.g. search, skip, genre)"""
    name: str
    isRequired: Optional[bool] = None
    options: Optional[List[str]] = None
    optionsLimit: Optional[int] = None


class CatalogItem(BaseModel):
    """Catalog definition in manifest"""
    type: str
    id: str
    name: str
    extra: Optional[List[ExtraItem]] = None


class Manifest(BaseModel):
    """
    Stremio addon manifest
    https://github.com/Stremio/stremio-addon-sdk/blob/master/docs/api/responses/manifest.md
    """
    id: str
    name: str
    description: str = ""
    version: str

    resources: List[ResourceItem]
    types: List[str]
    # An empty list is still serialized, Stremio expects the key
    catalogs: List[CatalogItem] = Field(default_factory=list)

    idPrefixes: Optional[List[str]] = None
    background: Optional[str] = None
    logo: Optional[str] = None
    contactEmail: Optional[str] = None
    behaviorHints: Optional[BehaviorHints] = None

    def resource(self, name: str) -> Optional[ResourceItem]:
        """Return the resource declaration with the given name"""
        for item in self.resources:
            if item.name == name:
                return item
        return None


class MetaLinkItem(BaseModel):
    """Link to a page within Stremio (genres, cast, director, ...)"""
    name: str
    category: str
    url: str


class TrailerStream(BaseModel):
    title: Optional[str] = None
    ytId: Optional[str] = None
    url: Optional[str] = None
    infoHash: Optional[str] = None
    fileIdx: Optional[int] = None
    externalUrl: Optional[str] = None


class Subtitles(BaseModel):
    """Subtitle track, used inside streams and as subtitles resource item"""
    id: Optional[str] = None
    url: Optional[str] = None
    lang: Optional[str] = None


class ProxyHeaders(BaseModel):
    request: Optional[Dict[str, str]] = None
    response: Optional[Dict[str, str]] = None


class StreamItemBehaviorHints(BaseModel):
    countryWhitelist: Optional[List[str]] = None
    notWebReady: Optional[bool] = None
    bingeGroup: Optional[str] = None
    proxyHeaders: Optional[ProxyHeaders] = None
    filename: Optional[str] = None


class StreamItem(BaseModel):
    """
    Stream for a meta item
    https://github.com/Stremio/stremio-addon-sdk/blob/master/docs/api/responses/stream.md
    """
    # Exactly one source is required
    url: Optional[str] = None
    ytId: Optional[str] = None
    infoHash: Optional[str] = None
    externalUrl: Optional[str] = None

    name: Optional[str] = None  # Usually used for stream quality
    title: Optional[str] = None  # Deprecated in favor of description
    description: Optional[str] = None
    fileIdx: Optional[int] = None  # Only with infoHash
    subtitles: Optional[List[Subtitles]] = None
    behaviorHints: Optional[StreamItemBehaviorHints] = None

    @model_validator(mode="after")
    def validate_source(self):
        sources = [s for s in (self.url, self.ytId, self.infoHash, self.externalUrl) if s]
        if len(sources) != 1:
            raise ValueError("Provide exactly one of url, ytId, infoHash or externalUrl")
        return self


class VideoItem(BaseModel):
    """Video (episode) of a meta item"""
    id: str
    title: str
    released: datetime  # ISO 8601

    thumbnail: Optional[str] = None
    streams: Optional[List[StreamItem]] = None
    available: Optional[bool] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    trailers: Optional[List[StreamItem]] = None
    overview: Optional[str] = None


class MetaPreviewItem(BaseModel):
    """
    Meta preview, used within catalog responses
    https://github.com/Stremio/stremio-addon-sdk/blob/master/docs/api/responses/meta.md#meta-preview-object
    """
    id: str
    type: str
    name: str
    poster: Optional[str] = None
    posterShape: Optional[str] = None

    genres: Optional[List[str]] = None
    director: Optional[List[str]] = None
    cast: Optional[List[str]] = None
    links: Optional[List[MetaLinkItem]] = None
    imdbRating: Optional[str] = None
    releaseInfo: Optional[str] = None  # E.g. "2000" for movies and "2000-2014" for series
    description: Optional[str] = None
    background: Optional[str] = None
    logo: Optional[str] = None


class MetaItem(MetaPreviewItem):
    """
    Full meta item, used when a specific item was requested
    https://github.com/Stremio/stremio-addon-sdk/blob/master/docs/api/responses/meta.md
    """
    released: Optional[str] = None  # ISO 8601
    videos: Optional[List[VideoItem]] = None
    runtime: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    awards: Optional[str] = None
    website: Optional[str] = None
    trailerStreams: Optional[List[TrailerStream]] = None


class MetaVideo(BaseModel):
    """Episode as returned by the metadata service"""
    id: str
    title: Optional[str] = None
    name: Optional[str] = None
    released: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    number: Optional[int] = None
    thumbnail: Optional[str] = None
    overview: Optional[str] = None
    description: Optional[str] = None


class Meta(BaseModel):
    """Movie or TV show as returned by the metadata service"""
    id: str
    type: str
    name: str
    genres: Optional[List[str]] = None
    director: Optional[List[str]] = None
    cast: Optional[List[str]] = None
    poster: Optional[str] = None
    background: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    releaseInfo: Optional[str] = None  # A.k.a. year
    imdbRating: Optional[str] = None
    released: Optional[str] = None
    runtime: Optional[str] = None
    country: Optional[str] = None
    videos: Optional[List[MetaVideo]] = None
