"""
Test configuration and fixtures
"""
import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, Field
from stremio_addon.core.config import AddonOptions
from stremio_addon.models.stremio import (
    BehaviorHints,
    CatalogItem,
    Manifest,
    ResourceItem,
    StreamItem,
)


class SampleUserData(BaseModel):
    """User data schema used across tests"""
    user_id: str = Field(..., alias="userId")
    token: str
    preferred_stream_type: str = Field("", alias="preferredStreamType")


@pytest.fixture
def user_data_schema():
    return SampleUserData


@pytest.fixture
def sample_user_data():
    """User data matching the well-known demo token"""
    return SampleUserData(userId="123", token="abc", preferredStreamType="http")


@pytest.fixture
def sample_manifest():
    """Configurable manifest with stream, catalog and meta resources"""
    return Manifest(
        id="com.example.test",
        name="Test Addon",
        description="Addon used in tests",
        version="1.0.0",
        resources=[
            ResourceItem(name="stream", types=["movie", "series"], idPrefixes=["tt"]),
            ResourceItem(name="catalog", types=["movie"]),
            ResourceItem(name="meta", types=["movie"]),
        ],
        types=["movie", "series"],
        catalogs=[CatalogItem(type="movie", id="top", name="Top movies")],
        idPrefixes=["tt"],
        behaviorHints=BehaviorHints(configurable=True, configurationRequired=False),
    )


@pytest.fixture
def sample_streams():
    """Two streams of Big Buck Bunny"""
    return [
        StreamItem(
            infoHash="dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c",
            title="1080p (torrent)",
            fileIdx=1,
        ),
        StreamItem(
            url="http://distribution.bbb3d.renderfarming.net/video/mp4/bbb_sunflower_1080p_30fps_normal.mp4",
            title="1080p (HTTP stream)",
        ),
    ]


@pytest.fixture
def addon_options():
    """Base64 user data, no request logging, no handler deadline"""
    return AddonOptions(
        user_data_is_base64=True,
        disable_request_logging=True,
        handler_timeout=None,
    )


@pytest.fixture
def client_for():
    """Build an httpx client talking to an addon's app in-process"""
    def _client(addon):
        return AsyncClient(transport=ASGITransport(app=addon.app), base_url="http://test")
    return _client
