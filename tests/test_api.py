"""
Tests for resource endpoints
"""
import asyncio
import base64
import pytest
from typing import Any, Dict
from unittest.mock import AsyncMock
from stremio_addon.api.middleware import routing_path, unescape_segment
from stremio_addon.core.app import Addon
from stremio_addon.core.config import AddonOptions
from stremio_addon.core.errors import NotFound
from stremio_addon.models.stremio import Meta, MetaItem, MetaPreviewItem
from stremio_addon.utils.token import install_url


def streams_handler(streams, calls=None):
    """Two streams for Big Buck Bunny, not found for anything else"""
    async def handler(request):
        if calls is not None:
            calls.append(request)
        if request.id == "tt1254207":
            return streams
        raise NotFound()
    return handler


@pytest.fixture
def addon(sample_manifest, sample_streams, user_data_schema, addon_options):
    addon = Addon(
        sample_manifest,
        stream_handlers={"movie": streams_handler(sample_streams)},
        options=addon_options,
    )
    addon.register_user_data(user_data_schema)
    return addon


@pytest.mark.asyncio
async def test_stream_items(addon, sample_streams, client_for):
    """Test a handler result is wrapped in the streams envelope"""
    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 200
    assert response.json() == {
        "streams": [
            {
                "infoHash": "dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c",
                "title": "1080p (torrent)",
                "fileIdx": 1,
            },
            {
                "url": "http://distribution.bbb3d.renderfarming.net/video/mp4/bbb_sunflower_1080p_30fps_normal.mp4",
                "title": "1080p (HTTP stream)",
            },
        ]
    }


@pytest.mark.asyncio
async def test_stream_not_found(addon, client_for):
    """Test not found is an empty 200 response, never a 404"""
    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt0000000.json")

    assert response.status_code == 200
    assert response.json() == {"streams": []}


@pytest.mark.asyncio
async def test_handler_returning_none_is_not_found(sample_manifest, addon_options, client_for):
    addon = Addon(sample_manifest, stream_handlers={"movie": lambda request: None}, options=addon_options)

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 200
    assert response.json() == {"streams": []}


@pytest.mark.asyncio
async def test_not_implemented_type(addon, client_for):
    """Test a declared type without handler differs from an empty result"""
    async with client_for(addon) as client:
        response = await client.get("/stream/series/tt0903747:1:1.json")

    assert response.status_code == 501
    assert response.content == b""


@pytest.mark.asyncio
async def test_handler_error_is_not_leaked(sample_manifest, addon_options, client_for, caplog):
    async def failing_handler(request):
        raise RuntimeError("secret upstream credentials")

    addon = Addon(sample_manifest, stream_handlers={"movie": failing_handler}, options=addon_options)

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 500
    assert response.content == b""
    assert "secret upstream credentials" in caplog.text


@pytest.mark.asyncio
async def test_handler_timeout(sample_manifest, client_for):
    async def slow_handler(request):
        await asyncio.sleep(1)
        return []

    options = AddonOptions(handler_timeout=0.05, disable_request_logging=True)
    addon = Addon(sample_manifest, stream_handlers={"movie": slow_handler}, options=options)

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_invalid_result_shape(sample_manifest, addon_options, client_for):
    addon = Addon(sample_manifest, stream_handlers={"movie": lambda request: {"url": "x"}}, options=addon_options)

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_malformed_user_data_never_reaches_handler(
    sample_manifest, sample_streams, user_data_schema, addon_options, client_for
):
    """Test malformed base64 user data is rejected before the handler"""
    calls = []
    addon = Addon(
        sample_manifest,
        stream_handlers={"movie": streams_handler(sample_streams, calls)},
        options=addon_options,
    )
    addon.register_user_data(user_data_schema)
    mismatched = base64.urlsafe_b64encode(b'{"foo": "bar"}').decode()

    async with client_for(addon) as client:
        malformed = await client.get("/not*base64!/stream/movie/tt1254207.json")
        wrong_schema = await client.get(f"/{mismatched}/stream/movie/tt1254207.json")

    assert malformed.status_code == 400
    assert wrong_schema.status_code == 400
    assert len(calls) == 0


@pytest.mark.asyncio
async def test_user_data_reaches_handler(
    sample_manifest, sample_streams, user_data_schema, sample_user_data, addon_options, client_for
):
    calls = []
    addon = Addon(
        sample_manifest,
        stream_handlers={"movie": streams_handler(sample_streams, calls)},
        options=addon_options,
    )
    addon.register_user_data(user_data_schema)
    segment = addon.codec.encode(sample_user_data)

    async with client_for(addon) as client:
        configured = await client.get(f"/{segment}/stream/movie/tt1254207.json")
        plain = await client.get("/stream/movie/tt1254207.json")

    assert configured.status_code == 200
    assert plain.status_code == 200
    assert calls[0].user_data == sample_user_data
    assert calls[0].resource == "stream"
    assert calls[0].type == "movie"
    assert calls[0].id == "tt1254207"
    assert calls[1].user_data is None


@pytest.mark.asyncio
async def test_raw_json_user_data(sample_manifest, sample_streams, user_data_schema, client_for):
    """Test raw JSON user data, percent-encoded in the path"""
    calls = []
    options = AddonOptions(user_data_is_base64=False, disable_request_logging=True)
    addon = Addon(sample_manifest, stream_handlers={"movie": streams_handler(sample_streams, calls)}, options=options)
    addon.register_user_data(user_data_schema)

    async with client_for(addon) as client:
        response = await client.get(
            "/%7B%22userId%22%3A%22123%22%2C%22token%22%3A%22abc%22%7D/stream/movie/tt1254207.json"
        )

    assert response.status_code == 200
    assert calls[0].user_data.user_id == "123"


@pytest.mark.asyncio
async def test_raw_json_user_data_with_slash(sample_manifest, sample_streams, client_for):
    """Test raw JSON user data holding "/" and "%" stays one path segment"""
    calls = []
    options = AddonOptions(user_data_is_base64=False, disable_request_logging=True)
    addon = Addon(sample_manifest, stream_handlers={"movie": streams_handler(sample_streams, calls)}, options=options)
    addon.register_user_data(Dict[str, Any])
    config = {"debridUrl": "https://x.example/api", "note": "100%2F"}
    manifest_path = install_url("http://test", addon.codec.encode(config))[len("http://test"):]

    async with client_for(addon) as client:
        manifest = await client.get(manifest_path)
        stream = await client.get(manifest_path.replace("/manifest.json", "/stream/movie/tt1254207.json"))

    assert manifest.status_code == 200
    assert manifest.json()["id"] == sample_manifest.id
    assert stream.status_code == 200
    assert len(stream.json()["streams"]) == 2
    assert calls[0].user_data == config


def test_routing_path_keeps_first_segment_whole():
    assert routing_path(b"/%7B%22u%22%3A%22a%2Fb%22%7D/manifest.json") == '/{"u":"a%2Fb"}/manifest.json'
    assert routing_path(b"/%7B%22p%22%3A%22100%25%22%7D/manifest.json?x=1") == '/{"p":"100%25"}/manifest.json'
    assert routing_path(b"/stream/movie/tt1%3A2.json") == "/stream/movie/tt1:2.json"
    assert unescape_segment('{"u":"a%2Fb","p":"100%25"}') == '{"u":"a/b","p":"100%"}'


@pytest.mark.asyncio
async def test_id_prefix_filter(sample_manifest, sample_streams, addon_options, client_for):
    """Test ids outside the resource's prefixes are not found without a handler call"""
    calls = []
    addon = Addon(
        sample_manifest,
        stream_handlers={"movie": streams_handler(sample_streams, calls)},
        options=addon_options,
    )

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/kitsu:1.json")

    assert response.status_code == 200
    assert response.json() == {"streams": []}
    assert calls == []


@pytest.mark.asyncio
async def test_catalog_extra(sample_manifest, addon_options, client_for):
    """Test catalog extra arguments are parsed from the path"""
    requests = []

    def catalog_handler(request):
        requests.append(request)
        return [MetaPreviewItem(id="tt1254207", type="movie", name="Big Buck Bunny")]

    addon = Addon(sample_manifest, catalog_handlers={"movie": catalog_handler}, options=addon_options)

    async with client_for(addon) as client:
        first = await client.get("/catalog/movie/top.json")
        second = await client.get("/catalog/movie/top/skip=20&genre=Action.json")

    assert first.status_code == 200
    assert first.json() == {"metas": [{"id": "tt1254207", "type": "movie", "name": "Big Buck Bunny"}]}
    assert second.status_code == 200
    assert requests[0].extra == {}
    assert requests[1].id == "top"
    assert requests[1].extra == {"skip": "20", "genre": "Action"}


@pytest.mark.asyncio
async def test_meta_envelope(sample_manifest, addon_options, client_for):
    """Test the meta resource wraps a single item"""
    async def meta_handler(request):
        if request.id == "tt1254207":
            return MetaItem(id=request.id, type="movie", name="Big Buck Bunny", runtime="10 min")
        raise NotFound()

    addon = Addon(sample_manifest, meta_handlers={"movie": meta_handler}, options=addon_options)

    async with client_for(addon) as client:
        found = await client.get("/meta/movie/tt1254207.json")
        missing = await client.get("/meta/movie/tt0000000.json")

    assert found.json() == {
        "meta": {"id": "tt1254207", "type": "movie", "name": "Big Buck Bunny", "runtime": "10 min"}
    }
    assert missing.status_code == 200
    assert missing.json() == {"meta": None}


@pytest.mark.asyncio
async def test_repeated_requests_identical(addon, client_for):
    async with client_for(addon) as client:
        first = await client.get("/stream/movie/tt1254207.json")
        second = await client.get("/stream/movie/tt1254207.json")

    assert first.content == second.content


@pytest.mark.asyncio
async def test_cache_header(sample_manifest, sample_streams, client_for):
    options = AddonOptions(cache_max_age=3600, disable_request_logging=True)
    addon = Addon(sample_manifest, stream_handlers={"movie": streams_handler(sample_streams)}, options=options)

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.headers["cache-control"] == "max-age=3600, public"


@pytest.mark.asyncio
async def test_undeclared_resource_is_unknown_route(addon, client_for):
    async with client_for(addon) as client:
        response = await client.get("/subtitles/movie/tt1254207.json")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_meta_in_request(sample_manifest, sample_streams, client_for):
    """Test metadata lookup results are handed to stream handlers"""
    calls = []
    meta_client = AsyncMock()
    meta_client.get_meta.return_value = Meta(id="tt0903747", type="series", name="Breaking Bad")
    options = AddonOptions(meta_client=meta_client, put_meta_in_request=True, disable_request_logging=True)
    addon = Addon(
        sample_manifest,
        stream_handlers={"series": streams_handler(sample_streams, calls)},
        options=options,
    )

    async with client_for(addon) as client:
        response = await client.get("/stream/series/tt0903747:1:2.json")

    assert response.status_code == 200
    meta_client.get_meta.assert_awaited_once_with("series", "tt0903747")
    assert calls[0].meta.name == "Breaking Bad"


@pytest.mark.asyncio
async def test_meta_lookup_failure(sample_manifest, sample_streams, client_for):
    """Test a failing metadata lookup leaves the request without meta"""
    calls = []
    meta_client = AsyncMock()
    meta_client.get_meta.side_effect = NotFound("unknown")
    options = AddonOptions(meta_client=meta_client, put_meta_in_request=True, disable_request_logging=True)
    addon = Addon(
        sample_manifest,
        stream_handlers={"movie": streams_handler(sample_streams, calls)},
        options=options,
    )

    async with client_for(addon) as client:
        response = await client.get("/stream/movie/tt1254207.json")

    assert response.status_code == 200
    assert len(response.json()["streams"]) == 2
    assert calls[0].meta is None
