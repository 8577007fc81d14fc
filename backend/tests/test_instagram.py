"""
Tests for the Instagram oEmbed proxy.
"""

import httpx
import pytest

from registration_api.core.exceptions import InvalidInput, UpstreamError
from registration_api.services.instagram_service import cache_key, normalize_post_url

POST_URL = "https://www.instagram.com/p/C4xYz12AbCd/?img_index=1"


@pytest.mark.parametrize(
    "url,expected",
    [
        (POST_URL, "https://www.instagram.com/p/C4xYz12AbCd/"),
        ("https://instagram.com/reel/Abc_123", "https://instagram.com/reel/Abc_123/"),
        ("http://www.instagram.com/tv/xyz//", "http://www.instagram.com/tv/xyz/"),
    ],
)
def test_normalize_post_url(url, expected):
    assert normalize_post_url(url) == expected


@pytest.mark.parametrize(
    "url",
    ["", "https://example.com/p/abc", "https://www.instagram.com/newerahockey/"],
)
def test_normalize_rejects_non_post_urls(url):
    with pytest.raises(InvalidInput):
        normalize_post_url(url)


def test_cache_key_is_bounded():
    key = cache_key("https://www.instagram.com/p/" + "a" * 200 + "/")
    assert key.startswith("ig-")
    assert len(key) == 53


@pytest.mark.asyncio
async def test_embed_is_fetched_once(container, oembed_handler):
    first = await container.instagram.get_embed(POST_URL)
    second = await container.instagram.get_embed("https://www.instagram.com/p/C4xYz12AbCd")

    assert first == second == oembed_handler.payload
    assert len(oembed_handler.calls) == 1
    params = oembed_handler.calls[0].url.params
    assert params["url"] == "https://www.instagram.com/p/C4xYz12AbCd/"
    assert params["maxwidth"] == "640"


@pytest.mark.asyncio
async def test_cache_expires(container, oembed_handler, clock):
    await container.instagram.get_embed(POST_URL)
    clock.advance(hours=1)
    await container.instagram.get_embed(POST_URL)

    assert len(oembed_handler.calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("upstream,expected", [(404, 404), (429, 429), (500, 502)])
async def test_upstream_status_mapping(container, oembed_handler, upstream, expected):
    oembed_handler.status_code = upstream
    oembed_handler.payload = {"error": "nope"}

    with pytest.raises(UpstreamError) as exc_info:
        await container.instagram.get_embed(POST_URL)

    assert exc_info.value.status_code == expected


@pytest.mark.asyncio
async def test_upstream_timeout(container, oembed_handler):
    oembed_handler.error = httpx.ReadTimeout("slow")

    with pytest.raises(UpstreamError) as exc_info:
        await container.instagram.get_embed(POST_URL)

    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_oembed_endpoint(client, oembed_handler):
    response = await client.get("/api/v1/instagram/oembed", params={"url": POST_URL})

    assert response.status_code == 200
    assert response.json()["html"] == oembed_handler.payload["html"]


@pytest.mark.asyncio
async def test_oembed_endpoint_rejects_bad_url(client, oembed_handler):
    response = await client.get("/api/v1/instagram/oembed", params={"url": "https://example.com"})

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_input"
    assert oembed_handler.calls == []
