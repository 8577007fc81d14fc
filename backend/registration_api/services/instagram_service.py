"""
Instagram oEmbed lookups behind the response cache.
"""

import base64
import re

import httpx

from registration_api.core.exceptions import InvalidInput, UpstreamError
from registration_api.core.logging import get_logger
from registration_api.services.cache_service import CacheService

logger = get_logger(__name__)

INSTAGRAM_URL_PATTERN = re.compile(r"^https?://(www\.)?instagram\.com/(p|reel|tv)/[\w-]+")
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def normalize_post_url(url: str) -> str:
    """Strip query parameters (e.g. ?img_index=1) and end with a single slash."""
    if not url or not INSTAGRAM_URL_PATTERN.match(url):
        raise InvalidInput("Invalid Instagram URL")
    return url.split("?")[0].rstrip("/") + "/"


def cache_key(clean_url: str) -> str:
    return "ig-" + base64.b64encode(clean_url.encode()).decode()[:50]


class InstagramService:
    def __init__(self, client: httpx.AsyncClient, cache: CacheService, endpoint: str):
        self.client = client
        self.cache = cache
        self.endpoint = endpoint

    async def get_embed(self, url: str) -> dict:
        clean_url = normalize_post_url(url)
        key = cache_key(clean_url)

        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        logger.info("oembed_fetch", url=clean_url)
        try:
            response = await self.client.get(
                self.endpoint,
                params={"url": clean_url, "maxwidth": 640, "hidecaption": "false"},
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            logger.error("oembed_timeout", url=clean_url)
            raise UpstreamError("Instagram did not respond in time", status_code=504) from e
        except httpx.HTTPError as e:
            logger.error("oembed_request_failed", url=clean_url, error=str(e))
            raise UpstreamError("Failed to fetch Instagram embed") from e

        if response.status_code == 404:
            raise UpstreamError("Instagram post not found or is private", status_code=404)
        if response.status_code == 429:
            raise UpstreamError("Rate limited. Please try again later.", status_code=429)
        if response.is_error:
            logger.error("oembed_upstream_error", url=clean_url, status=response.status_code)
            raise UpstreamError("Failed to fetch Instagram embed", upstream_status=response.status_code)

        data = response.json()
        await self.cache.set(key, data)
        return data
