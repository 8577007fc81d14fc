"""
Instagram oEmbed proxy for the gallery page.
"""

from fastapi import APIRouter, Depends, Query

from registration_api.api.deps import get_container
from registration_api.services.container import ServiceContainer

router = APIRouter(prefix="/instagram", tags=["Instagram"])


@router.get("/oembed")
async def get_oembed(
    url: str = Query(..., min_length=1),
    container: ServiceContainer = Depends(get_container),
):
    """Embed HTML for a public post, reel or tv URL. Cached for CACHE_TTL_SECONDS."""
    return await container.instagram.get_embed(url)
