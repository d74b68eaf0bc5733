"""
Public Homepage Routes

The storefront reads the live homepage here. Responses carry a shared-cache
``Cache-Control`` header so a CDN can serve them between purges; editor
previews pass ``no_cache=true`` to read straight from the store.
"""

from fastapi import APIRouter, Depends, Query, Response

from homepage_cms.config import settings
from homepage_cms.dependencies import CMSServices, get_services
from homepage_cms.schemas.homepage import HomepageResponse
from homepage_cms.utils.cache_keys import cache_control_header

router = APIRouter(tags=["Homepage"])

PREVIEW_CACHE_CONTROL = "private, no-store"


@router.get("", response_model=HomepageResponse)
async def get_homepage(
    response: Response,
    locale: str = Query(settings.default_locale, min_length=2, max_length=10),
    no_cache: bool = Query(False, description="Bypass the cache, e.g. for admin previews."),
    services: CMSServices = Depends(get_services),
) -> HomepageResponse:
    if no_cache:
        sections = await services.reader.load_homepage(locale)
        response.headers["Cache-Control"] = PREVIEW_CACHE_CONTROL
    else:
        sections = await services.reader.get_homepage_content(locale)
        response.headers["Cache-Control"] = cache_control_header(services.reader.ttl)
    return HomepageResponse(locale=locale, sections=sections)
