"""
Content Reader

Serves the public homepage: the live sections of a locale, each resolved to
its published content plus ordered product and category references.
Read-through cached; the store is only hit on a miss, and a fill that races
an invalidation is discarded rather than served until the TTL runs out.
"""

import logging

from pydantic import ValidationError

from homepage_cms.config import settings
from homepage_cms.schemas.homepage import ResolvedSection
from homepage_cms.store.base import ContentStore
from homepage_cms.utils.cache import CacheManager
from homepage_cms.utils.cache_keys import homepage_content_key, homepage_generation_key, homepage_tags
from homepage_cms.utils.retry import retry_store_call

logger = logging.getLogger(__name__)


class ContentReader:
    def __init__(
        self,
        store: ContentStore,
        cache: CacheManager,
        ttl: int | None = None,
        retry_backoff: list[float] | None = None,
    ):
        self.store = store
        self.cache = cache
        self.ttl = ttl or settings.cache_ttl_homepage
        self.retry_backoff = retry_backoff

    async def get_homepage_content(self, locale: str) -> list[ResolvedSection]:
        """
        Live sections for ``locale`` in display order.

        Only active sections in ``published`` status are returned. Ties on
        ``display_order`` are broken by section id so identical state always
        yields identical output.
        """
        key = homepage_content_key(locale)
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return [ResolvedSection.model_validate(item) for item in cached]
            except ValidationError as e:
                logger.warning(f"Discarding malformed cache entry {key}: {e}")

        generation = await self._generation(locale)
        sections = await self.load_homepage(locale)
        await self._fill(locale, sections, generation)
        return sections

    async def load_homepage(self, locale: str) -> list[ResolvedSection]:
        """Resolve the homepage straight from the store, bypassing the cache."""
        return await retry_store_call(lambda: self.store.live_sections(locale), self.retry_backoff)

    async def warm(self, locales: list[str]) -> int:
        """Populate the homepage cache for each locale; returns how many were stored."""
        warmed = 0
        for locale in locales:
            generation = await self._generation(locale)
            sections = await self.load_homepage(locale)
            if await self._fill(locale, sections, generation):
                warmed += 1
        logger.info(f"Cache: warmed homepage for {warmed}/{len(locales)} locale(s)")
        return warmed

    async def _fill(self, locale: str, sections: list[ResolvedSection], generation: int | None) -> bool:
        """
        Store a freshly loaded homepage unless an invalidation overtook the load.

        ``generation`` is the locale's counter as read before the load. An
        invalidation advances it before purging, so a changed counter after
        the write means the entry may predate a publish and is dropped again.
        """
        key = homepage_content_key(locale)
        if not await self._cache_set(key, [section.model_dump(mode="json") for section in sections], locale):
            return False
        if await self._generation(locale) == generation:
            return True

        logger.info(f"Cache: homepage fill for {locale} overtaken by an invalidation; dropping it")
        try:
            dropped = await self.cache.invalidate_key(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            dropped = False
        if not dropped:
            logger.warning(f"Cache: stale homepage fill for {locale} could not be dropped")
        return False

    async def _generation(self, locale: str) -> int | None:
        try:
            return await self.cache.get_generation(homepage_generation_key(locale))
        except Exception as e:
            logger.warning(f"Cache generation read failed for {locale}: {e}")
            return None

    async def _cache_get(self, key: str):
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, reading from store: {e}")
            return None

    async def _cache_set(self, key: str, value: list, locale: str) -> bool:
        try:
            return await self.cache.set(key, value, self.ttl, tags=homepage_tags(locale))
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
