"""
Service wiring.

``build_services`` assembles the engine around one store, cache and clock.
Routes receive the container through the ``get_services`` dependency; tests
swap it with ``app.dependency_overrides``.
"""

from dataclasses import dataclass

from fastapi import Header

from homepage_cms.database import AsyncSessionLocal
from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator
from homepage_cms.services.content_reader import ContentReader
from homepage_cms.services.publication_service import PublicationController
from homepage_cms.services.schedule_service import ScheduleService
from homepage_cms.services.section_service import SectionService
from homepage_cms.services.version_service import VersionManager
from homepage_cms.store.base import ContentStore
from homepage_cms.store.sqlalchemy_store import SQLAlchemyContentStore
from homepage_cms.utils.cache import CacheManager, cache_manager
from homepage_cms.utils.clock import Clock, SystemClock


@dataclass
class CMSServices:
    store: ContentStore
    cache: CacheManager
    clock: Clock
    invalidator: CacheInvalidationCoordinator
    versions: VersionManager
    publisher: PublicationController
    schedules: ScheduleService
    reader: ContentReader
    sections: SectionService


def build_services(
    store: ContentStore,
    cache: CacheManager,
    clock: Clock | None = None,
    retry_backoff: list[float] | None = None,
    batch_size: int | None = None,
) -> CMSServices:
    clock = clock or SystemClock()
    invalidator = CacheInvalidationCoordinator(cache)
    versions = VersionManager(store, invalidator, clock, retry_backoff)
    publisher = PublicationController(store, invalidator, clock, retry_backoff)
    return CMSServices(
        store=store,
        cache=cache,
        clock=clock,
        invalidator=invalidator,
        versions=versions,
        publisher=publisher,
        schedules=ScheduleService(store, publisher, invalidator, clock, batch_size, retry_backoff),
        reader=ContentReader(store, cache, retry_backoff=retry_backoff),
        sections=SectionService(store, versions, invalidator, cache, clock, retry_backoff),
    )


_services: CMSServices | None = None


def get_services() -> CMSServices:
    """Process-wide services backed by the configured database and Redis."""
    global _services
    if _services is None:
        _services = build_services(SQLAlchemyContentStore(AsyncSessionLocal), cache_manager)
    return _services


def get_actor_id(x_actor_id: str | None = Header(default=None, max_length=64)) -> str | None:
    """Acting admin, as forwarded by the authenticating gateway."""
    return x_actor_id
