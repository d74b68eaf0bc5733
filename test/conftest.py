"""
Pytest configuration and fixtures for the homepage CMS tests
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH120

from homepage_cms.dependencies import build_services  # noqa: E402
from homepage_cms.models.section import SectionType  # noqa: E402
from homepage_cms.schemas.section import SectionCreate  # noqa: E402
from homepage_cms.store.memory import InMemoryContentStore  # noqa: E402
from homepage_cms.utils.clock import FrozenClock  # noqa: E402
from utils.fixtures import START  # noqa: E402
from utils.mocks import RecordingCache  # noqa: E402


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def store() -> InMemoryContentStore:
    """In-memory store seeded with a small catalog"""
    store = InMemoryContentStore()
    store.add_product(1, "Linen shirt", price=49.5, is_featured=True, inventory_count=12)
    store.add_product(2, "Canvas tote", price=19)
    store.add_product(3, "Straw hat", price=25, image_url="https://cdn.example.com/hat.jpg")
    store.add_category(10, "Summer", slug="summer")
    store.add_category(11, "Accessories", slug="accessories")
    return store


@pytest.fixture
def cache() -> RecordingCache:
    return RecordingCache()


@pytest.fixture
def services(store, cache, clock):
    return build_services(store, cache, clock, retry_backoff=[])


@pytest.fixture
async def hero_section(services):
    """A draft hero banner section with no versions yet"""
    section = await services.sections.create_section(
        SectionCreate(section_type=SectionType.HERO_BANNER, section_key="hero", locale="en", display_order=0)
    )
    services.cache.reset()
    return section
