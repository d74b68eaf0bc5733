from typing import Any

from pydantic import BaseModel, Field

from homepage_cms.models.section import SectionType


class ProductRef(BaseModel):
    id: int
    name: str
    description: str | None = None
    price: float
    image_url: str | None = None
    inventory_count: int = 0
    is_featured: bool = False
    display_order: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class CategoryRef(BaseModel):
    id: int
    name: str
    slug: str | None = None
    description: str | None = None
    display_order: int
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResolvedSection(BaseModel):
    """A published section as served to the storefront."""

    section_id: int
    section_type: SectionType
    section_key: str
    display_order: int
    content: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)
    associated_products: list[ProductRef] = Field(default_factory=list)
    associated_categories: list[CategoryRef] = Field(default_factory=list)


class HomepageResponse(BaseModel):
    locale: str
    sections: list[ResolvedSection]


class RevalidateRequest(BaseModel):
    locale: str | None = Field(None, min_length=2, max_length=10, description="Defaults to the default locale.")
    section_id: int | None = None


class RevalidateResponse(BaseModel):
    locale: str
    section_id: int | None = None
    purged: list[str]
    failed: list[str]
    pending: list[str]
