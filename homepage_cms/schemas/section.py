from typing import Any

from pydantic import BaseModel, Field

from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.schemas.common import UTCDateTime


class SectionRecord(BaseModel):
    id: int
    section_type: SectionType
    section_key: str
    display_order: int
    locale: str
    is_active: bool
    status: SectionStatus
    published_version_id: int | None = None
    draft_version_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: UTCDateTime
    updated_at: UTCDateTime


class SectionCreate(BaseModel):
    section_type: SectionType = Field(..., description="Kind of section; decides the content shape.")
    section_key: str = Field(..., min_length=1, max_length=120, description="Stable key, unique within a locale.")
    locale: str = Field("en", min_length=2, max_length=10)
    display_order: int = Field(0, ge=0)
    is_active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict, description="Styling hints, analytics tags.")
    content: dict[str, Any] | None = Field(None, description="Initial content; creates version 1 as the draft.")
    change_summary: str | None = None


class SectionUpdate(BaseModel):
    section_key: str | None = Field(None, min_length=1, max_length=120)
    is_active: bool | None = None
    metadata: dict[str, Any] | None = None


class ReorderItem(BaseModel):
    id: int
    display_order: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    locale: str = "en"
    sections: list[ReorderItem] = Field(..., min_length=1)


class AssociationItem(BaseModel):
    """One ordered row of a section's product or category list."""

    item_id: int = Field(..., description="Product or category id.")
    display_order: int = Field(0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict, description="Per-item overrides (custom title, image).")


class AssociationsUpdate(BaseModel):
    items: list[AssociationItem] = Field(default_factory=list)


class AdminSectionSummary(BaseModel):
    section_id: int
    section_type: SectionType
    section_key: str
    display_order: int
    status: SectionStatus
    is_active: bool
    locale: str
    published_version: int | None = None
    draft_version: int | None = None
    total_versions: int = 0
    last_modified_at: UTCDateTime
    has_schedule: bool = False
