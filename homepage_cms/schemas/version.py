from typing import Any

from pydantic import BaseModel, Field

from homepage_cms.schemas.common import UTCDateTime


class VersionRecord(BaseModel):
    id: int
    section_id: int
    version_number: int
    content: dict[str, Any]
    change_summary: str | None = None
    created_by: str | None = None
    is_published: bool = False
    published_at: UTCDateTime | None = None
    created_at: UTCDateTime


class VersionPage(BaseModel):
    items: list[VersionRecord]
    total: int
    page: int
    page_size: int
    has_next: bool


class DraftCreate(BaseModel):
    content: dict[str, Any] = Field(..., description="Full content payload for the new version.")
    change_summary: str | None = Field(None, max_length=500)


class RevertRequest(BaseModel):
    version_id: int


class PublishRequest(BaseModel):
    version_id: int


class PublishResult(BaseModel):
    section_id: int
    version_id: int
    version_number: int
    published_at: UTCDateTime
    cache_invalidated: bool = True
