from typing import Literal

from pydantic import BaseModel, Field

from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.common import UTCDateTime


class ScheduleRecord(BaseModel):
    id: int
    section_id: int
    version_id: int | None = None
    publish_at: UTCDateTime | None = None
    expire_at: UTCDateTime | None = None
    status: ScheduleStatus
    executed_at: UTCDateTime | None = None
    created_by: str | None = None
    notes: str | None = None
    created_at: UTCDateTime
    updated_at: UTCDateTime


class ScheduleCreate(BaseModel):
    section_id: int
    version_id: int | None = Field(None, description="Version to activate; optional for expiry-only schedules.")
    publish_at: UTCDateTime | None = Field(None, description="Omit to only watch for expiry.")
    expire_at: UTCDateTime | None = None
    notes: str | None = Field(None, max_length=1000)


class ScheduleTransition(BaseModel):
    schedule_id: int
    section_id: int
    version_id: int | None = None
    action: Literal["published", "expired"]


class ScheduleFailure(BaseModel):
    schedule_id: int
    section_id: int
    action: Literal["publish", "expire"]
    reason: str


class SweepResult(BaseModel):
    processed_at: UTCDateTime
    transitions: list[ScheduleTransition] = Field(default_factory=list)
    failures: list[ScheduleFailure] = Field(default_factory=list)
