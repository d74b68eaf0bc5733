from .homepage import CategoryRef, HomepageResponse, ProductRef, ResolvedSection
from .schedule import ScheduleCreate, ScheduleFailure, ScheduleRecord, ScheduleTransition, SweepResult
from .section import (
    AdminSectionSummary,
    AssociationItem,
    AssociationsUpdate,
    ReorderItem,
    ReorderRequest,
    SectionCreate,
    SectionRecord,
    SectionUpdate,
)
from .version import DraftCreate, PublishRequest, PublishResult, RevertRequest, VersionPage, VersionRecord

__all__ = [
    "AdminSectionSummary",
    "AssociationItem",
    "AssociationsUpdate",
    "CategoryRef",
    "DraftCreate",
    "HomepageResponse",
    "ProductRef",
    "PublishRequest",
    "PublishResult",
    "ReorderItem",
    "ReorderRequest",
    "ResolvedSection",
    "RevertRequest",
    "ScheduleCreate",
    "ScheduleFailure",
    "ScheduleRecord",
    "ScheduleTransition",
    "SectionCreate",
    "SectionRecord",
    "SectionUpdate",
    "SweepResult",
    "VersionPage",
    "VersionRecord",
]
