"""
Admin Section Routes

Section management, version history and publication for the homepage
editor. Authentication happens upstream; the acting admin arrives in the
``X-Actor-Id`` header and is recorded as the author of new versions.
"""

from fastapi import APIRouter, Depends, Query, status

from homepage_cms.config import settings
from homepage_cms.dependencies import CMSServices, get_actor_id, get_services
from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.schemas.homepage import CategoryRef, ProductRef, RevalidateRequest, RevalidateResponse
from homepage_cms.schemas.section import (
    AdminSectionSummary,
    AssociationsUpdate,
    ReorderRequest,
    SectionCreate,
    SectionRecord,
    SectionUpdate,
)
from homepage_cms.schemas.version import (
    DraftCreate,
    PublishRequest,
    PublishResult,
    RevertRequest,
    VersionPage,
    VersionRecord,
)

router = APIRouter(tags=["Homepage Admin"])


# ============== Sections ==============


@router.post("/sections", response_model=SectionRecord, status_code=status.HTTP_201_CREATED)
async def create_section(
    data: SectionCreate,
    services: CMSServices = Depends(get_services),
    actor_id: str | None = Depends(get_actor_id),
) -> SectionRecord:
    return await services.sections.create_section(data, author_id=actor_id)


@router.get("/sections", response_model=list[AdminSectionSummary])
async def list_sections(
    locale: str = Query("en", min_length=2, max_length=10),
    section_status: SectionStatus | None = Query(None, alias="status"),
    section_type: SectionType | None = Query(None),
    services: CMSServices = Depends(get_services),
) -> list[AdminSectionSummary]:
    return await services.sections.list_admin_sections(locale, status=section_status, section_type=section_type)


@router.post("/sections/reorder", response_model=list[SectionRecord])
async def reorder_sections(
    data: ReorderRequest,
    services: CMSServices = Depends(get_services),
) -> list[SectionRecord]:
    return await services.sections.reorder_sections(data.locale, data.sections)


@router.get("/sections/{section_id}", response_model=SectionRecord)
async def get_section(section_id: int, services: CMSServices = Depends(get_services)) -> SectionRecord:
    return await services.sections.get_section(section_id)


@router.patch("/sections/{section_id}", response_model=SectionRecord)
async def update_section(
    section_id: int,
    changes: SectionUpdate,
    services: CMSServices = Depends(get_services),
) -> SectionRecord:
    return await services.sections.update_section(section_id, changes)


@router.put("/sections/{section_id}/products", response_model=list[ProductRef])
async def set_section_products(
    section_id: int,
    data: AssociationsUpdate,
    services: CMSServices = Depends(get_services),
) -> list[ProductRef]:
    return await services.sections.set_section_products(section_id, data.items)


@router.put("/sections/{section_id}/categories", response_model=list[CategoryRef])
async def set_section_categories(
    section_id: int,
    data: AssociationsUpdate,
    services: CMSServices = Depends(get_services),
) -> list[CategoryRef]:
    return await services.sections.set_section_categories(section_id, data.items)


# ============== Versions ==============


@router.post(
    "/sections/{section_id}/versions",
    response_model=VersionRecord,
    status_code=status.HTTP_201_CREATED,
)
async def create_draft(
    section_id: int,
    data: DraftCreate,
    services: CMSServices = Depends(get_services),
    actor_id: str | None = Depends(get_actor_id),
) -> VersionRecord:
    return await services.versions.create_draft(
        section_id, data.content, author_id=actor_id, change_summary=data.change_summary
    )


@router.get("/sections/{section_id}/versions", response_model=VersionPage)
async def list_versions(
    section_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    services: CMSServices = Depends(get_services),
) -> VersionPage:
    return await services.versions.list_versions(section_id, page=page, page_size=page_size)


@router.get("/sections/{section_id}/versions/{version_id}", response_model=VersionRecord)
async def get_version(
    section_id: int,
    version_id: int,
    services: CMSServices = Depends(get_services),
) -> VersionRecord:
    return await services.versions.get_version(section_id, version_id)


@router.post(
    "/sections/{section_id}/revert",
    response_model=VersionRecord,
    status_code=status.HTTP_201_CREATED,
)
async def revert_to_version(
    section_id: int,
    data: RevertRequest,
    services: CMSServices = Depends(get_services),
    actor_id: str | None = Depends(get_actor_id),
) -> VersionRecord:
    """Copy an earlier version into a new draft; the old version is untouched."""
    return await services.versions.revert_to_version(section_id, data.version_id, author_id=actor_id)


# ============== Publication ==============


@router.post("/sections/{section_id}/publish", response_model=PublishResult)
async def publish_version(
    section_id: int,
    data: PublishRequest,
    services: CMSServices = Depends(get_services),
) -> PublishResult:
    return await services.publisher.publish(section_id, data.version_id)


@router.post("/sections/{section_id}/archive", response_model=SectionRecord)
async def archive_section(section_id: int, services: CMSServices = Depends(get_services)) -> SectionRecord:
    return await services.publisher.archive(section_id)


# ============== Cache ==============


@router.post("/revalidate", response_model=RevalidateResponse)
async def revalidate_homepage(
    data: RevalidateRequest, services: CMSServices = Depends(get_services)
) -> RevalidateResponse:
    """Purge a locale's public homepage by hand and replay any queued purges."""
    locale = data.locale or settings.default_locale
    if data.section_id is not None:
        section = await services.sections.get_section(data.section_id)
        locale = data.locale or section.locale

    report = await services.invalidator.revalidate(locale, data.section_id)
    return RevalidateResponse(
        locale=locale,
        section_id=data.section_id,
        purged=report.purged,
        failed=report.failed,
        pending=services.invalidator.pending,
    )
