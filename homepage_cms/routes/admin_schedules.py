"""
Admin Schedule Routes

Timed publish and expiry of homepage sections.
"""

from fastapi import APIRouter, Depends, Query, status

from homepage_cms.dependencies import CMSServices, get_actor_id, get_services
from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.schedule import ScheduleCreate, ScheduleRecord, SweepResult

router = APIRouter(tags=["Homepage Schedules"])


@router.post("/schedules", response_model=ScheduleRecord, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleCreate,
    services: CMSServices = Depends(get_services),
    actor_id: str | None = Depends(get_actor_id),
) -> ScheduleRecord:
    return await services.schedules.create_schedule(
        data.section_id,
        version_id=data.version_id,
        publish_at=data.publish_at,
        expire_at=data.expire_at,
        notes=data.notes,
        created_by=actor_id,
    )


@router.get("/schedules", response_model=list[ScheduleRecord])
async def list_schedules(
    section_id: int | None = Query(None),
    schedule_status: list[ScheduleStatus] | None = Query(None, alias="status"),
    services: CMSServices = Depends(get_services),
) -> list[ScheduleRecord]:
    return await services.schedules.list_schedules(section_id=section_id, statuses=schedule_status)


@router.post("/schedules/process", response_model=SweepResult)
async def process_schedules(services: CMSServices = Depends(get_services)) -> SweepResult:
    """Run a schedule sweep now instead of waiting for the periodic job."""
    return await services.schedules.process_schedules()


@router.get("/schedules/{schedule_id}", response_model=ScheduleRecord)
async def get_schedule(schedule_id: int, services: CMSServices = Depends(get_services)) -> ScheduleRecord:
    return await services.schedules.get_schedule(schedule_id)


@router.post("/schedules/{schedule_id}/cancel", response_model=ScheduleRecord)
async def cancel_schedule(schedule_id: int, services: CMSServices = Depends(get_services)) -> ScheduleRecord:
    return await services.schedules.cancel_schedule(schedule_id)
