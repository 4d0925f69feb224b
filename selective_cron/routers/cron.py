"""
Selective cron API endpoints.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from pydantic import BaseModel

from ..cron.errors import PersistenceError
from ..dependencies import get_service, verify_token
from ..models import ScheduleStatus
from ..service import SelectiveCronService

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_token)])


class JobResponse(BaseModel):
    """Response model for a registered job."""

    job_code: str
    group: str
    description: str
    schedule: str
    selected: bool


class ScheduleEntryResponse(BaseModel):
    """Response model for a schedule entry."""

    schedule_id: int
    job_code: str
    status: ScheduleStatus
    scheduled_at: datetime
    created_at: datetime
    executed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    messages: Optional[str] = None


class ScheduleReportResponse(BaseModel):
    scheduled: int
    skipped: int
    failed: int


class RunReportResponse(BaseModel):
    executed: int
    skipped: int
    failed: int


@router.get("/jobs", response_model=List[JobResponse])
async def list_jobs(service: SelectiveCronService = Depends(get_service)):
    """
    List all registered jobs, sorted by job code.

    Each job carries the cron expression it would be scheduled with and
    whether it is currently selected.
    """
    selected_jobs = set(service.config.get_selected_jobs())
    result = []
    for job_code in service.registry.job_codes():
        definition = service.registry.get(job_code)
        assert definition is not None
        result.append(
            JobResponse(
                job_code=job_code,
                group=definition.group,
                description=definition.description,
                schedule=service.scheduler.resolve_expression(definition),
                selected=job_code in selected_jobs,
            )
        )
    return result


@router.get("/schedule", response_model=List[ScheduleEntryResponse])
async def list_schedule(
    job_code: Optional[str] = Query(None, description="Filter by job code"),
    status: Optional[ScheduleStatus] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    service: SelectiveCronService = Depends(get_service),
):
    """List schedule entries, latest scheduled first."""
    try:
        entries = await service.store.get(
            job_code=job_code, status=status, descending=True, limit=limit
        )
    except PersistenceError as e:
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list schedule: {str(e)}",
        )
    return [ScheduleEntryResponse(**vars(entry)) for entry in entries]


@router.post("/schedule/reset", response_model=ScheduleReportResponse)
async def reset_schedule(service: SelectiveCronService = Depends(get_service)):
    """Truncate the schedule table and populate it again."""
    report = await service.reset()
    return ScheduleReportResponse(**vars(report))


@router.post("/schedule/advance", response_model=ScheduleReportResponse)
async def advance_schedule(service: SelectiveCronService = Depends(get_service)):
    """Schedule new entries for jobs not provisioned up to the horizon."""
    report = await service.advance()
    return ScheduleReportResponse(**vars(report))


@router.post("/schedule/run", response_model=RunReportResponse)
async def run_schedule(service: SelectiveCronService = Depends(get_service)):
    """Execute every selected job whose entry is due."""
    report = await service.run()
    return RunReportResponse(**vars(report))
