"""
Supervisor directory endpoints.

All routes require the superadmin, admin or manager role. Companion-user
sync happens inside the service and never changes the response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from facility_ops.api.v1.deps import get_supervisor_directory
from facility_ops.models.supervisor import SupervisorId
from facility_ops.schemas.common import MessageResponse
from facility_ops.schemas.supervisor import (SupervisorCreate, SupervisorListResponse,
                                             SupervisorResponse, SupervisorStatsResponse,
                                             SupervisorUpdate, to_supervisor_read)
from facility_ops.services.supervisor_directory import SupervisorDirectory

router = APIRouter(tags=["supervisors"])


@router.get("/supervisors", response_model=SupervisorListResponse)
async def list_supervisors(
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorListResponse:
    supervisors = await directory.list_supervisors()
    return SupervisorListResponse(
        count=len(supervisors),
        supervisors=[to_supervisor_read(s) for s in supervisors],
    )


@router.post("/supervisors", response_model=SupervisorResponse, status_code=201)
async def create_supervisor(
    body: SupervisorCreate,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorResponse:
    supervisor = await directory.create_supervisor(body)
    return SupervisorResponse(
        message="Supervisor created successfully",
        supervisor=to_supervisor_read(supervisor),
    )


# Static paths must be registered before /supervisors/{supervisor_id}
@router.get("/supervisors/stats", response_model=SupervisorStatsResponse)
async def supervisor_stats(
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorStatsResponse:
    return SupervisorStatsResponse(stats=await directory.get_supervisor_stats())


@router.get("/supervisors/search", response_model=SupervisorListResponse)
async def search_supervisors(
    query: str | None = None,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorListResponse:
    """Case-insensitive search over name, email, phone, department and site."""
    supervisors = await directory.search_supervisors(query)
    return SupervisorListResponse(
        count=len(supervisors),
        supervisors=[to_supervisor_read(s) for s in supervisors],
    )


@router.get("/supervisors/{supervisor_id}", response_model=SupervisorResponse)
async def get_supervisor(
    supervisor_id: str,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorResponse:
    supervisor = await directory.get_supervisor(SupervisorId(supervisor_id))
    return SupervisorResponse(supervisor=to_supervisor_read(supervisor))


@router.put("/supervisors/{supervisor_id}", response_model=SupervisorResponse)
async def update_supervisor(
    supervisor_id: str,
    body: SupervisorUpdate,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorResponse:
    supervisor = await directory.update_supervisor(SupervisorId(supervisor_id), body)
    return SupervisorResponse(
        message="Supervisor updated successfully",
        supervisor=to_supervisor_read(supervisor),
    )


@router.delete("/supervisors/{supervisor_id}", response_model=MessageResponse)
async def delete_supervisor(
    supervisor_id: str,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> MessageResponse:
    await directory.delete_supervisor(SupervisorId(supervisor_id))
    return MessageResponse(message="Supervisor deleted successfully")


@router.patch("/supervisors/{supervisor_id}/toggle-status", response_model=SupervisorResponse)
async def toggle_supervisor_status(
    supervisor_id: str,
    directory: SupervisorDirectory = Depends(get_supervisor_directory),
) -> SupervisorResponse:
    supervisor = await directory.toggle_supervisor_status(SupervisorId(supervisor_id))
    state = "activated" if supervisor.is_active else "deactivated"
    return SupervisorResponse(
        message=f"Supervisor {state} successfully",
        supervisor=to_supervisor_read(supervisor),
    )
