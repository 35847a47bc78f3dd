"""
Course configuration endpoints – courses, seasonal schedules and blocks.
"""

from fastapi import APIRouter, Response, status

from teesheet.dependencies import CurrentActor, Schedules
from teesheet.models import (
    Block,
    BlockCreate,
    Course,
    CourseCreate,
    ScheduleCreate,
    ScheduleUpdate,
    SeasonalSchedule,
)

router = APIRouter(prefix="/api", tags=["admin"])


# ── Courses ────────────────────────────────────────────────────────────────


@router.post(
    "/courses",
    response_model=Course,
    status_code=status.HTTP_201_CREATED,
    operation_id="createCourse",
    summary="Create a course",
)
async def create_course(body: CourseCreate, actor: CurrentActor, schedules: Schedules) -> Course:
    return await schedules.create_course(actor.tenant_id, body)


# ── Schedules ──────────────────────────────────────────────────────────────


@router.get(
    "/courses/{course_id}/schedules",
    response_model=list[SeasonalSchedule],
    operation_id="listSchedules",
    summary="List the seasonal schedules of a course",
)
async def list_schedules(
    course_id: str, actor: CurrentActor, schedules: Schedules,
) -> list[SeasonalSchedule]:
    return await schedules.list_schedules(actor.tenant_id, course_id)


@router.post(
    "/courses/{course_id}/schedules",
    response_model=SeasonalSchedule,
    status_code=status.HTTP_201_CREATED,
    operation_id="createSchedule",
    summary="Add a seasonal schedule",
)
async def create_schedule(
    course_id: str, body: ScheduleCreate, actor: CurrentActor, schedules: Schedules,
) -> SeasonalSchedule:
    """409 when an active schedule already covers part of the date range."""
    return await schedules.create_schedule(actor.tenant_id, course_id, body)


@router.patch(
    "/schedules/{schedule_id}",
    response_model=SeasonalSchedule,
    operation_id="updateSchedule",
    summary="Change a seasonal schedule",
)
async def update_schedule(
    schedule_id: str, body: ScheduleUpdate, actor: CurrentActor, schedules: Schedules,
) -> SeasonalSchedule:
    return await schedules.update_schedule(actor.tenant_id, schedule_id, body)


@router.delete(
    "/schedules/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    operation_id="deleteSchedule",
    summary="Delete a seasonal schedule",
)
async def delete_schedule(schedule_id: str, actor: CurrentActor, schedules: Schedules) -> Response:
    await schedules.delete_schedule(actor.tenant_id, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Blocks ─────────────────────────────────────────────────────────────────


@router.get(
    "/courses/{course_id}/blocks",
    response_model=list[Block],
    operation_id="listBlocks",
    summary="List the blocks of a course",
)
async def list_blocks(course_id: str, actor: CurrentActor, schedules: Schedules) -> list[Block]:
    return await schedules.list_blocks(actor.tenant_id, course_id)


@router.post(
    "/courses/{course_id}/blocks",
    response_model=Block,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBlock",
    summary="Block a window or a recurring pattern",
)
async def create_block(
    course_id: str, body: BlockCreate, actor: CurrentActor, schedules: Schedules,
) -> Block:
    return await schedules.create_block(actor.tenant_id, course_id, body)


@router.delete(
    "/blocks/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    operation_id="deleteBlock",
    summary="Remove a block",
)
async def delete_block(block_id: str, actor: CurrentActor, schedules: Schedules) -> Response:
    await schedules.delete_block(actor.tenant_id, block_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
