from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.responses import JSONResponse

from weekplan.api.deps import get_actor_id, get_context
from weekplan.schemas.teacher import TeacherOut
from weekplan.schemas.timetable import (
    AssignmentResult,
    CancelResult,
    EnhancedTimetableOut,
    ManualAssignRequest,
    PromoteRequest,
    PromotionResult,
    RefreshResult,
    TimetableEntryOut,
    WeeklyTimetableOut,
)
from weekplan.services.overrides import OverrideLayer
from weekplan.services.promotion import PromotionEngine
from weekplan.services.scheduling import SchedulingContext

router = APIRouter()


@router.post("/refresh-global/{class_id}", response_model=RefreshResult)
def refresh_global_timetable(
    class_id: str,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
) -> RefreshResult:
    return OverrideLayer(ctx).refresh(class_id, actor_id=actor_id)


@router.get("/global/{class_id}", response_model=list[TimetableEntryOut])
def get_global_timetable(class_id: str, ctx: SchedulingContext = Depends(get_context)) -> list[TimetableEntryOut]:
    return OverrideLayer(ctx).get_global_timetable(class_id)


@router.get("/weekly/{class_id}", response_model=WeeklyTimetableOut)
def get_weekly_timetable(
    class_id: str,
    week_date: str | None = Query(default=None, alias="date"),
    ctx: SchedulingContext = Depends(get_context),
) -> WeeklyTimetableOut:
    return OverrideLayer(ctx).get_weekly_timetable(class_id, week_date)


@router.get("/enhanced/{class_id}", response_model=EnhancedTimetableOut)
def get_enhanced_timetable(
    class_id: str,
    week_date: str | None = Query(default=None, alias="date"),
    ctx: SchedulingContext = Depends(get_context),
) -> EnhancedTimetableOut:
    return OverrideLayer(ctx).get_effective_timetable(class_id, week_date)


@router.post("/manual-assign", response_model=AssignmentResult)
def manual_assign(
    payload: ManualAssignRequest,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
):
    result = OverrideLayer(ctx).manual_assign(
        class_id=payload.classId,
        day=payload.day,
        period=payload.period,
        new_teacher_id=payload.newTeacherId,
        timetable_entry_id=payload.timetableEntryId,
        subject_id=payload.subjectId,
        room=payload.room,
        reason=payload.reason,
        week_date=payload.week_date,
        actor_id=actor_id,
    )
    if not result.success:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=result.model_dump(mode="json"))
    return result


@router.delete("/entry/{entry_id}", response_model=CancelResult)
def delete_timetable_entry(
    entry_id: str,
    week_date: str | None = Query(default=None, alias="date"),
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
) -> CancelResult:
    return OverrideLayer(ctx).cancel_entry(entry_id, week_date, actor_id=actor_id)


@router.post("/set-weekly-as-global/{class_id}", response_model=PromotionResult)
def set_weekly_as_global(
    class_id: str,
    payload: PromoteRequest | None = Body(default=None),
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
) -> PromotionResult:
    week_date = payload.week_date if payload is not None else None
    return PromotionEngine(ctx).set_weekly_as_global(class_id, week_date, actor_id=actor_id)


@router.get("/available-teachers", response_model=list[TeacherOut])
def available_teachers(
    class_id: str = Query(alias="classId"),
    day: str = Query(),
    period: int = Query(ge=1, le=20),
    week_date: str | None = Query(default=None, alias="date"),
    subject_id: str | None = Query(default=None, alias="subjectId"),
    ctx: SchedulingContext = Depends(get_context),
) -> list[TeacherOut]:
    return OverrideLayer(ctx).available_teachers_for_slot(class_id, day, period, week_date, subject_id=subject_id)
