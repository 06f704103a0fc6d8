from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from weekplan.api.deps import get_actor_id, get_context
from weekplan.schemas.teacher import (
    ReplaceTeacherRequest,
    ReplacementPreview,
    ReplacementResult,
    TeacherOut,
    TeacherReplacementOut,
    TeacherScheduleOut,
)
from weekplan.services.overrides import OverrideLayer
from weekplan.services.replacement import ReassignmentEngine
from weekplan.services.scheduling import SchedulingContext

router = APIRouter()


@router.post("/teachers/{teacher_id}/replace", response_model=ReplacementResult)
def replace_teacher(
    teacher_id: str,
    payload: ReplaceTeacherRequest,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
):
    result = ReassignmentEngine(ctx).replace_teacher(
        teacher_id,
        payload.replacementTeacherId,
        payload.reason,
        actor_id=actor_id,
    )
    if not result.success:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=result.model_dump(mode="json"))
    return result


@router.get("/teachers/{teacher_id}/replacement-conflicts", response_model=ReplacementPreview)
def replacement_conflicts(
    teacher_id: str,
    replacement_teacher_id: str = Query(alias="replacementTeacherId", min_length=1, max_length=36),
    ctx: SchedulingContext = Depends(get_context),
) -> ReplacementPreview:
    return ReassignmentEngine(ctx).check_replacement_conflicts(teacher_id, replacement_teacher_id)


@router.get("/teachers/{teacher_id}/replacement-candidates", response_model=list[TeacherOut])
def replacement_candidates(teacher_id: str, ctx: SchedulingContext = Depends(get_context)) -> list[TeacherOut]:
    return ReassignmentEngine(ctx).find_replacement_candidates(teacher_id)


@router.get("/teachers/{teacher_id}/schedule", response_model=TeacherScheduleOut)
def teacher_schedule(
    teacher_id: str,
    week_date: str | None = Query(default=None, alias="date"),
    ctx: SchedulingContext = Depends(get_context),
) -> TeacherScheduleOut:
    return OverrideLayer(ctx).teacher_schedule(teacher_id, week_date)


@router.get("/teacher-replacements", response_model=list[TeacherReplacementOut])
def list_teacher_replacements(
    school_id: str | None = Query(default=None, alias="schoolId"),
    teacher_id: str | None = Query(default=None, alias="teacherId"),
    ctx: SchedulingContext = Depends(get_context),
) -> list[TeacherReplacementOut]:
    return ReassignmentEngine(ctx).replacement_history(school_id=school_id, teacher_id=teacher_id)
