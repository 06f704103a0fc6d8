from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from weekplan.api.deps import get_actor_id, get_context
from weekplan.schemas.substitution import (
    SubstitutionConfirm,
    SubstitutionCreate,
    SubstitutionDecision,
    SubstitutionOut,
)
from weekplan.schemas.teacher import TeacherOut
from weekplan.services.records import SubstitutionStatus
from weekplan.services.scheduling import SchedulingContext
from weekplan.services.substitutions import SubstitutionService

router = APIRouter()


@router.get("/substitutions", response_model=list[SubstitutionOut])
def list_substitutions(
    status_filter: SubstitutionStatus | None = Query(default=None, alias="status"),
    school_id: str | None = Query(default=None, alias="schoolId"),
    ctx: SchedulingContext = Depends(get_context),
) -> list[SubstitutionOut]:
    return SubstitutionService(ctx).list_substitutions(status=status_filter, school_id=school_id)


@router.post("/substitutions", response_model=SubstitutionOut, status_code=status.HTTP_201_CREATED)
def request_substitution(
    payload: SubstitutionCreate,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
) -> SubstitutionOut:
    return SubstitutionService(ctx).request(
        payload.timetableEntryId,
        payload.substitution_date,
        payload.reason,
        actor_id=actor_id,
    )


@router.post("/substitutions/auto-assign", response_model=SubstitutionDecision)
def auto_assign_substitute(
    payload: SubstitutionCreate,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
):
    result = SubstitutionService(ctx).auto_assign(
        payload.timetableEntryId,
        payload.substitution_date,
        payload.reason,
        actor_id=actor_id,
    )
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


@router.post("/substitutions/{substitution_id}/confirm", response_model=SubstitutionDecision)
def confirm_substitution(
    substitution_id: str,
    payload: SubstitutionConfirm,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
):
    result = SubstitutionService(ctx).confirm(substitution_id, payload.substituteTeacherId, actor_id=actor_id)
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


@router.post("/substitutions/{substitution_id}/reject", response_model=SubstitutionDecision)
def reject_substitution(
    substitution_id: str,
    ctx: SchedulingContext = Depends(get_context),
    actor_id: str | None = Depends(get_actor_id),
) -> SubstitutionDecision:
    return SubstitutionService(ctx).reject(substitution_id, actor_id=actor_id)


@router.get("/substitutions/{substitution_id}/suggest", response_model=list[TeacherOut])
def suggest_substitutes(substitution_id: str, ctx: SchedulingContext = Depends(get_context)) -> list[TeacherOut]:
    return SubstitutionService(ctx).suggest(substitution_id)
