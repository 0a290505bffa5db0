"""AI fix routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.api.deps import CurrentUser, DbSession
from app.exceptions import NotFoundError, PreconditionFailedError
from app.schemas.analysis import FixListResponse, FixRequest, FixRunResponse
from app.services.auth_service import AuthService
from app.services.fix_service import FixService
from app.tasks.fix_issues import apply_fixes

router = APIRouter()


@router.post(
    "/analyses/{analysis_id}/fixes",
    response_model=FixRunResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_fix(
    analysis_id: UUID,
    fix_request: FixRequest,
    user: CurrentUser,
    db: DbSession,
):
    """Queue AI fixes for issues of a completed analysis."""
    service = FixService(db)
    try:
        fix = await service.start_fix(
            analysis_id,
            user.id,
            rule_ids=fix_request.rule_ids,
            create_pull_request=fix_request.create_pull_request,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PreconditionFailedError as exc:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(exc)) from exc

    apply_fixes.delay(str(fix.id), AuthService().seal_github_token(user.github_token))
    return FixRunResponse.model_validate(fix)


@router.get("/analyses/{analysis_id}/fixes", response_model=FixListResponse)
async def list_fixes(analysis_id: UUID, user: CurrentUser, db: DbSession):
    """List fix runs of an analysis, newest first."""
    try:
        fixes = await FixService(db).list_fixes(analysis_id, user.id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return FixListResponse(
        fixes=[FixRunResponse.model_validate(fix) for fix in fixes],
        total=len(fixes),
    )


@router.get("/fixes/{fix_id}", response_model=FixRunResponse)
async def get_fix(fix_id: UUID, user: CurrentUser, db: DbSession):
    """Get a fix run and its results."""
    try:
        fix = await FixService(db).get_fix(fix_id, user.id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return FixRunResponse.model_validate(fix)
