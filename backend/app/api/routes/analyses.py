"""Analysis run routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.api.deps import CurrentUser, DbSession
from app.exceptions import ActiveAnalysisExists, AnalysisNotFound
from app.schemas.analysis import (
    ActiveAnalysisConflict,
    AggregatedIssueResponse,
    AnalysisDetailResponse,
    AnalysisListResponse,
    AnalysisRequest,
    AnalysisRunResponse,
    IssuePageResponse,
    IssueSort,
)
from app.services.analysis_service import AnalysisService
from app.services.auth_service import AuthService
from app.tasks.analyze_repo import analyze_repository

router = APIRouter()


@router.post(
    "/repos/{repo_id}/analyses",
    response_model=AnalysisRunResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={status.HTTP_409_CONFLICT: {"model": ActiveAnalysisConflict}},
)
async def start_analysis(
    repo_id: int,
    analysis_request: AnalysisRequest,
    user: CurrentUser,
    db: DbSession,
):
    """Queue an analysis of a repository branch."""
    service = AnalysisService(db)
    try:
        run = await service.start_analysis(
            repo_id=repo_id,
            repo_full_name=analysis_request.full_name,
            branch=analysis_request.branch,
            user_id=user.id,
        )
    except ActiveAnalysisExists as exc:
        conflict = ActiveAnalysisConflict(
            message=str(exc),
            analysis=AnalysisRunResponse.model_validate(exc.run),
        )
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=jsonable_encoder(conflict))

    analyze_repository.delay(str(run.id), AuthService().seal_github_token(user.github_token))
    return AnalysisRunResponse.model_validate(run)


@router.get("/repos/{repo_id}/analyses", response_model=AnalysisListResponse)
async def list_analyses(repo_id: int, user: CurrentUser, db: DbSession):
    """List analyses of a repository, newest first."""
    runs = await AnalysisService(db).list_runs(repo_id, user.id)
    return AnalysisListResponse(
        analyses=[AnalysisRunResponse.model_validate(run) for run in runs],
        total=len(runs),
    )


@router.get("/analyses/{analysis_id}", response_model=AnalysisDetailResponse)
async def get_analysis(analysis_id: UUID, user: CurrentUser, db: DbSession):
    """Get an analysis with its full aggregated report."""
    try:
        run = await AnalysisService(db).get_run(analysis_id, user.id)
    except AnalysisNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AnalysisDetailResponse.model_validate(run)


@router.get("/analyses/{analysis_id}/issues", response_model=IssuePageResponse)
async def list_issues(
    analysis_id: UUID,
    user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    severity: str | None = Query(default=None, description="ERROR, WARNING or INFO"),
    ruleset: str | None = Query(default=None),
    sort: IssueSort = Query(default="first_seen"),
):
    """Page through the aggregated issues of an analysis."""
    try:
        issue_page = await AnalysisService(db).get_issue_page(
            analysis_id,
            user.id,
            page=page,
            page_size=page_size,
            severity=severity,
            ruleset=ruleset,
            sort=sort,
        )
    except AnalysisNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return IssuePageResponse(
        issues=[AggregatedIssueResponse.model_validate(issue.to_dict()) for issue in issue_page.items],
        total=issue_page.total,
        page=issue_page.page,
        page_size=issue_page.page_size,
        pages=issue_page.pages,
    )
