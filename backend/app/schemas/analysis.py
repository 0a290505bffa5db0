"""Schemas for analysis runs, issue reports and fix runs."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class AnalysisRequest(BaseModel):
    """Request to analyze a repository branch."""

    full_name: str = Field(pattern=r"^[\w.-]+/[\w.-]+$", description="GitHub 'owner/name'")
    branch: str = Field(default="main", min_length=1)


class IssueExampleResponse(BaseModel):
    file: str
    line: int
    snippet: str

    class Config:
        from_attributes = True


class AggregatedIssueResponse(BaseModel):
    rule: str
    ruleset: str
    severity: str
    description: str
    count: int
    examples: list[IssueExampleResponse]

    class Config:
        from_attributes = True


class AnalysisRunResponse(BaseModel):
    id: UUID
    repo_id: int
    repo_full_name: str
    branch: str
    user_id: str
    status: str
    issue_count: int
    file_count: int | None
    files_scanned: int | None
    error: str | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    class Config:
        from_attributes = True


class AnalysisDetailResponse(AnalysisRunResponse):
    issues: list[AggregatedIssueResponse] = Field(default_factory=list)


class AnalysisListResponse(BaseModel):
    analyses: list[AnalysisRunResponse]
    total: int


class ActiveAnalysisConflict(BaseModel):
    """Body of a 409 response when the repository is already being analyzed."""

    message: str
    analysis: AnalysisRunResponse


class IssuePageResponse(BaseModel):
    issues: list[AggregatedIssueResponse]
    total: int
    page: int
    page_size: int
    pages: int

    class Config:
        from_attributes = True


class FixRequest(BaseModel):
    """Request to fix issues of a completed analysis."""

    rule_ids: list[str] = Field(default_factory=list, description="Rules to fix, empty for all")
    create_pull_request: bool = False


class FixResultResponse(BaseModel):
    rule: str
    file: str
    line: int
    committed: bool
    branch: str | None = None
    original_content: str | None = None
    fixed_content: str | None = None


class FixRunResponse(BaseModel):
    id: UUID
    analysis_id: UUID
    repo_id: int
    repo_full_name: str
    branch: str
    status: str
    create_pull_request: bool
    issues_to_fix: list[dict[str, Any]]
    fixed_issues: list[FixResultResponse]
    fix_branch: str | None
    pull_request_url: str | None
    pull_request_number: int | None
    error: str | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    class Config:
        from_attributes = True


class FixListResponse(BaseModel):
    fixes: list[FixRunResponse]
    total: int


IssueSort = Literal["first_seen", "severity", "count"]
