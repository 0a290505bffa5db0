"""Analysis run coordination: start, execute, report and reap scans."""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.analyzers import AggregatedIssue, RawIssue, Severity, aggregate, count_files, scan
from app.config import get_settings
from app.exceptions import ActiveAnalysisExists, AnalysisNotFound
from app.models.analysis import AnalysisRun, RunStatus, utcnow
from app.services.github_service import GitHubService
from app.services.run_store import RunStore
from app.services.tree_walker import TreeWalker

logger = logging.getLogger(__name__)
settings = get_settings()

ISSUE_SORTS = ("first_seen", "severity", "count")


@dataclass
class IssuePage:
    items: list[AggregatedIssue]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.total else 0


def sort_issues(issues: list[AggregatedIssue], sort: str) -> list[AggregatedIssue]:
    """Order aggregated issues for display. Sorting is stable."""
    if sort == "first_seen":
        return list(issues)
    if sort == "severity":
        return sorted(issues, key=lambda issue: (issue.severity.priority, -issue.count))
    if sort == "count":
        return sorted(issues, key=lambda issue: -issue.count)
    raise ValueError(f"Unknown sort '{sort}', expected one of {', '.join(ISSUE_SORTS)}")


class AnalysisService:
    """Owns the lifecycle of analysis runs."""

    def __init__(
        self,
        db: AsyncSession,
        max_depth: int | None = None,
        heartbeat_every: int | None = None,
    ):
        self.db = db
        self.store = RunStore(db)
        self.max_depth = max_depth or settings.scan_max_depth
        self.heartbeat_every = heartbeat_every or settings.scan_heartbeat_every

    async def start_analysis(
        self,
        repo_id: int,
        repo_full_name: str,
        branch: str,
        user_id: str,
    ) -> AnalysisRun:
        """Record a pending analysis for the repository.

        Raises:
            ActiveAnalysisExists: another analysis is pending or running
        """
        # A conflicting run can finish between the insert and the lookup, so
        # the insert is tried once more before giving up.
        for attempt in range(2):
            try:
                run = await self.store.create_analysis(repo_id, repo_full_name, branch, user_id)
                break
            except IntegrityError:
                await self.db.rollback()
                existing = await self.store.find_active_analysis(repo_id)
                if existing is not None:
                    raise ActiveAnalysisExists(existing) from None
                if attempt:
                    raise
        logger.info("Queued analysis %s for %s@%s", run.id, repo_full_name, branch)
        return run

    async def run_analysis(self, run_id: uuid.UUID | str, github: GitHubService) -> AnalysisRun:
        """Scan the run's branch and store the aggregated report.

        Failures are recorded on the run rather than raised. A run failed by
        the reaper while this worker was busy keeps its failed status and the
        late results are dropped.
        """
        run = await self.store.get_analysis(run_id)
        if run is None:
            raise AnalysisNotFound(run_id)

        now = utcnow()
        started = await self.store.transition(
            run,
            (RunStatus.PENDING,),
            status=RunStatus.RUNNING.value,
            started_at=now,
            heartbeat_at=now,
        )
        if not started:
            logger.warning("Analysis %s is already %s, not running it again", run.id, run.status)
            return run
        logger.info("Analysis %s started for %s@%s", run.id, run.repo_full_name, run.branch)

        owner, name = run.owner_and_name
        walker = TreeWalker(github, max_depth=self.max_depth)
        raw_issues: list[RawIssue] = []
        files_scanned = 0
        try:
            async for source_file in walker.walk(owner, name, run.branch):
                raw_issues.extend(scan(source_file.content, source_file.path, source_file.language))
                files_scanned += 1
                if files_scanned % self.heartbeat_every == 0:
                    alive = await self.store.transition(
                        run,
                        (RunStatus.RUNNING,),
                        heartbeat_at=utcnow(),
                        files_scanned=files_scanned,
                    )
                    if not alive:
                        logger.warning("Analysis %s was %s while scanning, stopping", run.id, run.status)
                        return run

            issues = aggregate(raw_issues)
            finished = utcnow()
            completed = await self.store.transition(
                run,
                (RunStatus.RUNNING,),
                status=RunStatus.COMPLETED.value,
                issues=[issue.to_dict() for issue in issues],
                issue_count=len(raw_issues),
                file_count=count_files(raw_issues),
                files_scanned=files_scanned,
                heartbeat_at=finished,
                completed_at=finished,
            )
            if not completed:
                logger.warning("Analysis %s was %s before it finished, dropping results", run.id, run.status)
                return run
            logger.info(
                "Analysis %s completed: %d issues in %d files (%d scanned, %d failed, %d directories skipped)",
                run.id,
                run.issue_count,
                run.file_count,
                files_scanned,
                walker.files_failed,
                walker.directories_skipped,
            )
        except Exception as exc:
            logger.exception("Analysis %s failed: %s", run_id, exc)
            await self.db.rollback()
            run = await self.store.get_analysis(run_id)
            failed = await self.store.transition(
                run,
                (RunStatus.RUNNING,),
                status=RunStatus.FAILED.value,
                error=str(exc) or exc.__class__.__name__,
                files_scanned=files_scanned,
                completed_at=utcnow(),
            )
            if not failed:
                logger.warning("Analysis %s was already %s", run.id, run.status)
        return run

    async def get_run(self, run_id: uuid.UUID | str, user_id: str) -> AnalysisRun:
        run = await self.store.get_analysis(run_id, user_id=user_id)
        if run is None:
            raise AnalysisNotFound(run_id)
        return run

    async def list_runs(self, repo_id: int, user_id: str) -> list[AnalysisRun]:
        return await self.store.list_analyses(repo_id, user_id)

    async def get_issue_page(
        self,
        run_id: uuid.UUID | str,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        severity: str | None = None,
        ruleset: str | None = None,
        sort: str = "first_seen",
    ) -> IssuePage:
        """Filter, sort and slice the stored report of a run."""
        run = await self.get_run(run_id, user_id)
        issues = [AggregatedIssue.from_dict(data) for data in run.issues or []]

        if severity:
            wanted = Severity(severity.upper())
            issues = [issue for issue in issues if issue.severity == wanted]
        if ruleset:
            issues = [issue for issue in issues if issue.ruleset == ruleset]

        issues = sort_issues(issues, sort)
        start = (page - 1) * page_size
        return IssuePage(
            items=issues[start:start + page_size],
            total=len(issues),
            page=page,
            page_size=page_size,
        )

    async def reap_stale_runs(self, stale_after: timedelta | None = None) -> int:
        """Fail analysis and fix runs that stopped reporting progress.

        Each run is re-checked when it is written, so a run that finished or
        reported progress since the lookup is left alone. Returns the number
        of runs marked as failed.
        """
        stale_after = stale_after or timedelta(minutes=settings.run_stale_after_minutes)
        now = utcnow()
        cutoff = now - stale_after
        analyses, fixes = await self.store.stale_runs(cutoff)

        reaped = 0
        for run in [*analyses, *fixes]:
            last_seen = run.heartbeat_at or run.created_at
            failed = await self.store.transition(
                run,
                RunStatus.active(),
                stale_before=cutoff,
                status=RunStatus.FAILED.value,
                error=f"Run abandoned: no progress since {last_seen.isoformat()}",
                completed_at=now,
            )
            if failed:
                reaped += 1
                logger.warning("Reaped stale %s %s for %s", run.__tablename__, run.id, run.repo_full_name)
        return reaped
