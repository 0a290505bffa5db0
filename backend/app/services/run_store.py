"""Persistence for analysis and fix runs."""

import uuid
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.analysis import AnalysisRun, FixRun, RunStatus

ACTIVE = [status.value for status in RunStatus.active()]
Run = AnalysisRun | FixRun


def as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    """Accept run ids as UUIDs or their string form (as sent through Celery)."""
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


class RunStore:
    """Reads and writes run records on a single async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Analysis runs

    async def create_analysis(
        self,
        repo_id: int,
        repo_full_name: str,
        branch: str,
        user_id: str,
    ) -> AnalysisRun:
        """Insert a pending analysis run.

        Raises ``IntegrityError`` when the repository already has an active
        run; the session must be rolled back by the caller.
        """
        run = AnalysisRun(
            repo_id=repo_id,
            repo_full_name=repo_full_name,
            branch=branch,
            user_id=user_id,
            status=RunStatus.PENDING.value,
        )
        self.db.add(run)
        await self.db.commit()
        await self.db.refresh(run)
        return run

    async def update_analysis(self, run: AnalysisRun, **changes: Any) -> AnalysisRun:
        for field, value in changes.items():
            setattr(run, field, value)
        await self.db.commit()
        return run

    async def get_analysis(self, run_id: uuid.UUID | str, user_id: str | None = None) -> AnalysisRun | None:
        stmt = select(AnalysisRun).where(AnalysisRun.id == as_uuid(run_id))
        if user_id is not None:
            stmt = stmt.where(AnalysisRun.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active_analysis(self, repo_id: int) -> AnalysisRun | None:
        result = await self.db.execute(
            select(AnalysisRun)
            .where(AnalysisRun.repo_id == repo_id)
            .where(AnalysisRun.status.in_(ACTIVE))
        )
        return result.scalars().first()

    async def list_analyses(self, repo_id: int, user_id: str) -> list[AnalysisRun]:
        result = await self.db.execute(
            select(AnalysisRun)
            .where(AnalysisRun.repo_id == repo_id)
            .where(AnalysisRun.user_id == user_id)
            .order_by(AnalysisRun.created_at.desc())
        )
        return list(result.scalars().all())

    # Fix runs

    async def create_fix(self, analysis: AnalysisRun, issues_to_fix: list[dict], create_pull_request: bool) -> FixRun:
        fix = FixRun(
            analysis_id=analysis.id,
            repo_id=analysis.repo_id,
            repo_full_name=analysis.repo_full_name,
            branch=analysis.branch,
            user_id=analysis.user_id,
            status=RunStatus.PENDING.value,
            issues_to_fix=issues_to_fix,
            fixed_issues=[],
            create_pull_request=create_pull_request,
        )
        self.db.add(fix)
        await self.db.commit()
        await self.db.refresh(fix)
        return fix

    async def get_fix(self, fix_id: uuid.UUID | str, user_id: str | None = None) -> FixRun | None:
        stmt = select(FixRun).where(FixRun.id == as_uuid(fix_id))
        if user_id is not None:
            stmt = stmt.where(FixRun.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_fixes(self, analysis_id: uuid.UUID | str, user_id: str) -> list[FixRun]:
        result = await self.db.execute(
            select(FixRun)
            .where(FixRun.analysis_id == as_uuid(analysis_id))
            .where(FixRun.user_id == user_id)
            .order_by(FixRun.created_at.desc())
        )
        return list(result.scalars().all())

    # Leases

    async def stale_runs(self, cutoff: datetime) -> tuple[list[AnalysisRun], list[FixRun]]:
        """Active runs whose last sign of life is older than ``cutoff``."""
        analyses = await self.db.execute(
            select(AnalysisRun)
            .where(AnalysisRun.status.in_(ACTIVE))
            .where(func.coalesce(AnalysisRun.heartbeat_at, AnalysisRun.created_at) < cutoff)
        )
        fixes = await self.db.execute(
            select(FixRun)
            .where(FixRun.status.in_(ACTIVE))
            .where(func.coalesce(FixRun.heartbeat_at, FixRun.created_at) < cutoff)
        )
        return list(analyses.scalars().all()), list(fixes.scalars().all())

    # Status transitions

    async def transition(
        self,
        run: Run,
        expected: Iterable[RunStatus],
        stale_before: datetime | None = None,
        **values: Any,
    ) -> bool:
        """Write ``values`` only if the stored run is still in an ``expected`` status.

        The check and the write are one UPDATE, so a worker and the reaper can
        never both move a run to a terminal status. ``stale_before`` further
        requires the last sign of life to be older than the given time. The
        in-memory run is reloaded either way; returns whether the row changed.
        """
        model = type(run)
        stmt = (
            update(model)
            .where(model.id == run.id)
            .where(model.status.in_([status.value for status in expected]))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if stale_before is not None:
            stmt = stmt.where(func.coalesce(model.heartbeat_at, model.created_at) < stale_before)
        result = await self.db.execute(stmt)
        await self.db.commit()
        await self.db.refresh(run)
        return result.rowcount == 1
