"""Analysis and fix run models."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

ACTIVE_STATUS_SQL = "status IN ('pending', 'running')"


class RunStatus(str, Enum):
    """Lifecycle of analysis and fix runs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def active(cls) -> tuple["RunStatus", ...]:
        return (cls.PENDING, cls.RUNNING)


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable across PostgreSQL and SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AnalysisRun(Base):
    """One scan of a repository branch."""

    __tablename__ = "analysis_runs"
    __table_args__ = (
        # At most one pending/running analysis per repository
        Index(
            "uq_analysis_runs_active_repo",
            "repo_id",
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_SQL),
            sqlite_where=text(ACTIVE_STATUS_SQL),
        ),
        Index("ix_analysis_runs_repo_created", "repo_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    repo_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    repo_full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RunStatus.PENDING.value, nullable=False)

    issue_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    issues: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    file_count: Mapped[int | None] = mapped_column(Integer)
    files_scanned: Mapped[int | None] = mapped_column(Integer)
    error: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    heartbeat_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    fixes: Mapped[list["FixRun"]] = relationship("FixRun", back_populates="analysis")

    @property
    def owner_and_name(self) -> tuple[str, str]:
        owner, _, name = self.repo_full_name.partition("/")
        return owner, name

    @property
    def is_active(self) -> bool:
        return self.status in {s.value for s in RunStatus.active()}


class FixRun(Base):
    """One AI fix pass over issues of a completed analysis."""

    __tablename__ = "fix_runs"
    __table_args__ = (Index("ix_fix_runs_analysis_created", "analysis_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    analysis_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("analysis_runs.id", ondelete="CASCADE"), nullable=False
    )
    repo_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    repo_full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=RunStatus.PENDING.value, nullable=False)

    issues_to_fix: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    fixed_issues: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    create_pull_request: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fix_branch: Mapped[str | None] = mapped_column(String(255))
    pull_request_url: Mapped[str | None] = mapped_column(String(500))
    pull_request_number: Mapped[int | None] = mapped_column(Integer)
    error: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    heartbeat_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    analysis: Mapped["AnalysisRun"] = relationship("AnalysisRun", back_populates="fixes")

    @property
    def owner_and_name(self) -> tuple[str, str]:
        owner, _, name = self.repo_full_name.partition("/")
        return owner, name
