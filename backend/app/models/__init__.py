"""SQLAlchemy models."""

from app.models.analysis import AnalysisRun, FixRun, RunStatus

__all__ = [
    "AnalysisRun",
    "FixRun",
    "RunStatus",
]
