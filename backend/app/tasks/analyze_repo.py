"""Repository analysis Celery tasks."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.celery_app import celery_app
from app.config import get_settings
from app.database import create_engine_for
from app.services.analysis_service import AnalysisService
from app.services.auth_service import AuthService
from app.services.github_service import GitHubService

logger = logging.getLogger(__name__)
settings = get_settings()


def get_async_session(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory for use in tasks.

    Each task runs in its own event loop, so it cannot share the API engine.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def analyze_repository_async(run_id: str, sealed_token: str) -> str:
    github = GitHubService(AuthService().open_github_token(sealed_token))
    engine = create_engine_for(settings.database_url, pool_size=5)
    session_factory = get_async_session(engine)
    try:
        async with session_factory() as db:
            service = AnalysisService(db)
            run = await service.run_analysis(run_id, github)
            return run.status
    finally:
        await engine.dispose()


async def reap_stale_runs_async() -> int:
    engine = create_engine_for(settings.database_url, pool_size=5)
    session_factory = get_async_session(engine)
    try:
        async with session_factory() as db:
            return await AnalysisService(db).reap_stale_runs()
    finally:
        await engine.dispose()


@celery_app.task
def analyze_repository(run_id: str, sealed_token: str) -> str:
    """Celery task entrypoint for analyses.

    ``sealed_token`` is the user's GitHub token encrypted by
    ``AuthService.seal_github_token``. Scan failures are stored on the run;
    they are not retried.
    """
    logger.info("Analysis task received for run %s", run_id)
    try:
        return asyncio.run(analyze_repository_async(run_id, sealed_token))
    except Exception as exc:
        logger.error("Analysis task failed for run %s: %s", run_id, exc)
        raise


@celery_app.task
def reap_stale_runs() -> int:
    """Periodic task failing runs whose worker stopped reporting progress."""
    reaped = asyncio.run(reap_stale_runs_async())
    if reaped:
        logger.warning("Marked %d stale runs as failed", reaped)
    return reaped
