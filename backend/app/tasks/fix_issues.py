"""AI fix Celery task."""

import asyncio
import logging

from app.celery_app import celery_app
from app.config import get_settings
from app.database import create_engine_for
from app.services.auth_service import AuthService
from app.services.fix_service import FixService
from app.services.github_service import GitHubService
from app.tasks.analyze_repo import get_async_session

logger = logging.getLogger(__name__)
settings = get_settings()


async def apply_fixes_async(fix_id: str, sealed_token: str) -> str:
    github = GitHubService(AuthService().open_github_token(sealed_token))
    engine = create_engine_for(settings.database_url, pool_size=5)
    session_factory = get_async_session(engine)
    try:
        async with session_factory() as db:
            service = FixService(db)
            fix = await service.run_fix(fix_id, github)
            return fix.status
    finally:
        await engine.dispose()


@celery_app.task
def apply_fixes(fix_id: str, sealed_token: str) -> str:
    """Celery task entrypoint for fix runs."""
    logger.info("Fix task received for run %s", fix_id)
    try:
        return asyncio.run(apply_fixes_async(fix_id, sealed_token))
    except Exception as exc:
        logger.error("Fix task failed for run %s: %s", fix_id, exc)
        raise
