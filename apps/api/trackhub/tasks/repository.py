# apps/api/trackhub/tasks/repository.py
"""
Celery repository tasks for Track-Hub
Commit-history polling and repository indexing, enqueued after a project
is admitted (and on every commit-list read for polling).
"""

import asyncio
import logging
import uuid

from celery import shared_task

from trackhub.core.config import settings
from trackhub.core.errors import ConfigurationError, InvalidRepository
from trackhub.db.models import Project
from trackhub.db.session import task_session
from trackhub.monitoring.metrics import background_jobs_total
from trackhub.services.commit_poller import poll_commits
from trackhub.services.github import GitHubAPIError, resolve_github_token
from trackhub.services.indexer import index_github_repo
from trackhub.tasks.celery_app import celery_app  # noqa: F401  current app for shared_task

logger = logging.getLogger(__name__)

# Retrying cannot fix these
PERMANENT_ERRORS = (ConfigurationError, InvalidRepository)


def _is_permanent(exc: Exception) -> bool:
    if isinstance(exc, PERMANENT_ERRORS):
        return True
    return isinstance(exc, GitHubAPIError) and exc.status_code in (401, 404)


async def _poll(project_id: str) -> int:
    async with task_session() as session:
        return await poll_commits(session, uuid.UUID(project_id))


async def _index(project_id: str, repo_url: str) -> int:
    async with task_session() as session:
        project = await session.get(Project, uuid.UUID(project_id))
        if project is None or project.deleted_at is not None:
            logger.info(f"Skipping index for missing project {project_id}")
            return 0
        token = resolve_github_token(project.github_token, settings.github_fallback_token)
        return await index_github_repo(session, project.id, repo_url, token)


@shared_task(
    bind=True,
    name="trackhub.tasks.repository.poll_commits",
    max_retries=3,
    default_retry_delay=30,
    retry_backoff=True,
    retry_jitter=True,
    acks_late=True,
)
def poll_commits_task(self, project_id: str) -> int:
    """Store the latest unseen commits of a project's repository."""
    try:
        stored = asyncio.run(_poll(project_id))
    except Exception as exc:
        if _is_permanent(exc):
            background_jobs_total.labels(job="poll_commits", outcome="failed").inc()
            logger.warning(f"Commit poll for {project_id} failed permanently: {exc}")
            return 0
        background_jobs_total.labels(job="poll_commits", outcome="retry").inc()
        logger.exception(f"Commit poll for {project_id} failed")
        raise self.retry(exc=exc)

    background_jobs_total.labels(job="poll_commits", outcome="succeeded").inc()
    return stored


@shared_task(
    bind=True,
    name="trackhub.tasks.repository.index_repository",
    max_retries=3,
    default_retry_delay=60,
    retry_backoff=True,
    retry_jitter=True,
    acks_late=True,
)
def index_repository_task(self, project_id: str, repo_url: str) -> int:
    """Index a repository's files. The token is read from the project row."""
    try:
        indexed = asyncio.run(_index(project_id, repo_url))
    except Exception as exc:
        if _is_permanent(exc):
            background_jobs_total.labels(job="index_repository", outcome="failed").inc()
            logger.warning(f"Indexing {repo_url} for {project_id} failed permanently: {exc}")
            return 0
        background_jobs_total.labels(job="index_repository", outcome="retry").inc()
        logger.exception(f"Indexing {repo_url} for {project_id} failed")
        raise self.retry(exc=exc)

    background_jobs_total.labels(job="index_repository", outcome="succeeded").inc()
    return indexed
