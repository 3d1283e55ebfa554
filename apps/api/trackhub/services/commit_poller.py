"""
Commit poller - Track-Hub
Pulls the latest commits of a project's repository into the commits table.
Hashes already stored are skipped, so re-polling is idempotent.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.ai.llm import llm_enabled
from trackhub.ai.summarizer import summarize_commit
from trackhub.core.config import settings
from trackhub.db.models import Commit, Project
from trackhub.services.github import (
    GitHubClient,
    GitHubClientFactory,
    default_client_factory,
    parse_repo_url,
    resolve_github_token,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _to_row(project_id: uuid.UUID, item: dict[str, Any]) -> dict[str, Any]:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    return {
        "project_id": project_id,
        "commit_hash": item["sha"],
        "commit_message": commit.get("message") or "",
        "author_name": author.get("name") or "unknown",
        "author_avatar": (item.get("author") or {}).get("avatar_url"),
        "committed_at": _parse_timestamp(author.get("date")),
    }


async def _summarize(
    client: GitHubClient,
    owner: str,
    repo: str,
    sha: str,
    summarize: Callable[[str], Awaitable[str]],
) -> str:
    diff = await client.get_commit_diff(owner, repo, sha)
    return await summarize(diff)


async def poll_commits(
    session: AsyncSession,
    project_id: uuid.UUID,
    client_factory: GitHubClientFactory = default_client_factory,
    summarize: Callable[[str], Awaitable[str]] | None = None,
) -> int:
    """Store unseen commits for the project. Returns how many were inserted.

    GitHubAPIError and ConfigurationError propagate to the caller (the
    Celery task decides whether to retry).
    """
    project = await session.get(Project, project_id)
    if project is None or project.deleted_at is not None:
        logger.info(f"Skipping commit poll for missing project {project_id}")
        return 0

    owner, repo = parse_repo_url(project.repo_url)
    token = resolve_github_token(project.github_token, settings.github_fallback_token)
    if summarize is None and llm_enabled():
        summarize = summarize_commit

    async with client_factory(token) as client:
        items = await client.list_commits(owner, repo, per_page=settings.COMMIT_POLL_LIMIT)
        items = items[: settings.COMMIT_POLL_LIMIT]

        hashes = [item["sha"] for item in items]
        existing = set(
            (
                await session.execute(
                    select(Commit.commit_hash).where(
                        Commit.project_id == project_id,
                        Commit.commit_hash.in_(hashes),
                    )
                )
            ).scalars()
        )

        seen: set[str] = set()
        fresh = []
        for item in items:
            sha = item["sha"]
            if sha in existing or sha in seen:
                continue
            seen.add(sha)
            fresh.append(item)

        summaries = [""] * len(fresh)
        if fresh and summarize is not None:
            results = await asyncio.gather(
                *(_summarize(client, owner, repo, item["sha"], summarize) for item in fresh),
                return_exceptions=True,
            )
            for index, result in enumerate(results):
                if isinstance(result, BaseException):
                    logger.warning(
                        f"Summary failed for commit {fresh[index]['sha']}: {result}",
                        extra={"project_id": str(project_id)},
                    )
                    continue
                summaries[index] = result or ""

    for item, summary in zip(fresh, summaries):
        session.add(Commit(**_to_row(project_id, item), summary=summary))
    await session.flush()

    logger.info(
        f"Polled {len(items)} commits, stored {len(fresh)} new",
        extra={"project_id": str(project_id)},
    )
    return len(fresh)
