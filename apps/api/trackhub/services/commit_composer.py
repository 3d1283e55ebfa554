"""
Commit Composer - Track-Hub

Writes a multi-file commit through the Git Data API:

    1. GET   git/ref/heads/{branch}      -> head SHA S0
    2. GET   git/commits/{S0}            -> base tree
    3. POST  git/trees (base_tree)       -> new tree with the changed paths
    4. POST  git/commits (parents=[S0])  -> new commit
    5. PATCH git/refs/heads/{branch}     -> fast-forward only

The host layers the submitted blobs onto the base tree, so untouched paths
keep their content. A rejected fast-forward (the branch moved after step 1)
reruns the whole sequence on the new head, up to COMMIT_MAX_ATTEMPTS.
Nothing is written locally; objects orphaned by a failed attempt are left
for the host's garbage collection.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trackhub.core.config import Settings
from trackhub.core.errors import (
    AuthenticationFailed,
    BranchNotFound,
    CommitFailed,
    Forbidden,
    TrackHubError,
)
from trackhub.monitoring.metrics import repository_commit_attempts, repository_commits_total
from trackhub.services.github import (
    GitHubAPIError,
    GitHubClient,
    GitHubClientFactory,
    parse_repo_url,
    resolve_github_token,
)
from trackhub.services.membership import MembershipGuard

logger = logging.getLogger(__name__)

FILE_MODE = "100644"

# Statuses the host answers when the ref is no longer a fast-forward
REF_CONFLICT_STATUSES = (409, 422)


@dataclass(frozen=True)
class FileChange:
    path: str
    content: str


class RefUpdateConflict(Exception):
    """The branch head moved between resolving it and updating it."""


def translate_commit_error(exc: GitHubAPIError) -> TrackHubError:
    if exc.status_code == 401:
        return AuthenticationFailed("Authentication failed. Please reconnect GitHub.")
    if exc.status_code == 403:
        return Forbidden("Insufficient permissions or rate limit exceeded.")
    if exc.status_code == 404:
        return BranchNotFound("Branch not found.")
    return CommitFailed("Commit failed due to invalid data or network error.")


async def _attempt(
    client: GitHubClient,
    owner: str,
    repo: str,
    branch: str,
    message: str,
    files: Sequence[FileChange],
) -> str:
    ref = await client.get_ref(owner, repo, branch)
    head_sha = ref["object"]["sha"]

    head = await client.get_git_commit(owner, repo, head_sha)
    base_tree = head["tree"]["sha"]

    tree = await client.create_tree(
        owner,
        repo,
        base_tree=base_tree,
        entries=[
            {"path": f.path, "mode": FILE_MODE, "type": "blob", "content": f.content}
            for f in files
        ],
    )
    commit = await client.create_commit(
        owner, repo, message=message, tree_sha=tree["sha"], parents=[head_sha]
    )

    try:
        await client.update_ref(owner, repo, branch, commit["sha"], force=False)
    except GitHubAPIError as exc:
        if exc.status_code in REF_CONFLICT_STATUSES:
            logger.info(
                f"Ref heads/{branch} moved from {head_sha}; retrying on the new head",
                extra={"owner": owner, "repo": repo},
            )
            raise RefUpdateConflict(exc.message) from exc
        raise
    return commit["sha"]


async def compose_commit(
    client: GitHubClient,
    owner: str,
    repo: str,
    branch: str,
    message: str,
    files: Sequence[FileChange],
    max_attempts: int = 3,
    backoff: float = 0.5,
) -> str:
    """Run the commit sequence with bounded retries on ref conflicts.

    Raises the domain error for any other host failure.
    """
    attempts = 0
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=backoff, max=backoff * 8),
            retry=retry_if_exception_type(RefUpdateConflict),
        ):
            with attempt:
                attempts += 1
                sha = await _attempt(client, owner, repo, branch, message, files)
    except RetryError as exc:
        repository_commits_total.labels(outcome="conflict").inc()
        logger.warning(
            f"Commit to {owner}/{repo}@{branch} gave up after {attempts} ref conflicts",
        )
        raise CommitFailed(
            "Commit failed: the branch kept moving. Please try again."
        ) from exc
    except GitHubAPIError as exc:
        error = translate_commit_error(exc)
        repository_commits_total.labels(outcome=type(error).__name__).inc()
        logger.warning(
            f"Commit to {owner}/{repo}@{branch} failed: {exc}",
            extra={"status_code": exc.status_code},
        )
        raise error from exc

    repository_commits_total.labels(outcome="committed").inc()
    repository_commit_attempts.observe(attempts)
    return sha


async def commit_files(
    session: AsyncSession,
    settings: Settings,
    client_factory: GitHubClientFactory,
    user_id: str,
    project_id: uuid.UUID,
    branch: str,
    message: str,
    files: Sequence[FileChange],
) -> str:
    """Authorize, resolve the project's token and push one commit. Returns its SHA."""
    project = await MembershipGuard(session).authorize_project(user_id, project_id)
    owner, repo = parse_repo_url(project.repo_url)
    token = resolve_github_token(project.github_token, settings.github_fallback_token)

    async with client_factory(token) as client:
        sha = await compose_commit(
            client,
            owner,
            repo,
            branch,
            message,
            files,
            max_attempts=settings.COMMIT_MAX_ATTEMPTS,
            backoff=settings.COMMIT_RETRY_BACKOFF,
        )

    logger.info(
        f"Pushed {sha} to {owner}/{repo}@{branch} ({len(files)} files)",
        extra={"user_id": user_id, "project_id": str(project_id)},
    )
    return sha
