"""
Branch Lister - Track-Hub
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.config import Settings
from trackhub.services.github import (
    GitHubAPIError,
    GitHubClientFactory,
    parse_repo_url,
    resolve_github_token,
    translate_read_error,
)
from trackhub.services.membership import MembershipGuard

logger = logging.getLogger(__name__)


async def list_branches(
    session: AsyncSession,
    settings: Settings,
    client_factory: GitHubClientFactory,
    user_id: str,
    project_id: uuid.UUID,
) -> list[str]:
    """Branch names of the project's repository, in host order.

    Coordinates are validated before any remote call is made.
    """
    project = await MembershipGuard(session).authorize_project(user_id, project_id)
    owner, repo = parse_repo_url(project.repo_url)
    token = resolve_github_token(project.github_token, settings.github_fallback_token)

    try:
        async with client_factory(token) as client:
            branches = await client.list_branches(owner, repo)
    except GitHubAPIError as exc:
        logger.warning(
            f"Branch listing failed for {owner}/{repo}: {exc}",
            extra={"project_id": str(project_id), "status_code": exc.status_code},
        )
        raise translate_read_error(exc, upstream_message="Unable to fetch branches") from exc

    return [branch["name"] for branch in branches]
