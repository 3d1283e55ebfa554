"""
Repository file counter - Track-Hub
Prices a repository in credits: one credit per indexable file on the
default branch. Deterministic for an unchanged repository.
"""

import logging
import posixpath
from typing import Any, Awaitable, Callable, Iterable

from trackhub.core.config import settings
from trackhub.services.github import (
    GitHubClient,
    GitHubClientFactory,
    default_client_factory,
    parse_repo_url,
)

logger = logging.getLogger(__name__)

FileCounter = Callable[[str, str], Awaitable[int]]


def indexable_blobs(tree: dict[str, Any], ignored: Iterable[str]) -> list[dict[str, Any]]:
    """Blob entries of a recursive tree, minus lock files and other ignored names."""
    ignored = set(ignored)
    return [
        entry
        for entry in tree.get("tree", [])
        if entry.get("type") == "blob"
        and posixpath.basename(entry.get("path", "")) not in ignored
    ]


async def load_default_tree(client: GitHubClient, owner: str, repo: str) -> dict[str, Any]:
    repository = await client.get_repository(owner, repo)
    branch = repository.get("default_branch") or "main"
    tree = await client.get_tree(owner, repo, branch, recursive=True)
    if tree.get("truncated"):
        logger.warning(
            f"Recursive tree truncated for {owner}/{repo}",
            extra={"owner": owner, "repo": repo},
        )
    return tree


class RepositoryFileCounter:
    """Callable file-count oracle: await counter(repo_url, token) -> int.

    GitHubAPIError propagates; callers translate it.
    """

    def __init__(self, client_factory: GitHubClientFactory = default_client_factory) -> None:
        self.client_factory = client_factory

    async def __call__(self, repo_url: str, token: str) -> int:
        owner, repo = parse_repo_url(repo_url)
        async with self.client_factory(token) as client:
            tree = await load_default_tree(client, owner, repo)
        count = len(indexable_blobs(tree, settings.INDEX_IGNORED_FILES))
        logger.info(f"Counted {count} files in {owner}/{repo}")
        return count
