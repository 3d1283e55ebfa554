"""GitHub REST API client.

Async httpx client for the endpoints Track-Hub uses: repository metadata,
recursive trees and blobs (file counting / indexing), branches and commits
(listing), and the Git Data API (tree → commit → ref) for writing commits.

Errors are raised as GitHubAPIError carrying the HTTP status; services map
them onto the domain error taxonomy.

Reference: https://docs.github.com/en/rest
"""

import logging
import re
from typing import Any, Callable
from urllib.parse import quote, urlparse

import httpx

from trackhub.core.config import settings
from trackhub.core.errors import (
    AuthenticationFailed,
    ConfigurationError,
    InvalidRepository,
    RateLimited,
    TrackHubError,
    UpstreamError,
)
from trackhub.monitoring.metrics import github_requests_total

logger = logging.getLogger(__name__)

_NEXT_LINK = re.compile(r'\s*<([^>]+)>;\s*rel="next"')


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    status_code is None for transport failures (timeouts, DNS, resets).
    """

    def __init__(self, status_code: int | None, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"GitHub API error {status_code}: {message}")


# ────────────────────────────────────────────────
# Coordinates / credentials
# ────────────────────────────────────────────────

def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Return (owner, repo) from the last two path segments of a repository URL.

    Raises InvalidRepository when fewer than two segments are present.
    """
    path = urlparse(repo_url.strip()).path if "://" in repo_url else repo_url.strip()
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        raise InvalidRepository("Invalid repository URL")

    owner, repo = segments[-2], segments[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        raise InvalidRepository("Invalid repository URL")
    return owner, repo


def _escape_ref(name: str) -> str:
    """Percent-encode a ref name for a URL path; "/" separates ref components."""
    return quote(name, safe="/")


def resolve_github_token(explicit: str | None, fallback: str | None) -> str:
    token = explicit or fallback
    if not token:
        raise ConfigurationError("No GitHub token provided or configured.")
    return token


# ────────────────────────────────────────────────
# Client
# ────────────────────────────────────────────────

class GitHubClient:
    """GitHub REST API client using httpx with Bearer token auth.

    Example:
        >>> async with GitHubClient("ghp_token") as client:
        ...     branches = await client.list_branches("octocat", "hello-world")
    """

    BASE_URL = "https://api.github.com"

    CONNECT_TIMEOUT = 5.0
    READ_TIMEOUT = 30.0
    WRITE_TIMEOUT = 10.0
    POOL_TIMEOUT = 5.0

    DEFAULT_PER_PAGE = 100

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "trackhub-api/1.0",
            },
            timeout=httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT,
            ),
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # --- Repository reads ---

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def get_tree(
        self, owner: str, repo: str, tree_sha: str, recursive: bool = False
    ) -> dict[str, Any]:
        params = {"recursive": "1"} if recursive else None
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{_escape_ref(tree_sha)}", params=params
        )

    async def get_blob(self, owner: str, repo: str, blob_sha: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{blob_sha}")

    async def list_branches(self, owner: str, repo: str) -> list[dict[str, Any]]:
        """All branches, following Link rel="next" pages in host order."""
        return await self._paginate(f"/repos/{owner}/{repo}/branches")

    async def list_commits(
        self, owner: str, repo: str, per_page: int = 10
    ) -> list[dict[str, Any]]:
        """Latest commits on the default branch (single page, newest first)."""
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/commits", params={"per_page": str(per_page)}
        )

    async def get_commit_diff(self, owner: str, repo: str, sha: str) -> str:
        response = await self._raw_request(
            "GET",
            f"/repos/{owner}/{repo}/commits/{sha}",
            headers={"Accept": "application/vnd.github.diff"},
        )
        return response.text

    # --- Git Data API ---

    async def get_ref(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/repos/{owner}/{repo}/git/ref/heads/{_escape_ref(branch)}"
        )

    async def get_git_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        return await self._request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")

    async def create_tree(
        self,
        owner: str,
        repo: str,
        base_tree: str,
        entries: list[dict[str, Any]],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/trees",
            json={"base_tree": base_tree, "tree": entries},
        )

    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: list[str],
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )

    async def update_ref(
        self,
        owner: str,
        repo: str,
        branch: str,
        sha: str,
        force: bool = False,
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{_escape_ref(branch)}",
            json={"sha": sha, "force": force},
        )

    # --- Transport ---

    async def _raw_request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request; non-2xx and transport failures raise GitHubAPIError."""
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            github_requests_total.labels(method=method, status_class="timeout").inc()
            raise GitHubAPIError(None, f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            github_requests_total.labels(method=method, status_class="transport").inc()
            raise GitHubAPIError(None, f"HTTP error: {e}") from e

        github_requests_total.labels(
            method=method, status_class=f"{response.status_code // 100}xx"
        ).inc()

        if response.is_success:
            return response

        try:
            error_body = response.json() if response.content else {}
        except ValueError:
            error_body = {}
        message = error_body.get("message") if isinstance(error_body, dict) else None
        logger.info(
            f"GitHub {method} {path} -> {response.status_code}",
            extra={"status_code": response.status_code},
        )
        raise GitHubAPIError(response.status_code, message or response.text or "Unknown error")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._raw_request(method, path, **kwargs)
        if not response.content:
            return {}
        return response.json()

    async def _paginate(
        self,
        path: str,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        all_items: list[dict[str, Any]] = []
        request_params = {**(params or {}), "per_page": str(self.DEFAULT_PER_PAGE)}
        url: str | None = path

        while url:
            response = await self._raw_request("GET", url, params=request_params)
            page = response.json()
            if isinstance(page, list):
                all_items.extend(page)

            url = self._parse_next_link(response.headers.get("link", ""))
            # The next link already carries the query string
            request_params = None

        return all_items

    def _parse_next_link(self, link_header: str) -> str | None:
        """Extract the rel="next" URL from a Link header.

        Absolute URLs are accepted only when they point at this client's
        base URL, so a crafted header cannot redirect the bearer token.
        """
        if not link_header:
            return None
        for part in link_header.split(","):
            match = _NEXT_LINK.match(part)
            if not match:
                continue
            next_url = match.group(1)
            if next_url.startswith(self.base_url):
                return next_url
            if next_url.startswith("/"):
                return next_url
            logger.warning("Ignoring pagination link outside the API base URL")
            return None
        return None


# ────────────────────────────────────────────────
# Error translation (read paths)
# ────────────────────────────────────────────────

def translate_read_error(
    exc: GitHubAPIError,
    upstream_message: str,
    auth_message: str = "GitHub authentication failed",
    rate_limit_message: str = "GitHub rate limit exceeded",
) -> TrackHubError:
    """401 → AuthenticationFailed, 403 → RateLimited, anything else → UpstreamError."""
    if exc.status_code == 401:
        return AuthenticationFailed(auth_message)
    if exc.status_code == 403:
        return RateLimited(rate_limit_message)
    return UpstreamError(upstream_message)


# ────────────────────────────────────────────────
# Factory (overridable in tests)
# ────────────────────────────────────────────────

GitHubClientFactory = Callable[[str], GitHubClient]


def default_client_factory(token: str) -> GitHubClient:
    return GitHubClient(token, base_url=settings.GITHUB_API_URL)
