import pytest

from trackhub.core.errors import (
    AuthenticationFailed,
    InvalidRepository,
    NotFound,
    RateLimited,
    Unauthorized,
    UpstreamError,
)
from trackhub.services.branches import list_branches
from trackhub.services.github import parse_repo_url

from conftest import OWNER, REPO


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://github.com/acme/widgets", ("acme", "widgets")),
        ("https://github.com/acme/widgets/", ("acme", "widgets")),
        ("https://github.com/acme/widgets.git", ("acme", "widgets")),
        ("acme/widgets", ("acme", "widgets")),
    ],
)
def test_parse_repo_url(url, expected):
    assert parse_repo_url(url) == expected


@pytest.mark.parametrize("url", ["https://github.com/acme", "https://github.com/", "widgets", ""])
def test_parse_repo_url_rejects_short_paths(url):
    with pytest.raises(InvalidRepository):
        parse_repo_url(url)


@pytest.mark.asyncio
async def test_lists_branches_in_host_order_across_pages(
    session, settings, github, make_user, make_project
):
    await make_user()
    project = await make_project(github_token="user-token")
    for name in ["develop", "feature/a", "feature/b", "release"]:
        github.refs[name] = github.refs["main"]
    github.branches_per_page = 2

    branches = await list_branches(session, settings, github.client_factory, "user-1", project.id)

    assert branches == ["main", "develop", "feature/a", "feature/b", "release"]
    assert len([c for c in github.calls if c[1].endswith("/branches")]) == 3


@pytest.mark.asyncio
async def test_invalid_repository_fails_before_any_remote_call(
    session, settings, github, make_user, make_project
):
    await make_user()
    project = await make_project(repo_url="https://github.com/acme", github_token="user-token")

    with pytest.raises(InvalidRepository):
        await list_branches(session, settings, github.client_factory, "user-1", project.id)
    assert github.calls == []


@pytest.mark.asyncio
async def test_host_errors_are_translated(session, settings, github, make_user, make_project):
    await make_user()
    project = await make_project(github_token="revoked-token")

    with pytest.raises(AuthenticationFailed):
        await list_branches(session, settings, github.client_factory, "user-1", project.id)

    project.github_token = "user-token"
    await session.commit()
    github.status_overrides[("GET", f"/repos/{OWNER}/{REPO}/branches")] = 403
    with pytest.raises(RateLimited):
        await list_branches(session, settings, github.client_factory, "user-1", project.id)

    github.status_overrides[("GET", f"/repos/{OWNER}/{REPO}/branches")] = 502
    with pytest.raises(UpstreamError):
        await list_branches(session, settings, github.client_factory, "user-1", project.id)


@pytest.mark.asyncio
async def test_transport_failure_is_upstream_error(session, settings, make_user, make_project):
    import httpx

    from trackhub.services.github import GitHubClient

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    def factory(token):
        return GitHubClient(token, base_url="https://api.github.test", transport=httpx.MockTransport(unreachable))

    await make_user()
    project = await make_project(github_token="user-token")

    with pytest.raises(UpstreamError):
        await list_branches(session, settings, factory, "user-1", project.id)


@pytest.mark.asyncio
async def test_requires_membership_and_live_project(session, settings, github, make_user, make_project):
    await make_user("user-1")
    project = await make_project(members=("user-1",), github_token="user-token")

    with pytest.raises(Unauthorized):
        await list_branches(session, settings, github.client_factory, "user-2", project.id)

    project.soft_delete()
    await session.commit()
    with pytest.raises(NotFound):
        await list_branches(session, settings, github.client_factory, "user-1", project.id)
