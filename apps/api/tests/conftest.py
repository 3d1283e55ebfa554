"""
Test configuration and fixtures for the Track-Hub API test suite.

Environment is set before any trackhub import: settings are read once at
import time.
"""

import base64
import hashlib
import itertools
import json
import os
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

from cryptography.fernet import Fernet

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./trackhub-test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-1234")
os.environ.setdefault("FERNET_KEY", Fernet.generate_key().decode())
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("GITHUB_ACCESS_TOKEN", "server-fallback-token")
os.environ.setdefault("COMMIT_RETRY_BACKOFF", "0")
os.environ.pop("XAI_API_KEY", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from trackhub.db.models import Base, Project, User, UserToProject  # noqa: E402
from trackhub.services.github import GitHubClient  # noqa: E402

API_BASE = "https://api.github.test"
OWNER = "acme"
REPO = "widgets"
REPO_URL = f"https://github.com/{OWNER}/{REPO}"


# ────────────────────────────────────────────────
# In-memory GitHub host
# ────────────────────────────────────────────────

class FakeGitHost:
    """Git Data API for one repository, with fast-forward-only ref updates.

    Trees are flat {path: blob_sha} maps; that is enough for base_tree
    layering and recursive listings.
    """

    def __init__(self, valid_tokens=("server-fallback-token", "user-token")):
        self.valid_tokens = set(valid_tokens)
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.default_branch = "main"
        self.branches_per_page = 100
        self.before_ref_update: Optional[Callable[[str], None]] = None
        self.status_overrides: dict[tuple[str, str], int] = {}
        self._ids = itertools.count(1)

        root_commit = self.make_commit(
            {"README.md": "# widgets\n", "src/app.py": "print('hi')\n", "package-lock.json": "{}"},
            parents=[],
            message="initial commit",
        )
        self.refs["main"] = root_commit

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client_factory(self, token: str) -> GitHubClient:
        return GitHubClient(token, base_url=API_BASE, transport=self.transport)

    # ── object helpers ──

    def _sha(self, kind: str) -> str:
        return hashlib.sha1(f"{kind}-{next(self._ids)}".encode()).hexdigest()

    def make_blob(self, content: str) -> str:
        sha = self._sha("blob")
        self.blobs[sha] = content
        return sha

    def make_tree(self, files: dict[str, str], base: Optional[dict[str, str]] = None) -> str:
        entries = dict(base or {})
        for path, content in files.items():
            entries[path] = self.make_blob(content)
        sha = self._sha("tree")
        self.trees[sha] = entries
        return sha

    def make_commit(self, files: dict[str, str], parents: list[str], message: str) -> str:
        base = self.trees[self.commits[parents[0]]["tree"]] if parents else None
        tree = self.make_tree(files, base)
        sha = self._sha("commit")
        self.commits[sha] = {
            "tree": tree,
            "parents": parents,
            "message": message,
            "date": f"2024-01-{len(self.commits) + 1:02d}T12:00:00Z",
        }
        return sha

    def push(self, branch: str, files: dict[str, str], message: str = "concurrent") -> str:
        sha = self.make_commit(files, [self.refs[branch]], message)
        self.refs[branch] = sha
        return sha

    def read(self, branch: str, path: str) -> Optional[str]:
        tree = self.trees[self.commits[self.refs[branch]]["tree"]]
        blob = tree.get(path)
        return self.blobs[blob] if blob else None

    def is_ancestor(self, ancestor: str, sha: str) -> bool:
        stack = [sha]
        while stack:
            current = stack.pop()
            if current == ancestor:
                return True
            stack.extend(self.commits[current]["parents"])
        return False

    # ── HTTP ──

    def handler(self, request: httpx.Request) -> httpx.Response:
        # Percent-decoded, so escaped ref names map back to their keys
        path = request.url.path
        self.calls.append((request.method, path))

        token = request.headers.get("authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(401, json={"message": "Bad credentials"})

        override = self.status_overrides.get((request.method, path))
        if override:
            return httpx.Response(override, json={"message": "forced"})

        prefix = f"/repos/{OWNER}/{REPO}"
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        rest = path[len(prefix):]
        body = json.loads(request.content) if request.content else {}

        if request.method == "GET" and rest == "":
            return httpx.Response(200, json={"full_name": f"{OWNER}/{REPO}", "default_branch": self.default_branch})
        if request.method == "GET" and rest == "/branches":
            return self._branches(request)
        if request.method == "GET" and rest == "/commits":
            return self._list_commits(request)
        if request.method == "GET" and rest.startswith("/commits/"):
            sha = rest[len("/commits/"):]
            if sha not in self.commits:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, text=f"diff --git a/x b/x\n+{self.commits[sha]['message']}\n")
        if request.method == "GET" and rest.startswith("/git/ref/heads/"):
            branch = rest[len("/git/ref/heads/"):]
            if branch not in self.refs:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"ref": f"refs/heads/{branch}", "object": {"sha": self.refs[branch], "type": "commit"}})
        if request.method == "GET" and rest.startswith("/git/commits/"):
            sha = rest[len("/git/commits/"):]
            commit = self.commits.get(sha)
            if commit is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={
                "sha": sha,
                "tree": {"sha": commit["tree"]},
                "parents": [{"sha": p} for p in commit["parents"]],
                "message": commit["message"],
            })
        if request.method == "GET" and rest.startswith("/git/trees/"):
            ref = rest[len("/git/trees/"):]
            tree_sha = self.commits[self.refs[ref]]["tree"] if ref in self.refs else ref
            entries = self.trees.get(tree_sha)
            if entries is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={
                "sha": tree_sha,
                "truncated": False,
                "tree": [
                    {"path": p, "mode": "100644", "type": "blob", "sha": b, "size": len(self.blobs[b].encode())}
                    for p, b in sorted(entries.items())
                ],
            })
        if request.method == "GET" and rest.startswith("/git/blobs/"):
            sha = rest[len("/git/blobs/"):]
            if sha not in self.blobs:
                return httpx.Response(404, json={"message": "Not Found"})
            content = base64.b64encode(self.blobs[sha].encode()).decode()
            return httpx.Response(200, json={"sha": sha, "encoding": "base64", "content": content})
        if request.method == "POST" and rest == "/git/trees":
            base = self.trees.get(body["base_tree"])
            if base is None:
                return httpx.Response(422, json={"message": "Invalid base_tree"})
            files = {e["path"]: e["content"] for e in body["tree"]}
            return httpx.Response(201, json={"sha": self.make_tree(files, base)})
        if request.method == "POST" and rest == "/git/commits":
            if body["tree"] not in self.trees or any(p not in self.commits for p in body["parents"]):
                return httpx.Response(422, json={"message": "Invalid object"})
            sha = self._sha("commit")
            self.commits[sha] = {"tree": body["tree"], "parents": body["parents"], "message": body["message"], "date": "2024-02-01T00:00:00Z"}
            return httpx.Response(201, json={"sha": sha})
        if request.method == "PATCH" and rest.startswith("/git/refs/heads/"):
            branch = rest[len("/git/refs/heads/"):]
            if self.before_ref_update is not None:
                hook, self.before_ref_update = self.before_ref_update, None
                hook(branch)
            if branch not in self.refs:
                return httpx.Response(422, json={"message": "Reference does not exist"})
            if not body.get("force") and not self.is_ancestor(self.refs[branch], body["sha"]):
                return httpx.Response(422, json={"message": "Update is not a fast forward"})
            self.refs[branch] = body["sha"]
            return httpx.Response(200, json={"ref": f"refs/heads/{branch}", "object": {"sha": body["sha"]}})

        return httpx.Response(404, json={"message": "Not Found"})

    def _branches(self, request: httpx.Request) -> httpx.Response:
        names = list(self.refs)
        page = int(request.url.params.get("page", "1"))
        size = self.branches_per_page
        chunk = names[(page - 1) * size: page * size]
        headers = {}
        if page * size < len(names):
            headers["link"] = (
                f'<{API_BASE}/repos/{OWNER}/{REPO}/branches?per_page={size}&page={page + 1}>; rel="next", '
                f'<{API_BASE}/repos/{OWNER}/{REPO}/branches?per_page={size}&page=1>; rel="first"'
            )
        return httpx.Response(
            200,
            json=[{"name": n, "commit": {"sha": self.refs[n]}} for n in chunk],
            headers=headers,
        )

    def _list_commits(self, request: httpx.Request) -> httpx.Response:
        per_page = int(request.url.params.get("per_page", "30"))
        items = []
        sha: Optional[str] = self.refs[self.default_branch]
        while sha and len(items) < per_page:
            commit = self.commits[sha]
            items.append({
                "sha": sha,
                "commit": {
                    "message": commit["message"],
                    "author": {"name": "Octo Cat", "date": commit["date"]},
                },
                "author": {"avatar_url": "https://avatars.test/octocat"},
            })
            sha = commit["parents"][0] if commit["parents"] else None
        return httpx.Response(200, json=items)


# ────────────────────────────────────────────────
# Database
# ────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'trackhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def github():
    return FakeGitHost()


@pytest.fixture
def settings():
    from trackhub.core.config import get_settings

    return get_settings()


class RecordingJobs:
    """Job dispatcher double: records enqueues, optionally fails them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.polled: list = []
        self.indexed: list = []

    def poll_commits(self, project_id):
        self.polled.append(project_id)
        return not self.fail

    def index_repository(self, project_id, repo_url):
        self.indexed.append((project_id, repo_url))
        return not self.fail


@pytest.fixture
def jobs():
    return RecordingJobs()


@pytest.fixture(autouse=True)
def audit_task(monkeypatch):
    """Keep audit events off the broker; tests can assert on the mock."""
    from trackhub.services import audit

    task = MagicMock()
    monkeypatch.setattr(audit, "audit_log_task", task)
    return task


# ────────────────────────────────────────────────
# Data helpers
# ────────────────────────────────────────────────

async def add_user(session, user_id: str = "user-1", credits: int = 150, **fields) -> User:
    user = User(id=user_id, email=f"{user_id}@example.com", credits=credits, **fields)
    session.add(user)
    await session.commit()
    return user


async def add_project(
    session,
    members=("user-1",),
    repo_url: str = REPO_URL,
    github_token: Optional[str] = None,
    name: str = "Widgets",
) -> Project:
    project = Project(name=name, repo_url=repo_url, github_token=github_token)
    session.add(project)
    await session.flush()
    for user_id in members:
        session.add(UserToProject(user_id=user_id, project_id=project.id))
    await session.commit()
    return project


@pytest.fixture
def make_user(session):
    async def _make(user_id: str = "user-1", credits: int = 150, **fields):
        return await add_user(session, user_id, credits, **fields)

    return _make


@pytest.fixture
def make_project(session):
    async def _make(members=("user-1",), **kwargs):
        return await add_project(session, members, **kwargs)

    return _make
