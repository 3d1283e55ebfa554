"""End-to-end request tests through the ASGI app (no lifespan, no broker)."""

import hashlib
import hmac
import json
import time

import httpx
import pytest
import pytest_asyncio
from pydantic import SecretStr

from trackhub.core.deps import get_github_client_factory, get_job_dispatcher
from trackhub.core.security import create_access_token
from trackhub.db.session import get_db
from trackhub.main import create_app

from conftest import REPO_URL


def auth(user_id="user-1"):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def api(session_factory, github, jobs):
    app = create_app()

    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_github_client_factory] = lambda: github.client_factory
    app.dependency_overrides[get_job_dispatcher] = lambda: jobs

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health_and_metrics(api):
    health = await api.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"

    metrics = await api.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


@pytest.mark.asyncio
async def test_requests_without_a_token_are_rejected(api):
    assert (await api.get("/projects")).status_code == 401
    assert (await api.get("/projects", headers={"Authorization": "Bearer garbage"})).status_code == 401


@pytest.mark.asyncio
async def test_sign_in_then_create_project(api, jobs, audit_task):
    synced = await api.post("/users/me", json={"email": "ada@trackhub.dev", "first_name": "Ada"}, headers=auth())
    assert synced.status_code == 200
    assert synced.json()["credits"] == 150

    preview = await api.post("/projects/check-credits", json={"repo_url": REPO_URL}, headers=auth())
    assert preview.json() == {"file_count": 2, "credits": 150}

    created = await api.post(
        "/projects", json={"name": "Widgets", "repo_url": REPO_URL}, headers=auth()
    )
    assert created.status_code == 201
    project_id = created.json()["id"]

    listed = await api.get("/projects", headers=auth())
    assert [p["id"] for p in listed.json()] == [project_id]
    assert (await api.get("/billing/credits", headers=auth())).json() == {"credits": 148}
    assert [str(p) for p in jobs.polled] == [project_id]
    assert audit_task.delay.call_args.kwargs["action"] == "project_created"


@pytest.mark.asyncio
async def test_insufficient_credits_is_payment_required(api, make_user):
    await make_user(credits=1)

    response = await api.post(
        "/projects", json={"name": "Widgets", "repo_url": REPO_URL}, headers=auth()
    )

    assert response.status_code == 402
    assert response.json() == {"detail": "Insufficient credits: this repository needs 2, you have 1"}
    assert (await api.get("/projects", headers=auth())).json() == []


@pytest.mark.asyncio
async def test_commit_endpoint(api, github, make_user, make_project):
    await make_user()
    project = await make_project(github_token="user-token")

    response = await api.post(
        f"/projects/{project.id}/repository/commits",
        json={"branch": "main", "message": "Add notes", "files": [{"path": "NOTES.md", "content": "hi"}]},
        headers=auth(),
    )

    assert response.status_code == 201
    assert response.json() == {"sha": github.refs["main"]}
    assert github.read("main", "NOTES.md") == "hi"

    branches = await api.get(f"/projects/{project.id}/repository/branches", headers=auth())
    assert branches.json() == ["main"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "files",
    [
        [],
        [{"path": "/etc/passwd", "content": "x"}],
        [{"path": "a.txt", "content": "1"}, {"path": "a.txt", "content": "2"}],
    ],
)
async def test_invalid_commit_payloads(api, github, make_user, make_project, files):
    await make_user()
    project = await make_project(github_token="user-token")

    response = await api.post(
        f"/projects/{project.id}/repository/commits",
        json={"branch": "main", "message": "x", "files": files},
        headers=auth(),
    )

    assert response.status_code == 422
    assert github.calls == []


@pytest.mark.asyncio
async def test_non_members_get_forbidden(api, make_user, make_project):
    await make_user("user-1")
    await make_user("user-2")
    project = await make_project(members=("user-1",))

    response = await api.get(f"/projects/{project.id}/members", headers=auth("user-2"))

    assert response.status_code == 403
    assert response.json() == {"detail": "You are not a member of this project"}


@pytest.mark.asyncio
async def test_commit_history_read_survives_enqueue_failure(api, make_user, make_project, jobs):
    jobs.fail = True
    await make_user()
    project = await make_project()

    response = await api.get(f"/projects/{project.id}/commits", headers=auth())

    assert response.status_code == 200
    assert response.json() == []
    assert jobs.polled == [project.id]


@pytest.mark.asyncio
@pytest.mark.parametrize("repo_url", ["acme/widgets", "foo bar/baz", "ftp://github.com/acme/widgets", "  "])
async def test_repository_url_must_be_an_http_url(api, github, make_user, repo_url):
    await make_user()

    created = await api.post("/projects", json={"name": "Widgets", "repo_url": repo_url}, headers=auth())
    preview = await api.post("/projects/check-credits", json={"repo_url": repo_url}, headers=auth())

    assert created.status_code == 422
    assert preview.status_code == 422
    assert github.calls == []
    assert (await api.get("/projects", headers=auth())).json() == []


# ────────────────────────────────────────────────
# Stripe webhook
# ────────────────────────────────────────────────

WEBHOOK_SECRET = "whsec_trackhub_test"


def signed(payload: bytes, secret: str = WEBHOOK_SECRET) -> dict:
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
    ).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={digest}", "Content-Type": "application/json"}


def checkout_completed(user_id="user-1", credits=40, session_id="cs_test_hook") -> bytes:
    return json.dumps({
        "id": "evt_test_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": "paid",
                "amount_total": credits * 2,
                "currency": "usd",
                "client_reference_id": user_id,
                "metadata": {"user_id": user_id, "credits": str(credits)},
            }
        },
    }).encode()


@pytest.fixture
def webhook_secret(settings, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", SecretStr(WEBHOOK_SECRET))


@pytest.mark.asyncio
async def test_signed_webhook_credits_once(api, make_user, webhook_secret, audit_task):
    await make_user(credits=10)
    payload = checkout_completed()

    first = await api.post("/billing/webhook", content=payload, headers=signed(payload))
    redelivered = await api.post("/billing/webhook", content=payload, headers=signed(payload))

    assert first.json() == {"received": True, "fulfilled": True}
    assert redelivered.json() == {"received": True, "fulfilled": False}
    assert (await api.get("/billing/credits", headers=auth())).json() == {"credits": 50}
    purchases = (await api.get("/billing/purchases", headers=auth())).json()
    assert [p["stripe_session_id"] for p in purchases] == ["cs_test_hook"]
    assert audit_task.delay.call_args.kwargs["action"] == "credits_purchased"


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signatures(api, make_user, webhook_secret):
    await make_user(credits=10)
    payload = checkout_completed()

    forged = await api.post("/billing/webhook", content=payload, headers=signed(payload, "whsec_wrong"))
    unsigned = await api.post("/billing/webhook", content=payload, headers={"Content-Type": "application/json"})

    assert forged.status_code == 400
    assert forged.json() == {"detail": "Invalid webhook signature"}
    assert unsigned.status_code == 400
    assert (await api.get("/billing/credits", headers=auth())).json() == {"credits": 10}


@pytest.mark.asyncio
async def test_webhook_for_unknown_account_is_acknowledged(api, make_user, webhook_secret):
    await make_user(credits=10)
    payload = checkout_completed(user_id="ghost")

    response = await api.post("/billing/webhook", content=payload, headers=signed(payload))

    assert response.status_code == 200
    assert response.json() == {"received": True, "fulfilled": False}


@pytest.mark.asyncio
async def test_other_webhook_events_are_ignored(api, webhook_secret):
    payload = json.dumps({"id": "evt_2", "object": "event", "type": "invoice.paid", "data": {"object": {}}}).encode()

    response = await api.post("/billing/webhook", content=payload, headers=signed(payload))

    assert response.json() == {"received": True}
