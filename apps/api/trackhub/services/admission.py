"""
Admission Controller - Track-Hub
Credits-gated project creation: price the repository in files, debit the
account atomically, create the project and membership in the same
transaction, then enqueue the commit poll and the repository index.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.config import Settings
from trackhub.core.errors import InsufficientCredits, NotFound
from trackhub.db.models import Project, User, UserToProject
from trackhub.monitoring.metrics import credits_debited_total, project_admissions_total
from trackhub.services.file_counter import FileCounter
from trackhub.services.github import (
    GitHubAPIError,
    parse_repo_url,
    resolve_github_token,
    translate_read_error,
)

logger = logging.getLogger(__name__)


class JobDispatcher(Protocol):
    def poll_commits(self, project_id: uuid.UUID) -> bool: ...

    def index_repository(self, project_id: uuid.UUID, repo_url: str) -> bool: ...


@dataclass
class CreditCheck:
    file_count: int
    credits: int


class AdmissionController:
    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        file_counter: FileCounter,
        jobs: JobDispatcher,
    ) -> None:
        self.session = session
        self.settings = settings
        self.file_counter = file_counter
        self.jobs = jobs

    # ────────────────────────────────────────────────
    # Pricing
    # ────────────────────────────────────────────────
    async def _price(self, repo_url: str, github_token: Optional[str]) -> tuple[int, str]:
        parse_repo_url(repo_url)
        token = resolve_github_token(github_token, self.settings.github_fallback_token)
        try:
            file_count = await self.file_counter(repo_url, token)
        except GitHubAPIError as exc:
            logger.warning(
                f"File count failed for {repo_url}: {exc}",
                extra={"status_code": exc.status_code},
            )
            raise translate_read_error(
                exc,
                upstream_message="Unable to fetch repository files.",
                auth_message="Invalid GitHub token (401 Bad credentials).",
                rate_limit_message="GitHub API rate limit exceeded. Please try again later.",
            ) from exc
        return file_count, token

    async def check_credits(
        self,
        user_id: str,
        repo_url: str,
        github_token: Optional[str] = None,
    ) -> CreditCheck:
        """Preview the cost of admitting a repository. No debit, no project."""
        file_count, _ = await self._price(repo_url, github_token)
        user = await self.session.get(User, user_id)
        return CreditCheck(file_count=file_count, credits=user.credits if user else 0)

    # ────────────────────────────────────────────────
    # Admission
    # ────────────────────────────────────────────────
    async def create_project(
        self,
        user_id: str,
        name: str,
        repo_url: str,
        github_token: Optional[str] = None,
    ) -> Project:
        user = await self.session.get(User, user_id)
        if user is None:
            project_admissions_total.labels(outcome="account_missing").inc()
            raise NotFound("Account not found")

        file_count, _ = await self._price(repo_url, github_token)

        if file_count > user.credits:
            project_admissions_total.labels(outcome="insufficient_credits").inc()
            raise InsufficientCredits(
                f"Insufficient credits: this repository needs {file_count}, "
                f"you have {user.credits}"
            )

        try:
            # Conditional decrement: a concurrent debit that drained the
            # balance since the read above makes this match zero rows.
            result = await self.session.execute(
                update(User)
                .where(User.id == user_id, User.credits >= file_count)
                .values(credits=User.credits - file_count)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InsufficientCredits("Insufficient credits")

            project = Project(
                name=name,
                repo_url=repo_url,
                github_token=github_token or None,
            )
            self.session.add(project)
            await self.session.flush()
            self.session.add(UserToProject(user_id=user_id, project_id=project.id))
            await self.session.commit()
        except InsufficientCredits:
            await self.session.rollback()
            project_admissions_total.labels(outcome="insufficient_credits").inc()
            raise
        except Exception:
            await self.session.rollback()
            project_admissions_total.labels(outcome="error").inc()
            raise

        await self.session.refresh(user)
        project_admissions_total.labels(outcome="admitted").inc()
        credits_debited_total.inc(file_count)
        logger.info(
            f"Project admitted: {project.id} ({file_count} credits)",
            extra={"user_id": user_id, "project_id": str(project.id), "file_count": file_count},
        )

        # Detached: neither job can fail the admission
        self.jobs.poll_commits(project.id)
        self.jobs.index_repository(project.id, repo_url)

        return project
