"""
Request / response schemas for the Track-Hub API (pydantic v2).
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from trackhub.db.models import MeetingStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ────────────────────────────────────────────────
# Accounts
# ────────────────────────────────────────────────
class AccountSync(BaseModel):
    email: EmailStr
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=1024)


class AccountOut(ORMModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    credits: int


class MemberAccount(ORMModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None


# ────────────────────────────────────────────────
# Projects
# ────────────────────────────────────────────────
_http_url = TypeAdapter(HttpUrl)


def _repository_url(v: str) -> str:
    """Require an absolute http(s) URL; the stored value stays as submitted."""
    v = v.strip()
    try:
        _http_url.validate_python(v)
    except ValidationError:
        raise ValueError("must be an absolute http(s) URL") from None
    return v


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    repo_url: str = Field(min_length=1, max_length=1024)
    github_token: Optional[str] = None

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("repo_url")
    @classmethod
    def valid_repo_url(cls, v: str) -> str:
        return _repository_url(v)


class CreditCheckRequest(BaseModel):
    repo_url: str = Field(min_length=1, max_length=1024)
    github_token: Optional[str] = None

    @field_validator("repo_url")
    @classmethod
    def valid_repo_url(cls, v: str) -> str:
        return _repository_url(v)


class CreditCheckOut(BaseModel):
    file_count: int
    credits: int


class ProjectOut(ORMModel):
    id: uuid.UUID
    name: str
    repo_url: str
    created_at: datetime


class MemberOut(ORMModel):
    id: uuid.UUID
    user_id: str
    project_id: uuid.UUID
    user: MemberAccount


class CommitOut(ORMModel):
    id: uuid.UUID
    commit_hash: str
    commit_message: str
    author_name: str
    author_avatar: Optional[str] = None
    committed_at: datetime
    summary: str


class GitHubTokenIn(BaseModel):
    token: str = Field(min_length=1)


# ────────────────────────────────────────────────
# Repository writes
# ────────────────────────────────────────────────
class FileChangeIn(BaseModel):
    path: str = Field(min_length=1)
    content: str

    @field_validator("path")
    @classmethod
    def relative_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("path must not be blank")
        if v.startswith("/"):
            raise ValueError("path must be relative to the repository root")
        return v


class CommitRequest(BaseModel):
    branch: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    files: List[FileChangeIn] = Field(min_length=1)

    @field_validator("files")
    @classmethod
    def unique_paths(cls, v: List[FileChangeIn]) -> List[FileChangeIn]:
        paths = [f.path for f in v]
        if len(paths) != len(set(paths)):
            raise ValueError("each path may appear only once per commit")
        return v


class CommitResult(BaseModel):
    sha: str


# ────────────────────────────────────────────────
# Q&A
# ────────────────────────────────────────────────
class AnswerIn(BaseModel):
    question: str = Field(min_length=1)
    answer: str
    files_references: Optional[Any] = None


class QuestionOut(ORMModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: str
    question: str
    answer: str
    files_references: Optional[Any] = None
    files_references_version: int
    created_at: datetime


class QuestionWithAuthor(QuestionOut):
    user: MemberAccount


# ────────────────────────────────────────────────
# Meetings
# ────────────────────────────────────────────────
class MeetingIn(BaseModel):
    meeting_url: str = Field(min_length=1, max_length=2048)
    name: str = Field(min_length=1, max_length=255)


class IssueOut(ORMModel):
    id: uuid.UUID
    start: str
    end: str
    gist: str
    headline: str
    summary: str


class MeetingOut(ORMModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    meeting_url: str
    status: MeetingStatus
    created_at: datetime
    issues: List[IssueOut] = []


# ────────────────────────────────────────────────
# Billing
# ────────────────────────────────────────────────
class CreditsOut(BaseModel):
    credits: int


class CheckoutRequest(BaseModel):
    credits: int = Field(ge=1, le=100_000)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutOut(BaseModel):
    session_id: str
    url: str


class PurchaseOut(ORMModel):
    id: uuid.UUID
    credits: int
    stripe_session_id: str
    amount_total: int
    currency: str
    created_at: datetime
