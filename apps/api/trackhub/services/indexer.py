"""
Repository indexer - Track-Hub
Loads the indexable files of a repository's default branch into
source_files, replacing the project's previous index.
"""

import asyncio
import base64
import logging
import uuid
from typing import Any, Awaitable, Callable

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.ai.llm import llm_enabled
from trackhub.ai.summarizer import summarize_code
from trackhub.core.config import settings
from trackhub.db.models import SourceFile
from trackhub.services.file_counter import indexable_blobs, load_default_tree
from trackhub.services.github import (
    GitHubClient,
    GitHubClientFactory,
    default_client_factory,
    parse_repo_url,
)

logger = logging.getLogger(__name__)

MAX_CONCURRENT_BLOBS = 8


def decode_blob(blob: dict[str, Any]) -> str | None:
    """Text content of a blob, or None for binary data."""
    raw = blob.get("content") or ""
    if blob.get("encoding") == "base64":
        try:
            data = base64.b64decode(raw)
        except ValueError:
            return None
    else:
        data = raw.encode()
    if b"\x00" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


async def _load_file(
    client: GitHubClient,
    owner: str,
    repo: str,
    entry: dict[str, Any],
    semaphore: asyncio.Semaphore,
) -> tuple[str, str] | None:
    async with semaphore:
        blob = await client.get_blob(owner, repo, entry["sha"])
    text = decode_blob(blob)
    if text is None:
        logger.debug(f"Skipping binary file {entry['path']}")
        return None
    return entry["path"], text


async def index_github_repo(
    session: AsyncSession,
    project_id: uuid.UUID,
    repo_url: str,
    token: str,
    client_factory: GitHubClientFactory = default_client_factory,
    summarize: Callable[[str, str], Awaitable[str]] | None = None,
) -> int:
    """Replace the project's SourceFile rows. Returns the number indexed.

    Runs inside the caller's transaction, so a failure leaves the previous
    index intact.
    """
    owner, repo = parse_repo_url(repo_url)
    if summarize is None and llm_enabled():
        summarize = summarize_code

    async with client_factory(token) as client:
        tree = await load_default_tree(client, owner, repo)
        entries = [
            entry
            for entry in indexable_blobs(tree, settings.INDEX_IGNORED_FILES)
            if (entry.get("size") or 0) <= settings.INDEX_MAX_FILE_BYTES
        ]
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_BLOBS)
        loaded = await asyncio.gather(
            *(_load_file(client, owner, repo, entry, semaphore) for entry in entries)
        )

    files = [item for item in loaded if item is not None]

    summaries = [""] * len(files)
    if summarize is not None and files:
        summaries = await asyncio.gather(*(summarize(name, code) for name, code in files))

    await session.execute(delete(SourceFile).where(SourceFile.project_id == project_id))
    session.add_all(
        SourceFile(
            project_id=project_id,
            file_name=name,
            source_code=code,
            summary=summary or "",
        )
        for (name, code), summary in zip(files, summaries)
    )
    await session.flush()

    logger.info(
        f"Indexed {len(files)} of {len(entries)} files for {owner}/{repo}",
        extra={"project_id": str(project_id)},
    )
    return len(files)
