# apps/api/trackhub/ai/summarizer.py
"""
Commit and source summaries for the commit poller and repository indexer.
Summaries are best effort: failures are logged and yield "".
"""

import logging

from trackhub.ai.llm import complete

logger = logging.getLogger(__name__)

MAX_DIFF_CHARS = 12_000
MAX_SOURCE_CHARS = 10_000

COMMIT_PROMPT = (
    "You are an expert programmer summarizing a git diff. "
    "Reply with at most four short bullet points describing what changed and why it matters. "
    "Mention file names when useful. Do not repeat the diff."
)

CODE_PROMPT = (
    "You are a senior engineer onboarding a junior engineer onto a codebase. "
    "Explain the purpose of the given file in no more than 100 words."
)


async def summarize_commit(diff: str) -> str:
    try:
        summary = await complete(COMMIT_PROMPT, diff[:MAX_DIFF_CHARS])
    except Exception as exc:
        logger.warning(f"Commit summary failed: {exc}")
        return ""
    return summary or ""


async def summarize_code(file_name: str, source_code: str) -> str:
    try:
        summary = await complete(
            CODE_PROMPT,
            f"File: {file_name}\n\n{source_code[:MAX_SOURCE_CHARS]}",
        )
    except Exception as exc:
        logger.warning(f"Code summary failed for {file_name}: {exc}")
        return ""
    return summary or ""
