"""
Background job dispatch - Track-Hub
Fire-and-forget enqueueing of Celery tasks. An enqueue failure (broker down,
serialization error) is logged and counted, never raised into the request.
"""

import logging
import uuid

from trackhub.monitoring.metrics import background_jobs_total
from trackhub.tasks.repository import index_repository_task, poll_commits_task

logger = logging.getLogger(__name__)


class BackgroundJobs:
    """Enqueues the commit poll and repository index for a project."""

    def poll_commits(self, project_id: uuid.UUID) -> bool:
        return self._enqueue("poll_commits", poll_commits_task, str(project_id))

    def index_repository(self, project_id: uuid.UUID, repo_url: str) -> bool:
        return self._enqueue("index_repository", index_repository_task, str(project_id), repo_url)

    def _enqueue(self, job: str, task, *args) -> bool:
        try:
            task.delay(*args)
        except Exception as exc:
            background_jobs_total.labels(job=job, outcome="enqueue_failed").inc()
            logger.error(
                f"Failed to enqueue {job}: {exc}",
                exc_info=True,
                extra={"job": job, "task_args": list(args)},
            )
            return False
        background_jobs_total.labels(job=job, outcome="enqueued").inc()
        return True
