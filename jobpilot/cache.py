"""Read-through view of tracked jobs with optimistic local writes.

The live subscription is the source of truth: every snapshot replaces the
local state, so an optimistic write the backend rejected simply disappears
when the next snapshot arrives.
"""
from __future__ import annotations

from typing import Any

from jobpilot.log import get_logger
from jobpilot.models import Job

log = get_logger(__name__)


class JobCache:
    def __init__(self) -> None:
        self._confirmed: dict[str, Job] = {}
        self._pending: dict[str, dict[str, Any]] = {}
        self.snapshots = 0

    def reconcile(self, snapshot: list[Job]) -> None:
        """Adopt *snapshot* wholesale and drop every pending optimistic write."""
        if self._pending:
            log.debug("Snapshot supersedes %d pending local write(s)", len(self._pending))
        self._confirmed = {job.id: job for job in snapshot}
        self._pending.clear()
        self.snapshots += 1

    # Usable directly as a store subscription callback
    __call__ = reconcile

    def apply_optimistic(self, job_id: str, updates: dict[str, Any]) -> None:
        self._pending.setdefault(job_id, {}).update(updates)

    def get(self, job_id: str) -> Job | None:
        job = self._confirmed.get(job_id)
        if job is None:
            return None
        pending = self._pending.get(job_id)
        return job.copy(**pending) if pending else job

    def jobs(self, profile_id: str | None = None) -> list[Job]:
        out = [self.get(job_id) for job_id in self._confirmed]
        return [j for j in out if j is not None and (profile_id is None or j.profile_id == profile_id)]

    def tracked_urls(self, profile_id: str) -> set[str]:
        return {j.url for j in self.jobs(profile_id) if j.url}
