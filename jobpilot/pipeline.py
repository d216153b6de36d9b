"""
Application pipeline — the kanban state machine for tracked jobs.

    new ─▶ tracking ─▶ interview ─▶ offer
     └────────┴────────────┴─────────┴──▶ archive

Manual moves may go between any two statuses. Automated processes (reply
classification, the status sweep) never move a job out of ``archive``.
Every status change writes the new status and its ``status_change`` history
entry in a single store update.
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable

from jobpilot.cache import JobCache
from jobpilot.errors import ArchivedJobError, InvalidStatusError, JobNotFoundError
from jobpilot.log import get_logger
from jobpilot.models import (
    ARCHIVE,
    INFERABLE_STATUSES,
    KANBAN_STATUSES,
    NEW,
    STATUS_LABELS,
    TRACKING,
    Interaction,
    Job,
    Profile,
)
from jobpilot.storage import MemoryStore

log = get_logger(__name__)

MANUAL = "manual"
AUTOMATED = "automated"


def coerce_status(value: object) -> str:
    """Map an inferred status onto {tracking, interview, offer, archive}."""
    token = str(value or "").strip().strip("'\".").lower()
    if token in INFERABLE_STATUSES:
        return token
    log.warning("Unexpected status %r, defaulting to %r", value, TRACKING)
    return TRACKING


def status_change_text(status: str, note: str | None = None) -> str:
    text = f"Status changed to «{STATUS_LABELS[status]}»"
    return f"{text}. {note}" if note else text


class ApplicationPipeline:
    def __init__(self, store: MemoryStore, cache: JobCache | None = None) -> None:
        self.store = store
        self.cache = cache

    def get(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _write(self, job_id: str, updates: dict[str, Any]) -> None:
        if self.cache is not None:
            self.cache.apply_optimistic(job_id, updates)
        self.store.update_job(job_id, {
            k: ([asdict(h) for h in v] if k == "history" else v) for k, v in updates.items()
        })

    # ── tracking ────────────────────────────────────────────────────────

    def track(self, postings: Iterable[Job], profile: Profile) -> list[Job]:
        """Persist found postings for *profile* in one batch.

        Postings whose URL is already tracked for the profile, or repeated in
        the batch, are skipped. Tracked jobs start in ``new`` with no history.
        """
        existing = {j.url for j in self.store.list_jobs(profile.owner_id, profile.id) if j.url}
        batch: list[Job] = []
        for posting in postings:
            if not posting.url or posting.url in existing:
                log.debug("Skipping already tracked %s", posting.url)
                continue
            existing.add(posting.url)
            batch.append(posting.copy(
                kanban_status=NEW,
                history=[],
                profile_id=profile.id,
                user_id=profile.owner_id,
            ))
        if batch:
            self.store.add_jobs_batch(batch)
        log.info("Tracked %d posting(s) for profile %s", len(batch), profile.id)
        return batch

    # ── transitions ─────────────────────────────────────────────────────

    def set_status(self, job_id: str, status: str, *, origin: str = MANUAL, note: str | None = None) -> Job:
        """Move a job to *status* and append exactly one ``status_change`` entry.

        Moving a job to the status it already has changes nothing.
        """
        if status not in KANBAN_STATUSES:
            raise InvalidStatusError(status)
        job = self.get(job_id)
        if job.kanban_status == status:
            return job
        if origin != MANUAL and job.kanban_status == ARCHIVE:
            raise ArchivedJobError(job_id)

        entry = Interaction.create("status_change", status_change_text(status, note))
        history = [*job.history, entry]
        self._write(job_id, {"kanban_status": status, "history": history})
        log.info("Job %s: %s → %s (%s)", job_id, job.kanban_status, status, origin)
        return job.copy(kanban_status=status, history=history)

    def promote_after_apply(self, job_id: str) -> Job:
        """A successful quick-apply moves a ``new`` job to ``tracking``."""
        job = self.get(job_id)
        if job.kanban_status != NEW:
            return job
        return self.set_status(job_id, TRACKING, origin=AUTOMATED, note="Application sent")

    def archive_closed(self, job_id: str, note: str = "The posting is no longer active") -> Job:
        return self.set_status(job_id, ARCHIVE, origin=AUTOMATED, note=note)

    # ── history ─────────────────────────────────────────────────────────

    def record_interaction(self, job_id: str, type: str, content: str) -> Job | None:
        """Append a non-status history entry; failures are logged, not raised."""
        try:
            job = self.get(job_id)
            history = [*job.history, Interaction.create(type, content)]
            self._write(job_id, {"history": history})
            return job.copy(history=history)
        except Exception as exc:
            log.error("Could not append %s to job %s: %s", type, job_id, exc)
            return None

    def add_note(self, job_id: str, text: str) -> Job | None:
        return self.record_interaction(job_id, "note", text)

    def set_notes(self, job_id: str, notes: str) -> None:
        self.get(job_id)
        self._write(job_id, {"notes": notes})
