"""
Status refresh sweep.

Re-checks every active (``tracking`` / ``interview``) job of a profile and
archives the ones whose posting has closed. Jobs are checked one at a time;
a job that cannot be checked is logged and skipped, it never stops the sweep.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import requests
from bs4 import BeautifulSoup

from jobpilot.config import Settings, load_settings
from jobpilot.errors import FetchError, JobPilotError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.models import ACTIVE_STATUSES, Job, Profile
from jobpilot.pipeline import ApplicationPipeline
from jobpilot.prompts import POSTING_STATUS, render
from jobpilot.sources.scrape import HEADERS

log = get_logger(__name__)

GONE_STATUSES = (404, 410)
PAGE_TEXT_CHARS = 8_000


@dataclass
class SweepResult:
    checked: int = 0
    archived: int = 0
    failed: int = 0

    @property
    def message(self) -> str:
        return f"Checked {self.checked} job(s): {self.archived} archived, {self.failed} failed."


def page_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "svg"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())[:PAGE_TEXT_CHARS]


def is_posting_closed(
    job: Job, credentials: CredentialProvider, llm: LLMClient, settings: Settings | None = None
) -> bool:
    settings = settings or load_settings()
    try:
        r = requests.get(job.url, headers=HEADERS, timeout=settings.http_timeout)
    except requests.RequestException as exc:
        raise FetchError(job.url, "Network error.") from exc
    if r.status_code in GONE_STATUSES:
        log.debug("%s answered %d, posting is gone", job.url, r.status_code)
        return True
    if not r.ok:
        raise FetchError(job.url, f"HTTP {r.status_code}.")

    prompt = render(POSTING_STATUS, jobTitle=job.title, jobCompany=job.company, page=page_text(r.text))
    answer = credentials.rotate_and_retry(lambda key: llm.complete(prompt, key))
    return answer.strip().upper().startswith("CLOSED")


def sweep(
    profile: Profile,
    pipeline: ApplicationPipeline,
    credentials: CredentialProvider,
    llm: LLMClient,
    on_progress: Callable[[str], None] | None = None,
    settings: Settings | None = None,
) -> SweepResult:
    settings = settings or load_settings()
    credentials.current()
    jobs = [
        j for j in pipeline.store.list_jobs(profile.owner_id, profile.id)
        if j.kanban_status in ACTIVE_STATUSES
    ]
    log.info("Sweeping %d active job(s) for profile %s", len(jobs), profile.id)

    result = SweepResult()
    for i, job in enumerate(jobs, 1):
        result.checked += 1
        try:
            if is_posting_closed(job, credentials, llm, settings):
                pipeline.archive_closed(job.id)
                result.archived += 1
                status = "closed, archived"
            else:
                status = "open"
        except JobPilotError as exc:
            log.warning("Could not check %s @ %s: %s", job.title, job.company, exc)
            result.failed += 1
            status = "check failed"
        if on_progress is not None:
            on_progress(f"[{i}/{len(jobs)}] {job.title} @ {job.company}: {status}")

    log.info(result.message)
    return result
