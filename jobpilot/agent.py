"""
Job search agent.

Wires settings, storage, the LLM and the platform adapters together and runs
the end-to-end flows for one profile: search → rank → track, reply scanning,
the status sweep and quick apply.
"""
from __future__ import annotations

from typing import Callable, Iterator

from jobpilot.classifier import ReplyOutcome, scan_inbox
from jobpilot.config import Settings, ensure_dirs, load_settings
from jobpilot.errors import MissingCredentialError, ProfileNotFoundError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.mail import GmailClient
from jobpilot.models import Job, Profile
from jobpilot.outreach import QuickApplyResult, adapt_resume, interview_questions, quick_apply
from jobpilot.pipeline import ApplicationPipeline
from jobpilot.ranking import filter_by_rating, rank
from jobpilot.search import SearchProgress, run_search
from jobpilot.sources import get_adapters
from jobpilot.storage import JsonFileStore, MemoryStore
from jobpilot.sweep import SweepResult, sweep

log = get_logger(__name__)


class Agent:
    def __init__(
        self,
        settings: Settings | None = None,
        store: MemoryStore | None = None,
        llm: LLMClient | None = None,
        adapters: dict | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        if store is None:
            ensure_dirs()
            store = JsonFileStore(self.settings.store_path)
        self.store = store
        self.llm = llm or LLMClient(self.settings)
        self.adapters = adapters if adapters is not None else get_adapters(self.llm, self.settings)
        self.pipeline = ApplicationPipeline(self.store)

    # ── profiles ────────────────────────────────────────────────────────

    def profile(self, profile_id: str | None = None) -> Profile:
        """Return the requested profile, or the owner's first one."""
        profiles = self.store.list_profiles(self.settings.owner_id)
        if profile_id is None and profiles:
            return profiles[0]
        for p in profiles:
            if p.id == profile_id or p.name == profile_id:
                return p
        raise ProfileNotFoundError(profile_id or "(none)")

    def credentials(self, profile: Profile) -> CredentialProvider:
        """Credential provider that persists rotations back to the store.

        Keys from the environment serve profiles that have none of their own.
        Only the active index is written back, never the keys.
        """

        def persist(p: Profile) -> None:
            if self.store.get_profile(p.id) is not None:
                self.store.update_profile_fields(p.id, {"active_key_index": p.active_key_index})

        return CredentialProvider(profile, on_rotate=persist, fallback_keys=self.settings.fallback_api_keys)

    # ── flows ───────────────────────────────────────────────────────────

    def search(
        self, profile: Profile, on_progress: Callable[[SearchProgress], None] | None = None
    ) -> list[Job]:
        credentials = self.credentials(profile)
        tracked = {j.url for j in self.store.list_jobs(profile.owner_id, profile.id) if j.url}
        result = run_search(profile, tracked, credentials, self.adapters, on_progress=on_progress)
        postings = filter_by_rating(result.results, profile.settings.min_company_rating)
        return rank(postings, profile, credentials, self.llm)

    def track(self, postings: list[Job], profile: Profile) -> list[Job]:
        return self.pipeline.track(postings, profile)

    def _mail(self) -> GmailClient:
        if not self.settings.gmail_token:
            raise MissingCredentialError("Gmail access token (GMAIL_TOKEN)")
        return GmailClient(self.settings.gmail_token, self.settings.http_timeout)

    def scan_replies(self, profile: Profile, limit: int = 10) -> list[ReplyOutcome]:
        return scan_inbox(self._mail(), profile, self.pipeline, self.credentials(profile), self.llm, limit)

    def refresh_statuses(
        self, profile: Profile, on_progress: Callable[[str], None] | None = None
    ) -> SweepResult:
        return sweep(profile, self.pipeline, self.credentials(profile), self.llm, on_progress, self.settings)

    def quick_apply(self, job_id: str, channel: str, profile: Profile) -> QuickApplyResult:
        job = self.pipeline.get(job_id)
        mail = self._mail() if self.settings.gmail_token and self.settings.gmail_address else None
        return quick_apply(
            channel, job, profile, self.pipeline, self.credentials(profile), self.llm,
            mail=mail, sender=self.settings.gmail_address or None,
        )

    def adapt_resume(self, job_id: str, profile: Profile) -> Iterator[str]:
        return adapt_resume(self.pipeline.get(job_id), profile, self.credentials(profile), self.llm)

    def interview_questions(self, job_id: str, profile: Profile) -> Iterator[str]:
        return interview_questions(self.pipeline.get(job_id), profile, self.credentials(profile), self.llm)
