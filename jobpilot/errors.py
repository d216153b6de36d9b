"""Exception hierarchy.

Every error carries a message that is safe to show to the user as-is; the
underlying provider exception, when there is one, is chained as ``__cause__``.
"""
from __future__ import annotations


class JobPilotError(Exception):
    """Base class for all errors raised by jobpilot."""


# ── Configuration (raised before any network call) ──────────────────────


class ConfigurationError(JobPilotError):
    pass


class MissingCredentialError(ConfigurationError):
    def __init__(self, what: str = "LLM API key") -> None:
        super().__init__(f"{what} is not configured. Add it in the profile settings.")
        self.what = what


class NoActivePlatformsError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("No active platforms. Enable at least one platform in the search settings.")


class ProfileNotFoundError(ConfigurationError):
    def __init__(self, profile_id: str) -> None:
        super().__init__(f"Profile {profile_id!r} not found.")
        self.profile_id = profile_id


# ── Transient provider errors ───────────────────────────────────────────


class ProviderError(JobPilotError):
    pass


class QuotaExceededError(ProviderError):
    def __init__(self, message: str = "The request limit for the current API key is exhausted.") -> None:
        super().__init__(message)


class MalformedResponseError(ProviderError):
    def __init__(self, context: str) -> None:
        super().__init__(f"Could not parse the AI response as JSON for: {context}.")
        self.context = context


class FetchError(ProviderError):
    def __init__(self, source: str, detail: str = "") -> None:
        msg = f"Could not load postings from {source}."
        if detail:
            msg = f"{msg} {detail}"
        super().__init__(msg)
        self.source = source


# ── Pipeline ────────────────────────────────────────────────────────────


class PipelineError(JobPilotError):
    pass


class InvalidStatusError(PipelineError):
    def __init__(self, status: object) -> None:
        super().__init__(f"Unknown kanban status: {status!r}.")
        self.status = status


class ArchivedJobError(PipelineError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} is archived; only a manual move can bring it back.")
        self.job_id = job_id


class JobNotFoundError(PipelineError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job {job_id} not found.")
        self.job_id = job_id


class MissingContactError(PipelineError):
    def __init__(self, channel: str) -> None:
        super().__init__(f"The posting has no contact for {channel}.")
        self.channel = channel


# ── Persistence ─────────────────────────────────────────────────────────


class PersistenceError(JobPilotError):
    pass
