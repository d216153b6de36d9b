"""Match an HR email to a tracked job, then infer the job's new status.

Two separate LLM calls: the match phase sees the email plus a compact
id/title/company listing of tracked jobs; the status phase sees only the
email. An email that matches no job is a normal outcome (``None``), not an
error, and leaves the pipeline untouched.
"""
from __future__ import annotations

import json
from dataclasses import dataclass

from jobpilot.errors import ArchivedJobError, JobPilotError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.mail import GmailClient
from jobpilot.models import STATUS_LABELS, Email, Job, Profile
from jobpilot.pipeline import AUTOMATED, ApplicationPipeline, coerce_status
from jobpilot.prompts import UNKNOWN_JOB

log = get_logger(__name__)


@dataclass
class Classification:
    job_id: str
    new_status: str


@dataclass
class ReplyOutcome:
    email_id: str
    subject: str
    job_id: str | None = None
    new_status: str | None = None
    applied: bool = False
    message: str = ""


def match_email_to_job(
    email_text: str, jobs: list[Job], profile: Profile, credentials: CredentialProvider, llm: LLMClient
) -> str:
    """Return the id of the job the email is about, or ``UNKNOWN``."""
    if not jobs:
        return UNKNOWN_JOB
    listing = [{"id": j.id, "title": j.title, "company": j.company} for j in jobs]
    prompt = (
        f"{profile.prompts.email_job_match}\n\n## Email:\n{email_text}"
        f"\n\n## Postings:\n{json.dumps(listing, ensure_ascii=False, indent=2)}"
    )
    answer = credentials.rotate_and_retry(lambda key: llm.complete(prompt, key))
    answer = answer.strip().strip("'\"` ")
    if any(j.id == answer for j in jobs):
        return answer
    if answer.upper() != UNKNOWN_JOB:
        log.warning("LLM returned an unknown job id %r", answer[:80])
    return UNKNOWN_JOB


def infer_status(email_text: str, profile: Profile, credentials: CredentialProvider, llm: LLMClient) -> str:
    prompt = f"{profile.prompts.hr_response_analysis}\n{email_text}"
    answer = credentials.rotate_and_retry(lambda key: llm.complete(prompt, key))
    return coerce_status(answer)


def classify(
    email_text: str, jobs: list[Job], profile: Profile, credentials: CredentialProvider, llm: LLMClient
) -> Classification | None:
    job_id = match_email_to_job(email_text, jobs, profile, credentials, llm)
    if job_id == UNKNOWN_JOB:
        log.info("Email matches no tracked job")
        return None
    return Classification(job_id=job_id, new_status=infer_status(email_text, profile, credentials, llm))


def apply_reply(
    email_text: str,
    profile: Profile,
    pipeline: ApplicationPipeline,
    credentials: CredentialProvider,
    llm: LLMClient,
) -> Classification | None:
    """Classify an HR reply and move the matched job; ``None`` when nothing matched."""
    jobs = pipeline.store.list_jobs(profile.owner_id, profile.id)
    result = classify(email_text, jobs, profile, credentials, llm)
    if result is not None:
        pipeline.set_status(result.job_id, result.new_status, origin=AUTOMATED, note="Inferred from an HR email")
    return result


def scan_inbox(
    mail: GmailClient,
    profile: Profile,
    pipeline: ApplicationPipeline,
    credentials: CredentialProvider,
    llm: LLMClient,
    limit: int = 10,
) -> list[ReplyOutcome]:
    """Classify the most recent inbox messages one by one.

    A message that cannot be processed is reported and skipped; the scan
    goes on with the next one.
    """
    emails: list[Email] = mail.list_recent(limit)
    log.info("Scanning %d inbox message(s) for HR replies", len(emails))
    outcomes: list[ReplyOutcome] = []
    for email in emails:
        outcome = ReplyOutcome(email_id=email.id, subject=email.subject)
        try:
            result = apply_reply(email.text(), profile, pipeline, credentials, llm)
        except ArchivedJobError as exc:
            outcome.message = str(exc)
        except JobPilotError as exc:
            log.warning("Reply %s skipped: %s", email.id, exc)
            outcome.message = str(exc)
        else:
            if result is None:
                outcome.message = "No matching tracked job."
            else:
                outcome.job_id = result.job_id
                outcome.new_status = result.new_status
                outcome.applied = True
                outcome.message = f"Status set to «{STATUS_LABELS[result.new_status]}»."
        outcomes.append(outcome)
    return outcomes
