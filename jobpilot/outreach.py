"""Outbound communication: cover letters, messenger notes, quick apply,
and streamed resume adaptation / interview preparation."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Iterator
from urllib.parse import quote

from jobpilot.errors import MalformedResponseError, MissingContactError, QuotaExceededError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.mail import GmailClient
from jobpilot.models import Job, Profile
from jobpilot.pipeline import ApplicationPipeline
from jobpilot.prompts import INTERVIEW_QUESTIONS, render

log = get_logger(__name__)

EMAIL = "email"
WHATSAPP = "whatsapp"
TELEGRAM = "telegram"
CHANNELS = (EMAIL, WHATSAPP, TELEGRAM)


@dataclass
class StreamView:
    """Accumulated state of a streamed answer as a display would show it."""

    loading: bool = True
    text: str = ""

    def feed(self, delta: str) -> None:
        self.loading = False
        self.text += delta

    def fold(self, deltas: Iterable[str]) -> str:
        for delta in deltas:
            self.feed(delta)
        self.loading = False
        return self.text


def _stream(prompt: str, credentials: CredentialProvider, llm: LLMClient) -> Iterator[str]:
    # A quota error before the first delta is retried once with the next key;
    # once text has been yielded the error propagates.
    started = False
    try:
        for delta in llm.stream(prompt, credentials.current()):
            started = True
            yield delta
    except QuotaExceededError:
        if started or not credentials.rotate():
            raise
        log.warning("Quota exhausted, restarting the stream with the next API key")
        yield from llm.stream(prompt, credentials.current())


def adapt_resume(job: Job, profile: Profile, credentials: CredentialProvider, llm: LLMClient) -> Iterator[str]:
    prompt = render(profile.prompts.resume_adapt, jobTitle=job.title, jobCompany=job.company)
    full_prompt = (
        f"{prompt}\n\n## Base resume:\n{profile.resume}"
        f"\n\n## Posting:\n{job.description}\n\nResponsibilities:\n- " + "\n- ".join(job.responsibilities)
    )
    return _stream(full_prompt, credentials, llm)


def interview_questions(job: Job, profile: Profile, credentials: CredentialProvider, llm: LLMClient) -> Iterator[str]:
    prompt = render(
        INTERVIEW_QUESTIONS,
        jobTitle=job.title,
        jobCompany=job.company,
        resume=profile.resume,
        description=job.description,
        responsibilities=", ".join(job.responsibilities),
    )
    return _stream(prompt, credentials, llm)


def generate_cover_letter(
    job: Job, profile: Profile, credentials: CredentialProvider, llm: LLMClient
) -> tuple[str, str]:
    """Return ``(subject, body)``."""
    prompt = render(
        profile.prompts.cover_letter, jobTitle=job.title, jobCompany=job.company, candidateName=profile.name
    )
    data = credentials.rotate_and_retry(
        lambda key: llm.complete_json(f"{prompt}\n\n## Posting:\n{job.description}", key, context="cover letter")
    )
    if not isinstance(data, dict) or not data.get("body"):
        raise MalformedResponseError("cover letter")
    subject = str(data.get("subject") or f"{job.title} - {profile.name}").strip()
    log.info("Cover letter generated for %s @ %s", job.title, job.company)
    return subject, str(data["body"]).strip()


def generate_short_message(job: Job, profile: Profile, credentials: CredentialProvider, llm: LLMClient) -> str:
    prompt = render(
        profile.prompts.short_message, jobTitle=job.title, jobCompany=job.company, candidateName=profile.name
    )
    return credentials.rotate_and_retry(lambda key: llm.complete(prompt, key))


def messenger_target(channel: str, job: Job) -> str:
    """Phone digits for WhatsApp, the bare username for Telegram."""
    contacts = job.contacts
    if channel == WHATSAPP:
        target = re.sub(r"\D", "", contacts.phone or "") if contacts else ""
    else:
        target = (contacts.telegram or "").lstrip("@") if contacts else ""
    if not target:
        raise MissingContactError(channel)
    return target


def messenger_url(channel: str, target: str, message: str) -> str:
    if channel == WHATSAPP:
        return f"https://wa.me/{target}?text={quote(message)}"
    return f"tg://msg?to={target}&text={quote(message)}"


@dataclass
class QuickApplyResult:
    channel: str
    sent: bool
    url: str = ""
    message: str = ""


def quick_apply(
    channel: str,
    job: Job,
    profile: Profile,
    pipeline: ApplicationPipeline,
    credentials: CredentialProvider,
    llm: LLMClient,
    mail: GmailClient | None = None,
    sender: str | None = None,
) -> QuickApplyResult:
    """Prepare (and, with a connected mailbox, send) an application message.

    Without a mailbox the result carries a ``mailto:`` link; messenger
    channels always produce a deep link. Either way a ``new`` job moves to
    ``tracking`` and the outreach is recorded in its history.
    """
    if channel not in CHANNELS:
        raise ValueError(f"Unknown quick apply channel: {channel!r}")

    if channel == EMAIL:
        to = job.contacts.email if job.contacts else None
        if not to:
            raise MissingContactError(channel)
        subject, body = generate_cover_letter(job, profile, credentials, llm)
        if mail is not None and sender:
            mail.send(to, sender, subject, body, sender_name=profile.name)
            result = QuickApplyResult(channel, sent=True, message=f"Email sent to {to}.")
        else:
            url = f"mailto:{to}?subject={quote(subject)}&body={quote(body)}"
            result = QuickApplyResult(channel, sent=False, url=url, message="Open the link to send the email.")
        content = f"Application email «{subject}» to {to}"
    else:
        target = messenger_target(channel, job)
        text = generate_short_message(job, profile, credentials, llm)
        url = messenger_url(channel, target, text)
        result = QuickApplyResult(channel, sent=False, url=url, message=f"Open the link to message via {channel}.")
        content = f"{channel.capitalize()} message prepared: {text}"

    pipeline.promote_after_apply(job.id)
    pipeline.record_interaction(job.id, "email_sent" if channel == EMAIL else "other", content)
    return result
