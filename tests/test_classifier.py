from __future__ import annotations

import json

from jobpilot.classifier import apply_reply, classify, match_email_to_job, scan_inbox
from jobpilot.errors import ProviderError
from jobpilot.models import Email

from fakes import FakeLLM

OFFER_EMAIL = "From: hr@globex.test\nSubject: Offer\n\nWe are happy to offer you the React Engineer role."


def test_unknown_match_changes_nothing(pipeline, store, profile, credentials, llm, tracked):
    llm.queue("UNKNOWN")
    before = [j.to_dict() for j in store.list_jobs("u1", "p1")]

    assert apply_reply("Newsletter: 10 tips", profile, pipeline, credentials, llm) is None

    assert [j.to_dict() for j in store.list_jobs("u1", "p1")] == before
    assert len(llm.calls) == 1


def test_hallucinated_id_resolves_to_unknown(profile, credentials, llm, tracked):
    llm.queue("job-that-does-not-exist")
    assert match_email_to_job("hello", tracked, profile, credentials, llm) == "UNKNOWN"


def test_offer_reply_moves_matched_job(pipeline, store, profile, credentials, llm, tracked):
    target = tracked[1]
    llm.queue(target.id, "offer")
    history_before = len(target.history)

    result = apply_reply(OFFER_EMAIL, profile, pipeline, credentials, llm)

    assert (result.job_id, result.new_status) == (target.id, "offer")
    job = store.get_job(target.id)
    assert job.kanban_status == "offer"
    assert len(job.history) == history_before + 1
    assert "Offer" in job.history[-1].content
    assert store.get_job(tracked[0].id).kanban_status == "tracking"


def test_match_phase_sees_compact_listing_and_status_phase_email_only(profile, credentials, llm, tracked):
    llm.queue(tracked[0].id, "Interview")
    result = classify("Let's schedule a call", tracked, profile, credentials, llm)

    match_prompt, status_prompt = (p for p, _ in llm.calls)
    listing = json.loads(match_prompt.split("## Postings:\n", 1)[1])
    assert listing[0] == {"id": tracked[0].id, "title": "Frontend Dev", "company": "Acme"}
    assert tracked[0].id not in status_prompt
    assert result.new_status == "interview"


def test_unexpected_status_is_coerced(profile, credentials, llm, tracked):
    llm.queue(tracked[0].id, "hired!!")
    assert classify("Welcome aboard", tracked, profile, credentials, llm).new_status == "tracking"


class FakeMail:
    def __init__(self, emails):
        self.emails = emails

    def list_recent(self, limit):
        return self.emails[:limit]


def test_scan_inbox_reports_each_message(pipeline, profile, credentials, tracked):
    emails = [
        Email("m1", "hr@globex.test", "Offer", "", "We offer you the job"),
        Email("m2", "news@site.test", "Digest", "", "Weekly digest"),
        Email("m3", "hr@acme.test", "Re: Frontend Dev", "", "Thanks"),
    ]
    llm = FakeLLM(tracked[1].id, "offer", "UNKNOWN", ProviderError("LLM down"))

    outcomes = scan_inbox(FakeMail(emails), profile, pipeline, credentials, llm)

    assert [o.applied for o in outcomes] == [True, False, False]
    assert outcomes[0].new_status == "offer"
    assert outcomes[1].message == "No matching tracked job."
    assert "LLM down" in outcomes[2].message


def test_scan_inbox_does_not_revive_archived_jobs(pipeline, store, profile, credentials, tracked):
    pipeline.set_status(tracked[0].id, "archive")
    llm = FakeLLM(tracked[0].id, "interview")

    (outcome,) = scan_inbox(FakeMail([Email("m1", "hr", "Invite", "", "Interview?")]), profile, pipeline, credentials, llm)

    assert not outcome.applied
    assert store.get_job(tracked[0].id).kanban_status == "archive"
