from __future__ import annotations

import pytest

from jobpilot.errors import MissingContactError, QuotaExceededError
from jobpilot.models import Contacts, Job
from jobpilot.outreach import StreamView, adapt_resume, generate_cover_letter, quick_apply


def test_stream_view_fold():
    view = StreamView()
    assert view.loading
    deltas = iter(["Hel", "lo", " world"])
    first = next(deltas)
    view.feed(first)
    assert not view.loading and view.text == "Hel"
    assert view.fold(deltas) == "Hello world"


def test_stream_view_empty_stream_stops_loading():
    view = StreamView()
    assert view.fold([]) == ""
    assert not view.loading


def test_adapt_resume_streams_in_order(profile, credentials, llm):
    job = Job(title="Dev", company="Acme", url="u", description="Build UI", responsibilities=["React"])
    llm.queue(["# Resume", "\n- React"])
    assert "".join(adapt_resume(job, profile, credentials, llm)) == "# Resume\n- React"
    assert "'Dev' at 'Acme'" in llm.calls[0][0]


def test_stream_quota_before_first_delta_rotates(profile, credentials, llm):
    job = Job(title="Dev", company="Acme", url="u")
    llm.queue(QuotaExceededError(), ["ok"])
    assert "".join(adapt_resume(job, profile, credentials, llm)) == "ok"
    assert [k for _, k in llm.calls] == ["key-one-aaaa", "key-two-bbbb"]


def test_cover_letter_json(profile, credentials, llm):
    llm.queue({"subject": "Application: Dev", "body": "Dear team"})
    job = Job(title="Dev", company="Acme", url="u")
    assert generate_cover_letter(job, profile, credentials, llm) == ("Application: Dev", "Dear team")


class RecordingMail:
    def __init__(self):
        self.sent = []

    def send(self, to, sender, subject, body, sender_name=None):
        self.sent.append((to, sender, subject, body, sender_name))
        return "msg-1"


def test_quick_apply_email_sends_and_promotes(pipeline, store, profile, credentials, llm):
    (job,) = pipeline.track(
        [Job(title="Dev", company="Acme", url="https://x.test/1", contacts=Contacts(email="hr@acme.test"))], profile
    )
    llm.queue({"subject": "Dev", "body": "Hello"})
    mail = RecordingMail()

    result = quick_apply("email", job, profile, pipeline, credentials, llm, mail=mail, sender="me@test")

    assert result.sent
    assert mail.sent == [("hr@acme.test", "me@test", "Dev", "Hello", "Ivan Ivanov")]
    stored = store.get_job(job.id)
    assert stored.kanban_status == "tracking"
    assert [h.type for h in stored.history] == ["status_change", "email_sent"]


def test_quick_apply_without_mailbox_returns_mailto(pipeline, profile, credentials, llm):
    (job,) = pipeline.track(
        [Job(title="Dev", company="Acme", url="https://x.test/1", contacts=Contacts(email="hr@acme.test"))], profile
    )
    llm.queue({"subject": "Hi there", "body": "Body"})
    result = quick_apply("email", job, profile, pipeline, credentials, llm)
    assert result.url == "mailto:hr@acme.test?subject=Hi%20there&body=Body"


def test_quick_apply_whatsapp_link(pipeline, profile, credentials, llm):
    (job,) = pipeline.track(
        [Job(title="Dev", company="Acme", url="https://x.test/1", contacts=Contacts(phone="+7 (900) 123-45-67"))],
        profile,
    )
    llm.queue("Hello!")
    result = quick_apply("whatsapp", job, profile, pipeline, credentials, llm)
    assert result.url == "https://wa.me/79001234567?text=Hello%21"


def test_quick_apply_missing_contact_makes_no_llm_call(pipeline, profile, credentials, llm):
    (job,) = pipeline.track([Job(title="Dev", company="Acme", url="https://x.test/1")], profile)
    with pytest.raises(MissingContactError):
        quick_apply("telegram", job, profile, pipeline, credentials, llm)
    assert llm.calls == []
