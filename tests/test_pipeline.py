from __future__ import annotations

import pytest

from jobpilot.cache import JobCache
from jobpilot.errors import ArchivedJobError, InvalidStatusError, JobNotFoundError
from jobpilot.models import Job
from jobpilot.pipeline import AUTOMATED, ApplicationPipeline, coerce_status

from fakes import posting


def test_track_round_trip(pipeline, store, profile):
    original = posting(1, salary="200 000 RUB", requirements=["React"], match_analysis="Good fit")
    (tracked,) = pipeline.track([original], profile)

    loaded = store.get_job(tracked.id)
    assert loaded.kanban_status == "new"
    assert loaded.history == []
    assert (loaded.title, loaded.company, loaded.url) == (original.title, original.company, original.url)
    assert loaded.requirements == ["React"]
    assert loaded.match_analysis == "Good fit"
    assert loaded.profile_id == "p1" and loaded.user_id == "u1"


def test_track_skips_already_tracked_urls(pipeline, profile):
    pipeline.track([posting(1)], profile)
    again = pipeline.track([posting(1), posting(2), posting(2)], profile)
    assert [j.url for j in again] == ["https://x.test/2"]


def test_each_transition_appends_one_entry(pipeline, tracked):
    job = tracked[0]
    before = list(job.history)
    moved = pipeline.set_status(job.id, "offer")

    assert moved.kanban_status == "offer"
    assert moved.history[: len(before)] == before
    assert len(moved.history) == len(before) + 1
    assert moved.history[-1].type == "status_change"
    assert "Offer" in moved.history[-1].content


def test_same_status_is_noop(pipeline, tracked):
    job = tracked[0]
    again = pipeline.set_status(job.id, "tracking")
    assert len(again.history) == len(job.history)


def test_unknown_status_rejected(pipeline, tracked):
    with pytest.raises(InvalidStatusError):
        pipeline.set_status(tracked[0].id, "hired")


def test_unknown_job(pipeline):
    with pytest.raises(JobNotFoundError):
        pipeline.set_status("nope", "tracking")


def test_archive_is_terminal_for_automated_moves(pipeline, tracked):
    job_id = tracked[0].id
    pipeline.set_status(job_id, "archive")
    with pytest.raises(ArchivedJobError):
        pipeline.set_status(job_id, "interview", origin=AUTOMATED)
    restored = pipeline.set_status(job_id, "tracking")
    assert restored.kanban_status == "tracking"


def test_promote_after_apply_only_moves_new_jobs(pipeline, profile, tracked):
    (fresh,) = pipeline.track([posting(5)], profile)
    assert pipeline.promote_after_apply(fresh.id).kanban_status == "tracking"
    interview = tracked[1]
    assert pipeline.promote_after_apply(interview.id).kanban_status == "interview"


def test_record_interaction_failure_is_not_raised(pipeline):
    assert pipeline.record_interaction("missing", "note", "hello") is None


def test_notes(pipeline, store, tracked):
    pipeline.add_note(tracked[0].id, "Called the recruiter")
    pipeline.set_notes(tracked[0].id, "free text")
    job = store.get_job(tracked[0].id)
    assert job.history[-1].type == "note"
    assert job.notes == "free text"


@pytest.mark.parametrize(
    "raw, expected",
    [("interview", "interview"), (" Offer.\n", "offer"), ("archive", "archive"), ("maybe", "tracking"),
     ("new", "tracking"), ("", "tracking"), (None, "tracking")],
)
def test_coerce_status(raw, expected):
    assert coerce_status(raw) == expected


def test_invalid_stored_status_reads_as_tracking():
    assert Job.from_dict({"title": "t", "company": "c", "url": "u", "kanban_status": "weird"}).kanban_status == "tracking"
    assert Job.from_dict({"title": "t", "company": "c", "url": "u"}).kanban_status == "new"


def test_optimistic_write_overwritten_by_snapshot(store, profile):
    cache = JobCache()
    pipeline = ApplicationPipeline(store, cache)
    (job,) = pipeline.track([posting(1)], profile)
    store.subscribe_jobs(profile.owner_id, cache)

    cache.apply_optimistic(job.id, {"kanban_status": "offer"})
    assert cache.get(job.id).kanban_status == "offer"

    store.update_job(job.id, {"notes": "server side"})
    assert cache.get(job.id).kanban_status == "new"
    assert cache.get(job.id).notes == "server side"


def test_status_change_visible_through_cache(store, profile):
    cache = JobCache()
    pipeline = ApplicationPipeline(store, cache)
    (job,) = pipeline.track([posting(1)], profile)
    store.subscribe_jobs(profile.owner_id, cache)
    pipeline.set_status(job.id, "interview")
    assert cache.get(job.id).kanban_status == "interview"
    assert cache.tracked_urls("p1") == {"https://x.test/1"}
