from __future__ import annotations

import json

import pytest

from jobpilot.errors import PersistenceError
from jobpilot.pipeline import ApplicationPipeline
from jobpilot.storage import JsonFileStore, MemoryStore

from fakes import posting


def test_json_store_persists_across_instances(tmp_path, profile):
    path = tmp_path / "store.json"
    first = JsonFileStore(path)
    first.add_profile(profile)
    job = posting(1, profile_id="p1", user_id="u1")
    first.add_jobs_batch([job])
    first.update_job(job.id, {"notes": "hello"})

    second = JsonFileStore(path)
    assert second.get_profile("p1").name == profile.name
    assert second.get_job(job.id).notes == "hello"
    assert json.loads(path.read_text(encoding="utf-8"))["jobs"][job.id]["url"] == "https://x.test/1"


def test_corrupt_store_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonFileStore(path)


def test_delete_profile_cascades_jobs(store, profile):
    store.add_jobs_batch([posting(1, profile_id="p1", user_id="u1"), posting(2, profile_id="other", user_id="u1")])
    assert store.delete_profile("p1") == 1
    assert store.get_profile("p1") is None
    assert [j.profile_id for j in store.list_jobs("u1")] == ["other"]


def test_subscription_receives_snapshots_until_unsubscribed(store, profile):
    snapshots = []
    unsubscribe = store.subscribe_jobs("u1", snapshots.append)
    store.add_jobs_batch([posting(1, profile_id="p1", user_id="u1")])
    unsubscribe()
    store.add_jobs_batch([posting(2, profile_id="p1", user_id="u1")])
    assert [len(s) for s in snapshots] == [0, 1]


def test_owner_scoping(store):
    store.add_jobs_batch([posting(1, user_id="someone-else")])
    assert store.list_jobs("u1") == []


def test_update_missing_job():
    with pytest.raises(PersistenceError):
        MemoryStore().update_job("missing", {"notes": ""})


def test_json_store_keeps_updates_from_another_instance(tmp_path, profile):
    path = tmp_path / "store.json"
    first = JsonFileStore(path)
    first.add_profile(profile)
    job = ApplicationPipeline(first).track([posting(1)], profile)[0]

    second = JsonFileStore(path)
    ApplicationPipeline(second).set_status(job.id, "interview")

    ApplicationPipeline(first).track([posting(2)], profile)

    reloaded = JsonFileStore(path).get_job(job.id)
    assert reloaded.kanban_status == "interview"
    assert [h.type for h in reloaded.history] == ["status_change"]
    assert len(JsonFileStore(path).list_jobs("u1", "p1")) == 2


def test_failed_write_leaves_store_unchanged(tmp_path, profile, monkeypatch):
    path = tmp_path / "store.json"
    store = JsonFileStore(path)
    store.add_profile(profile)
    job = posting(1, profile_id="p1", user_id="u1")
    store.add_jobs_batch([job])
    on_disk = path.read_text(encoding="utf-8")

    def broken_dumps(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("jobpilot.storage.json.dumps", broken_dumps)
    with pytest.raises(PersistenceError):
        store.update_job(job.id, {"notes": "lost"})
    monkeypatch.undo()

    assert store._docs["jobs"][job.id]["notes"] == ""
    assert path.read_text(encoding="utf-8") == on_disk


def test_memory_store_rejected_update_changes_nothing(store):
    with pytest.raises(PersistenceError):
        store.update_job("missing", {"notes": "x"})
    assert store.list_jobs("u1") == []
