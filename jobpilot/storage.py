"""Document storage for profiles and tracked jobs, with live subscriptions.

``MemoryStore`` keeps documents in process; ``JsonFileStore`` persists the
same documents to a JSON file guarded by an advisory file lock.
"""
from __future__ import annotations

import copy
import fcntl
import json
from pathlib import Path
from typing import Any, Callable, TypeVar

from jobpilot.errors import PersistenceError
from jobpilot.log import get_logger
from jobpilot.models import Job, Profile, new_id
from jobpilot.prompts import default_prompts

log = get_logger(__name__)

PROFILES = "profiles"
JOBS = "jobs"

Unsubscribe = Callable[[], None]
T = TypeVar("T")


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


Docs = dict[str, dict[str, dict[str, Any]]]


class MemoryStore:
    """Two collections keyed by entity id, each document scoped by owner.

    Every mutation is staged on a copy of the documents and swapped in only
    once it has been persisted, so a failed write leaves the store unchanged.
    """

    def __init__(self) -> None:
        self._docs: Docs = {PROFILES: {}, JOBS: {}}
        self._subscribers: dict[str, list[tuple[str, Callable]]] = {PROFILES: [], JOBS: []}

    # ── persistence hooks ───────────────────────────────────────────────

    def _refresh(self) -> None:
        """Called before every read."""

    def _apply(self, mutate: Callable[[Docs], T]) -> T:
        """Run *mutate* on a staged copy of the documents, then commit it."""
        staged = copy.deepcopy(self._docs)
        result = mutate(staged)
        self._docs = staged
        return result

    # ── snapshots and subscriptions ────────────────────────────────────

    def _owner_field(self, collection: str) -> str:
        return "owner_id" if collection == PROFILES else "user_id"

    def _snapshot(self, collection: str, owner_id: str) -> list:
        field = self._owner_field(collection)
        docs = [d for d in self._docs[collection].values() if d.get(field) == owner_id]
        if collection == PROFILES:
            prompts = default_prompts()
            return [Profile.from_dict(copy.deepcopy(d), prompts) for d in docs]
        return [Job.from_dict(copy.deepcopy(d)) for d in docs]

    def _notify(self, collection: str, owners: set[str]) -> None:
        for owner_id, callback in list(self._subscribers[collection]):
            if owner_id not in owners:
                continue
            try:
                callback(self._snapshot(collection, owner_id))
            except Exception as exc:
                log.error("Subscriber for %s failed: %s", collection, exc)

    def _subscribe(self, collection: str, owner_id: str, callback: Callable) -> Unsubscribe:
        entry = (owner_id, callback)
        self._subscribers[collection].append(entry)
        self._refresh()
        callback(self._snapshot(collection, owner_id))

        def unsubscribe() -> None:
            if entry in self._subscribers[collection]:
                self._subscribers[collection].remove(entry)

        return unsubscribe

    def subscribe_profiles(self, owner_id: str, callback: Callable[[list[Profile]], Any]) -> Unsubscribe:
        return self._subscribe(PROFILES, owner_id, callback)

    def subscribe_jobs(self, owner_id: str, callback: Callable[[list[Job]], Any]) -> Unsubscribe:
        return self._subscribe(JOBS, owner_id, callback)

    # ── profiles ────────────────────────────────────────────────────────

    def add_profile(self, profile: Profile) -> Profile:
        if not profile.id:
            profile.id = new_id()
        doc = profile.to_dict()

        def mutate(docs: Docs) -> None:
            docs[PROFILES][profile.id] = doc

        self._apply(mutate)
        self._notify(PROFILES, {profile.owner_id})
        return profile

    def get_profile(self, profile_id: str) -> Profile | None:
        self._refresh()
        doc = self._docs[PROFILES].get(profile_id)
        return Profile.from_dict(copy.deepcopy(doc), default_prompts()) if doc else None

    def list_profiles(self, owner_id: str) -> list[Profile]:
        self._refresh()
        return self._snapshot(PROFILES, owner_id)

    def update_profile(self, profile: Profile) -> None:
        doc = profile.to_dict()

        def mutate(docs: Docs) -> None:
            if profile.id not in docs[PROFILES]:
                raise PersistenceError(f"Profile {profile.id} does not exist.")
            docs[PROFILES][profile.id] = doc

        self._apply(mutate)
        self._notify(PROFILES, {profile.owner_id})

    def update_profile_fields(self, profile_id: str, updates: dict[str, Any]) -> None:
        """Field-level profile update; other fields keep their stored value."""

        def mutate(docs: Docs) -> str:
            doc = docs[PROFILES].get(profile_id)
            if doc is None:
                raise PersistenceError(f"Profile {profile_id} does not exist.")
            doc.update(copy.deepcopy(updates))
            return doc.get("owner_id", "")

        owner = self._apply(mutate)
        self._notify(PROFILES, {owner})

    def delete_profile(self, profile_id: str) -> int:
        """Delete a profile and, in the same batch, every job it owns."""

        def mutate(docs: Docs) -> tuple[str, set[str], int]:
            doc = docs[PROFILES].get(profile_id)
            if doc is None:
                raise PersistenceError(f"Profile {profile_id} does not exist.")
            job_ids = [jid for jid, j in docs[JOBS].items() if j.get("profile_id") == profile_id]
            owners = {docs[JOBS][jid].get("user_id", "") for jid in job_ids}
            for jid in job_ids:
                del docs[JOBS][jid]
            del docs[PROFILES][profile_id]
            return doc.get("owner_id", ""), owners, len(job_ids)

        owner, job_owners, removed = self._apply(mutate)
        self._notify(JOBS, job_owners)
        self._notify(PROFILES, {owner})
        log.info("Deleted profile %s and %d job(s)", profile_id, removed)
        return removed

    # ── jobs ────────────────────────────────────────────────────────────

    def add_jobs_batch(self, jobs: list[Job]) -> list[Job]:
        staged: dict[str, dict[str, Any]] = {}
        for job in jobs:
            if not job.id:
                job.id = new_id()
            staged[job.id] = job.to_dict()

        def mutate(docs: Docs) -> None:
            docs[JOBS].update(staged)

        self._apply(mutate)
        self._notify(JOBS, {j.user_id for j in jobs})
        return jobs

    def get_job(self, job_id: str) -> Job | None:
        self._refresh()
        doc = self._docs[JOBS].get(job_id)
        return Job.from_dict(copy.deepcopy(doc)) if doc else None

    def list_jobs(self, owner_id: str, profile_id: str | None = None) -> list[Job]:
        self._refresh()
        jobs = self._snapshot(JOBS, owner_id)
        if profile_id is not None:
            jobs = [j for j in jobs if j.profile_id == profile_id]
        return jobs

    def update_job(self, job_id: str, updates: dict[str, Any]) -> None:
        """Field-level update; all fields in *updates* are written together."""

        def mutate(docs: Docs) -> str:
            doc = docs[JOBS].get(job_id)
            if doc is None:
                raise PersistenceError(f"Job {job_id} does not exist.")
            doc.update(copy.deepcopy(updates))
            return doc.get("user_id", "")

        owner = self._apply(mutate)
        self._notify(JOBS, {owner})


class JsonFileStore(MemoryStore):
    """File-backed store.

    Reads reload the file. Each mutation re-reads the file under an exclusive
    lock and applies the change to what is on disk, so concurrent processes
    never overwrite each other's updates.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._refresh()
        log.debug(
            "Loaded %d profile(s), %d job(s) from %s",
            len(self._docs[PROFILES]), len(self._docs[JOBS]), self.path.name,
        )

    def _parse(self, raw: str) -> Docs:
        docs: Docs = {PROFILES: {}, JOBS: {}}
        if not raw.strip():
            return docs
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Could not read the store at {self.path}.") from exc
        for collection in (PROFILES, JOBS):
            found = data.get(collection, {}) if isinstance(data, dict) else {}
            if isinstance(found, dict):
                docs[collection] = found
        return docs

    def _refresh(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                _lock(f, exclusive=False)
                raw = f.read()
                _unlock(f)
        except OSError as exc:
            raise PersistenceError(f"Could not read the store at {self.path}.") from exc
        self._docs = self._parse(raw)

    def _apply(self, mutate: Callable[[Docs], T]) -> T:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self.path, "a+", encoding="utf-8") as f:
                _lock(f)
                f.seek(0)
                fresh = self._parse(f.read())
                result = mutate(fresh)
                payload = json.dumps(fresh, ensure_ascii=False, indent=2)
                f.seek(0)
                f.truncate()
                f.write(payload)
                f.flush()
                _unlock(f)
        except OSError as exc:
            raise PersistenceError(f"Could not write the store at {self.path}.") from exc
        self._docs = fresh
        return result
