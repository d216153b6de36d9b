from __future__ import annotations

import os

os.environ.setdefault("JOBPILOT_LOG_TO_FILE", "false")

import pytest

from jobpilot.config import Settings
from jobpilot.keys import CredentialProvider
from jobpilot.models import Job, Platform, Profile, SearchSettings
from jobpilot.pipeline import ApplicationPipeline
from jobpilot.prompts import default_prompts
from jobpilot.storage import MemoryStore

from fakes import FakeLLM


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(http_timeout=5.0, store_path=tmp_path / "store.json")


@pytest.fixture
def profile() -> Profile:
    return Profile(
        id="p1",
        owner_id="u1",
        name="Ivan Ivanov",
        resume="# Ivan Ivanov\nFrontend developer, React, TypeScript",
        settings=SearchSettings(
            positions="Frontend developer",
            salary=150000,
            location="Moscow",
            remote=True,
            skills="React, TypeScript",
            limit=10,
            platforms=[
                Platform("hh", "HeadHunter", "https://hh.ru/search/vacancy", True, "scrape"),
                Platform("avito", "Avito", "https://api.avito.ru", True, "api"),
            ],
        ),
        prompts=default_prompts(),
        api_keys=["key-one-aaaa", "key-two-bbbb"],
    )


@pytest.fixture
def credentials(profile) -> CredentialProvider:
    return CredentialProvider(profile)


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def store(profile) -> MemoryStore:
    s = MemoryStore()
    s.add_profile(profile)
    return s


@pytest.fixture
def pipeline(store) -> ApplicationPipeline:
    return ApplicationPipeline(store)


@pytest.fixture
def tracked(pipeline, profile):
    """Two tracked jobs: one in tracking, one in interview."""
    jobs = pipeline.track(
        [
            Job(title="Frontend Dev", company="Acme", url="https://hh.ru/vacancy/1"),
            Job(title="React Engineer", company="Globex", url="https://hh.ru/vacancy/2"),
        ],
        profile,
    )
    pipeline.set_status(jobs[0].id, "tracking")
    pipeline.set_status(jobs[1].id, "interview")
    return [pipeline.get(j.id) for j in jobs]
