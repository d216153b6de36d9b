from __future__ import annotations

import pytest

from jobpilot.agent import Agent
from jobpilot.storage import JsonFileStore
from jobpilot.errors import MissingCredentialError, ProfileNotFoundError, QuotaExceededError

from fakes import FakeAdapter, FakeLLM, posting


@pytest.fixture
def agent(settings, store):
    settings.owner_id = "u1"
    adapters = {
        "scrape": FakeAdapter("scrape", [posting(1, company_rating=2.0), posting(2)]),
        "api": FakeAdapter("api", [posting(2), posting(3)]),
    }
    return Agent(settings=settings, store=store, llm=FakeLLM(), adapters=adapters)


def test_search_rank_and_track(agent, profile):
    profile.settings.min_company_rating = 3.0
    agent.llm.queue({"0": {"analysis": "Good"}, "1": {"analysis": ""}})

    postings = agent.search(profile)

    assert [p.url for p in postings] == ["https://x.test/2", "https://x.test/3"]
    assert [p.match_analysis for p in postings] == ["Good", None]
    tracked = agent.track(postings, profile)
    assert len(agent.store.list_jobs("u1", "p1")) == len(tracked) == 2


def test_rotation_is_persisted_to_store(agent, profile):
    agent.llm.queue(QuotaExceededError(), {"0": {"analysis": "ok"}})
    agent.search(profile)
    assert agent.store.get_profile("p1").active_key_index == 1


def test_profile_lookup(agent):
    assert agent.profile().id == "p1"
    assert agent.profile("Ivan Ivanov").id == "p1"
    with pytest.raises(ProfileNotFoundError):
        agent.profile("missing")


def test_scan_requires_gmail_token(agent, profile):
    with pytest.raises(MissingCredentialError):
        agent.scan_replies(profile)


def test_env_keys_never_reach_the_store_file(settings, profile):
    settings.owner_id = "u1"
    settings.fallback_api_keys = ["ENVKEY-aaaaaaa", "ENVKEY-bbbbbbb"]
    settings.avito_client_secret = "ENV-avito-secret"
    profile.api_keys = []
    store = JsonFileStore(settings.store_path)
    store.add_profile(profile)
    agent = Agent(
        settings=settings,
        store=store,
        llm=FakeLLM(QuotaExceededError(), {"0": {"analysis": "ok"}}),
        adapters={"scrape": FakeAdapter("scrape", [posting(1)])},
    )

    agent.search(profile)

    assert [key for _, key in agent.llm.calls] == ["ENVKEY-aaaaaaa", "ENVKEY-bbbbbbb"]
    raw = settings.store_path.read_text(encoding="utf-8")
    assert "ENVKEY" not in raw
    assert "ENV-avito-secret" not in raw
    stored = JsonFileStore(settings.store_path).get_profile("p1")
    assert stored.api_keys == []
    assert stored.active_key_index == 1
    assert profile.api_keys == []
