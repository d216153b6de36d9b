from __future__ import annotations

import pytest

from jobpilot.errors import FetchError, MissingCredentialError, NoActivePlatformsError, QuotaExceededError
from jobpilot.models import PLATFORM_SCRAPE, Platform
from jobpilot.search import iter_search, run_search

from fakes import FakeAdapter, posting


def test_search_dedups_against_tracked_and_earlier_platforms(profile, credentials):
    adapters = {
        "scrape": FakeAdapter("scrape", [posting(1), posting(2), posting(3)]),
        "api": FakeAdapter("api", [posting(3), posting(4), posting(5, url="")]),
    }
    progress = []
    result = run_search(profile, {"https://x.test/1"}, credentials, adapters, on_progress=progress.append)

    urls = [j.url for j in result.results]
    assert urls == ["https://x.test/2", "https://x.test/3", "https://x.test/4"]
    assert len(set(urls)) == len(urls)
    assert [p.added for p in progress] == [2, 1]
    assert all(j.kanban_status == "new" and j.profile_id == "p1" and j.user_id == "u1" for j in result.results)
    assert all(j.id for j in result.results)


def test_results_visible_after_each_platform(profile, credentials):
    adapters = {"scrape": FakeAdapter("scrape", [posting(1)]), "api": FakeAdapter("api", [posting(2)])}
    gen = iter_search(profile, set(), credentials, adapters)
    first = next(gen)
    assert first.platform == "HeadHunter"
    assert [j.url for j in first.results] == ["https://x.test/1"]
    second = next(gen)
    assert len(second.results) == 2


def test_failing_platform_stops_the_run(profile, credentials):
    api = FakeAdapter("api", [posting(9)])
    adapters = {"scrape": FakeAdapter("scrape", FetchError("HeadHunter")), "api": api}
    with pytest.raises(FetchError):
        run_search(profile, set(), credentials, adapters)
    assert api.calls == 0


def test_no_enabled_platforms(profile, credentials):
    for p in profile.settings.platforms:
        p.enabled = False
    with pytest.raises(NoActivePlatformsError):
        run_search(profile, set(), credentials, {})


def test_missing_key_fails_before_any_adapter_call(profile):
    from jobpilot.keys import CredentialProvider

    profile.api_keys = []
    scrape = FakeAdapter("scrape", [posting(1)])
    with pytest.raises(MissingCredentialError):
        run_search(profile, set(), CredentialProvider(profile), {"scrape": scrape})
    assert scrape.calls == 0


def test_unknown_platform_kind_is_skipped(profile, credentials):
    profile.settings.platforms[1].kind = "rss"
    result = run_search(profile, set(), credentials, {"scrape": FakeAdapter("scrape", [posting(1)])})
    assert len(result.results) == 1


def test_quota_rotation_inside_adapter(profile, credentials, llm):
    """A scrape platform whose first key is exhausted succeeds on the second key."""
    from jobpilot.sources.scrape import ScrapeAdapter

    class PageScrape(ScrapeAdapter):
        def fetch_page(self, url, platform_name):
            return "<html><body><div class='card'>Job</div></body></html>"

    llm.queue(QuotaExceededError(), [{"title": "Dev", "company": "Acme", "url": "https://hh.ru/v/1",
                                     "salary": "", "location": "", "description": ""}])
    profile.settings.platforms = profile.settings.platforms[:1]
    result = run_search(profile, set(), credentials, {"scrape": PageScrape(llm)})

    assert [j.title for j in result.results] == ["Dev"]
    assert [key for _, key in llm.calls] == ["key-one-aaaa", "key-two-bbbb"]
    assert profile.active_key_index == 1


def test_disabled_platform_is_never_queried(profile, credentials):
    profile.settings.platforms = [
        Platform("hh", "HeadHunter", "https://hh.ru/search/vacancy", True, PLATFORM_SCRAPE),
        Platform("habr", "Habr Career", "https://career.habr.com/vacancies", True, PLATFORM_SCRAPE),
        Platform("linkedin", "LinkedIn", "https://www.linkedin.com/jobs/search/", False, PLATFORM_SCRAPE),
    ]
    scrape = FakeAdapter("scrape", [posting(1)])
    progress = []

    run_search(profile, set(), credentials, {"scrape": scrape}, on_progress=progress.append)

    assert scrape.platforms == ["hh", "habr"]
    assert "LinkedIn" not in [p.platform for p in progress]
