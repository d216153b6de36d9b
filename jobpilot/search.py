"""
Multi-platform search.

Visits the profile's enabled platforms one after another, drops postings
whose URL is already tracked or was already seen earlier in the same run,
and exposes the growing result list after every platform.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping

from jobpilot.errors import NoActivePlatformsError
from jobpilot.keys import CredentialProvider
from jobpilot.log import get_logger
from jobpilot.models import NEW, Job, Platform, Profile, new_id
from jobpilot.sources.base import PlatformAdapter

log = get_logger(__name__)


@dataclass
class SearchProgress:
    platform: str
    found: int
    added: int
    results: list[Job]

    @property
    def message(self) -> str:
        return (
            f"{self.platform}: {self.found} found, {self.added} new "
            f"({len(self.results)} in total)"
        )


@dataclass
class SearchResult:
    results: list[Job] = field(default_factory=list)
    progress: list[SearchProgress] = field(default_factory=list)


def _normalize_url(url: str) -> str:
    return (url or "").strip()


def iter_search(
    profile: Profile,
    tracked_urls: Iterable[str],
    credentials: CredentialProvider,
    adapters: Mapping[str, PlatformAdapter],
) -> Iterator[SearchProgress]:
    """Run the search platform by platform, yielding after each one.

    The first adapter failure propagates and ends the run; results already
    yielded stay with the caller.
    """
    platforms: list[Platform] = profile.settings.enabled_platforms()
    if not platforms:
        raise NoActivePlatformsError()
    # Fail before any network call when no key is configured
    credentials.current()

    seen: set[str] = {_normalize_url(u) for u in tracked_urls}
    results: list[Job] = []

    log.info("Searching %d platform(s) for profile %s", len(platforms), profile.id)
    for platform in platforms:
        adapter = adapters.get(platform.kind)
        if adapter is None:
            log.warning("[%s] no adapter for platform kind %r, skipping", platform.name, platform.kind)
            continue

        postings = adapter.search(profile, platform, credentials)
        added = 0
        for posting in postings:
            url = _normalize_url(posting.url)
            if not url or url in seen:
                continue
            seen.add(url)
            results.append(posting.copy(
                id=new_id(),
                url=url,
                kanban_status=NEW,
                profile_id=profile.id,
                user_id=profile.owner_id,
                source_platform=posting.source_platform or platform.name,
                history=[],
            ))
            added += 1

        progress = SearchProgress(platform=platform.name, found=len(postings), added=added, results=list(results))
        log.info("[%s] %s", platform.name, progress.message)
        yield progress


def run_search(
    profile: Profile,
    tracked_urls: Iterable[str],
    credentials: CredentialProvider,
    adapters: Mapping[str, PlatformAdapter],
    on_progress=None,
) -> SearchResult:
    result = SearchResult()
    for progress in iter_search(profile, tracked_urls, credentials, adapters):
        result.progress.append(progress)
        result.results = progress.results
        if on_progress is not None:
            on_progress(progress)
    log.info("Search complete — %d new posting(s)", len(result.results))
    return result
