"""Scrape-via-LLM adapter: fetch a search results page, let the LLM extract postings."""
from __future__ import annotations

from typing import Any
from urllib.parse import quote_plus, urlencode

import requests
from bs4 import BeautifulSoup

from jobpilot.config import Settings, load_settings
from jobpilot.errors import FetchError, MalformedResponseError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.models import PLATFORM_SCRAPE, Job, Platform, Profile
from jobpilot.prompts import render
from jobpilot.sources.base import PlatformAdapter

log = get_logger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
}

# Upper bound on markup sent to the LLM, after scripts and styles are stripped.
MAX_MARKUP_CHARS = 120_000

POSTING_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "company": {"type": "string"},
            "companyRating": {"type": "number"},
            "companyReviewSummary": {"type": "string"},
            "salary": {"type": "string"},
            "location": {"type": "string"},
            "description": {"type": "string"},
            "responsibilities": {"type": "array", "items": {"type": "string"}},
            "requirements": {"type": "array", "items": {"type": "string"}},
            "matchAnalysis": {"type": "string"},
            "url": {"type": "string"},
            "contacts": {
                "type": "object",
                "properties": {
                    "email": {"type": "string"},
                    "phone": {"type": "string"},
                    "telegram": {"type": "string"},
                },
            },
        },
        "required": ["title", "company", "salary", "location", "description", "url"],
    },
}


def build_search_url(platform: Platform, profile: Profile) -> str:
    s = profile.settings
    query = f"{s.positions} {s.location}".strip()
    if "{query}" in platform.url:
        return platform.url.replace("{query}", quote_plus(query))
    sep = "&" if "?" in platform.url else "?"
    return f"{platform.url}{sep}{urlencode({'text': query})}"


def reduce_markup(html: str) -> str:
    """Drop scripts, styles and inline SVG; the LLM only needs the cards."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "svg", "head"]):
        tag.decompose()
    return str(soup)[:MAX_MARKUP_CHARS]


def posting_from_llm(item: dict[str, Any], platform_name: str) -> Job:
    """Map one element of the LLM's JSON array (camelCase keys) to a Job."""
    return Job.from_dict({
        "title": item.get("title"),
        "company": item.get("company"),
        "company_rating": item.get("companyRating"),
        "company_review_summary": item.get("companyReviewSummary"),
        "salary": item.get("salary"),
        "location": item.get("location"),
        "description": item.get("description"),
        "responsibilities": item.get("responsibilities"),
        "requirements": item.get("requirements"),
        "match_analysis": item.get("matchAnalysis"),
        "url": item.get("url"),
        "contacts": item.get("contacts"),
        "source_platform": platform_name,
    })


class ScrapeAdapter(PlatformAdapter):
    kind = PLATFORM_SCRAPE

    def __init__(self, llm: LLMClient, settings: Settings | None = None) -> None:
        self.llm = llm
        self.settings = settings or load_settings()

    def fetch_page(self, url: str, platform_name: str) -> str:
        proxy = self.settings.fetch_proxy
        target = f"{proxy}{quote_plus(url)}" if proxy else url
        try:
            r = requests.get(target, headers=HEADERS, timeout=self.settings.http_timeout)
        except requests.RequestException as exc:
            raise FetchError(platform_name, "Network error.") from exc
        if not r.ok:
            raise FetchError(platform_name, f"HTTP {r.status_code}.")

        html = r.text
        if proxy:
            # allorigins-style proxies wrap the page as {"contents": "..."}
            try:
                html = r.json().get("contents") or ""
            except ValueError:
                pass
        if not html.strip():
            raise FetchError(platform_name, "The search page is empty.")
        return html

    def search(self, profile: Profile, platform: Platform, credentials: CredentialProvider) -> list[Job]:
        url = build_search_url(platform, profile)
        log.info("[%s] fetching %s", platform.name, url)
        markup = reduce_markup(self.fetch_page(url, platform.name))

        s = profile.settings
        prompt = render(
            profile.prompts.job_search,
            platformName=platform.name,
            positions=s.positions,
            location=s.location,
            limit=s.limit,
        )
        full_prompt = (
            f"{prompt}\n\n## Candidate resume:\n{profile.resume}"
            f"\n\n## HTML TO PARSE:\n{markup}"
        )
        data = credentials.rotate_and_retry(
            lambda key: self.llm.complete_json(
                full_prompt, key, context=f"postings from {platform.name}", schema=POSTING_SCHEMA
            )
        )
        if not isinstance(data, list):
            raise MalformedResponseError(f"postings from {platform.name}")

        jobs = [posting_from_llm(item, platform.name) for item in data if isinstance(item, dict)]
        log.debug("[%s] LLM extracted %d postings", platform.name, len(jobs))
        return jobs[: s.limit] if s.limit else jobs
