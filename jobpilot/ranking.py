"""Rank postings against the profile's resume with one batch LLM request."""
from __future__ import annotations

import json

from jobpilot.errors import MalformedResponseError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.models import Job, Profile
from jobpilot.prompts import RANKING, render

log = get_logger(__name__)

# Description excerpt per posting, to bound the prompt size
EXCERPT_CHARS = 400


def filter_by_rating(postings: list[Job], min_rating: float) -> list[Job]:
    """Drop postings whose known company rating is below the floor (0 = unknown)."""
    if not min_rating:
        return postings
    kept = [p for p in postings if not p.company_rating or p.company_rating >= min_rating]
    if len(kept) != len(postings):
        log.info("Rating filter %.1f dropped %d posting(s)", min_rating, len(postings) - len(kept))
    return kept


def build_prompt(postings: list[Job], profile: Profile) -> str:
    # Simple integer keys instead of ids/URLs, which the LLM tends to mangle
    payload = [
        {
            "index": i,
            "title": p.title,
            "company": p.company,
            "salary": p.salary,
            "location": p.location,
            "description": (p.description or "")[:EXCERPT_CHARS].strip() or "No description",
        }
        for i, p in enumerate(postings)
    ]
    s = profile.settings
    return render(
        RANKING,
        positions=s.positions,
        skills=s.skills,
        salary=s.salary,
        currency=s.currency,
        location=s.location,
        remote="yes" if s.remote else "no",
        resume=profile.resume,
        postings=json.dumps(payload, ensure_ascii=False),
    )


def _analysis_of(value: object) -> str:
    if isinstance(value, dict):
        value = value.get("analysis", "")
    return value.strip() if isinstance(value, str) else ""


def rank(postings: list[Job], profile: Profile, credentials: CredentialProvider, llm: LLMClient) -> list[Job]:
    """Populate ``match_analysis`` on every posting; empty means "not recommended".

    A response that cannot be parsed fails the whole step and leaves the
    postings untouched.
    """
    if not postings:
        return postings

    prompt = build_prompt(postings, profile)
    log.info("Ranking %d posting(s) with the LLM...", len(postings))
    data = credentials.rotate_and_retry(
        lambda key: llm.complete_json(prompt, key, context="posting ranking")
    )
    if not isinstance(data, dict):
        raise MalformedResponseError("posting ranking")

    analyses: dict[int, str] = {}
    for index_str, value in data.items():
        try:
            idx = int(index_str)
        except (TypeError, ValueError):
            continue
        if 0 <= idx < len(postings):
            analyses[idx] = _analysis_of(value)

    for idx, posting in enumerate(postings):
        posting.match_analysis = analyses.get(idx) or None

    log.info("LLM annotated %d/%d posting(s)", sum(1 for a in analyses.values() if a), len(postings))
    return postings
