"""Avito job-search API — direct API adapter with client-credential auth.

Register an application at https://developers.avito.ru/ to obtain a client
id and secret; store them on the profile or as AVITO_CLIENT_ID /
AVITO_CLIENT_SECRET.
"""
from __future__ import annotations

import re
from typing import Any

import requests

from jobpilot.config import Settings, load_settings
from jobpilot.errors import FetchError, MissingCredentialError
from jobpilot.keys import CredentialProvider
from jobpilot.log import get_logger, register_secret
from jobpilot.models import PLATFORM_API, Job, Platform, Profile
from jobpilot.sources.base import PlatformAdapter

log = get_logger(__name__)

TOKEN_URL = "https://api.avito.ru/token/"
SEARCH_URL = "https://api.avito.ru/core/v1/vacancies"
NO_COMPANY = "Company not specified"

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def _salary_text(raw: Any) -> str:
    if raw is None or raw == "":
        return ""
    if isinstance(raw, (int, float)):
        return str(raw)
    if isinstance(raw, dict):
        if "value" in raw:
            return f"{raw.get('value')} {raw.get('currency', '')}".strip()
        lo, hi = raw.get("from"), raw.get("to")
        if lo and hi:
            return f"{lo}-{hi}"
        return str(lo or hi or "")
    return str(raw)


def _clean_description(text: str) -> str:
    return _TAG_RE.sub("", _BR_RE.sub("\n", text or "")).strip()


def map_vacancy(item: dict[str, Any], platform_name: str) -> Job:
    company = item.get("company")
    if isinstance(company, dict):
        company = company.get("name")
    company = item.get("company_name") or company or NO_COMPANY
    url = item.get("url") or ""
    if url.startswith("/"):
        url = f"https://www.avito.ru{url}"
    return Job(
        title=item.get("title", ""),
        company=company,
        url=url,
        salary=_salary_text(item.get("salary")),
        location=item.get("address") or item.get("location") or "",
        description=_clean_description(item.get("description") or "") or "No description",
        source_platform=platform_name,
        # Fields the API does not provide
        company_rating=0.0,
        company_review_summary="",
        responsibilities=[],
        requirements=[],
    )


class AvitoAdapter(PlatformAdapter):
    kind = PLATFORM_API

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()

    def _client_credentials(self, profile: Profile) -> tuple[str, str]:
        client_id = profile.avito_client_id or self.settings.avito_client_id
        secret = profile.avito_client_secret or self.settings.avito_client_secret
        if not client_id or not secret:
            raise MissingCredentialError("Avito client id/secret")
        register_secret(secret)
        return client_id, secret

    def _token(self, client_id: str, secret: str, platform_name: str) -> str:
        try:
            r = requests.post(
                TOKEN_URL,
                data={
                    "grant_type": "client_credentials",
                    "client_id": client_id,
                    "client_secret": secret,
                },
                timeout=self.settings.http_timeout,
            )
            r.raise_for_status()
            token = r.json().get("access_token")
        except (requests.RequestException, ValueError) as exc:
            log.warning("Avito auth failed: %s", type(exc).__name__)
            raise FetchError(platform_name, "Authorization with the job board failed.") from exc
        if not token:
            raise FetchError(platform_name, "The job board returned no access token.")
        register_secret(token)
        return token

    def search(self, profile: Profile, platform: Platform, credentials: CredentialProvider) -> list[Job]:
        client_id, secret = self._client_credentials(profile)
        token = self._token(client_id, secret, platform.name)

        s = profile.settings
        params: dict[str, Any] = {"query": s.positions, "limit": s.limit or 20}
        if s.location:
            params["location"] = s.location
        if s.salary:
            params["salary_from"] = s.salary

        try:
            r = requests.get(
                SEARCH_URL,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.settings.http_timeout,
            )
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            log.warning("Avito search failed: %s", type(exc).__name__)
            raise FetchError(platform.name, "The job board search request failed.") from exc

        items = data.get("items", []) if isinstance(data, dict) else []
        jobs = [map_vacancy(item, platform.name) for item in items if isinstance(item, dict)]
        log.debug("Avito returned %d vacancies for %r", len(jobs), s.positions)
        return jobs
