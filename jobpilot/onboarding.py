"""Build a search profile from a resume.

Text extraction supports PDF (pypdf), DOCX (stdlib zipfile) and TXT. The LLM
either confirms the resume is complete (``READY``) or asks one follow-up
question; the full conversation is then turned into a resume, search settings
and a profile name.
"""
from __future__ import annotations

import re
import zipfile
from pathlib import Path
from typing import Any
from xml.etree import ElementTree

from pypdf import PdfReader

from jobpilot.config import load_profile_file, write_profile_file
from jobpilot.errors import MalformedResponseError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.models import PLATFORM_API, PLATFORM_SCRAPE, Platform, Profile, SearchSettings, new_id
from jobpilot.prompts import PROFILE_FROM_CHAT, RESUME_READINESS, default_prompts, render

log = get_logger(__name__)

READY = "READY"

DEFAULT_PLATFORMS: tuple[Platform, ...] = (
    Platform("default-1", "HeadHunter", "https://hh.ru/search/vacancy", True, PLATFORM_SCRAPE),
    Platform("default-2", "Habr Career", "https://career.habr.com/vacancies", True, PLATFORM_SCRAPE),
    Platform("default-4", "Avito", "https://api.avito.ru", True, PLATFORM_API),
    Platform("default-3", "LinkedIn", "https://www.linkedin.com/jobs/search/", False, PLATFORM_SCRAPE),
)


def default_settings() -> SearchSettings:
    return SearchSettings(
        positions="Frontend-разработчик",
        salary=150000,
        currency="RUB",
        location="Москва",
        remote=True,
        employment=["full"],
        schedule=["fullDay"],
        skills="React, TypeScript, Redux",
        limit=10,
        platforms=[Platform(p.id, p.name, p.url, p.enabled, p.kind) for p in DEFAULT_PLATFORMS],
    )


def default_profile(owner_id: str, name: str, resume: str = "", api_keys: list[str] | None = None) -> Profile:
    return Profile(
        id=new_id(),
        owner_id=owner_id,
        name=name,
        resume=resume,
        settings=default_settings(),
        prompts=default_prompts(),
        api_keys=list(api_keys or []),
    )


# ── Text extraction ──────────────────────────────────────────────────────


def extract_text(path: Path) -> str:
    """Return plain text from a PDF, DOCX, or TXT file."""
    suffix = path.suffix.lower()
    if suffix in (".txt", ".md"):
        return path.read_text(encoding="utf-8", errors="ignore")
    if suffix == ".docx":
        return _extract_docx(path)
    if suffix == ".pdf":
        return _extract_pdf(path)
    raise ValueError(f"Unsupported resume format: {suffix}")


def _fix_spacing(text: str) -> str:
    """Re-insert spaces when PDF extraction merges words together."""
    if not text or len(text) < 50 or text.count(" ") / len(text) > 0.08:
        return text
    fixed = re.sub(r"([a-zа-я])([A-ZА-Я])", r"\1 \2", text)
    fixed = re.sub(r"([.!?,;:])([A-Za-zА-Яа-я])", r"\1 \2", fixed)
    return fixed


def _extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(_fix_spacing(page.extract_text() or "") for page in reader.pages)


def _extract_docx(path: Path) -> str:
    ns = "{http://schemas.openxmlformats.org/wordprocessingml/2006/main}"
    texts: list[str] = []
    with zipfile.ZipFile(path) as zf:
        with zf.open("word/document.xml") as f:
            tree = ElementTree.parse(f)
            for para in tree.iter(f"{ns}p"):
                parts = [node.text for node in para.iter(f"{ns}t") if node.text]
                if parts:
                    texts.append("".join(parts))
    return "\n".join(texts)


# ── LLM onboarding ───────────────────────────────────────────────────────


def analyze_resume(resume_text: str, credentials: CredentialProvider, llm: LLMClient) -> str | None:
    """Return ``None`` when the resume is complete, else one follow-up question."""
    prompt = render(RESUME_READINESS, resume=resume_text)
    answer = credentials.rotate_and_retry(lambda key: llm.complete(prompt, key)).strip()
    if answer.strip("*. ").upper() == READY:
        return None
    return answer


def _settings_from_llm(data: dict[str, Any]) -> SearchSettings:
    settings = SearchSettings.from_dict({
        **data,
        "min_company_rating": data.get("minCompanyRating", data.get("min_company_rating")),
    })
    settings.platforms = [Platform(p.id, p.name, p.url, p.enabled, p.kind) for p in DEFAULT_PLATFORMS]
    return settings


def generate_profile_from_chat(
    chat: str, owner_id: str, credentials: CredentialProvider, llm: LLMClient
) -> Profile:
    prompt = render(PROFILE_FROM_CHAT, chat=chat)
    data = credentials.rotate_and_retry(lambda key: llm.complete_json(prompt, key, context="profile creation"))
    settings = data.get("settings") if isinstance(data, dict) else None
    if (
        not isinstance(settings, dict)
        or not data.get("resume")
        or not data.get("profileName")
        or not settings.get("positions")
    ):
        log.error("Incomplete profile data from the LLM")
        raise MalformedResponseError("profile creation")

    profile = Profile(
        id=new_id(),
        owner_id=owner_id,
        name=str(data["profileName"]).strip(),
        resume=str(data["resume"]).strip(),
        settings=_settings_from_llm(settings),
        prompts=default_prompts(),
        api_keys=list(credentials.profile.api_keys),
    )
    log.info("Profile generated: %s", profile.name)
    return profile


# ── Profile files ───────────────────────────────────────────────────────


def profile_from_file(path: Path | None = None, owner_id: str = "local") -> Profile:
    data = load_profile_file(path)
    data.setdefault("owner_id", owner_id)
    profile = Profile.from_dict(data, default_prompts())
    if not profile.settings.platforms:
        profile.settings.platforms = default_settings().platforms
    return profile


def save_profile_file(profile: Profile, path: Path | None = None) -> Path:
    data = profile.to_dict()
    # Prompts equal to the defaults are not worth persisting
    defaults = default_prompts()
    data["prompts"] = {
        k: v for k, v in data["prompts"].items() if v != getattr(defaults, k)
    }
    return write_profile_file(data, path)
