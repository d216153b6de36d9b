"""Data models for profiles, postings, tracked jobs and their history."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

# Kanban statuses, in board order.
NEW = "new"
TRACKING = "tracking"
INTERVIEW = "interview"
OFFER = "offer"
ARCHIVE = "archive"

KANBAN_STATUSES: tuple[str, ...] = (NEW, TRACKING, INTERVIEW, OFFER, ARCHIVE)
ACTIVE_STATUSES: frozenset[str] = frozenset({TRACKING, INTERVIEW})
INFERABLE_STATUSES: frozenset[str] = frozenset({TRACKING, INTERVIEW, OFFER, ARCHIVE})

STATUS_LABELS: dict[str, str] = {
    NEW: "Новые вакансии / New",
    TRACKING: "Отслеживаю / Tracking",
    INTERVIEW: "Собеседование / Interview",
    OFFER: "Оффер / Offer",
    ARCHIVE: "Архив / Archive",
}

INTERACTION_TYPES: tuple[str, ...] = ("status_change", "note", "email_sent", "call", "other")

PLATFORM_SCRAPE = "scrape"
PLATFORM_API = "api"
CURRENCIES: tuple[str, ...] = ("RUB", "USD", "EUR")


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


@dataclass
class Platform:
    id: str
    name: str
    url: str
    enabled: bool = True
    kind: str = PLATFORM_SCRAPE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Platform:
        return cls(
            id=str(data.get("id") or new_id()),
            name=data.get("name", ""),
            url=data.get("url", ""),
            enabled=bool(data.get("enabled", True)),
            # "type" is the key older profile documents use
            kind=data.get("kind") or data.get("type") or PLATFORM_SCRAPE,
        )


@dataclass
class SearchSettings:
    positions: str = ""
    salary: int = 0
    currency: str = "RUB"
    location: str = ""
    remote: bool = False
    employment: list[str] = field(default_factory=list)
    schedule: list[str] = field(default_factory=list)
    skills: str = ""
    keywords: str = ""
    min_company_rating: float = 0.0
    limit: int = 10
    platforms: list[Platform] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchSettings:
        currency = data.get("currency") or "RUB"
        return cls(
            positions=data.get("positions") or "",
            salary=int(data.get("salary") or 0),
            currency=currency if currency in CURRENCIES else "RUB",
            location=data.get("location") or "",
            remote=data.get("remote") if isinstance(data.get("remote"), bool) else False,
            employment=_str_list(data.get("employment")),
            schedule=_str_list(data.get("schedule")),
            skills=data.get("skills") or "",
            keywords=data.get("keywords") or "",
            min_company_rating=float(data.get("min_company_rating") or 0),
            limit=int(data.get("limit") or 10),
            platforms=[Platform.from_dict(p) for p in data.get("platforms") or [] if isinstance(p, dict)],
        )

    def enabled_platforms(self) -> list[Platform]:
        return [p for p in self.platforms if p.enabled]


@dataclass
class Prompts:
    job_search: str = ""
    resume_adapt: str = ""
    cover_letter: str = ""
    hr_response_analysis: str = ""
    short_message: str = ""
    email_job_match: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any], defaults: Prompts | None = None) -> Prompts:
        defaults = defaults or cls()
        return cls(**{
            name: data.get(name) or getattr(defaults, name)
            for name in cls.__dataclass_fields__
        })


@dataclass
class Profile:
    id: str
    owner_id: str
    name: str
    resume: str = ""
    settings: SearchSettings = field(default_factory=SearchSettings)
    prompts: Prompts = field(default_factory=Prompts)
    api_keys: list[str] = field(default_factory=list)
    active_key_index: int = 0
    avito_client_id: str | None = None
    avito_client_secret: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_prompts: Prompts | None = None) -> Profile:
        return cls(
            id=str(data.get("id") or new_id()),
            owner_id=data.get("owner_id") or data.get("user_id") or "",
            name=data.get("name") or "",
            resume=data.get("resume") or "",
            settings=SearchSettings.from_dict(data.get("settings") or {}),
            prompts=Prompts.from_dict(data.get("prompts") or {}, default_prompts),
            api_keys=_str_list(data.get("api_keys")),
            active_key_index=int(data.get("active_key_index") or 0),
            avito_client_id=data.get("avito_client_id"),
            avito_client_secret=data.get("avito_client_secret"),
        )


@dataclass(frozen=True)
class Interaction:
    id: str
    type: str
    content: str
    timestamp: str

    @classmethod
    def create(cls, type: str, content: str) -> Interaction:
        if type not in INTERACTION_TYPES:
            type = "other"
        return cls(id=new_id(), type=type, content=content, timestamp=utc_now())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Interaction:
        kind = data.get("type", "other")
        return cls(
            id=str(data.get("id") or new_id()),
            type=kind if kind in INTERACTION_TYPES else "other",
            content=data.get("content", ""),
            timestamp=data.get("timestamp") or utc_now(),
        )


@dataclass
class Contacts:
    email: str | None = None
    phone: str | None = None
    telegram: str | None = None

    def is_empty(self) -> bool:
        return not (self.email or self.phone or self.telegram)

    @classmethod
    def from_dict(cls, data: Any) -> Contacts | None:
        if not isinstance(data, dict):
            return None
        contacts = cls(
            email=data.get("email") or None,
            phone=data.get("phone") or None,
            telegram=data.get("telegram") or None,
        )
        return None if contacts.is_empty() else contacts


@dataclass
class Job:
    """A posting (transient, straight from an adapter) or a tracked application."""

    title: str
    company: str
    url: str
    id: str = ""
    user_id: str = ""
    profile_id: str = ""
    company_rating: float = 0.0
    company_review_summary: str = ""
    salary: str = ""
    location: str = ""
    description: str = ""
    responsibilities: list[str] = field(default_factory=list)
    requirements: list[str] = field(default_factory=list)
    source_platform: str = ""
    contacts: Contacts | None = None
    match_analysis: str | None = None
    kanban_status: str = NEW
    history: list[Interaction] = field(default_factory=list)
    notes: str = ""

    def copy(self, **changes: Any) -> Job:
        changes.setdefault("history", list(self.history))
        changes.setdefault("responsibilities", list(self.responsibilities))
        changes.setdefault("requirements", list(self.requirements))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.contacts is None or self.contacts.is_empty():
            data["contacts"] = None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        try:
            rating = float(data.get("company_rating") or 0)
        except (TypeError, ValueError):
            rating = 0.0
        status = data.get("kanban_status") or NEW
        return cls(
            id=str(data.get("id") or ""),
            user_id=data.get("user_id") or "",
            profile_id=data.get("profile_id") or "",
            title=data.get("title") or "",
            company=data.get("company") or "",
            company_rating=rating,
            company_review_summary=data.get("company_review_summary") or "",
            salary=str(data.get("salary") or ""),
            location=data.get("location") or "",
            description=data.get("description") or "",
            responsibilities=_str_list(data.get("responsibilities")),
            requirements=_str_list(data.get("requirements")),
            source_platform=data.get("source_platform") or "",
            url=(data.get("url") or "").strip(),
            contacts=Contacts.from_dict(data.get("contacts")),
            match_analysis=data.get("match_analysis") or None,
            kanban_status=status if status in KANBAN_STATUSES else TRACKING,
            history=[Interaction.from_dict(h) for h in data.get("history") or [] if isinstance(h, dict)],
            notes=data.get("notes") or "",
        )


@dataclass
class Email:
    id: str
    sender: str
    subject: str
    snippet: str
    body: str

    def text(self) -> str:
        """Text handed to the classifier: headers plus body."""
        return f"From: {self.sender}\nSubject: {self.subject}\n\n{self.body or self.snippet}"
