"""Load env configuration and profile files."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobpilot.log import get_logger, register_secret

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
RESUME_DIR: Path = ROOT_DIR / "resume"

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL = "gemini-2.5-flash"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    for d in (CONFIG_DIR, DATA_DIR, RESUME_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _split_keys(raw: str) -> list[str]:
    return [k.strip() for k in raw.split(",") if k.strip()]


@dataclass
class Settings:
    llm_base_url: str = GEMINI_OPENAI_BASE_URL
    llm_model: str = DEFAULT_MODEL
    fetch_proxy: str = ""
    http_timeout: float = 20.0
    store_path: Path = DATA_DIR / "store.json"
    fallback_api_keys: list[str] = field(default_factory=list)
    avito_client_id: str = ""
    avito_client_secret: str = ""
    gmail_token: str = ""
    gmail_address: str = ""
    owner_id: str = "local"


def load_settings() -> Settings:
    """Read runtime settings from the environment (and .env)."""
    try:
        timeout = float(get_env("JOBPILOT_HTTP_TIMEOUT", "20"))
    except ValueError:
        log.warning("JOBPILOT_HTTP_TIMEOUT is not a number, using 20s")
        timeout = 20.0

    settings = Settings(
        llm_base_url=get_env("JOBPILOT_LLM_BASE_URL", GEMINI_OPENAI_BASE_URL),
        llm_model=get_env("JOBPILOT_LLM_MODEL", DEFAULT_MODEL),
        fetch_proxy=get_env("JOBPILOT_FETCH_PROXY"),
        http_timeout=timeout,
        store_path=Path(get_env("JOBPILOT_STORE_PATH") or DATA_DIR / "store.json"),
        fallback_api_keys=_split_keys(get_env("GEMINI_API_KEYS") or get_env("GEMINI_API_KEY")),
        avito_client_id=get_env("AVITO_CLIENT_ID"),
        avito_client_secret=get_env("AVITO_CLIENT_SECRET"),
        gmail_token=get_env("GMAIL_TOKEN"),
        gmail_address=get_env("GMAIL_ADDRESS"),
        owner_id=get_env("JOBPILOT_OWNER_ID", "local") or "local",
    )
    for secret in (*settings.fallback_api_keys, settings.avito_client_secret, settings.gmail_token):
        register_secret(secret)
    return settings


def load_profile_file(path: Path | None = None) -> dict[str, Any]:
    path = path or PROFILE_PATH
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    # Backward compat: flat search keys at the top level → settings block
    settings = data.setdefault("settings", {})
    for key in ("positions", "salary", "currency", "location", "remote", "platforms", "limit"):
        if key in data and key not in settings:
            settings[key] = data.pop(key)

    # Keys left out of the file come from GEMINI_API_KEYS at run time and are never stored
    for key in data.get("api_keys") or []:
        register_secret(str(key))
    return data


def write_profile_file(data: dict[str, Any], path: Path | None = None) -> Path:
    path = path or PROFILE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    header = (
        "# ============================================================\n"
        "# jobpilot profile\n"
        "# Edit freely; API keys can live in .env as GEMINI_API_KEYS\n"
        "# ============================================================\n\n"
    )
    yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    path.write_text(header + yaml_str, encoding="utf-8")
    log.info("Profile written → %s", path)
    return path
