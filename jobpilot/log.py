"""Centralized logging configuration — stdlib only."""
from __future__ import annotations

import logging
import os
import re
import sys
from datetime import datetime
from pathlib import Path

_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False

# Google API keys, OpenAI-style secret keys and bearer tokens.
_KEY_PATTERNS = (
    re.compile(r"AIza[0-9A-Za-z_\-]{20,}"),
    re.compile(r"sk-[0-9A-Za-z_\-]{16,}"),
    re.compile(r"(?i)bearer\s+[0-9A-Za-z._\-]{16,}"),
)
_MASK = "***"
_registered_secrets: set[str] = set()


def register_secret(value: str) -> None:
    """Mask *value* in every log record from now on."""
    if value and len(value) >= 6:
        _registered_secrets.add(value)


def mask_secrets(text: str) -> str:
    for secret in _registered_secrets:
        text = text.replace(secret, _MASK)
    for pattern in _KEY_PATTERNS:
        text = pattern.sub(_MASK, text)
    return text


class SecretsFilter(logging.Filter):
    """Strip API keys from the rendered message before any handler sees it."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    return logging.getLogger(name)


def _configure() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    secrets_filter = SecretsFilter()
    if root.handlers:
        for handler in root.handlers:
            handler.addFilter(secrets_filter)
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    console.addFilter(secrets_filter)
    root.addHandler(console)

    if os.environ.get("JOBPILOT_LOG_TO_FILE", "true").lower() not in ("1", "true", "yes"):
        return
    try:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = _LOG_DIR / f"jobpilot_{datetime.now().strftime('%Y-%m-%d')}.log"
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
        fh.addFilter(secrets_filter)
        root.addHandler(fh)
    except OSError:
        pass
