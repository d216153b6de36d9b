"""Gmail access over the REST API: read recent inbox messages, send mail."""
from __future__ import annotations

import base64
from email.header import Header
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any

import requests
from bs4 import BeautifulSoup

from jobpilot.errors import MissingCredentialError, ProviderError
from jobpilot.log import get_logger, register_secret
from jobpilot.models import Email

log = get_logger(__name__)

API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"


def _b64url_decode(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _header(payload: dict[str, Any], name: str) -> str:
    for h in payload.get("headers") or []:
        if str(h.get("name", "")).lower() == name.lower():
            return h.get("value", "")
    return ""


def extract_body(payload: dict[str, Any]) -> str:
    """Walk a MIME payload tree; prefer text/plain, fall back to stripped text/html."""
    plain: list[str] = []
    html: list[str] = []

    def walk(part: dict[str, Any]) -> None:
        mime = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if data and mime == "text/plain":
            plain.append(_b64url_decode(data))
        elif data and mime == "text/html":
            html.append(_b64url_decode(data))
        for sub in part.get("parts") or []:
            walk(sub)

    walk(payload)
    if plain:
        return "\n".join(plain).strip()
    if html:
        return BeautifulSoup("\n".join(html), "html.parser").get_text("\n", strip=True)
    return ""


def parse_message(message: dict[str, Any]) -> Email:
    payload = message.get("payload") or {}
    return Email(
        id=message.get("id", ""),
        sender=_header(payload, "From"),
        subject=_header(payload, "Subject"),
        snippet=message.get("snippet", ""),
        body=extract_body(payload),
    )


def build_raw_message(to: str, sender: str, subject: str, body: str, sender_name: str | None = None) -> str:
    """RFC 2822 HTML message, base64url-encoded as Gmail's ``raw`` field expects."""
    msg = MIMEText(body.replace("\n", "<br>"), "html", "utf-8")
    msg["To"] = to
    msg["From"] = formataddr((sender_name, sender)) if sender_name else sender
    msg["Subject"] = Header(subject, "utf-8")
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")


class GmailClient:
    def __init__(self, token: str, timeout: float = 20.0) -> None:
        if not token:
            raise MissingCredentialError("Gmail access token")
        register_secret(token)
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            r = requests.request(
                method,
                f"{API_BASE}/{path}",
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise ProviderError("Network error while calling Gmail.") from exc
        if r.status_code == 401:
            raise ProviderError("Gmail rejected the access token. Reconnect the account.")
        if not r.ok:
            raise ProviderError(f"Gmail answered with status {r.status_code}.")
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as exc:
            raise ProviderError("Gmail returned an unreadable response.") from exc

    def list_recent(self, limit: int = 10) -> list[Email]:
        listing = self._request("GET", "messages", params={"labelIds": "INBOX", "maxResults": limit})
        emails: list[Email] = []
        for ref in listing.get("messages") or []:
            message = self._request("GET", f"messages/{ref['id']}", params={"format": "full"})
            emails.append(parse_message(message))
        log.info("Fetched %d inbox message(s)", len(emails))
        return emails

    def send(self, to: str, sender: str, subject: str, body: str, sender_name: str | None = None) -> str:
        raw = build_raw_message(to, sender, subject, body, sender_name)
        result = self._request("POST", "messages/send", json={"raw": raw})
        log.info("Email sent to %s", to)
        return result.get("id", "")
