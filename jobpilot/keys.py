"""LLM API key pool with round-robin failover.

A profile keeps an ordered list of interchangeable keys plus the index of the
active one. A profile without keys of its own uses the fallback pool from the
environment; those keys are never written onto the profile. When the provider
reports quota exhaustion the pool advances to the next key and the call is
retried once.
"""
from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar

from jobpilot.errors import MissingCredentialError, QuotaExceededError
from jobpilot.log import get_logger, register_secret
from jobpilot.models import Profile

log = get_logger(__name__)

T = TypeVar("T")


def _clean(keys: Sequence[str]) -> list[str]:
    return [k.strip() for k in keys if k and k.strip()]


def _keys(profile: Profile, fallback: Sequence[str] = ()) -> list[str]:
    return _clean(profile.api_keys) or _clean(fallback)


def current_key(profile: Profile, fallback: Sequence[str] = ()) -> str | None:
    keys = _keys(profile, fallback)
    if not keys:
        return None
    return keys[profile.active_key_index % len(keys)]


def rotate(profile: Profile, fallback: Sequence[str] = ()) -> None:
    """Advance the active index; no-op for a pool of one key or none."""
    keys = _keys(profile, fallback)
    if len(keys) <= 1:
        return
    profile.active_key_index = (profile.active_key_index + 1) % len(keys)
    log.info("Rotated API key for profile %s to index %d", profile.id, profile.active_key_index)


class CredentialProvider:
    """Per-operation capability: the active key plus rotate-and-retry.

    *on_rotate* is called with the profile after every effective rotation so
    the caller can persist the new index (last writer wins). *fallback_keys*
    is used only while the profile has no keys of its own.
    """

    def __init__(
        self,
        profile: Profile,
        on_rotate: Callable[[Profile], Any] | None = None,
        fallback_keys: Sequence[str] = (),
    ) -> None:
        self.profile = profile
        self.on_rotate = on_rotate
        self.fallback_keys = list(fallback_keys)
        for key in self.keys():
            register_secret(key)

    def keys(self) -> list[str]:
        """The effective pool, in rotation order."""
        return _keys(self.profile, self.fallback_keys)

    def current(self) -> str:
        key = current_key(self.profile, self.fallback_keys)
        if key is None:
            raise MissingCredentialError()
        return key

    def rotate(self) -> bool:
        """Rotate the pool; return True if a different key is now active."""
        before = current_key(self.profile, self.fallback_keys)
        rotate(self.profile, self.fallback_keys)
        changed = current_key(self.profile, self.fallback_keys) != before
        if changed and self.on_rotate is not None:
            try:
                self.on_rotate(self.profile)
            except Exception as exc:
                log.warning("Could not persist rotated key index: %s", exc)
        return changed

    def rotate_and_retry(self, fn: Callable[[str], T]) -> T:
        """Call ``fn(key)``; on quota exhaustion rotate and retry exactly once."""
        key = self.current()
        try:
            return fn(key)
        except QuotaExceededError:
            if not self.rotate():
                log.warning("Quota exhausted and no other API key to fail over to")
                raise
            log.warning("Quota exhausted, retrying once with the next API key")
            return fn(self.current())

