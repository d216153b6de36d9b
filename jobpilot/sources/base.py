from __future__ import annotations

from abc import ABC, abstractmethod

from jobpilot.keys import CredentialProvider
from jobpilot.models import Job, Platform, Profile


class PlatformAdapter(ABC):
    """Turns a profile's search criteria into normalized postings for one platform.

    Adapters are stateless per call; the only side effects are outbound
    network requests.
    """

    kind: str = ""

    @abstractmethod
    def search(self, profile: Profile, platform: Platform, credentials: CredentialProvider) -> list[Job]:
        pass
