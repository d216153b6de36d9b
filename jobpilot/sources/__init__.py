from .base import PlatformAdapter
from .avito import AvitoAdapter
from .scrape import ScrapeAdapter

from jobpilot.config import Settings
from jobpilot.llm import LLMClient
from jobpilot.log import get_logger
from jobpilot.models import PLATFORM_API, PLATFORM_SCRAPE

log = get_logger(__name__)

__all__ = [
    "PlatformAdapter", "AvitoAdapter", "ScrapeAdapter",
    "get_adapters",
]


def get_adapters(llm: LLMClient, settings: Settings | None = None) -> dict[str, PlatformAdapter]:
    """Adapter per platform kind."""
    adapters: dict[str, PlatformAdapter] = {
        PLATFORM_SCRAPE: ScrapeAdapter(llm, settings),
        PLATFORM_API: AvitoAdapter(settings),
    }
    log.debug("Registered adapters: %s", ", ".join(adapters))
    return adapters
