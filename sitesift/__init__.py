"""sitesift: scoped crawl of one product subtree into plain text (pages + PDFs)."""

from importlib.metadata import PackageNotFoundError, version

from sitesift.config import CrawlLimits, SiftConfig
from sitesift.errors import DocumentDownloadError, DocumentParseError, InvalidStartUrl
from sitesift.models import CrawlResult, DiscoveredLink, HarvestResult, LinkKind
from sitesift.pipeline import crawl, harvest

try:
    __version__ = version("sitesift")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

__all__ = [
    "CrawlLimits",
    "CrawlResult",
    "DiscoveredLink",
    "DocumentDownloadError",
    "DocumentParseError",
    "HarvestResult",
    "InvalidStartUrl",
    "LinkKind",
    "SiftConfig",
    "crawl",
    "harvest",
]
