"""Plain data values passed between the crawler, fetcher and document stages."""

from dataclasses import dataclass, field
from enum import Enum


class LinkKind(str, Enum):
    """What a discovered link points at."""

    PAGE = "page"
    DOCUMENT = "document"


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int


@dataclass(frozen=True)
class DiscoveredLink:
    """A link found on a page, already normalized and classified."""

    url: str
    kind: LinkKind
    anchor_text: str = ""
    referer: str | None = None  # page the document was found on


@dataclass
class PageResult:
    """Result of fetching one page: main text and relevant outgoing links."""

    text: str = ""
    links: list[DiscoveredLink] = field(default_factory=list)


@dataclass
class CrawlResult:
    """Aggregated page text plus documents discovered, in discovery order."""

    aggregated_text: str = ""
    documents: list[DiscoveredLink] = field(default_factory=list)
    pages: list[FrontierEntry] = field(default_factory=list)


@dataclass
class DocumentResult:
    """Outcome for one document; index is its position in discovery order."""

    link: DiscoveredLink
    index: int
    text: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class HarvestResult:
    """Crawl result plus document text, ready for the extraction stage."""

    crawl: CrawlResult
    documents: list[DocumentResult] = field(default_factory=list)
    text: str = ""

    @property
    def failed(self) -> list[DocumentResult]:
        return [d for d in self.documents if not d.ok]
