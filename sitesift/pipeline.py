"""Crawl pipeline: scoped BFS over pages, then batched document download and parsing."""

import logging
import threading
from collections import deque
from typing import Callable

from sitesift.batcher import run_batched
from sitesift.config import CrawlLimits, DocumentSettings, SiftConfig
from sitesift.documents import DocumentRetriever
from sitesift.errors import InvalidStartUrl
from sitesift.fetcher import Fetcher
from sitesift.models import (
    CrawlResult,
    DiscoveredLink,
    DocumentResult,
    FrontierEntry,
    HarvestResult,
    LinkKind,
    PageResult,
)
from sitesift.pdftext import parse_inline, parse_isolated
from sitesift.urls import in_scope, normalize, root_path_hint, same_origin

logger = logging.getLogger(__name__)


def page_tag(url: str) -> str:
    return f"[PAGE:{url}]"


def document_tag(url: str) -> str:
    return f"[DOCUMENT:{url}]"


class CrawlState:
    """
    Everything one crawl mutates: frontier, visited pages/documents, text blocks.
    Check-and-insert operations hold a lock so the visited sets stay exact even if
    pages are fetched by several workers.
    """

    def __init__(self, page_limit: int, document_limit: int) -> None:
        self.page_limit = page_limit
        self.document_limit = document_limit
        self.queue: deque[FrontierEntry] = deque()
        self.queued: set[str] = set()
        self.visited: set[str] = set()
        self.visited_documents: set[str] = set()
        self.pages: list[FrontierEntry] = []
        self.documents: list[DiscoveredLink] = []
        self._blocks: list[str] = []
        self._lock = threading.Lock()

    def seed(self, url: str) -> None:
        with self._lock:
            self.queue.append(FrontierEntry(url, 0))
            self.queued.add(url)

    def next_entry(self) -> FrontierEntry | None:
        """Pop the next entry, or None when the queue is empty or the page limit is reached."""
        with self._lock:
            if not self.queue or len(self.visited) >= self.page_limit:
                return None
            return self.queue.popleft()

    def mark_visited(self, entry: FrontierEntry) -> bool:
        with self._lock:
            if entry.url in self.visited or len(self.visited) >= self.page_limit:
                return False
            self.visited.add(entry.url)
            self.pages.append(entry)
            return True

    def enqueue_page(self, url: str, depth: int) -> bool:
        with self._lock:
            if url in self.visited or url in self.queued:
                return False
            if len(self.visited) + len(self.queue) >= self.page_limit:
                return False
            self.queue.append(FrontierEntry(url, depth))
            self.queued.add(url)
            return True

    def add_document(self, link: DiscoveredLink) -> bool:
        with self._lock:
            if len(self.visited_documents) >= self.document_limit:
                return False
            if link.url in self.visited_documents:
                return False
            self.visited_documents.add(link.url)
            self.documents.append(link)
            return True

    def add_text(self, url: str, text: str) -> None:
        with self._lock:
            self._blocks.append(f"{page_tag(url)}\n{text}")

    def result(self) -> CrawlResult:
        with self._lock:
            return CrawlResult(
                aggregated_text="\n\n".join(self._blocks),
                documents=list(self.documents),
                pages=list(self.pages),
            )


def _scope_for(start_url: str, limits: CrawlLimits) -> str:
    if limits.path_must_contain is not None:
        return limits.path_must_contain.lower().rstrip("/")
    return root_path_hint(start_url)


def crawl(
    start_url: str,
    max_depth: int = 2,
    limits: CrawlLimits | None = None,
    *,
    fetcher: Fetcher | None = None,
    config: SiftConfig | None = None,
) -> CrawlResult:
    """
    Breadth-first crawl of start_url's subtree. Pages outside the origin or the
    required path, deeper than max_depth, or past the page limit are never fetched.
    Documents are collected (not downloaded) in discovery order up to the document limit.
    Raises InvalidStartUrl for an unusable start URL; page failures only shorten the result.
    """
    config = config or SiftConfig()
    limits = limits or config.limits
    policy = config.relevance
    start = normalize(start_url, start_url, keep_query_for_document=False, policy=policy)
    if start is None:
        raise InvalidStartUrl(f"Invalid start URL: {start_url!r}")

    scope = _scope_for(start, limits)
    state = CrawlState(limits.page_limit, limits.document_limit)
    state.seed(start)
    own_fetcher = fetcher is None
    fetcher = fetcher or Fetcher(config.fetch)
    min_chars = fetcher.settings.min_page_chars
    workers = max(1, config.page_workers)
    logger.info(
        "Crawl started: %s (depth %d, pages %d, documents %d, scope %r)",
        start, max_depth, limits.page_limit, limits.document_limit, scope,
    )

    def fetch(entry: FrontierEntry, _index: int = 0) -> PageResult:
        return fetcher.fetch_page(entry.url, root_url=start, policy=policy)

    def triage(entry: FrontierEntry, links: list[DiscoveredLink]) -> None:
        for link in links:
            if not same_origin(link.url, start) or not in_scope(link.url, scope):
                continue
            if link.kind is LinkKind.DOCUMENT:
                if state.add_document(link):
                    logger.info("Document found: %s", link.url)
                continue
            page_url = normalize(link.url, start, keep_query_for_document=False, policy=policy)
            if page_url is None or entry.depth + 1 > max_depth:
                continue
            state.enqueue_page(page_url, entry.depth + 1)

    try:
        while True:
            batch: list[FrontierEntry] = []
            while len(batch) < workers:
                entry = state.next_entry()
                if entry is None:
                    break
                if entry.depth > max_depth or not in_scope(entry.url, scope):
                    logger.debug("Skip (depth/scope): %s", entry.url)
                    continue
                if state.mark_visited(entry):
                    batch.append(entry)
            if not batch:
                break

            if workers > 1 and len(batch) > 1:
                results = run_batched(batch, fetch, concurrency=workers)
            else:
                results = [fetch(entry) for entry in batch]

            # Apply in dequeue order so the result does not depend on completion order
            for entry, page in zip(batch, results):
                logger.info("[%d] %s (%d chars, %d links)", entry.depth, entry.url, len(page.text), len(page.links))
                if len(page.text) >= min_chars:
                    state.add_text(entry.url, page.text)
                triage(entry, page.links)
    finally:
        if own_fetcher:
            fetcher.close()

    result = state.result()
    logger.info("Crawl finished: %d pages, %d documents", len(result.pages), len(result.documents))
    return result


def process_documents(
    links: list[DiscoveredLink],
    retriever: DocumentRetriever,
    settings: DocumentSettings | None = None,
    *,
    on_done: Callable[[int, DocumentResult], None] | None = None,
) -> list[DocumentResult]:
    """
    Download and parse documents in batches of settings.concurrency.
    results[i] always describes links[i]; failures become DocumentResult.error.
    """
    settings = settings or DocumentSettings()
    total = len(links)
    if not total:
        return []
    logger.info("Processing %d documents, %d at a time", total, settings.concurrency)

    def _process(link: DiscoveredLink, index: int) -> DocumentResult:
        logger.info("Document %d/%d: %s", index + 1, total, link.url)
        data = retriever.download(link.url, link.referer)
        if settings.isolate:
            outcome = parse_isolated(
                data, link.url, timeout=settings.parse_timeout, max_pages=settings.max_pages
            )
        else:
            outcome = parse_inline(data, link.url, max_pages=settings.max_pages)
        return DocumentResult(link, index, text=outcome.text, error=outcome.error)

    def _failed(link: DiscoveredLink, index: int, exc: BaseException) -> DocumentResult:
        logger.warning("Failed to process document %d/%d: %s", index + 1, total, exc)
        return DocumentResult(link, index, error=str(exc))

    results = run_batched(
        links,
        _process,
        settings.concurrency,
        pause=settings.batch_pause,
        on_error=_failed,
        on_done=on_done,
    )
    n_ok = sum(1 for r in results if r.ok)
    logger.info("Document processing complete: %d successful, %d failed", n_ok, total - n_ok)
    return results


def combine_text(crawl_result: CrawlResult, documents: list[DocumentResult]) -> str:
    """Page text followed by each parsed document's text, in discovery order."""
    blocks = [crawl_result.aggregated_text] if crawl_result.aggregated_text else []
    for doc in sorted(documents, key=lambda d: d.index):
        if doc.ok and doc.text.strip():
            blocks.append(f"{document_tag(doc.link.url)}\n{doc.text}")
    return "\n\n".join(blocks)


def harvest(
    start_url: str,
    max_depth: int | None = None,
    limits: CrawlLimits | None = None,
    *,
    config: SiftConfig | None = None,
    fetcher: Fetcher | None = None,
    on_document: Callable[[int, DocumentResult], None] | None = None,
) -> HarvestResult:
    """Crawl, then download and parse every discovered document; one text buffer out."""
    config = config or SiftConfig()
    depth = config.max_depth if max_depth is None else max_depth
    own_fetcher = fetcher is None
    fetcher = fetcher or Fetcher(config.fetch)
    try:
        crawl_result = crawl(start_url, depth, limits, fetcher=fetcher, config=config)
        retriever = DocumentRetriever(fetcher, config.documents.repository_rewrites)
        documents = process_documents(
            crawl_result.documents, retriever, config.documents, on_done=on_document
        )
    finally:
        if own_fetcher:
            fetcher.close()
    return HarvestResult(
        crawl=crawl_result,
        documents=documents,
        text=combine_text(crawl_result, documents),
    )
