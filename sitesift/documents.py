"""Download documents (PDFs), retrying across URL-shape variants after a 404."""

import logging
import re
from urllib.parse import quote, unquote, urlsplit, urlunsplit

import httpx

from sitesift.config import RepositoryRewrite
from sitesift.errors import DocumentDownloadError
from sitesift.fetcher import Fetcher, is_not_found
from sitesift.retry import EXPONENTIAL, RetryPolicy

logger = logging.getLogger(__name__)

DOCUMENT_HEADERS = {
    "Accept": "application/pdf,application/octet-stream;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
}

# Segment-safe characters kept as-is when re-quoting slugified paths
_SEGMENT_SAFE = "-._~!$&'()*+,;=:@"
_SLUG_SEPARATORS_RE = re.compile(r"[\s_]+")
_DASHES_RE = re.compile(r"-{2,}")


def repair_encoding(url: str) -> str:
    """Collapse double-encoded spaces and slashes (%2520 -> %20, %252F -> %2F)."""
    return (
        url.replace("%2520", "%20")
        .replace("%252F", "%2F")
        .replace("%252f", "%2F")
    )


def request_headers(url: str, referer: str | None = None) -> dict[str, str]:
    """Document request headers; Origin (and Referer if not given) come from the URL."""
    headers = dict(DOCUMENT_HEADERS)
    parts = urlsplit(url)
    if parts.scheme and parts.netloc:
        site = f"{parts.scheme}://{parts.netloc}"
        headers["Origin"] = site
        headers["Referer"] = referer or site
    elif referer:
        headers["Referer"] = referer
    return headers


def _with_path(url: str, path: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def repository_url(url: str, rewrites: tuple[RepositoryRewrite, ...]) -> str | None:
    """Repository-style URL for a relative product-path document, or None if no rule applies."""
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    for rule in rewrites:
        if host != rule.host.lower():
            continue
        repo_path = urlsplit(rule.repository_url).path
        if repo_path and parts.path.startswith(repo_path):
            return None  # already a repository URL
        path = unquote(parts.path)
        if not path.lower().startswith(rule.path_prefix.lower()):
            continue
        return f"{rule.repository_url}?{rule.param}={quote(path, safe='')}"
    return None


def lowercase_path(url: str) -> str:
    return _with_path(url, urlsplit(url).path.lower())


def lowercase_directories(url: str) -> str:
    """Lowercase every directory segment, keep the filename's case."""
    head, sep, name = urlsplit(url).path.rpartition("/")
    return _with_path(url, head.lower() + sep + name)


def _slug_segment(segment: str) -> str:
    text = unquote(segment)
    text = _SLUG_SEPARATORS_RE.sub("-", text.strip())
    text = _DASHES_RE.sub("-", text).lower()
    return quote(text, safe=_SEGMENT_SAFE)


def slugify_path(url: str) -> str:
    """Spaces/underscores -> hyphens, lowercased, per path segment."""
    segments = urlsplit(url).path.split("/")
    return _with_path(url, "/".join(_slug_segment(s) for s in segments))


def url_shapes(url: str, rewrites: tuple[RepositoryRewrite, ...] = ()) -> list[tuple[str, str]]:
    """(label, url) in the fixed order they are tried; duplicates are skipped by the caller."""
    shapes = [("direct", url)]
    repo = repository_url(url, rewrites)
    if repo:
        shapes.append(("repository", repo))
    shapes.append(("lowercase", lowercase_path(url)))
    shapes.append(("lowercase-dirs", lowercase_directories(url)))
    shapes.append(("slug", slugify_path(url)))
    return shapes


class DocumentRetriever:
    """Downloads document bytes through a shared Fetcher."""

    def __init__(
        self,
        fetcher: Fetcher,
        rewrites: tuple[RepositoryRewrite, ...] = (),
        *,
        attempts: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.rewrites = rewrites
        settings = fetcher.settings
        self.policy = RetryPolicy(
            max_attempts=attempts if attempts is not None else settings.document_attempts,
            base_delay=retry_delay if retry_delay is not None else settings.document_retry_delay,
            backoff=EXPONENTIAL,
        )

    def download(self, url: str, referer: str | None = None) -> bytes:
        """
        Return the document bytes from the first URL shape that succeeds.
        Only a 404 moves on to the next shape; any other exhausted failure raises
        DocumentDownloadError straight away.
        """
        first = repair_encoding(url)
        if first != url:
            logger.debug("Repaired double encoding: %s -> %s", url, first)
        headers = request_headers(first, referer)
        tried: list[str] = []
        last_exc: httpx.HTTPError | None = None

        for label, candidate in url_shapes(first, self.rewrites):
            if candidate in tried:
                continue
            tried.append(candidate)
            if label != "direct":
                logger.info("Trying %s URL: %s", label, candidate)
            try:
                resp = self.fetcher.retrying_get(candidate, self.policy, headers=headers)
            except httpx.HTTPError as e:
                last_exc = e
                if is_not_found(e):
                    logger.info("Document 404: %s", candidate)
                    continue
                raise DocumentDownloadError(url, f"Download failed ({e})", tried) from e
            data = resp.content
            logger.info("Document downloaded (%d bytes): %s", len(data), candidate)
            return data

        raise DocumentDownloadError(
            url, f"Not found after {len(tried)} URL shape(s)", tried
        ) from last_exc
