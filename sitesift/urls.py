"""URL canonicalization, document classification, origin and relevance checks."""

from urllib.parse import urljoin, urlsplit, urlunsplit

from sitesift.config import RelevancePolicy

DEFAULT_POLICY = RelevancePolicy()

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _path_is_document(path: str, policy: RelevancePolicy) -> bool:
    lower = path.lower()
    if lower.endswith(policy.document_extensions):
        return True
    return any(m in lower for m in policy.document_markers)


def is_document(url: str, policy: RelevancePolicy = DEFAULT_POLICY) -> bool:
    """True if the path has a document extension or path/query carry a document marker."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if _path_is_document(parts.path, policy):
        return True
    query = parts.query.lower()
    return bool(query) and any(m in query for m in policy.document_markers)


def normalize(
    raw: str,
    base: str,
    keep_query_for_document: bool = True,
    policy: RelevancePolicy = DEFAULT_POLICY,
) -> str | None:
    """
    Resolve raw against base and return a canonical absolute http(s) URL, or None.
    Fragment is always dropped; query is kept only for documents (when asked);
    a trailing slash is removed from non-root, non-document paths.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parts = urlsplit(urljoin(base, raw.strip()))
        scheme = parts.scheme.lower()
        netloc = parts.netloc.lower()
        if scheme not in _DEFAULT_PORTS or not parts.hostname:
            return None
        _ = parts.port  # raises ValueError on a malformed port
    except ValueError:
        return None

    path = parts.path or "/"
    query = parts.query
    document = is_document(urlunsplit((scheme, netloc, path, query, "")), policy)
    if not document or not keep_query_for_document:
        query = ""
    # Slash handling looks at the path only so that dropping the query cannot flip it
    if len(path) > 1 and path.endswith("/") and not _path_is_document(path, policy):
        path = path.rstrip("/") or "/"
    return urlunsplit((scheme, netloc, path, query, ""))


def origin(url: str) -> tuple[str, str, int] | None:
    """(scheme, host, port) with default ports made explicit; None if unparseable."""
    try:
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        host = (parts.hostname or "").lower()
        port = parts.port or _DEFAULT_PORTS.get(scheme)
    except ValueError:
        return None
    if not scheme or not host or port is None:
        return None
    return scheme, host, port


def same_origin(url: str, root: str) -> bool:
    """True iff scheme, host and port of url match root exactly."""
    a = origin(url)
    return a is not None and a == origin(root)


def url_path(url: str) -> str:
    """Lowercased path of url ("" if unparseable)."""
    try:
        return urlsplit(url).path.lower()
    except ValueError:
        return ""


def root_path_hint(url: str) -> str:
    """Lowercased path of the crawl root without trailing slash; "" for the site root."""
    return url_path(url).rstrip("/")


def in_scope(url: str, path_must_contain: str | None) -> bool:
    if not path_must_contain:
        return True
    return path_must_contain.lower() in url_path(url)


def is_relevant(
    url: str,
    anchor_text: str = "",
    root_hint: str = "",
    policy: RelevancePolicy = DEFAULT_POLICY,
) -> bool:
    """
    Decide whether a same-site link is worth following. Rejects placeholders and
    non-content links; accepts documents, links under the root path (either as a
    path or in its dashed slug form), and links whose URL or anchor text carries
    a relevance keyword or a compound hint like "click here ... charges".
    """
    url_lower = url.lower()
    text_lower = " ".join((anchor_text or "").split()).lower()

    if any(m in url_lower for m in policy.reject_markers):
        return False
    if is_document(url, policy):
        return True
    if root_hint:
        slug = root_hint.strip("/").replace("/", "-")
        if root_hint in url_lower or (slug and slug in url_lower):
            return True
    if any(k in text_lower or k in url_lower for k in policy.keywords):
        return True
    if any(t in text_lower for t in policy.compound_triggers):
        return any(term in text_lower or term in url_lower for term in policy.compound_terms)
    return False
