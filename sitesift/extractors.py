"""Extract main text and classified outgoing links from page HTML."""

from bs4 import BeautifulSoup

from sitesift.config import FetchSettings, RelevancePolicy
from sitesift.models import DiscoveredLink, LinkKind
from sitesift.urls import DEFAULT_POLICY, is_document, is_relevant, normalize, root_path_hint, same_origin

# Elements that never carry product content
NOISE_SELECTORS = "script, style, noscript, template, iframe, svg, nav, header, footer, aside, form"

# Class/id fragments for cookie bars, promo popups and similar overlays
NOISE_CLASS_HINTS = ("cookie", "banner", "popup", "modal", "overlay", "newsletter", "breadcrumb", "chat-widget")

# Main-content candidates, most specific first; first one with enough text wins
MAIN_CONTENT_SELECTORS = (
    "main",
    "article",
    "[role='main']",
    "#main-content",
    ".main-content",
    ".product-details",
    ".content",
    ".container",
)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def strip_noise(soup: BeautifulSoup) -> None:
    """Remove scripts, navigation and overlay elements in place."""
    for tag in soup.select(NOISE_SELECTORS):
        tag.decompose()
    for hint in NOISE_CLASS_HINTS:
        for tag in soup.select(f"[class*='{hint}'], [id*='{hint}']"):
            # Never drop the document skeleton because of a class on <body>
            if tag.name in ("html", "body"):
                continue
            tag.decompose()


def extract_main_text(
    soup: BeautifulSoup,
    selectors: tuple[str, ...] = MAIN_CONTENT_SELECTORS,
    min_chars: int = FetchSettings.min_content_chars,
) -> str:
    """
    Text of the first main-content selector yielding at least min_chars characters,
    else the whole body. Whitespace is collapsed to single spaces. Call strip_noise first.
    """
    for sel in selectors:
        el = soup.select_one(sel)
        if el is None:
            continue
        text = collapse_whitespace(el.get_text(" ", strip=True))
        if len(text) >= min_chars:
            return text
    body = soup.find("body") or soup
    return collapse_whitespace(body.get_text(" ", strip=True))


def _anchor_text(tag) -> str:
    text = collapse_whitespace(tag.get_text(" ", strip=True))
    return text or (tag.get("title") or tag.get("aria-label") or "").strip()


def find_links(
    soup: BeautifulSoup,
    page_url: str,
    root_url: str | None = None,
    policy: RelevancePolicy = DEFAULT_POLICY,
) -> list[DiscoveredLink]:
    """
    Same-origin, relevant links in DOM order, each tagged page or document.
    root_url sets the origin and the path hint (defaults to page_url).
    Embedded object/embed documents are included; duplicates are reported once.
    """
    root = root_url or page_url
    hint = root_path_hint(root)
    seen: set[str] = set()
    links: list[DiscoveredLink] = []

    for tag in soup.select("a[href], object[data], embed[src]"):
        raw = tag.get("href") or tag.get("data") or tag.get("src") or ""
        if not raw.strip() or raw.strip().startswith("#"):
            continue
        if any(m in raw.lower() for m in policy.reject_markers):
            continue
        url = normalize(raw, page_url, policy=policy)
        if url is None or url in seen:
            continue
        if not same_origin(url, root):
            continue
        document = is_document(url, policy)
        if tag.name != "a" and not document:
            continue
        anchor = _anchor_text(tag)
        if not is_relevant(url, anchor, hint, policy):
            continue
        seen.add(url)
        if document:
            links.append(DiscoveredLink(url, LinkKind.DOCUMENT, anchor, referer=page_url))
        else:
            links.append(DiscoveredLink(url, LinkKind.PAGE, anchor))
    return links
