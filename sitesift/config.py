"""Crawl limits, relevance keywords, fetch and document settings. Env overrides via SITESIFT_*."""

import os
from dataclasses import dataclass, field, replace

# Browser-like UA; product sites behind CDNs often 403 obvious bots
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

ENV_PREFIX = "SITESIFT_"

DEFAULT_KEYWORDS = (
    "terms",
    "conditions",
    "tnc",
    "t&c",
    "benefits",
    "features",
    "offers",
    "lounge",
    "rewards",
    "fees",
    "charges",
    "product",
    "privilege",
    "eligibility",
    "know more",
)

# Anchor text that only counts together with one of COMPOUND_TERMS
DEFAULT_COMPOUND_TRIGGERS = ("click here", "read more", "learn more")
DEFAULT_COMPOUND_TERMS = ("terms", "charges", "fees", "conditions")

DEFAULT_REJECT_MARKERS = (
    "javascript:",
    "tel:",
    "mailto:",
    "whatsapp:",
    "{{",
    "}}",
    "${",
    "%7b%7b",
    "%7d%7d",
    "/login",
    "/logout",
    "/signin",
    "/sign-in",
    "/share",
    "/print",
    "/careers",
    "/search",
)

DEFAULT_DOCUMENT_EXTENSIONS = (".pdf",)
DEFAULT_DOCUMENT_MARKERS = (
    "pdf",
    "document",
    "brochure",
    "policy",
    "/content/bbp/repositories/",
)


@dataclass(frozen=True)
class RelevancePolicy:
    """Keyword sets deciding which links are followed and which count as documents."""

    keywords: tuple[str, ...] = DEFAULT_KEYWORDS
    compound_triggers: tuple[str, ...] = DEFAULT_COMPOUND_TRIGGERS
    compound_terms: tuple[str, ...] = DEFAULT_COMPOUND_TERMS
    reject_markers: tuple[str, ...] = DEFAULT_REJECT_MARKERS
    document_extensions: tuple[str, ...] = DEFAULT_DOCUMENT_EXTENSIONS
    document_markers: tuple[str, ...] = DEFAULT_DOCUMENT_MARKERS


@dataclass(frozen=True)
class RepositoryRewrite:
    """
    Site convention where documents linked by a relative product path are actually
    served from a content repository, e.g.
    /Personal/Pay/Cards/x.pdf -> /content/bbp/repositories/<id>/?path=%2FPersonal%2FPay%2FCards%2Fx.pdf
    """

    host: str
    path_prefix: str
    repository_url: str
    param: str = "path"


HDFC_REPOSITORY = RepositoryRewrite(
    host="www.hdfcbank.com",
    path_prefix="/personal/pay/cards/",
    repository_url="https://www.hdfcbank.com/content/bbp/repositories/723fb80a-2dde-42a3-9793-7ae1be57c87f/",
)


@dataclass(frozen=True)
class CrawlLimits:
    page_limit: int = 20
    document_limit: int = 20
    path_must_contain: str | None = None  # None = start URL's path


@dataclass(frozen=True)
class FetchSettings:
    timeout: float = 15.0
    max_redirects: int = 10
    page_attempts: int = 3
    page_retry_delay: float = 0.5  # linear: delay * attempt
    document_attempts: int = 3
    document_retry_delay: float = 0.3
    request_delay: float = 0.3  # polite pause before each page fetch
    user_agent: str = DEFAULT_USER_AGENT
    min_content_chars: int = 200  # main-content selector must yield at least this much
    min_page_chars: int = 20  # shorter page text is not aggregated


@dataclass(frozen=True)
class DocumentSettings:
    concurrency: int = 3
    max_pages: int = 10
    isolate: bool = True  # parse each PDF in a child process
    parse_timeout: float = 30.0
    batch_pause: float = 0.1
    repository_rewrites: tuple[RepositoryRewrite, ...] = (HDFC_REPOSITORY,)


@dataclass(frozen=True)
class SiftConfig:
    limits: CrawlLimits = field(default_factory=CrawlLimits)
    relevance: RelevancePolicy = field(default_factory=RelevancePolicy)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    documents: DocumentSettings = field(default_factory=DocumentSettings)
    max_depth: int = 2
    page_workers: int = 1

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "SiftConfig":
        """Defaults overridden by SITESIFT_* variables (invalid values are ignored)."""
        env = os.environ if environ is None else environ
        base = cls()
        limits = replace(
            base.limits,
            page_limit=_env_int(env, "PAGE_LIMIT", base.limits.page_limit),
            document_limit=_env_int(env, "DOC_LIMIT", base.limits.document_limit),
            path_must_contain=_env_str(env, "PATH_CONTAINS") or base.limits.path_must_contain,
        )
        fetch = replace(
            base.fetch,
            timeout=_env_float(env, "TIMEOUT", base.fetch.timeout),
            request_delay=_env_float(env, "DELAY", base.fetch.request_delay),
        )
        documents = replace(
            base.documents,
            concurrency=_env_int(env, "CONCURRENCY", base.documents.concurrency),
            max_pages=_env_int(env, "MAX_PDF_PAGES", base.documents.max_pages),
            isolate=_env_bool(env, "ISOLATE_PDF", base.documents.isolate),
            parse_timeout=_env_float(env, "PARSE_TIMEOUT", base.documents.parse_timeout),
        )
        return replace(
            base,
            limits=limits,
            fetch=fetch,
            documents=documents,
            max_depth=_env_int(env, "MAX_DEPTH", base.max_depth),
            page_workers=_env_int(env, "PAGE_WORKERS", base.page_workers),
        )


def _env_str(env, name: str) -> str | None:
    val = env.get(ENV_PREFIX + name, "").strip()
    return val or None


def _env_int(env, name: str, default: int) -> int:
    val = _env_str(env, name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _env_float(env, name: str, default: float) -> float:
    val = _env_str(env, name)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        return default


def _env_bool(env, name: str, default: bool) -> bool:
    val = _env_str(env, name)
    if val is None:
        return default
    return val.lower() not in ("0", "false", "no", "off")
