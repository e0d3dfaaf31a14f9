"""Exceptions raised by sitesift."""


class SiftError(Exception):
    """Base class for sitesift errors."""


class InvalidStartUrl(SiftError, ValueError):
    """The crawl start URL could not be parsed as an absolute http(s) URL."""


class DocumentDownloadError(SiftError):
    """A document could not be downloaded after all retries and URL fallbacks."""

    def __init__(self, url: str, message: str, tried: list[str] | None = None) -> None:
        super().__init__(f"{message} for url '{url}'")
        self.url = url
        self.tried = list(tried or [])


class DocumentParseError(SiftError):
    """Document bytes could not be parsed (corrupt, encrypted, not a PDF)."""
