"""Shared fixtures: an in-memory site served through httpx.MockTransport, and tiny PDFs."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from sitesift.config import DocumentSettings, FetchSettings, SiftConfig
from sitesift.fetcher import Fetcher

HTML = "text/html; charset=utf-8"


def html_page(text: str, links: list[tuple[str, str]] = (), extra: str = "") -> str:
    """Minimal product page: one <main> paragraph plus anchors."""
    anchors = "".join(f'<a href="{href}">{label}</a> ' for href, label in links)
    return (
        "<html><head><title>t</title><script>var x = 1;</script></head><body>"
        f"<main><p>{text}</p>{anchors}</main>{extra}</body></html>"
    )


def make_pdf(pages: list[str]) -> bytes:
    """Build a small valid PDF, one Helvetica text line per page."""
    n = len(pages)
    kids = " ".join(f"{4 + 2 * i} 0 R" for i in range(n))
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, text in enumerate(pages):
        content_id = 5 + 2 * i
        stream = f"BT /F1 12 Tf 72 720 Td ({text}) Tj ET".encode()
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {content_id} 0 R >>"
            ).encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


class Site:
    """
    Route table for MockTransport. A route value is a (status, body, content_type)
    tuple, a bare HTML string, or a callable(request) returning an httpx.Response
    (or raising an httpx error). Every request URL is recorded in .requests.
    """

    def __init__(self, routes: dict[str, object] | None = None) -> None:
        self.routes: dict[str, object] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def hits(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        if isinstance(route, str):
            return httpx.Response(200, text=route, headers={"Content-Type": HTML})
        status, body, content_type = route
        if isinstance(body, str):
            body = body.encode()
        return httpx.Response(status, content=body, headers={"Content-Type": content_type})


def quiet_settings(**overrides) -> FetchSettings:
    """FetchSettings with every delay zeroed."""
    params = dict(request_delay=0.0, page_retry_delay=0.0, document_retry_delay=0.0)
    params.update(overrides)
    return FetchSettings(**params)


def quiet_config(**overrides) -> SiftConfig:
    return SiftConfig(
        fetch=quiet_settings(),
        documents=DocumentSettings(isolate=False, batch_pause=0.0, repository_rewrites=()),
        **overrides,
    )


@pytest.fixture
def site() -> Site:
    return Site()


@pytest.fixture
def make_fetcher() -> Callable[..., Fetcher]:
    fetchers: list[Fetcher] = []

    def _make(handler, **settings) -> Fetcher:
        fetcher = Fetcher(
            quiet_settings(**settings),
            transport=httpx.MockTransport(handler),
            sleep=lambda _delay: None,
        )
        fetchers.append(fetcher)
        return fetcher

    yield _make
    for f in fetchers:
        f.close()
