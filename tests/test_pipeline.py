"""End-to-end crawl and harvest over an in-memory site."""

from dataclasses import replace

import httpx
import pytest

from sitesift.config import CrawlLimits
from sitesift.errors import InvalidStartUrl
from sitesift.models import CrawlResult, DiscoveredLink, DocumentResult, LinkKind
from sitesift.pipeline import combine_text, crawl, harvest, page_tag

from tests.conftest import html_page, make_pdf, quiet_config

ROOT = "https://bank.example.com"
START = f"{ROOT}/cards/x"


def card_site(site):
    site.routes.update({
        "/cards/x": html_page(
            "X card overview with welcome benefits and a fuel surcharge waiver.",
            [
                ("/cards/x/details", "Details"),
                ("/cards/x/fees", "Fees and charges"),
                ("/cards/y", "Other card benefits"),
                ("/about", "About us"),
                ("https://partner.example.org/cards/x/offers", "Partner offers"),
                ("/cards/x/terms.pdf", "Terms"),
            ],
        ),
        "/cards/x/details": html_page(
            "Detailed features of the X card including lounge access every quarter.",
            [("/cards/x/details/more", "More benefits"), ("/cards/x/terms.pdf", "Terms again")],
        ),
        "/cards/x/fees": html_page("Annual fee 500 rupees, waived on spends above fifty thousand."),
        "/cards/x/details/more": html_page("Even more benefits that live two levels below the start page."),
        "/cards/y": html_page("Y card page that must never be fetched."),
        "/cards/x/terms.pdf": (200, make_pdf(["Most important terms and conditions"]), "application/pdf"),
    })
    return site


def visited(result):
    return [page.url for page in result.pages]


class TestCrawl:
    def test_depth_one_scenario(self, site, make_fetcher):
        card_site(site)
        site.routes["/cards/x"] = html_page(
            "X card overview with welcome benefits.", [("/cards/x/details", "Details"), ("/cards/y", "Other")]
        )
        result = crawl(START, 1, fetcher=make_fetcher(site), config=quiet_config())
        assert set(visited(result)) == {START, f"{START}/details"}
        assert site.hits("/cards/y") == 0
        assert site.hits("/cards/x/details/more") == 0

    def test_breadth_first_depths(self, site, make_fetcher):
        card_site(site)
        result = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        assert [(p.url, p.depth) for p in result.pages] == [
            (START, 0),
            (f"{START}/details", 1),
            (f"{START}/fees", 1),
            (f"{START}/details/more", 2),
        ]

    def test_out_of_scope_and_foreign_links_never_fetched(self, site, make_fetcher):
        card_site(site)
        crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        hosts = {r.url.host for r in site.requests}
        assert hosts == {"bank.example.com"}
        assert site.hits("/cards/y") == 0
        assert site.hits("/about") == 0

    def test_documents_collected_once(self, site, make_fetcher):
        card_site(site)
        result = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        assert [d.url for d in result.documents] == [f"{START}/terms.pdf"]
        doc = result.documents[0]
        assert doc.kind is LinkKind.DOCUMENT
        assert doc.referer == START
        # collected, not downloaded
        assert site.hits("/cards/x/terms.pdf") == 0

    def test_page_tags_unique(self, site, make_fetcher):
        card_site(site)
        result = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        assert result.aggregated_text.count(page_tag(START)) == 1
        assert result.aggregated_text.startswith(page_tag(START))
        assert "lounge access" in result.aggregated_text
        assert len(visited(result)) == len(set(visited(result)))

    def test_page_limit(self, site, make_fetcher):
        card_site(site)
        result = crawl(START, 2, CrawlLimits(page_limit=2), fetcher=make_fetcher(site), config=quiet_config())
        assert visited(result) == [START, f"{START}/details"]
        assert len(site.requests) == 2

    def test_document_limit(self, site, make_fetcher):
        links = [(f"/cards/x/doc{i}.pdf", f"Schedule {i}") for i in range(5)]
        site.routes["/cards/x"] = html_page("X card overview with many schedules attached.", links)
        result = crawl(START, 1, CrawlLimits(document_limit=2), fetcher=make_fetcher(site), config=quiet_config())
        assert [d.url for d in result.documents] == [f"{START}/doc0.pdf", f"{START}/doc1.pdf"]

    def test_path_must_contain_override(self, site, make_fetcher):
        card_site(site)
        result = crawl(START, 1, CrawlLimits(path_must_contain="/cards"), fetcher=make_fetcher(site), config=quiet_config())
        assert visited(result) == [START, f"{START}/details", f"{START}/fees", f"{ROOT}/cards/y"]

    def test_start_outside_required_path(self, site, make_fetcher):
        card_site(site)
        limits = CrawlLimits(path_must_contain="/cards/x/fees")
        result = crawl(START, 2, limits, fetcher=make_fetcher(site), config=quiet_config())
        assert visited(result) == []
        assert site.requests == []

    def test_page_timeouts_skip_and_continue(self, site, make_fetcher):
        card_site(site)

        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        site.routes["/cards/x/details"] = slow
        result = crawl(START, 1, fetcher=make_fetcher(site), config=quiet_config())
        assert site.hits("/cards/x/details") == 3
        assert page_tag(f"{START}/details") not in result.aggregated_text
        assert page_tag(f"{START}/fees") in result.aggregated_text

    def test_start_page_404(self, site, make_fetcher):
        result = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        assert result.aggregated_text == ""
        assert result.documents == []

    @pytest.mark.parametrize("bad", ["", "not a url", "ftp://bank.example.com/cards/x", "mailto:a@b.c"])
    def test_invalid_start_url(self, bad):
        with pytest.raises(InvalidStartUrl):
            crawl(bad, config=quiet_config())

    def test_parallel_page_workers_same_result(self, site, make_fetcher):
        card_site(site)
        serial = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config())
        parallel = crawl(START, 2, fetcher=make_fetcher(site), config=quiet_config(page_workers=3))
        assert visited(parallel) == visited(serial)
        assert parallel.aggregated_text == serial.aggregated_text
        assert [d.url for d in parallel.documents] == [d.url for d in serial.documents]


class TestHarvest:
    def test_documents_appended_after_pages(self, site, make_fetcher):
        card_site(site)
        result = harvest(START, 1, fetcher=make_fetcher(site), config=quiet_config())
        assert [d.ok for d in result.documents] == [True]
        doc_tag = f"[DOCUMENT:{START}/terms.pdf]"
        assert doc_tag in result.text
        assert result.text.index(page_tag(START)) < result.text.index(doc_tag)
        assert "[PAGE 1]" in result.text
        assert "Most important terms and conditions" in result.text

    def test_failed_document_does_not_abort(self, site, make_fetcher):
        card_site(site)
        site.routes["/cards/x"] = html_page(
            "X card overview with two documents.",
            [("/cards/x/broken.pdf", "Broken terms"), ("/cards/x/terms.pdf", "Terms")],
        )
        site.routes["/cards/x/broken.pdf"] = (200, b"this is not a pdf", "application/pdf")
        result = harvest(START, 0, fetcher=make_fetcher(site), config=quiet_config())
        assert [d.link.url for d in result.documents] == [f"{START}/broken.pdf", f"{START}/terms.pdf"]
        assert [d.link.url for d in result.failed] == [f"{START}/broken.pdf"]
        assert "[DOCUMENT:" + START + "/broken.pdf]" not in result.text
        assert "Most important terms" in result.text

    def test_missing_document_reported(self, site, make_fetcher):
        card_site(site)
        del site.routes["/cards/x/terms.pdf"]
        result = harvest(START, 0, fetcher=make_fetcher(site), config=quiet_config())
        assert len(result.failed) == 1
        assert "Not found" in result.failed[0].error

    def test_on_document_callback(self, site, make_fetcher):
        card_site(site)
        seen = []
        harvest(
            START, 0, fetcher=make_fetcher(site), config=quiet_config(),
            on_document=lambda index, doc: seen.append((index, doc.ok)),
        )
        assert seen == [(0, True)]

    def test_isolated_parsing(self, site, make_fetcher):
        card_site(site)
        config = quiet_config()
        config = replace(config, documents=replace(config.documents, isolate=True, parse_timeout=60))
        result = harvest(START, 0, fetcher=make_fetcher(site), config=config)
        assert "Most important terms and conditions" in result.text


def test_combine_text_skips_failed_and_empty():
    link = DiscoveredLink(f"{START}/a.pdf", LinkKind.DOCUMENT)
    docs = [
        DocumentResult(link, 1, text="second"),
        DocumentResult(link, 0, text="first"),
        DocumentResult(link, 2, error="boom"),
        DocumentResult(link, 3, text="   "),
    ]
    text = combine_text(CrawlResult(aggregated_text="[PAGE:x]\npage"), docs)
    assert text.index("first") < text.index("second")
    assert "boom" not in text
    assert text.count("[DOCUMENT:") == 2
