"""
PDF text extraction with pypdf: page-ordered, page-capped, one [PAGE n] block per page.

Parsing can run in a child process (parse_isolated) so a corrupt or pathological
document cannot hang or crash the crawler; the child gets the bytes and the source
URL and sends back a tagged ("ok", text) / ("error", message) tuple over a pipe.
"""

import io
import logging
import multiprocessing
from dataclasses import dataclass

from pypdf import PdfReader

from sitesift.errors import DocumentParseError

logger = logging.getLogger(__name__)

MAX_PAGES = 10
PARSE_TIMEOUT = 30.0


@dataclass
class ParseOutcome:
    """Tagged result of parsing one document."""

    url: str
    text: str = ""
    error: str | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def page_marker(number: int) -> str:
    return f"[PAGE {number}]"


def extract_text(data: bytes, max_pages: int = MAX_PAGES, *, source: str = "") -> str:
    """
    Text of the first max_pages pages. Text runs are joined with single spaces.
    A page that fails is logged and skipped; unreadable documents raise DocumentParseError.
    """
    label = source or "document"
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            reader.decrypt("")
        total = len(reader.pages)
    except Exception as e:
        raise DocumentParseError(f"Unreadable PDF {label}: {e}") from e

    limit = min(total, max_pages)
    logger.debug("PDF pages: %d (reading %d) %s", total, limit, label)
    blocks: list[str] = []
    for i in range(limit):
        try:
            page_text = reader.pages[i].extract_text() or ""
        except Exception as e:
            logger.warning("Error processing page %d of %s: %s", i + 1, label, e)
            continue
        blocks.append(f"{page_marker(i + 1)}\n{' '.join(page_text.split())}")
    text = "\n\n".join(blocks)
    logger.debug("PDF text extracted: %d chars %s", len(text), label)
    return text


def _parse_worker(conn, data: bytes, url: str, max_pages: int) -> None:
    """Child-process entry point."""
    try:
        conn.send(("ok", extract_text(data, max_pages, source=url)))
    except Exception as e:
        conn.send(("error", str(e) or type(e).__name__))
    finally:
        conn.close()


def parse_inline(data: bytes, url: str, *, max_pages: int = MAX_PAGES) -> ParseOutcome:
    try:
        return ParseOutcome(url, text=extract_text(data, max_pages, source=url))
    except DocumentParseError as e:
        return ParseOutcome(url, error=str(e))


def parse_isolated(
    data: bytes,
    url: str,
    *,
    timeout: float = PARSE_TIMEOUT,
    max_pages: int = MAX_PAGES,
) -> ParseOutcome:
    """
    Parse in a child process. On timeout the child is terminated and a failed
    outcome with timed_out=True is returned; no retry happens here.
    """
    # spawn: forking a process that runs download threads is unsafe
    ctx = multiprocessing.get_context("spawn")
    recv_conn, send_conn = ctx.Pipe(duplex=False)
    proc = ctx.Process(target=_parse_worker, args=(send_conn, data, url, max_pages), daemon=True)
    proc.start()
    send_conn.close()
    try:
        if not recv_conn.poll(timeout):
            logger.warning("Parse timeout for %s after %.0fs, terminating worker", url, timeout)
            return ParseOutcome(url, error=f"PDF parsing timeout for {url}", timed_out=True)
        try:
            status, payload = recv_conn.recv()
        except EOFError:
            proc.join(5)
            return ParseOutcome(url, error=f"Worker exited with code {proc.exitcode}")
    finally:
        recv_conn.close()
        if proc.is_alive():
            proc.terminate()
        proc.join(5)

    if status == "ok":
        return ParseOutcome(url, text=payload)
    logger.warning("PDF parsing failed for %s: %s", url, payload)
    return ParseOutcome(url, error=f"PDF parsing failed: {payload}")
