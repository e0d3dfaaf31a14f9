"""sitesift CLI. Invoked as `sitesift` when installed with pip install -e ."""

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

try:
    from tqdm import tqdm
except ImportError:
    tqdm = None

from sitesift.config import SiftConfig
from sitesift.errors import InvalidStartUrl
from sitesift.extraction import DEFAULT_MODEL, SCHEMAS, LLMExtractor
from sitesift.log import setup_logging
from sitesift.pipeline import harvest
from sitesift.storage import save_extraction, save_harvest


def build_parser(config: SiftConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitesift",
        description="Crawl a product page's subtree (pages and PDFs) into one plain-text file.",
    )
    parser.add_argument("--url", required=True, help="Start URL (product page)")
    parser.add_argument("--depth", type=int, default=config.max_depth, help=f"Max crawl depth (default: {config.max_depth})")
    parser.add_argument("--page-limit", type=int, default=config.limits.page_limit, metavar="N", help="Max pages to visit")
    parser.add_argument("--doc-limit", type=int, default=config.limits.document_limit, metavar="N", help="Max documents to download")
    parser.add_argument(
        "--path-contains",
        default=config.limits.path_must_contain,
        metavar="S",
        help="Only follow URLs whose path contains S (default: start URL's path)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=config.documents.concurrency,
        metavar="N",
        help=f"Documents downloaded/parsed at a time (default: {config.documents.concurrency})",
    )
    parser.add_argument("--page-workers", type=int, default=config.page_workers, metavar="N", help="Pages fetched at a time (default: 1)")
    parser.add_argument("--max-pages", type=int, default=config.documents.max_pages, metavar="N", help="PDF pages read per document")
    parser.add_argument("--no-isolate", action="store_true", help="Parse PDFs in-process instead of a child process")
    parser.add_argument("--delay", type=float, default=config.fetch.request_delay, metavar="SECS", help="Delay between page requests")
    parser.add_argument("--timeout", type=float, default=config.fetch.timeout, metavar="SECS", help="Per-request timeout")
    parser.add_argument("--out-dir", default="output", help="Output directory (default: output)")
    parser.add_argument("--extract", action="store_true", help="Send the harvested text to the LLM extraction stage")
    parser.add_argument("--mode", choices=sorted(SCHEMAS), default="card", help="Extraction schema (default: card)")
    parser.add_argument("--subject", default=None, help="Card name to focus the extraction on")
    parser.add_argument("--model", default=None, help="Model for --extract (default: gpt-4o-mini or SITESIFT_MODEL)")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bar (e.g. for scripting)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(base: SiftConfig, args: argparse.Namespace) -> SiftConfig:
    return replace(
        base,
        max_depth=args.depth,
        page_workers=max(1, args.page_workers),
        limits=replace(
            base.limits,
            page_limit=args.page_limit,
            document_limit=args.doc_limit,
            path_must_contain=args.path_contains,
        ),
        fetch=replace(base.fetch, request_delay=args.delay, timeout=args.timeout),
        documents=replace(
            base.documents,
            concurrency=max(1, args.concurrency),
            max_pages=args.max_pages,
            isolate=base.documents.isolate and not args.no_isolate,
        ),
    )


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    base = SiftConfig.from_env()
    args = build_parser(base).parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)
    config = config_from_args(base, args)

    print(f"Harvest: {args.url}", file=sys.stderr)
    use_progress = not args.no_progress and tqdm is not None
    pbar = None

    def _on_document(index: int, result) -> None:
        nonlocal pbar
        if not use_progress:
            return
        if pbar is None:
            pbar = tqdm(desc="Documents", unit=" doc", file=sys.stderr)
        pbar.update(1)

    try:
        result = harvest(args.url, config=config, on_document=_on_document)
    except InvalidStartUrl as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if pbar is not None:
            pbar.close()

    dest = save_harvest(Path(args.out_dir), args.url, result)
    n_docs = len(result.documents)
    print(
        f"  Pages: {len(result.crawl.pages)}, documents: {n_docs - len(result.failed)}/{n_docs}",
        file=sys.stderr,
    )
    print(f"  Text: {dest / 'aggregated.txt'}", file=sys.stderr)

    if args.extract:
        model = args.model or os.environ.get("SITESIFT_MODEL") or DEFAULT_MODEL
        extractor = LLMExtractor(model=model, mode=args.mode, subject=args.subject)
        payload = extractor.extract(result.text)
        if payload is None:
            print("  Extraction failed (see log).", file=sys.stderr)
        else:
            print(f"  Extraction: {save_extraction(dest, payload)}", file=sys.stderr)

    print("\nDone.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
