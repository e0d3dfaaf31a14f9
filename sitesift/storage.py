"""Write harvest results to disk: output/<domain>/<slug>/{aggregated.txt, pages.json, documents.json}."""

import json
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from sitesift.models import HarvestResult


def sanitize_domain(url: str) -> str:
    """Extract and sanitize domain from URL for directory name."""
    parsed = urlparse(url)
    domain = parsed.netloc or "unknown"
    domain = re.sub(r"[^\w.-]", "_", domain)
    return domain or "unknown"


def slug_from_url(url: str) -> str:
    """Slug for the start page (directory name under the domain)."""
    parts = [p for p in (urlparse(url).path or "/").split("/") if p]
    slug = "_".join(parts) if parts else "index"
    slug = re.sub(r"[^\w.-]", "_", slug)
    slug = slug.strip("_") or "index"
    return slug[:150]


def output_dir(out_dir: Path, start_url: str) -> Path:
    return out_dir / sanitize_domain(start_url) / slug_from_url(start_url)


def write_text(path: Path, text: str) -> None:
    """Write text as UTF-8."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def document_records(result: HarvestResult) -> list[dict]:
    """One JSON-ready record per discovered document, in discovery order."""
    records = []
    for doc in sorted(result.documents, key=lambda d: d.index):
        records.append({
            "url": doc.link.url,
            "referer": doc.link.referer,
            "anchor_text": doc.link.anchor_text,
            "status": "ok" if doc.ok else "failed",
            "chars": len(doc.text),
            "error": doc.error,
        })
    return records


def save_harvest(out_dir: Path, start_url: str, result: HarvestResult) -> Path:
    """Write aggregated text plus page/document manifests; returns the directory used."""
    dest = output_dir(out_dir, start_url)
    write_text(dest / "aggregated.txt", result.text)
    write_json(dest / "pages.json", [{"url": p.url, "depth": p.depth} for p in result.crawl.pages])
    write_json(dest / "documents.json", document_records(result))
    return dest


def save_extraction(dest: Path, payload: Any) -> Path:
    path = dest / "extraction.json"
    write_json(path, payload)
    return path
