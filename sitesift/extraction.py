"""
Structured extraction over harvested text via an OpenAI-compatible chat API.

The harvest pipeline treats this as a fallible collaborator: every call returns the
parsed JSON payload or None. Malformed model output is logged, never repaired.
"""

import json
import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 120.0
MAX_CHUNK_CHARS = 60_000

CARD_SCHEMA = """
You are an assistant that extracts structured details from messy credit card descriptions.
Return ONLY valid JSON in this exact format:
{
  "card_name": string,
  "joining_fee": string,
  "annual_fee": string,
  "eligibility": string,
  "rewards": string[],
  "other_benefits": string[],
  "terms_conditions_summary": string,
  "summary": string,
  "offers": [
    {
      "issuer": string,
      "card_applicability": string[],
      "title": string,
      "description": string,
      "validity": string
    }
  ]
}
"""

OFFERS_SCHEMA = """
You are an assistant that extracts merchant offers from card issuer pages.
Return ONLY a valid JSON object keyed by merchant brand name, each value in this format:
{
  "<brand>": {
    "title": string,
    "description": string,
    "validity": string,
    "card_applicability": string[],
    "terms": string
  }
}
"""

SCHEMAS = {"card": CARD_SCHEMA, "offers": OFFERS_SCHEMA}


def chunk_text(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """
    Split text into chunks of at most max_chars, breaking between blank-line
    separated blocks where possible. Oversized blocks are cut hard.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    text = text.strip()
    if not text:
        return []
    chunks: list[str] = []
    current = ""
    for block in text.split("\n\n"):
        while len(block) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(block[:max_chars])
            block = block[max_chars:]
        candidate = f"{current}\n\n{block}" if current else block
        if len(candidate) > max_chars:
            chunks.append(current)
            current = block
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


def parse_json_payload(content: str) -> Any | None:
    """json.loads or None. Output that is not plain JSON is rejected as-is."""
    try:
        return json.loads(content)
    except ValueError:
        logger.warning("Model did not return valid JSON (%d chars)", len(content))
        return None


class LLMExtractor:
    """Sends harvested text plus an instruction schema to a chat-completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        mode: str = "card",
        subject: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_chars: int = MAX_CHUNK_CHARS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if mode not in SCHEMAS:
            raise ValueError(f"Unknown extraction mode {mode!r}; choose from {sorted(SCHEMAS)}")
        self.api_key = api_key if api_key is not None else os.environ.get("OPENAI_API_KEY", "")
        self.model = model
        self.base_url = (base_url or os.environ.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.mode = mode
        self.subject = subject
        self.timeout = timeout
        self.max_chars = max_chars
        self._transport = transport

    def _instruction(self) -> str:
        if self.mode == "offers":
            return "Extract every merchant offer from the following content.\n\n"
        if self.subject:
            return (
                f"Extract and summarize details for the {self.subject} from the following content. "
                "Keep only this card if multiple are present.\n\n"
            )
        return "Extract and summarize the card details from the following content.\n\n"

    def _complete(self, text: str) -> str | None:
        payload = {
            "model": self.model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SCHEMAS[self.mode]},
                {"role": "user", "content": self._instruction() + text},
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Extraction request failed: %s", e)
            return None
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning("Extraction response had no message content")
            return None

    def extract(self, text: str) -> Any | None:
        """Parsed JSON for the first chunk of text, or None."""
        chunks = chunk_text(text, self.max_chars)
        if not chunks:
            return None
        if len(chunks) > 1:
            logger.info("Text split into %d chunks; extracting from the first", len(chunks))
        content = self._complete(chunks[0])
        return parse_json_payload(content) if content is not None else None

    def extract_chunks(self, text: str) -> list[Any | None]:
        """One parsed payload (or None) per chunk, in order."""
        out: list[Any | None] = []
        for chunk in chunk_text(text, self.max_chars):
            content = self._complete(chunk)
            out.append(parse_json_payload(content) if content is not None else None)
        return out
