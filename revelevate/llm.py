from __future__ import annotations

import ast
import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from .errors import ExtractionError


logger = logging.getLogger(__name__)

LLM_REQUEST_TIMEOUT = 120

SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})

PLACEHOLDER_URIS = {"", "#"}


class LLMClient:
    """Minimal client for OpenAI-compatible chat endpoints (Gemini, Groq, Ollama, ...)."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = LLM_REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        if self.base_url.endswith(("/v1", "/openai")):
            return f"{self.base_url}/chat/completions"
        return f"{self.base_url}/v1/chat/completions"

    def complete(self, payload: Dict[str, Any]) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        body = dict(payload)
        body.setdefault("model", self.model)
        response = requests.post(
            self.endpoint,
            headers=headers,
            data=json.dumps(body),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()


# --- Response text ---------------------------------------------------------
def coerce_message_content(message: Any) -> str:
    if isinstance(message, str):
        return message
    if not isinstance(message, dict):
        return ""
    content = message.get("content", "")
    if isinstance(content, str):
        return content

    pieces: List[str] = []
    if isinstance(content, list):
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict):
                text_value = part.get("text") or part.get("content")
                if isinstance(text_value, str):
                    pieces.append(text_value)
    return "".join(pieces)


def extract_response_text(raw: Any) -> str:
    """Return the assistant text regardless of provider response schema."""

    if not isinstance(raw, dict):
        return ""
    choices = raw.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        content = coerce_message_content(choices[0].get("message") or {})
        if content:
            return content

    message = raw.get("message")
    if isinstance(message, dict):
        content = coerce_message_content(message)
        if content:
            return content

    for key in ("response", "content", "text", "output"):
        value = raw.get(key)
        if isinstance(value, str):
            return value

    return ""


def _listed(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def extract_citations(raw: Any) -> List[Dict[str, str]]:
    """Collect search citations that some providers attach next to the answer."""

    found: List[Dict[str, str]] = []
    if not isinstance(raw, dict):
        return found

    for item in _listed(raw.get("citations")):
        if isinstance(item, str):
            found.append({"title": item, "uri": item})
        elif isinstance(item, dict):
            uri = item.get("url") or item.get("uri") or ""
            found.append({"title": item.get("title") or uri, "uri": uri})

    for item in _listed(raw.get("search_results")):
        if isinstance(item, dict):
            uri = item.get("url") or item.get("uri") or ""
            found.append({"title": item.get("title") or uri, "uri": uri})

    choices = _listed(raw.get("choices"))
    message = choices[0].get("message") if choices and isinstance(choices[0], dict) else None
    if isinstance(message, dict):
        for annotation in _listed(message.get("annotations")):
            citation = annotation.get("url_citation") if isinstance(annotation, dict) else None
            if not isinstance(citation, dict):
                continue
            uri = citation.get("url") or ""
            found.append({"title": citation.get("title") or uri, "uri": uri})

    seen = set()
    unique: List[Dict[str, str]] = []
    for source in found:
        uri = str(source["uri"]).strip()
        if uri in PLACEHOLDER_URIS or uri in seen:
            continue
        seen.add(uri)
        unique.append({"title": str(source["title"]).strip() or "Source", "uri": uri})
    return unique


# --- JSON recovery ---------------------------------------------------------
FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
TRAILING_COMMA_PATTERN = re.compile(r",\s*(?=[}\]])")
PYTHON_LITERALS = (("true", "True"), ("false", "False"), ("null", "None"))


def _normalize_reply_text(text: str) -> str:
    return TRAILING_COMMA_PATTERN.sub("", text.translate(SMART_QUOTES))


def _literal_object(text: str, start: int) -> Optional[Dict[str, Any]]:
    # Models sometimes answer with Python literals instead of JSON.
    for end in (idx for idx, char in enumerate(text) if idx > start and char == "}"):
        candidate = text[start : end + 1]
        for word, literal in PYTHON_LITERALS:
            candidate = re.sub(rf"(?<![\w\"']){word}\b", literal, candidate)
        try:
            parsed = ast.literal_eval(candidate)
        except (ValueError, TypeError, SyntaxError, RecursionError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _first_object(text: str) -> Optional[Dict[str, Any]]:
    decoder = json.JSONDecoder()
    for match in re.finditer(r"\{", text):
        try:
            parsed, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            parsed = _literal_object(text, match.start())
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_first_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode the first object embedded in a model reply, or ``None``.

    Fenced blocks are tried before the surrounding prose. Typographic quotes
    and trailing commas are repaired first.
    """

    if not text:
        return None

    candidates = [match.group(1) for match in FENCED_BLOCK_PATTERN.finditer(text)]
    candidates.append(text)
    for candidate in candidates:
        parsed = _first_object(_normalize_reply_text(candidate))
        if parsed is not None:
            return parsed
    return None


# --- Unstructured ledger extraction ----------------------------------------
EXTRACTION_FIELDS = (
    "revenue",
    "occupied_rooms",
    "total_rooms",
    "cost",
    "direct_bookings_count",
    "total_bookings_count",
    "avg_service_rating",
    "hosp_addon_pct",
    "non_hosp_addon_pct",
    "hosp_addon_rating",
    "non_hosp_addon_rating",
)

EXTRACTION_PROMPT = """
You read hotel sales ledgers, reports and exports and return aggregate figures.
Respond with a single JSON object containing exactly these numeric fields:
{fields}
Totals are sums over the whole document. Ratings are averages on a 1-5 scale and
add-on fields are percentages of guests using hospitality (spa, F&B, tours) or
non-hospitality (laundry, business centre, parking) add-ons. If a figure is not
stated, estimate it from the rest of the document; never omit a field.
"""


class LLMLedgerExtractor:
    """Extraction collaborator for ledgers that are not CSV."""

    def __init__(self, client: LLMClient, temperature: float = 0.0, max_tokens: int = 1024) -> None:
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_payload(self, text: str) -> Dict[str, Any]:
        schema = "\n".join(f'  "{name}": number' for name in EXTRACTION_FIELDS)
        return {
            "model": self.client.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": EXTRACTION_PROMPT.format(fields=schema).strip()},
                {"role": "user", "content": text},
            ],
        }

    def __call__(self, text: str) -> Dict[str, Any]:
        try:
            raw = self.client.complete(self.build_payload(text))
        except (requests.RequestException, ValueError) as exc:
            raise ExtractionError(f"Extraction request failed: {exc}") from exc

        content = extract_response_text(raw)
        record = extract_first_json_object(content)
        if record is None:
            preview = content.strip()[:200]
            raise ExtractionError(f"Extraction reply did not contain JSON: {preview!r}")

        missing = [name for name in EXTRACTION_FIELDS if name not in record]
        if missing:
            logger.warning("Extraction reply omitted fields: %s", ", ".join(missing))
        return record
