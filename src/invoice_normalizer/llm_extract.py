"""
LLM-based invoice extraction: vendor, date, printed total and raw line items.
Also issues the one corrective request used when the computed total disagrees
with the printed total. Both calls return the same JSON schema.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from .api_client import get_openai_client
from .config import Settings, get_settings
from .exceptions import ExtractionError
from .extract import InvoiceSource

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert invoice data extractor for a grocery and beverage retailer. Extract the vendor, the invoice date, the printed invoice total and every product line.

RULES:
1. netCost is the CASE cost, exactly as printed.
2. lineAmount is the extended amount for the line, exactly as printed.
3. qtyOrdered is the quantity billed. If the invoice shows 0 or the item was not shipped, return 0. Do not guess 1.
4. rawLine is the FULL raw invoice row, character for character, including codes like CS000024 or +0003.
5. Do NOT calculate unitsPerCase. Do NOT invent UPCs or SKUs; use null when absent.
6. invoiceTotal is the printed grand total of the invoice, or null if none is printed.
7. Skip header rows, subtotals, tax, deposit and freight lines."""

SCHEMA_TEXT = """{
  "vendorName": "string",
  "invoiceDate": "YYYY-MM-DD",
  "invoiceTotal": number,
  "items": [
    {
      "upc": "string",
      "description": "string",
      "sku": "string",
      "netCost": number,
      "lineAmount": number,
      "qtyOrdered": number,
      "rawLine": "full raw invoice line"
    }
  ]
}"""

EXTRACTION_PROMPT = (
    "Extract invoice data as strict JSON.\n\n"
    f"Return this exact format:\n\n{SCHEMA_TEXT}\n\n"
    "Return ONLY the JSON object, no markdown, no explanation."
)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def build_correction_prompt(printed_total: float, computed_total: float) -> str:
    return (
        f"The line items you extracted sum to {computed_total:.2f}, but the printed invoice total is "
        f"{printed_total:.2f}. Re-read every line of the invoice carefully, paying attention to "
        "quantities (including 0 for items not shipped), case costs and extended amounts, and "
        "return the corrected extraction.\n\n"
        f"Return this exact format:\n\n{SCHEMA_TEXT}\n\n"
        "Return ONLY the JSON object, no markdown, no explanation."
    )


def parse_json_payload(content: Optional[str]) -> dict:
    """Strip markdown fences and parse. The result must be a JSON object."""
    text = (content or "").strip()
    if "```" in text:
        text = _FENCE_RE.sub("", text).replace("```", "").strip()
    if not text:
        raise ExtractionError("Empty extraction response", stage="parse")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        # Some models wrap the object in prose; try the outermost braces
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ExtractionError("Failed to parse extraction JSON", stage="parse", response_text=text, original_error=e)
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e2:
            raise ExtractionError("Failed to parse extraction JSON", stage="parse", response_text=text, original_error=e2)
    if not isinstance(data, dict):
        raise ExtractionError("Extraction JSON is not an object", stage="parse", response_text=text)
    return data


def _user_content(source: InvoiceSource, instruction: str) -> list[dict[str, Any]]:
    if source.image_data_url:
        return [
            {"type": "text", "text": instruction},
            {"type": "image_url", "image_url": {"url": source.image_data_url}},
        ]
    return [{"type": "text", "text": f"{instruction}\n\nRAW INVOICE TEXT:\n{(source.text or '')[:12000]}"}]


def _complete(client, settings: Settings, source: InvoiceSource, instruction: str, stage: str) -> dict:
    if client is None:
        raise ExtractionError("No extraction API key configured", stage=stage)
    try:
        resp = client.chat.completions.create(
            model=settings.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_content(source, instruction)},
            ],
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
        )
    except Exception as e:
        raise ExtractionError("Extraction request failed", stage=stage, original_error=e)

    choices = getattr(resp, "choices", None) or []
    if not choices:
        raise ExtractionError("Extraction response has no candidates", stage=stage)
    content = choices[0].message.content
    logger.debug("%s response for %s: %d chars", stage, source.name, len(content or ""))
    return parse_json_payload(content)


def extract_invoice(
    source: InvoiceSource,
    client=None,
    settings: Optional[Settings] = None,
) -> dict:
    """Initial extraction. Raises ExtractionError; the request cannot continue without it."""
    settings = settings or get_settings()
    client = client if client is not None else get_openai_client(settings)
    return _complete(client, settings, source, EXTRACTION_PROMPT, "extract")


def request_correction(
    source: InvoiceSource,
    printed_total: float,
    computed_total: float,
    client=None,
    settings: Optional[Settings] = None,
) -> dict:
    """Corrective extraction after a total mismatch. Same schema as extract_invoice."""
    settings = settings or get_settings()
    client = client if client is not None else get_openai_client(settings)
    prompt = build_correction_prompt(printed_total, computed_total)
    return _complete(client, settings, source, prompt, "correct")


class LLMInvoiceExtractor:
    """Extraction service bound to one client and settings."""

    def __init__(self, client=None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client = client if client is not None else get_openai_client(self.settings)

    def extract(self, source: InvoiceSource) -> dict:
        return extract_invoice(source, client=self.client, settings=self.settings)

    def correct(self, source: InvoiceSource, printed_total: float, computed_total: float) -> dict:
        return request_correction(
            source, printed_total, computed_total, client=self.client, settings=self.settings
        )

    def corrector_for(self, source: InvoiceSource):
        def _correct(printed_total: float, computed_total: float) -> dict:
            return self.correct(source, printed_total, computed_total)
        return _correct
