"""
Invoice source loading. Images are passed to the extraction service as data URLs;
PDFs are read with pdfplumber and sent as text, or as a rendered first page when
the text layer is too sparse (scanned PDFs).
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional

import pdfplumber

from .exceptions import MissingInputError

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
SUPPORTED_SUFFIXES = frozenset(IMAGE_MIME_TYPES) | {".pdf"}

_DATA_URL_RE = re.compile(r"^data:([\w/+.-]+);base64,(.*)$", re.DOTALL)


@dataclass(frozen=True)
class InvoiceSource:
    """What gets sent to the extraction service: an image data URL or invoice text."""
    name: str
    image_data_url: Optional[str] = None
    text: Optional[str] = None

    @property
    def kind(self) -> str:
        return "image" if self.image_data_url else "text"


def _has_sufficient_text(text: str | None, min_chars: int = 100) -> bool:
    """Heuristic: native extraction likely sufficient if we got enough text."""
    if not text or not text.strip():
        return False
    cleaned = re.sub(r"(.)\1{2,}", r"\1", text)
    return len(cleaned.strip()) >= min_chars


def _tables_to_text(tables: list) -> str:
    """Convert extracted tables to pipe-separated lines so raw rows survive."""
    lines: list[str] = []
    for table in tables:
        if not table:
            continue
        for row in table:
            if row and any(cell is not None and str(cell).strip() for cell in row):
                row_str = " | ".join(str(cell or "").strip() for cell in row)
                if row_str.strip():
                    lines.append(row_str)
    return "\n".join(lines)


def source_from_base64(data: str | None, name: str = "upload", mime_type: str = "image/jpeg") -> InvoiceSource:
    """Accept a bare base64 string or a data URL (data:image/png;base64,...)."""
    if not data or not data.strip():
        raise MissingInputError(source=name)
    data = data.strip()
    m = _DATA_URL_RE.match(data)
    if m:
        mime_type, payload = m.group(1), m.group(2)
    else:
        payload = data
    payload = payload.strip()
    if not payload:
        raise MissingInputError(source=name)
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise MissingInputError("Invoice image is not valid base64", source=name)
    return InvoiceSource(name=name, image_data_url=f"data:{mime_type};base64,{payload}")


def source_from_bytes(content: bytes, name: str, mime_type: str) -> InvoiceSource:
    if not content:
        raise MissingInputError("Invoice file is empty", source=name)
    encoded = base64.b64encode(content).decode("ascii")
    return InvoiceSource(name=name, image_data_url=f"data:{mime_type};base64,{encoded}")


def _read_pdf(pdf_file: BinaryIO) -> tuple[str, Optional[bytes]]:
    """Page text plus tables, and a rendered first page when the text layer is sparse."""
    text_parts: list[str] = []
    table_parts: list[str] = []
    first_page_png: Optional[bytes] = None
    with pdfplumber.open(pdf_file) as pdf:
        for page in pdf.pages:
            t = page.extract_text()
            if t:
                text_parts.append(t)
            tables = page.extract_tables()
            if tables:
                table_parts.append(_tables_to_text(tables))
        all_text = "\n\n".join(text_parts)
        table_text = "\n\n".join(p for p in table_parts if p)
        if table_text and table_text not in all_text:
            all_text = all_text + "\n\n--- LINE ITEM TABLE ---\n\n" + table_text
        if not _has_sufficient_text(all_text) and pdf.pages:
            buf = BytesIO()
            pdf.pages[0].to_image(resolution=200).original.save(buf, format="PNG")
            first_page_png = buf.getvalue()
    return all_text, first_page_png


def _pdf_source(pdf_file: BinaryIO, name: str) -> InvoiceSource:
    try:
        all_text, first_page_png = _read_pdf(pdf_file)
    except Exception as e:
        logger.warning("Could not read PDF %s: %s", name, e)
        raise MissingInputError("Invoice PDF could not be read", source=name) from e

    if first_page_png:
        logger.info("%s has little text; sending rendered first page", name)
        return source_from_bytes(first_page_png, name, "image/png")
    if not all_text.strip():
        raise MissingInputError("PDF has no text or pages", source=name)
    return InvoiceSource(name=name, text=all_text)


def source_from_upload(content: bytes, name: str) -> InvoiceSource:
    """Build a source from uploaded file content, dispatching on the file name's suffix."""
    suffix = Path(name).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise MissingInputError(f"Unsupported invoice file type {suffix or '(none)'}", source=name)
    if not content:
        raise MissingInputError("Invoice file is empty", source=name)
    if suffix == ".pdf":
        return _pdf_source(BytesIO(content), name)
    return source_from_bytes(content, name, IMAGE_MIME_TYPES[suffix])


def load_invoice_source(path: str | Path) -> InvoiceSource:
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise MissingInputError("Invoice file not found", source=str(path))
    return source_from_upload(path.read_bytes(), path.name)

