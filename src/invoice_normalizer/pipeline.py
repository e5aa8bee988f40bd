"""
End-to-end pipeline: invoice source -> extraction -> line normalization -> total reconciliation -> JSON.
Each invoice is one independent, sequential request; folders may be processed in parallel.
"""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional, Protocol

from .extract import SUPPORTED_SUFFIXES, InvoiceSource, load_invoice_source
from .llm_extract import LLMInvoiceExtractor
from .models import InvoiceResult
from .reconcile import Corrector, reconcile
from .vendor_rules import VendorRuleRegistry, default_registry

logger = logging.getLogger(__name__)


class InvoiceExtractor(Protocol):
    def extract(self, source: InvoiceSource) -> dict: ...

    def corrector_for(self, source: InvoiceSource) -> Corrector: ...


def process_invoice(
    source: InvoiceSource,
    extractor: Optional[InvoiceExtractor] = None,
    registry: Optional[VendorRuleRegistry] = None,
) -> InvoiceResult:
    """
    Extract and normalize one invoice.
    Raises MissingInputError / ExtractionError when the initial extraction cannot be made;
    a failed corrective extraction only adds warnings.
    """
    extractor = extractor or LLMInvoiceExtractor()
    registry = registry or default_registry()

    payload = extractor.extract(source)
    result = reconcile(payload, extractor.corrector_for(source), registry)
    logger.info(
        "%s: %d line(s), grand total %.2f, printed %s, matches=%s",
        source.name,
        len(result.items),
        result.grand_total,
        f"{result.invoice_total:.2f}" if result.invoice_total is not None else "n/a",
        result.total_matches,
    )
    return result


def process_invoice_file(
    path: str | Path,
    extractor: Optional[InvoiceExtractor] = None,
    registry: Optional[VendorRuleRegistry] = None,
) -> InvoiceResult:
    return process_invoice(load_invoice_source(path), extractor=extractor, registry=registry)


def _error_document(path: Path, error: Exception) -> dict:
    return {
        "sourceFile": path.name,
        "error": str(error),
        "errorType": type(error).__name__,
        "details": getattr(error, "details", {}),
    }


def _process_one(
    path: Path,
    output_path: Path,
    extractor: Optional[InvoiceExtractor],
    registry: Optional[VendorRuleRegistry],
) -> tuple[Path, Optional[InvoiceResult], Optional[str]]:
    """Process a single file and write its JSON. Failures become an error document."""
    out_file = output_path / f"{path.stem}_normalized.json"
    try:
        result = process_invoice_file(path, extractor=extractor, registry=registry)
    except Exception as e:
        logger.error("Failed to process %s: %s", path.name, e)
        with open(out_file, "w", encoding="utf-8") as f:
            json.dump(_error_document(path, e), f, indent=2)
        return path, None, str(e)

    with open(out_file, "w", encoding="utf-8") as f:
        json.dump(result.to_output(), f, indent=2)
    return path, result, None


def run_on_folder(
    input_dir: str | Path,
    output_dir: str | Path,
    extractor: Optional[InvoiceExtractor] = None,
    registry: Optional[VendorRuleRegistry] = None,
    max_workers: int = 1,
) -> list[tuple[Path, Optional[InvoiceResult], Optional[str]]]:
    """Process every supported invoice file in input_dir, writing one JSON per invoice.
    Returns (path, result, error) per file in sorted file order."""
    input_path = Path(input_dir)
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    if not input_path.exists():
        input_path.mkdir(parents=True, exist_ok=True)
        return []

    files = sorted(p for p in input_path.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES)
    if not files:
        return []

    extractor = extractor or LLMInvoiceExtractor()
    registry = registry or default_registry()

    if max_workers <= 1:
        return [_process_one(p, output_path, extractor, registry) for p in files]

    results: list = [None] * len(files)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_idx = {
            executor.submit(_process_one, p, output_path, extractor, registry): i
            for i, p in enumerate(files)
        }
        for future in as_completed(future_to_idx):
            idx = future_to_idx[future]
            results[idx] = future.result()
    return results
