"""
Invoice line normalization: extraction payload -> vendor-aware line normalization -> total reconciliation.
"""

from .exceptions import ExtractionError, InvoiceProcessingError, MissingInputError
from .models import InvoiceResult, NormalizedLineItem, RawInvoice, RawLineItem
from .pipeline import process_invoice, process_invoice_file, run_on_folder
from .reconcile import normalize_invoice, reconcile
from .vendor_rules import VendorRuleRegistry, VendorRuleSet, build_default_registry, vendor_key

__all__ = [
    "ExtractionError",
    "InvoiceProcessingError",
    "MissingInputError",
    "InvoiceResult",
    "NormalizedLineItem",
    "RawInvoice",
    "RawLineItem",
    "process_invoice",
    "process_invoice_file",
    "run_on_folder",
    "normalize_invoice",
    "reconcile",
    "VendorRuleRegistry",
    "VendorRuleSet",
    "build_default_registry",
    "vendor_key",
]
