"""
Pydantic models for raw extraction payloads and normalized invoice output.
Output field names (camelCase when dumped by alias) are consumed downstream and must stay stable.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RawLineItem(_CamelModel):
    """One line as returned by the extraction service. Nothing here is trusted."""
    upc: Any = None
    description: Any = None
    sku: Any = None
    net_cost: Any = None
    line_amount: Any = None
    qty_ordered: Any = None
    raw_line: Any = None


class RawInvoice(_CamelModel):
    """Top-level extraction payload."""
    vendor_name: Any = None
    invoice_date: Any = None
    invoice_total: Any = None
    items: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "RawInvoice":
        if not isinstance(payload, Mapping):
            logger.warning("Extraction payload is %s, not an object", type(payload).__name__)
            return cls()
        return cls.model_validate(dict(payload))

    def line_items(self) -> list[RawLineItem]:
        if not isinstance(self.items, list):
            return []
        items: list[RawLineItem] = []
        for i, o in enumerate(self.items):
            if not isinstance(o, Mapping):
                logger.warning("Skipping line %d: expected an object, got %s", i, type(o).__name__)
                continue
            items.append(RawLineItem.model_validate(dict(o)))
        return items


class NormalizedLineItem(_CamelModel):
    upc: Optional[str] = None
    upc_normalized: str = ""
    description: Optional[str] = None
    sku: Optional[str] = None
    sku_normalized: str = ""
    net_cost: float = Field(default=0.0, ge=0.0, description="Case cost")
    line_amount: Optional[float] = Field(default=None, description="Extended amount as printed")
    raw_line: Optional[str] = None
    master_case_size: Optional[int] = Field(
        default=None,
        description="CS###### value from the raw line; informational only",
    )
    units_per_case: int = Field(default=1, gt=0, le=200)
    qty_ordered: int = Field(default=0, ge=0)
    line_total: float = 0.0
    margin_warning: bool = False
    warnings: list[str] = Field(default_factory=list)


class InvoiceResult(_CamelModel):
    vendor_name: Optional[str] = None
    vendor_key: str = ""
    invoice_date: Optional[str] = None
    invoice_total: Optional[float] = Field(
        default=None,
        description="Printed total; authoritative when present",
    )
    grand_total: float = 0.0
    total_matches: bool = False
    warnings: list[str] = Field(default_factory=list)
    items: list[NormalizedLineItem] = Field(default_factory=list)
    retry_attempted: bool = Field(default=False, exclude=True)

    def add_warning(self, code: str) -> None:
        if code not in self.warnings:
            self.warnings.append(code)

    def to_output(self) -> dict:
        """Output contract dict (camelCase keys)."""
        return self.model_dump(by_alias=True)
