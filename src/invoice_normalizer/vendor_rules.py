"""
Vendor-aware normalization rules.

A VendorRuleSet bundles the five field normalizers used for every line of an
invoice. Rule sets live in a read-only registry keyed by the canonical vendor
key, with fallback: exact vendor -> commodity category default -> global default.
Vendor sets are built by copying a base set and overriding individual functions.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from functools import lru_cache, partial
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from .sanitize import Sanitized, digits_only, sanitize_int, sanitize_money
from .uom import PackTokens, UnitsPerCase, resolve_units_per_case_detail

logger = logging.getLogger(__name__)

UPC_MAX_DIGITS = 11
MAX_QTY_ORDERED = 99999
NEGATIVE = "negative"
OUT_OF_RANGE = "out_of_range"


def vendor_key(name: Any) -> str:
    """Canonical vendor key: uppercase, alphanumerics only ("Bon Bright Distr." -> "BONBRIGHTDISTR")."""
    if name is None:
        return ""
    return re.sub(r"[^A-Z0-9]", "", str(name).upper())


# --- Default field normalizers ---

def normalize_upc(value: Any) -> str:
    # Downstream record layout has an 11-digit UPC column
    return digits_only(value)[:UPC_MAX_DIGITS]


def normalize_sku(value: Any) -> str:
    return digits_only(value)


def normalize_qty(value: Any) -> Sanitized:
    result = sanitize_int(value, fallback=0)
    if result.ok and result.value < 0:
        return Sanitized(0, NEGATIVE)
    if result.ok and result.value > MAX_QTY_ORDERED:
        return Sanitized(0, OUT_OF_RANGE)
    return result


def normalize_net_cost(value: Any) -> Sanitized:
    result = sanitize_money(value, fallback=0.0)
    if result.ok and result.value < 0:
        return Sanitized(0.0, NEGATIVE)
    return result


@dataclass(frozen=True)
class VendorRuleSet:
    name: str
    normalize_upc: Callable[[Any], str]
    normalize_sku: Callable[[Any], str]
    normalize_qty: Callable[[Any], Sanitized]
    normalize_net_cost: Callable[[Any], Sanitized]
    normalize_units_per_case: Callable[[Optional[str], Optional[str]], UnitsPerCase]
    pack_token_multipliers: tuple[tuple[str, int], ...] = ()

    def derive(self, name: str, **overrides) -> "VendorRuleSet":
        """Copy this rule set under a new name, overriding individual functions."""
        return replace(self, name=name, **overrides)

    def with_pack_tokens(self, name: str, pack_tokens: PackTokens) -> "VendorRuleSet":
        tokens = tuple((str(token).upper(), int(mult)) for token, mult in pack_tokens)
        return self.derive(
            name,
            normalize_units_per_case=partial(resolve_units_per_case_detail, pack_token_multipliers=tokens),
            pack_token_multipliers=tokens,
        )


DEFAULT_RULES = VendorRuleSet(
    name="default",
    normalize_upc=normalize_upc,
    normalize_sku=normalize_sku,
    normalize_qty=normalize_qty,
    normalize_net_cost=normalize_net_cost,
    normalize_units_per_case=resolve_units_per_case_detail,
)

# Beverage distributors ship six-packs four to a case and twelve-packs two to a case
BEVERAGE_PACK_TOKENS: tuple[tuple[str, int], ...] = (("6PK", 4), ("12PK", 2))

BEVERAGE_RULES = DEFAULT_RULES.with_pack_tokens("beverage", BEVERAGE_PACK_TOKENS)

# Category signatures matched against the vendor key
CATEGORY_SIGNATURES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"BEV|BEVERAGE"), "beverage"),
    (re.compile(r"BREW|BEER|BOTTLING|WINE|SPIRITS|LIQUOR"), "beverage"),
)


@dataclass(frozen=True)
class VendorRuleRegistry:
    """Read-only vendor key -> rule set lookup with category and global fallback."""
    default: VendorRuleSet
    vendors: Mapping[str, VendorRuleSet] = field(default_factory=dict)
    categories: Mapping[str, VendorRuleSet] = field(default_factory=dict)
    category_signatures: tuple[tuple[re.Pattern, str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "vendors", MappingProxyType(dict(self.vendors)))
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        object.__setattr__(self, "category_signatures", tuple(self.category_signatures))

    def category_for(self, key: str) -> Optional[str]:
        if not key:
            return None
        for pattern, category in self.category_signatures:
            if pattern.search(key) and category in self.categories:
                return category
        return None

    def lookup(self, key: str) -> VendorRuleSet:
        rules = self.vendors.get(key)
        if rules is not None:
            return rules
        category = self.category_for(key)
        if category is not None:
            return self.categories[category]
        return self.default

    def resolve(self, vendor_name: Any) -> tuple[str, VendorRuleSet]:
        key = vendor_key(vendor_name)
        rules = self.lookup(key)
        logger.debug("Vendor %r -> key %r, rules %r", vendor_name, key, rules.name)
        return key, rules


def build_default_registry(
    extra_vendors: Optional[Mapping[str, VendorRuleSet]] = None,
) -> VendorRuleRegistry:
    vendors: dict[str, VendorRuleSet] = {
        "BONBRIGHTDISTR": BEVERAGE_RULES.derive("BONBRIGHTDISTR"),
    }
    if extra_vendors:
        vendors.update({vendor_key(k): v for k, v in extra_vendors.items()})
    return VendorRuleRegistry(
        default=DEFAULT_RULES,
        vendors=vendors,
        categories={"beverage": BEVERAGE_RULES},
        category_signatures=CATEGORY_SIGNATURES,
    )


@lru_cache(maxsize=1)
def default_registry() -> VendorRuleRegistry:
    """Process-wide registry, built on first use and never mutated."""
    return build_default_registry()
