"""Tests for vendor keys and the vendor rule registry fallback order."""

import dataclasses

import pytest

from invoice_normalizer.sanitize import Sanitized
from invoice_normalizer.vendor_rules import (
    BEVERAGE_PACK_TOKENS,
    BEVERAGE_RULES,
    DEFAULT_RULES,
    NEGATIVE,
    build_default_registry,
    default_registry,
    normalize_net_cost,
    normalize_qty,
    normalize_upc,
    vendor_key,
)


# ---------------------------------------------------------------------------
# vendor_key
# ---------------------------------------------------------------------------

def test_vendor_key_bon_bright():
    assert vendor_key("Bon Bright Distr.") == "BONBRIGHTDISTR"


def test_vendor_key_is_deterministic():
    assert vendor_key("  acme-foods, inc ") == vendor_key("ACME Foods Inc") == "ACMEFOODSINC"


def test_vendor_key_none():
    assert vendor_key(None) == ""


# ---------------------------------------------------------------------------
# Default normalizers
# ---------------------------------------------------------------------------

def test_upc_digits_capped_at_eleven():
    assert normalize_upc("0 12345-67890 5") == "01234567890"


def test_upc_short_kept():
    assert normalize_upc("12345") == "12345"


def test_qty_negative_rejected():
    assert normalize_qty("-3") == Sanitized(0, NEGATIVE)


def test_qty_zero_kept():
    assert normalize_qty("0") == Sanitized(0)


def test_net_cost_negative_rejected():
    assert normalize_net_cost("-1.00").reason == NEGATIVE


def test_net_cost_fallback_zero():
    assert normalize_net_cost(None).value == 0.0


# ---------------------------------------------------------------------------
# Registry lookup
# ---------------------------------------------------------------------------

@pytest.fixture
def registry():
    return build_default_registry()


def test_exact_vendor_inherits_beverage(registry):
    rules = registry.lookup("BONBRIGHTDISTR")
    assert rules.name == "BONBRIGHTDISTR"
    assert rules.pack_token_multipliers == BEVERAGE_PACK_TOKENS
    assert rules.normalize_units_per_case("BUD 6PK 12OZ", "CS000001").value == 4


def test_category_fallback(registry):
    assert registry.lookup("METROBEVERAGECO") is BEVERAGE_RULES
    assert registry.lookup("HILLTOPBREWING") is BEVERAGE_RULES


def test_global_fallback(registry):
    assert registry.lookup("ACMEFOODS") is DEFAULT_RULES
    assert registry.lookup("") is DEFAULT_RULES


def test_resolve_by_name(registry):
    key, rules = registry.resolve("Bon Bright Distr.")
    assert key == "BONBRIGHTDISTR"
    assert rules.name == "BONBRIGHTDISTR"


def test_default_rules_have_no_pack_tokens():
    assert DEFAULT_RULES.pack_token_multipliers == ()
    assert DEFAULT_RULES.normalize_units_per_case("BUD 6PK 12OZ", "CS000001").value == 1


def test_extra_vendor_override():
    custom = DEFAULT_RULES.derive("ACME", normalize_sku=lambda value: "X")
    registry = build_default_registry({"Acme Foods": custom})
    assert registry.lookup("ACMEFOODS").normalize_sku("123") == "X"
    assert DEFAULT_RULES.normalize_sku("123") == "123"


def test_with_pack_tokens_copies():
    rules = DEFAULT_RULES.with_pack_tokens("mixer", [("4pk", 6)])
    assert rules.pack_token_multipliers == (("4PK", 6),)
    assert rules.normalize_units_per_case("GINGER BEER 4PK", None).value == 6
    assert DEFAULT_RULES.pack_token_multipliers == ()


# ---------------------------------------------------------------------------
# Immutability
# ---------------------------------------------------------------------------

def test_registry_mappings_read_only(registry):
    with pytest.raises(TypeError):
        registry.vendors["NEWVENDOR"] = DEFAULT_RULES


def test_registry_frozen(registry):
    with pytest.raises(dataclasses.FrozenInstanceError):
        registry.default = BEVERAGE_RULES


def test_rule_set_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_RULES.name = "other"


def test_default_registry_is_shared():
    assert default_registry() is default_registry()
