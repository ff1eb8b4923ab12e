import pytest

from checkout_backend.catalog.normalize import build_alias_table, normalize_identifier

ALIASES = {"vein": "vein-001", "vein-tee": "vein-001"}

@pytest.mark.parametrize("raw, expected", [
    ("vein-001", "vein-001"),
    ("  VEIN-001  ", "vein-001"),
    ("Vein 001", "vein-001"),
    ("vein-001/default", "vein-001"),
    ("vein-001|one-size", "vein-001"),
    ("vein-001:os/std", "vein-001"),
    ("skinlock_ss_black_m", "skinlock_ss_black_m"),
])
def test_normalize_identifier_canonical_forms(raw, expected):
    assert normalize_identifier(raw) == expected

def test_normalize_applies_alias_table():
    assert normalize_identifier("Vein Tee", ALIASES) == "vein-001"
    assert normalize_identifier("vein/default", ALIASES) == "vein-001"
    # clé inconnue: renvoyée telle quelle, le lookup tranchera
    assert normalize_identifier("unknown-sku", ALIASES) == "unknown-sku"

def test_price_reference_passes_through_verbatim():
    assert normalize_identifier("  price_1PqXyZAbC  ", ALIASES) == "price_1PqXyZAbC"

@pytest.mark.parametrize("raw", [
    "vein-001", " VEIN 001/default ", "Vein-Tee", "a|os|std", "price_ABC", "", None, 42, "x/default/",
])
def test_normalize_is_idempotent(raw):
    once = normalize_identifier(raw, ALIASES)
    assert normalize_identifier(once, ALIASES) == once

def test_normalize_never_raises_on_garbage():
    assert normalize_identifier(None) == ""
    assert normalize_identifier(12) == "12"

def test_alias_table_rejects_chains():
    with pytest.raises(ValueError) as exc:
        build_alias_table({"a": "b", "b": "c"})
    assert "a" in str(exc.value)

def test_alias_table_normalizes_and_drops_self_alias():
    table = build_alias_table({"Vein Tee": "VEIN-001", "vein-001": "vein-001"})
    assert table == {"vein-tee": "vein-001"}
