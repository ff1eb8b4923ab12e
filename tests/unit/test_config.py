from checkout_backend import config

def test_clean_env_strips_quotes_and_spaces():
    assert config._clean_env("  'sk_test_123'  ") == "sk_test_123"
    assert config._clean_env('"whsec_abc"') == "whsec_abc"
    assert config._clean_env("`x`") == "x"
    assert config._clean_env(None) == ""

def test_csv_env(monkeypatch):
    monkeypatch.setenv("X_LIST", " a, b ,,c ")
    assert config._csv_env("X_LIST", "") == ["a", "b", "c"]
    assert config._csv_env("X_MISSING", "d,e") == ["d", "e"]

def test_flag_env(monkeypatch):
    monkeypatch.setenv("X_FLAG", "Yes")
    assert config._flag_env("X_FLAG") is True
    monkeypatch.setenv("X_FLAG", "0")
    assert config._flag_env("X_FLAG") is False
    assert config._flag_env("X_FLAG_MISSING", "true") is True

def test_default_checkout_policy():
    assert config.CART_MAX_QTY >= 1
    assert "{CHECKOUT_SESSION_ID}" in config.CHECKOUT_SUCCESS_URL
    assert all(c == c.upper() for c in config.SHIPPING_COUNTRIES)
    assert config.CATALOG_PATH.name.endswith(".json")
