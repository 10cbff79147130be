import pytest

from wptchecks.model import DEFAULT_BROWSER_NAMES, DEFAULT_RUN_NAME_PATTERN
from wptchecks.product import (
    InvalidProductNameError,
    ProductNameResolver,
    ProductSpec,
    parse_product_spec,
)


def make_resolver():
    return ProductNameResolver(DEFAULT_RUN_NAME_PATTERN, DEFAULT_BROWSER_NAMES)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("wpt.fyi - chrome-89", "chrome-89"),
        ("staging.wpt.fyi - firefox", "firefox"),
        ("chrome-89", "chrome-89"),
        ("wpt.fyi - ", ""),
    ],
)
def test_strip_run_name_prefix(name, expected):
    assert make_resolver().strip(name) == expected


def test_resolve_plain_browser():
    assert make_resolver().resolve("wpt.fyi - chrome") == ProductSpec("chrome")


def test_resolve_full_product():
    product = make_resolver().resolve(
        "staging.wpt.fyi - firefox-87.0-linux-20.04[experimental,beta]@abcdef0"
    )
    assert product.browser_name == "firefox"
    assert product.browser_version == "87.0"
    assert product.os_name == "linux"
    assert product.os_version == "20.04"
    assert product.labels == frozenset({"experimental", "beta"})
    assert product.revision == "abcdef0"
    assert str(product) == "firefox-87.0-linux-20.04[beta,experimental]@abcdef0"


def test_browser_name_is_case_insensitive():
    assert parse_product_spec("Safari", DEFAULT_BROWSER_NAMES).browser_name == "safari"


@pytest.mark.parametrize(
    "spec",
    [
        "",
        "netscape",
        "chrome-latest",
        "chrome-89-linux-20.04-extra",
        "chrome@xyz",
        "chrome@abc",
        "chrome[experimental",
        "chrome-89--20",
    ],
)
def test_invalid_product_specs(spec):
    with pytest.raises(InvalidProductNameError):
        parse_product_spec(spec, DEFAULT_BROWSER_NAMES)


def test_invalid_name_is_value_error():
    with pytest.raises(ValueError):
        make_resolver().resolve("wpt.fyi - not a browser")


def test_product_matches_version_prefix():
    product = ProductSpec("chrome", browser_version="89")
    assert product.matches("chrome", browser_version="89.0.4389.90")
    assert product.matches("chrome", browser_version="89")
    assert not product.matches("chrome", browser_version="890.1")
    assert not product.matches("chrome")
    assert not product.matches("firefox", browser_version="89")


def test_product_matches_labels_subset():
    product = ProductSpec("firefox", labels=frozenset({"experimental"}))
    assert product.matches("firefox", labels=["experimental", "master"])
    assert not product.matches("firefox", labels=["stable"])


def test_product_string_omits_missing_parts():
    assert str(ProductSpec("edge")) == "edge"
    assert ProductSpec("edge", browser_version="91").product == "edge-91"
