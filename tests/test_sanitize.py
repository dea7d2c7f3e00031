import pytest

from catering.importer.sanitize import (
    MAX_URL_LENGTH,
    clean_image_url,
    collapse_newlines,
    is_http_url,
    parse_price,
    parse_weight,
    sanitize_text,
    strip_control_chars,
    truncate_url,
)


@pytest.mark.parametrize("text, expected", [
    ("25", 25.0),
    ("$25", 25.0),
    ("25.50", 25.5),
    (" 25 ", 25.0),
    ("AED 120", 120.0),
])
def test_parse_price_accepts(text, expected):
    assert parse_price(text) == expected


@pytest.mark.parametrize("text", ["abc", "-5", "0", "", None, "0.00"])
def test_parse_price_rejects(text):
    assert parse_price(text) is None


def test_parse_weight():
    assert parse_weight("250g") == 250.0
    assert parse_weight("0") is None
    assert parse_weight("n/a") is None


def test_sanitize_text_single_line():
    assert sanitize_text("Grilled\r\nSalmon\twith  lemon") == "Grilled Salmon with lemon"


def test_sanitize_text_drops_control_and_zero_width():
    assert sanitize_text("Bur\x00ger\u200b ") == "Burger"


def test_sanitize_text_non_string():
    assert sanitize_text(12) == "12"
    assert sanitize_text(None) == ""


def test_strip_control_chars_keeps_newlines_inside():
    assert strip_control_chars("a\x07b\nc ") == "ab\nc"


def test_collapse_newlines():
    assert collapse_newlines("a\n\n\nb") == "a b"


def test_is_http_url():
    assert is_http_url("https://example.com/a.jpg")
    assert is_http_url("http://example.com")
    assert not is_http_url("ftp://example.com")
    assert not is_http_url("")


def test_truncate_url_short_unchanged():
    url = "https://example.com/a.jpg?x=1"
    assert truncate_url(url) == url


def test_truncate_url_drops_query_first():
    base = "https://example.com/photo.jpg"
    url = base + "?sig=" + "a" * 3000
    assert truncate_url(url) == base


def test_truncate_url_hard_cut():
    url = "https://example.com/" + "p" * 3000
    result = truncate_url(url)
    assert len(result) == MAX_URL_LENGTH
    assert url.startswith(result)


def test_clean_image_url():
    assert clean_image_url("  https://example.com/a.jpg ") == "https://example.com/a.jpg"
    assert clean_image_url("photo.jpg") == ""
