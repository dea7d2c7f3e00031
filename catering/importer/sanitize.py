"""
String cleaning shared by the spreadsheet import and the repair tool.
"""
import re
from typing import Any, Optional

MAX_URL_LENGTH = 2000

CONTROL_CHARS = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')
LINE_BREAKS = re.compile(r'[\r\n\t\v\f\x85\u2028\u2029]+')
ZERO_WIDTH = re.compile(r'[\u200B-\u200D\u2060\uFEFF]')
WHITESPACE_RUNS = re.compile(r'[ \xA0]{2,}')
NON_NUMERIC = re.compile(r'[^\d.\-]')
LEADING_NUMBER = re.compile(r'-?(?:\d+\.?\d*|\.\d+)')


def strip_control_chars(value: Optional[str]) -> str:
    """Remove control characters (keeping tab/newline/CR) and trim"""
    if not value:
        return ''
    return CONTROL_CHARS.sub('', value).strip()


def collapse_newlines(value: Optional[str]) -> str:
    """Turn any run of line breaks into a single space"""
    if not value:
        return ''
    return LINE_BREAKS.sub(' ', value)


def sanitize_text(value: Any) -> str:
    """
    Make a cell value safe to store as single-line text.

    Line breaks become spaces, control and zero-width characters are dropped,
    repeated spaces are collapsed and the result is trimmed.
    """
    if value is None:
        return ''
    text = collapse_newlines(str(value))
    text = CONTROL_CHARS.sub('', text)
    text = ZERO_WIDTH.sub('', text)
    text = WHITESPACE_RUNS.sub(' ', text)
    return text.strip()


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a loosely formatted number such as '$25', '25.50' or ' 1 200 g'.

    Everything except digits, dots and minus signs is stripped first; the
    leading numeric part of what remains is used. Returns None if nothing parses.
    """
    if value is None:
        return None
    cleaned = NON_NUMERIC.sub('', str(value))
    match = LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def parse_price(value: Any) -> Optional[float]:
    """Price must parse and be strictly positive"""
    price = parse_number(value)
    if price is None or price <= 0:
        return None
    return price


def parse_weight(value: Any) -> Optional[float]:
    """Weight in grams; None unless a positive number"""
    weight = parse_number(value)
    if weight is None or weight <= 0:
        return None
    return weight


def is_http_url(value: Optional[str]) -> bool:
    return bool(value) and value.startswith('http')


def truncate_url(url: str, max_length: int = MAX_URL_LENGTH) -> str:
    """
    Shorten an overlong URL.

    The query string is dropped first; if that is still too long the URL is
    cut at ``max_length``.
    """
    if len(url) <= max_length:
        return url
    base = url.split('?', 1)[0]
    if len(base) <= max_length:
        return base
    return base[:max_length]


def clean_image_url(value: Any) -> str:
    """Sanitized http(s) URL, truncated if needed, or '' when not a web URL"""
    url = sanitize_text(value)
    if not is_http_url(url):
        return ''
    return truncate_url(url)
