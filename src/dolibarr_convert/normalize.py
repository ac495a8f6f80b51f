from __future__ import annotations
import html
import numbers
import re
import unicodedata
from decimal import Decimal
from datetime import date, datetime


_CURRENCY_RE = re.compile(r"€|\$|EUR", flags=re.IGNORECASE)
_NUMERIC_PREFIX_RE = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

_BREAK_RE = re.compile(r"<br\s*/?>", flags=re.IGNORECASE)
_PARAGRAPH_RE = re.compile(r"</p>\s*<p(?:\s[^>]*)?>", flags=re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_REPEATED_SEP_RE = re.compile(r"(?:\s*\|\s*){2,}")
_LEADING_SEP_RE = re.compile(r"^\s*\|\s*")
_TRAILING_SEP_RE = re.compile(r"\s*\|\s*$")

SEPARATOR = " | "


def format_number(value: float) -> str:
    # 5.0 -> '5', 5.25 -> '5.25'
    f = float(value)
    if f.is_integer():
        return str(int(f))
    # 5e-05 -> '0.00005'
    return format(Decimal(repr(f)).normalize(), "f")


def cell_to_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, numbers.Number):
        return format_number(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def parse_price(value) -> str:
    """Parse a price written in any common locale into a canonical decimal string.

    '€ 1.234,56' -> '1234.56', '1 234,56' -> '1234.56', '12.50 EUR' -> '12.5'.
    Returns '' for empty or unparsable input.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        return format_number(value)

    cleaned = _CURRENCY_RE.sub("", str(value))
    cleaned = re.sub(r"\s+", "", cleaned)

    if "," in cleaned:
        comma = cleaned.index(",")
        period = cleaned.find(".")
        if period < comma:
            # 1.234,56 or 1234,56: comma is the decimal mark
            cleaned = cleaned.replace(".", "").replace(",", ".", 1)
        # else 1,234.56: the comma is dropped below

    cleaned = re.sub(r"[^\d.\-]", "", cleaned)
    m = _NUMERIC_PREFIX_RE.match(cleaned)
    if not m:
        return ""
    return format_number(float(m.group(0)))


def parse_number(value) -> float:
    """Lenient float parsing for feed weights and dimensions; 0.0 when absent."""
    if value is None:
        return 0.0
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        return float(value)
    m = _NUMERIC_PREFIX_RE.match(str(value).strip())
    if not m:
        return 0.0
    return float(m.group(0))


def html_to_plain_text(text: str) -> str:
    """Flatten an HTML description into one line.

    Line and paragraph breaks become ' | ' rather than newlines: the Dolibarr
    import filter rejects some multi-line payloads as injection attempts.
    """
    if not text:
        return ""
    decoded = html.unescape(text)
    decoded = _BREAK_RE.sub(SEPARATOR, decoded)
    decoded = _PARAGRAPH_RE.sub(SEPARATOR, decoded)
    decoded = _TAG_RE.sub("", decoded)
    decoded = _REPEATED_SEP_RE.sub(SEPARATOR, decoded)
    decoded = _LEADING_SEP_RE.sub("", decoded)
    decoded = _TRAILING_SEP_RE.sub("", decoded)
    decoded = re.sub(r"\s+", " ", decoded)
    return decoded.strip()


def normalize_header(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKD", str(s).lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]", "", s)
