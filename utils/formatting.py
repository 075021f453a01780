# utils/formatting.py
import datetime as dt
import math

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def _group_indian(digits):
    """Group an integer string the Indian way: last three digits, then pairs (12,34,567)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_price(price, currency="INR"):
    """
    Format a price with its currency symbol and no decimals.

    Unknown currency codes are used as the prefix as-is. Amounts are rounded
    half away from zero and grouped with Indian digit grouping.

    Example:
        format_price(123456.5) -> "₹1,23,457"
        format_price(None) -> "N/A"
    """
    if price is None:
        return "N/A"
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    rounded = int(math.floor(abs(price) + 0.5))
    sign = "-" if price < 0 and rounded else ""
    return f"{sign}{symbol}{_group_indian(str(rounded))}"


def _to_datetime(value):
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return dt.datetime.fromisoformat(text)


def format_date(value, with_time=False):
    """
    Format a date, datetime or ISO string as "Sep 30, 2025".

    With ``with_time`` the year is dropped and the time added, as used for an
    offer's last-checked stamp ("Sep 30, 10:15 AM"). A value that cannot be
    parsed is returned unchanged; a missing value gives "N/A".
    """
    if value is None or value == "":
        return "N/A"
    try:
        moment = _to_datetime(value)
    except ValueError:
        return str(value)
    if with_time:
        return f"{moment:%b} {moment.day}, {moment:%I:%M %p}"
    return f"{moment:%b} {moment.day}, {moment.year}"


def format_rating(rating):
    if rating is None:
        return "No rating"
    return f"{round(rating * 10) / 10:.1f}★"


def truncate_text(text, max_length=100):
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_authors(authors):
    if not authors:
        return "Unknown Author"
    if len(authors) == 1:
        return authors[0]
    if len(authors) == 2:
        return f"{authors[0]} and {authors[1]}"
    return f"{authors[0]} et al."
