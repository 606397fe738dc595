"""Translate an order filter selection into order-list query parameters.

Pure and synchronous: the output feeds
``PaginatedFetcher.replace_parameters`` for the orders endpoint.

Rules:
- Empty source/status/payment-status lists omit their key entirely. The
  server reads a missing key as "no restriction".
- Date ranges resolve to inclusive ISO ``startDate``/``endDate``.
- Free text is routed by a heuristic: all digits -> ``orderID``,
  anything else -> ``customerName``. A numeric customer name is
  therefore searched as an order ID.
"""

import calendar
import re
from datetime import date, timedelta
from enum import Enum

from pydantic import BaseModel, Field

# Filter values the backend knows about
DEFAULT_SOURCES = [
    "Shopify", "Tapin2", "Breakaway", "bigcommerce", "Ecwid",
    "PHONE ORDER", "DELIVERY", "BAR TAB", "TIKT", "TABLE",
    "OTHER", "MANUAL", "FanVista", "QSR",
]
DEFAULT_STATUSES = ["Initiated", "Sent for Processing"]
DEFAULT_PAYMENT_STATUSES = ["PAID", "UNPAID"]

_ORDER_ID_PATTERN = re.compile(r"^\d+$")


class DateRange(str, Enum):
    """Relative date windows offered by the order filter."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    CURRENT_MONTH = "currentMonth"
    PREVIOUS_MONTH = "previousMonth"
    CUSTOM = "custom"


class SearchField(str, Enum):
    """Which server filter a free-text search is sent as."""

    ORDER_ID = "orderID"
    CUSTOMER_NAME = "customerName"


class OrderFilterSelection(BaseModel):
    """What the operator picked in the order filter."""

    sources: list[str] = Field(default_factory=list)
    statuses: list[str] = Field(default_factory=list)
    payment_statuses: list[str] = Field(default_factory=list)
    date_range: DateRange | None = None
    custom_start: date | None = None
    custom_end: date | None = None
    search_text: str = ""


def classify_search_term(text: str) -> SearchField:
    """Decide whether a search term is an order ID or a customer name.

    Heuristic only: digits-only text is always treated as an order ID.
    """
    if _ORDER_ID_PATTERN.match(text):
        return SearchField.ORDER_ID
    return SearchField.CUSTOMER_NAME


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def resolve_date_range(
    date_range: DateRange,
    today: date,
    custom_start: date | None = None,
    custom_end: date | None = None,
) -> tuple[date | None, date | None]:
    """Resolve a relative range into inclusive start/end dates.

    Args:
        date_range: The selected window.
        today: Reference day.
        custom_start: Lower bound for CUSTOM, passed through verbatim.
        custom_end: Upper bound for CUSTOM, passed through verbatim.

    Returns:
        (start, end). Either may be None only for CUSTOM.
    """
    if date_range == DateRange.TODAY:
        return today, today
    if date_range == DateRange.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday
    if date_range == DateRange.CURRENT_MONTH:
        return _month_bounds(today.year, today.month)
    if date_range == DateRange.PREVIOUS_MONTH:
        if today.month == 1:
            return _month_bounds(today.year - 1, 12)
        return _month_bounds(today.year, today.month - 1)
    return custom_start, custom_end


def build_order_params(
    selection: OrderFilterSelection,
    today: date | None = None,
) -> dict[str, str]:
    """Build the flat order-list parameter map for a selection.

    Args:
        selection: Operator's filter selection.
        today: Reference day for relative ranges. Defaults to date.today().

    Returns:
        Parameter name -> string value. Absent filters are omitted.
    """
    params: dict[str, str] = {}

    if selection.sources:
        params["source"] = ",".join(selection.sources)
    if selection.statuses:
        params["status"] = ",".join(selection.statuses)
    if selection.payment_statuses:
        params["paymentStatus"] = ",".join(selection.payment_statuses)

    if selection.date_range is not None:
        start, end = resolve_date_range(
            selection.date_range,
            today or date.today(),
            selection.custom_start,
            selection.custom_end,
        )
        if start is not None:
            params["startDate"] = start.isoformat()
        if end is not None:
            params["endDate"] = end.isoformat()

    search = selection.search_text.strip()
    if search:
        params["searchMode"] = "contains"
        params["matchWith"] = "any"
        params[classify_search_term(search).value] = search

    return params
