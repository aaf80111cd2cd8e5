#!/usr/bin/env python3
"""
Parser for bulk bid entry input.
Handles multiple separators, no-bid lines and duplicate items.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import List, NamedTuple, Optional
from .validation import is_numeric

NO_BID_WORDS = {"nobid", "no-bid", "none", "-"}


class ParsedLine(NamedTuple):
    row_num: int
    item_id: Optional[int]
    bidder_id: Optional[int]
    winning_price: Optional[Decimal]
    quantity_won: int
    no_bid: bool
    original_line: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def split_fields(line: str) -> List[str]:
    """
    Split a line into fields.

    Tabs win when present. Otherwise whitespace separates fields and commas
    inside a field are thousands separators; a line with no whitespace at all
    is comma separated.
    """
    if "\t" in line:
        parts = line.split("\t")
    elif re.search(r"\s", line):
        parts = [part.rstrip(",") for part in line.split()]
    else:
        parts = line.split(",")
    return [part.strip() for part in parts if part.strip()]


def parse_amount(text: str) -> Optional[Decimal]:
    cleaned = text.replace("$", "").replace(",", "").strip()
    if not re.fullmatch(r"\d+(\.\d{1,2})?", cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def parse_line(row_num: int, line: str) -> ParsedLine:
    """Parse one non-blank, non-comment line."""
    original_line = line
    fields = split_fields(line.strip())

    def bad(message, item_id=None):
        return ParsedLine(row_num, item_id, None, None, 1, False, original_line, message)

    if not fields or not is_numeric(fields[0]):
        return bad("Invalid format - could not parse item number")
    item_id = int(fields[0])

    if len(fields) == 2 and fields[1].lower() in NO_BID_WORDS:
        return ParsedLine(row_num, item_id, 0, Decimal("0"), 0, True, original_line)

    if len(fields) not in (3, 4):
        return bad("Expected: item bidder price [quantity], or: item nobid", item_id)

    if not is_numeric(fields[1]) or int(fields[1]) == 0:
        return bad(f"Invalid bidder number: {fields[1]}", item_id)
    bidder_id = int(fields[1])

    price = parse_amount(fields[2])
    if price is None or price <= 0:
        return bad(f"Invalid price: {fields[2]}", item_id)

    quantity = 1
    if len(fields) == 4:
        if not is_numeric(fields[3]) or int(fields[3]) < 1:
            return bad(f"Invalid quantity: {fields[3]}", item_id)
        quantity = int(fields[3])

    return ParsedLine(row_num, item_id, bidder_id, price, quantity, False, original_line)


def parse_bulk_input(lines: List[str]) -> List[ParsedLine]:
    """
    Parse bulk input lines.

    Args:
        lines: List of input lines (from stdin)

    Returns:
        One ParsedLine per non-blank, non-comment line. Row numbers are
        1-indexed. A second line for an item already seen is returned with
        an error so only the first entry per item is sent.
    """
    results = []
    seen_items = set()

    for line_num, line in enumerate(lines, start=1):
        stripped = line.strip()

        # Skip blank lines and comment lines
        if not stripped or stripped.startswith("#"):
            continue

        parsed = parse_line(line_num, line.rstrip("\n"))
        if parsed.ok:
            if parsed.item_id in seen_items:
                parsed = parsed._replace(error="Duplicate item in input")
            else:
                seen_items.add(parsed.item_id)
        results.append(parsed)

    return results
