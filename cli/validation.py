"""Local (no network) checks for the bid entry fields."""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional
from .fields import ValidationResult, VALID

PRICE_PATTERN = re.compile(r"^[0-9]+(\.[0-9]{1,2})?$")
QUANTITY_PATTERN = re.compile(r"^[0-9]+$")

INVALID_ITEM = "Invalid item entry. Enter a numeric item ID or choose from the list."
INVALID_BIDDER = "Invalid bidder entry. Enter a numeric bidder ID or choose from the list."
INVALID_PRICE = "Invalid price. Enter an amount like 25 or 25.50."
INVALID_QUANTITY = "Invalid quantity. Enter a whole number of 1 or more."


def item_not_in_auction(item_id: str) -> str:
    return f"Item #{item_id} not found or not part of this auction"


def bidder_not_found(bidder_id: str) -> str:
    return f"Bidder #{bidder_id} not found"


def not_enough_inventory(available: int) -> str:
    return f"Only {available} available in inventory"


def is_numeric(text: str) -> bool:
    return QUANTITY_PATTERN.match(text) is not None


def validate_price(text: str) -> ValidationResult:
    text = text.strip()
    if not text:
        return VALID
    if not PRICE_PATTERN.match(text) or Decimal(text) < 0:
        return ValidationResult(False, INVALID_PRICE)
    return VALID


def validate_quantity(text: str, available: Optional[int] = None) -> ValidationResult:
    """Positive whole number within the available quantity, when it is known.

    Empty input is valid; the caller rewrites it to the default of 1.
    """
    text = text.strip()
    if not text:
        return VALID
    if not QUANTITY_PATTERN.match(text) or int(text) < 1:
        return ValidationResult(False, INVALID_QUANTITY)
    if available is not None and int(text) > available:
        return ValidationResult(False, not_enough_inventory(max(available, 0)))
    return VALID


def parse_price(text: str) -> Optional[Decimal]:
    try:
        value = Decimal(text.strip().replace("$", "").replace(",", ""))
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def parse_quantity(text: str, default: int = 1) -> Optional[int]:
    text = text.strip()
    if not text:
        return default
    if not QUANTITY_PATTERN.match(text):
        return None
    return int(text)
