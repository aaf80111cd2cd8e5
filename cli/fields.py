"""
Explicit states for the bid entry form.

Each typeahead field (Item, Bidder) is always in exactly one lookup state,
and the form as a whole is either creating a new winner or editing one.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

# bidder_id the server uses for the explicit "no bid" marker
NO_BID_BIDDER_ID = 0


class Field(str, Enum):
    ITEM = "item"
    BIDDER = "bidder"
    PRICE = "price"
    QUANTITY = "quantity"


# Focus order is fixed; each step is gated by validation
FIELD_ORDER = [Field.ITEM, Field.BIDDER, Field.PRICE, Field.QUANTITY]
LOOKUP_FIELDS = (Field.ITEM, Field.BIDDER)


class Key(str, Enum):
    ENTER = "Enter"
    TAB = "Tab"
    ESCAPE = "Escape"
    ARROW_UP = "ArrowUp"
    ARROW_DOWN = "ArrowDown"
    F5 = "F5"
    F6 = "F6"


def next_field(current: Field) -> Optional[Field]:
    index = FIELD_ORDER.index(current)
    if index + 1 < len(FIELD_ORDER):
        return FIELD_ORDER[index + 1]
    return None


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Debouncing:
    term: str


@dataclass(frozen=True)
class Loading:
    term: str
    token: int


@dataclass(frozen=True)
class Results:
    term: str
    results: List[Dict[str, Any]]
    highlighted: int = -1

    def move(self, step: int) -> "Results":
        """Move the highlight, clamped to [-1, count - 1]."""
        index = max(-1, min(len(self.results) - 1, self.highlighted + step))
        return Results(self.term, self.results, index)


@dataclass(frozen=True)
class NoResults:
    term: str


@dataclass(frozen=True)
class Selected:
    """An entity the field's text is confirmed to refer to.

    ``confirmed`` is True for dropdown picks and server-populated values; a
    confirmed selection passes validation without another lookup.
    """
    entity: Dict[str, Any]
    confirmed: bool = True

    @property
    def id(self) -> int:
        return int(self.entity["id"])


@dataclass(frozen=True)
class Creating:
    append: bool = False


@dataclass(frozen=True)
class Editing:
    bid_id: int


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: Optional[str] = None
    # A newer input superseded this check; nothing was shown
    stale: bool = False


VALID = ValidationResult(True)


@dataclass
class SelectedItem:
    """The item on the form plus whatever the inventory check returned."""
    entity: Dict[str, Any]
    inventory: Optional[Dict[str, Any]] = None
    winners: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def id(self) -> int:
        return int(self.entity["id"])

    @property
    def available_quantity(self) -> Optional[int]:
        if self.inventory is None:
            return None
        return int(self.inventory["available_quantity"])

    @property
    def can_add_bid(self) -> bool:
        if self.inventory is None:
            return True
        return bool(self.inventory.get("can_add_bid", True))
