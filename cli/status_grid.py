"""
Item status grid: per-item card state, running totals and background refresh.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from .fields import NO_BID_BIDDER_ID
from .scheduling import cancel_timer

logger = logging.getLogger(__name__)

PENDING = "pending"
COMPLETED = "completed"
MULTIPLE = "multiple"
NO_BID = "no-bid"


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def format_money(value: Any) -> str:
    return f"${to_decimal(value):,.2f}"


def is_real_bidder(bidder_id: Any) -> bool:
    return bidder_id is not None and int(bidder_id) != NO_BID_BIDDER_ID


def card_status(item: Dict[str, Any]) -> str:
    winner_count = item.get("winner_count") or 0
    if item.get("bidder_id") is None or winner_count == 0:
        return PENDING
    if int(item["bidder_id"]) == NO_BID_BIDDER_ID and winner_count == 1:
        return NO_BID
    if winner_count > 1:
        return MULTIPLE
    return COMPLETED


def summarize_winners(item: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute an item row's aggregate fields from its ``winners`` list, in place."""
    winners = item.get("winners") or []
    total_won = sum(int(w.get("quantity_won") or 0) for w in winners)
    item["winner_count"] = len(winners)
    item["total_quantity_won"] = total_won
    item["quantity_won"] = total_won
    if not winners:
        item["bidder_id"] = None
        item["winning_price"] = None
        item["winner_name"] = None
    elif len(winners) == 1:
        item["bidder_id"] = winners[0]["bidder_id"]
        item["winning_price"] = winners[0]["winning_price"]
        item["winner_name"] = winners[0].get("bidder_name")
    else:
        prices = [to_decimal(w["winning_price"]) for w in winners]
        item["bidder_id"] = winners[0]["bidder_id"]
        item["winning_price"] = (sum(prices) / len(prices)).quantize(Decimal("0.01"))
        item["winner_name"] = f"{len(winners)} Winners"
    return item


def build_card(item: Dict[str, Any]) -> Dict[str, Any]:
    status = card_status(item)
    card = {
        "item_id": item["item_id"],
        "name": item["item_name"],
        "status": status,
        "winner": None,
        "price": None,
        "quantity": None,
    }
    if status == PENDING:
        card["winner"] = f"{item['item_quantity']} available"
    elif status == NO_BID:
        card["winner"] = "No Bid"
    else:
        card["winner"] = item.get("winner_name") or f"ID {item['bidder_id']}"
        price = format_money(item.get("winning_price"))
        card["price"] = f"Avg: {price}" if status == MULTIPLE else price
        if (item.get("quantity_won") or 0) > 1:
            card["quantity"] = item["quantity_won"]
    return card


def build_cards(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [build_card(item) for item in items]


def running_total(items: List[Dict[str, Any]]) -> Decimal:
    """Sum of price x quantity over real winners; no-bid markers add nothing."""
    total = Decimal("0")
    for item in items:
        for winner in item.get("winners") or []:
            if is_real_bidder(winner.get("bidder_id")):
                total += to_decimal(winner.get("winning_price")) * int(winner.get("quantity_won") or 1)
    return total


def processed_count(items: List[Dict[str, Any]]) -> int:
    """Items with any outcome recorded, a no-bid marker included."""
    return sum(1 for item in items if item.get("bidder_id") is not None)


def progress_percent(processed: int, total: int) -> float:
    return (processed / total) * 100 if total > 0 else 0.0


class StatusPoller:
    """Refreshes the controller's item list every few seconds while the grid is shown.

    A tick is skipped while a save or delete is in flight, so the grid never
    flashes back to the state from before the mutation.
    """

    def __init__(self, controller, scheduler, interval: float = 5.0):
        self.controller = controller
        self.scheduler = scheduler
        self.interval = interval
        self.active = False
        self._timer: Optional[Any] = None

    def start(self):
        if self.active:
            return
        self.active = True
        logger.info(f"Status polling started every {self.interval}s")
        self._schedule()

    def stop(self):
        self.active = False
        cancel_timer(self._timer)
        self._timer = None
        logger.info("Status polling stopped")

    def _schedule(self):
        self._timer = self.scheduler.call_later(self.interval, self._tick)

    def _tick(self):
        if not self.active:
            return
        try:
            if self.controller.mutations_in_flight:
                logger.debug("Skipping status poll while a bid change is in flight")
            else:
                self.controller.refresh_items()
        except Exception as e:
            logger.error(f"Error in status poll: {e}", exc_info=True)
        finally:
            if self.active:
                self._schedule()
