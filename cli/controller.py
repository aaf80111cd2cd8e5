"""
Bid entry controller.

Drives the four-field entry form (Item -> Bidder -> Price -> Quantity):
debounced typeahead lookups, keyboard navigation of the result list,
validation before every focus change, and save/update/delete of winning
bids against the server. All network work runs on an executor; handlers
return futures so callers (the terminal session, tests) can wait on the
outcome of a keystroke.

Responses are matched to requests through per-field tokens: whatever the
user typed last wins, regardless of which response arrives first.
"""
import threading
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .fields import (
    Field, Key, LOOKUP_FIELDS, NO_BID_BIDDER_ID, next_field,
    Idle, Debouncing, Loading, Results, NoResults, Selected,
    Creating, Editing, ValidationResult, VALID, SelectedItem,
)
from .scheduling import ThreadingScheduler, RequestGuard, chain, resolved, cancel_timer
from .status_grid import (
    build_cards, is_real_bidder, processed_count, progress_percent, running_total,
    summarize_winners, to_decimal,
)
from .validation import (
    INVALID_BIDDER, INVALID_ITEM, bidder_not_found, is_numeric, item_not_in_auction,
    not_enough_inventory, parse_price, parse_quantity, validate_price, validate_quantity,
)
from .view import BidEntryView

logger = logging.getLogger(__name__)

SAVE_LABEL = "SAVE BID"
UPDATE_LABEL = "UPDATE BID"
ADD_WINNER_LABEL = "ADD WINNER"


class BidEntryController:
    """State machine behind the bid entry form for one auction."""

    def __init__(
        self,
        client,
        auction_id: int,
        view: Optional[BidEntryView] = None,
        scheduler=None,
        executor=None,
        debounce_seconds: float = 0.3,
        blur_delay: float = 0.3,
        error_dismiss_seconds: float = 5.0,
        recent_limit: int = 5,
    ):
        self.client = client
        self.auction_id = auction_id
        self.view = view or BidEntryView()
        self.scheduler = scheduler or ThreadingScheduler()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="bid-entry")
        self.debounce_seconds = debounce_seconds
        self.blur_delay = blur_delay
        self.error_dismiss_seconds = error_dismiss_seconds
        self.recent_limit = recent_limit

        self._lock = threading.RLock()
        self._guard = RequestGuard()
        self._debounce_timers: Dict[Field, Any] = {}
        self._blur_timers: Dict[Field, Any] = {}
        self._error_timers: Dict[Field, Any] = {}

        self.items: List[Dict[str, Any]] = []
        self.values: Dict[Field, str] = {field: "" for field in Field}
        self.values[Field.QUANTITY] = "1"
        self.lookups: Dict[Field, Any] = {field: Idle() for field in LOOKUP_FIELDS}
        self.selected_item: Optional[SelectedItem] = None
        self.mode = Creating()
        self.focused = Field.ITEM
        self.recent_entries: List[Dict[str, Any]] = []
        self.running_total = Decimal("0")
        self.processed_count = 0
        self.mutations_in_flight = 0
        self._items_generation = 0
        self.closed = False

    # ------------------------------------------------------------------
    # Derived state

    @property
    def selected_bidder(self) -> Optional[Selected]:
        state = self.lookups[Field.BIDDER]
        return state if isinstance(state, Selected) else None

    @property
    def editing_bid_id(self) -> Optional[int]:
        return self.mode.bid_id if isinstance(self.mode, Editing) else None

    @property
    def winners(self) -> List[Dict[str, Any]]:
        """Every real winner of the selected item, not only the one on the form."""
        if self.selected_item is None:
            return []
        return [w for w in self.selected_item.winners if is_real_bidder(w.get("bidder_id"))]

    def _render_derived(self):
        self.running_total = running_total(self.items)
        self.processed_count = processed_count(self.items)
        total = len(self.items)
        self.view.render_running_total(self.running_total)
        self.view.render_progress(self.processed_count, total, progress_percent(self.processed_count, total))
        self.view.render_status_grid(build_cards(self.items))

    # ------------------------------------------------------------------
    # Loading and refreshing

    def load(self) -> Future:
        """Fetch the auction's items and put focus on the Item field."""
        with self._lock:
            self._focus(Field.ITEM)
        return self.refresh_items()

    def refresh_items(self) -> Future:
        """Replace the local item cache with the server's authoritative list."""
        with self._lock:
            generation = self._items_generation
            token = self._guard.issue("items")
            future = self.executor.submit(self.client.get_auction_items, self.auction_id)
        return chain(future, lambda f: self._on_items(f, token, generation))

    def _on_items(self, future: Future, token: int, generation: int) -> bool:
        with self._lock:
            if not self._guard.is_current("items", token) or generation != self._items_generation:
                logger.debug("Discarding item list fetched before a newer change")
                return False
            try:
                data = future.result()
            except Exception as e:
                logger.warning(f"Could not refresh items for auction {self.auction_id}: {e}")
                return False
            if not data.get("success"):
                logger.warning(f"Item refresh rejected: {data.get('error', 'unknown error')}")
                return False
            self.items = data.get("items") or []
            self._render_derived()
            return True

    # ------------------------------------------------------------------
    # Typing and typeahead

    def type_text(self, field: Field, text: str):
        """The user changed a field's text."""
        with self._lock:
            self.values[field] = text
            self._clear_error(field)
            if field not in LOOKUP_FIELDS:
                return

            self._cancel_debounce(field)
            self._guard.invalidate(("lookup", field))
            self._guard.invalidate(("validate", field))

            state = self.lookups[field]
            if isinstance(state, Selected):
                if text.strip() == str(state.id):
                    return
                self._drop_selection(field)

            term = text.strip()
            if not term:
                self.lookups[field] = Idle()
                self.view.hide_results(field)
                return

            self.lookups[field] = Debouncing(term)
            self._debounce_timers[field] = self.scheduler.call_later(
                self.debounce_seconds, lambda: self._fire_lookup(field, term)
            )

    def search_now(self, field: Field) -> Future:
        """Run a pending debounced lookup immediately."""
        with self._lock:
            state = self.lookups.get(field)
            if not isinstance(state, Debouncing):
                return resolved(state)
            self._cancel_debounce(field)
            return self._fire_lookup(field, state.term)

    def _fire_lookup(self, field: Field, term: str) -> Future:
        with self._lock:
            self._debounce_timers.pop(field, None)
            if self.closed or self.values[field].strip() != term:
                return resolved(None)
            token = self._guard.issue(("lookup", field))
            self.lookups[field] = Loading(term, token)
            future = self.executor.submit(self._lookup, field, term)
        return chain(future, lambda f: self._on_lookup(field, term, token, f))

    def _lookup(self, field: Field, term: str) -> Dict[str, Any]:
        if field == Field.ITEM:
            return self.client.lookup("item", term, self.auction_id)
        return self.client.lookup("bidder", term)

    def _on_lookup(self, field: Field, term: str, token: int, future: Future):
        with self._lock:
            if not self._guard.is_current(("lookup", field), token):
                logger.debug(f"Dropping stale {field.value} lookup for {term!r}")
                return None
            try:
                data = future.result()
            except Exception as e:
                logger.warning(f"{field.value} lookup failed for {term!r}: {e}")
                data = {"error": str(e)}

            results = [] if data.get("error") else (data.get("results") or [])
            if results:
                self.lookups[field] = Results(term, results)
                self.view.show_results(field, results, -1)
            else:
                self.lookups[field] = NoResults(term)
                self.view.show_no_results(field, term)
            return self.lookups[field]

    # ------------------------------------------------------------------
    # Keyboard

    def press_key(self, field: Field, key: Key) -> Future:
        """
        Handle a key in a field. The future resolves to True when focus moved
        on (or a save went through), False when the key was handled in place
        or rejected.
        """
        if key == Key.F5:
            return self.skip_item()
        if key == Key.F6:
            return self.mark_no_bid()

        with self._lock:
            if key in (Key.ARROW_DOWN, Key.ARROW_UP):
                self._move_highlight(field, 1 if key == Key.ARROW_DOWN else -1)
                return resolved(False)

            if key == Key.ESCAPE:
                if self._dropdown_visible(field):
                    self._dismiss(field)
                else:
                    self.clear_form()
                return resolved(False)

            if key == Key.ENTER:
                state = self.lookups.get(field)
                if isinstance(state, Results) and state.highlighted >= 0:
                    return self.select_result(field, state.highlighted)
                if field == Field.QUANTITY:
                    return chain(self.validate_field(field), lambda f: self._save_if_valid(field, f.result()))

        return chain(self.validate_field(field), lambda f: self._after_validation(field, f.result()))

    def _move_highlight(self, field: Field, step: int):
        state = self.lookups.get(field)
        if not isinstance(state, Results):
            return
        moved = state.move(step)
        self.lookups[field] = moved
        self.view.show_results(field, moved.results, moved.highlighted)

    def _dropdown_visible(self, field: Field) -> bool:
        return isinstance(self.lookups.get(field), (Results, NoResults))

    def _dismiss(self, field: Field):
        if self._dropdown_visible(field):
            self.lookups[field] = Idle()
        if field in LOOKUP_FIELDS:
            self.view.hide_results(field)

    def _after_validation(self, field: Field, result: ValidationResult) -> bool:
        with self._lock:
            if result.stale:
                return False
            if not result.valid:
                self._reject(field, result.message)
                return False
            self._dismiss(field)
            following = next_field(field)
            if following is not None:
                self._focus(following)
            return True

    def _save_if_valid(self, field: Field, result: ValidationResult):
        if result.stale:
            return False
        if not result.valid:
            with self._lock:
                self._reject(field, result.message)
            return False
        return self.save_bid()

    def blur(self, field: Field, into_dropdown: bool = False):
        """Focus left a field. Re-validates shortly after unless it moved into the field's own dropdown."""
        if into_dropdown:
            return
        with self._lock:
            cancel_timer(self._blur_timers.pop(field, None))
            snapshot = self.values[field]
            self._blur_timers[field] = self.scheduler.call_later(
                self.blur_delay, lambda: self._blur_validate(field, snapshot)
            )

    def _blur_validate(self, field: Field, snapshot: str) -> Future:
        with self._lock:
            self._blur_timers.pop(field, None)
            if self.closed or self.values[field] != snapshot:
                return resolved(None)
        return chain(self.validate_field(field), lambda f: self._after_blur(field, f.result()))

    def _after_blur(self, field: Field, result: ValidationResult) -> ValidationResult:
        with self._lock:
            if not result.stale and not result.valid:
                self._reject(field, result.message)
            return result

    # ------------------------------------------------------------------
    # Validation

    def validate_field(self, field: Field) -> Future:
        """Check a field's current text; resolves to a ValidationResult."""
        with self._lock:
            text = self.values[field].strip()

            if field == Field.PRICE:
                return resolved(validate_price(text))

            if field == Field.QUANTITY:
                if not text:
                    self._set_value(Field.QUANTITY, "1")
                    return resolved(VALID)
                return resolved(validate_quantity(text, self._quantity_limit()))

            if not text or isinstance(self.lookups[field], Selected):
                return resolved(VALID)

            if not is_numeric(text):
                return resolved(ValidationResult(False, INVALID_ITEM if field == Field.ITEM else INVALID_BIDDER))

            self._cancel_debounce(field)
            self._guard.invalidate(("lookup", field))
            token = self._guard.issue(("validate", field))
            future = self.executor.submit(self._lookup, field, text)
        return chain(future, lambda f: self._on_validation_lookup(field, text, token, f))

    def _on_validation_lookup(self, field: Field, text: str, token: int, future: Future):
        with self._lock:
            if not self._guard.is_current(("validate", field), token) or self.values[field].strip() != text:
                return ValidationResult(False, stale=True)
            try:
                data = future.result()
            except Exception as e:
                logger.warning(f"Could not verify {field.value} {text}: {e}")
                return ValidationResult(False, f"Could not verify {field.value} #{text}. Check the connection and try again.")

            match = None
            if not data.get("error"):
                match = next((r for r in data.get("results") or [] if int(r["id"]) == int(text)), None)
            if match is None:
                message = item_not_in_auction(text) if field == Field.ITEM else bidder_not_found(text)
                return ValidationResult(False, message)

            if field == Field.ITEM:
                return chain(
                    self.select_item(match, advance=False),
                    lambda f: self._after_item_validated(str(match["id"]), token, f),
                )
            self._select_bidder(match, advance=False)
            return VALID

    def _after_item_validated(self, item_text: str, token: int, future: Future) -> ValidationResult:
        with self._lock:
            if (future.result() is None
                    or not self._guard.is_current(("validate", Field.ITEM), token)
                    or self.values[Field.ITEM].strip() != item_text):
                return ValidationResult(False, stale=True)
            return VALID

    def _quantity_limit(self) -> Optional[int]:
        """Most the current winner may take: what is left, plus what the edited bid already holds."""
        item = self.selected_item
        if item is None or item.available_quantity is None:
            return None
        limit = item.available_quantity
        if isinstance(self.mode, Editing):
            for winner in item.winners:
                if int(winner["bid_id"]) == self.mode.bid_id:
                    limit += int(winner.get("quantity_won") or 0)
        return limit

    # ------------------------------------------------------------------
    # Selection

    def select_result(self, field: Field, index: int) -> Future:
        """Pick a row from a field's dropdown (click, or Enter on the highlight)."""
        with self._lock:
            state = self.lookups.get(field)
            if not isinstance(state, Results) or not 0 <= index < len(state.results):
                return resolved(False)
            result = state.results[index]
            if field == Field.BIDDER:
                self._select_bidder(result)
                return resolved(True)
        return chain(self.select_item(result), lambda f: True)

    def select_item(self, result: Dict[str, Any], advance: bool = True) -> Future:
        """
        Make ``result`` the form's item and load its inventory.

        An item that already has winners puts the form in edit mode for the
        first of them; otherwise the form is cleared for a new winner. When
        the inventory call fails the item stays selected without quantity
        limits rather than blocking entry.
        """
        with self._lock:
            self._cancel_debounce(Field.ITEM)
            self._guard.invalidate(("lookup", Field.ITEM))
            self.lookups[Field.ITEM] = Selected(result)
            self._set_value(Field.ITEM, str(result["id"]))
            self.view.hide_results(Field.ITEM)
            self._clear_error(Field.ITEM)
            self.selected_item = SelectedItem(result)
            token = self._guard.issue("inventory")
            future = self.executor.submit(self.client.check_inventory, int(result["id"]), self.auction_id)
        return chain(future, lambda f: self._on_inventory(result, token, advance, f))

    def _on_inventory(self, result: Dict[str, Any], token: int, advance: bool, future: Future):
        with self._lock:
            if not self._guard.is_current("inventory", token):
                return None

            inventory = None
            try:
                data = future.result()
                if data.get("error"):
                    logger.warning(f"Inventory check for item {result['id']} failed: {data['error']}")
                else:
                    inventory = data
            except Exception as e:
                logger.warning(f"Inventory check for item {result['id']} failed: {e}")

            selected = SelectedItem(result, inventory, list(inventory["existing_bids"]) if inventory else [])
            self.selected_item = selected
            self.view.show_item_info(result, inventory)

            winners = self.winners
            if winners:
                self._enter_edit_mode(winners[0])
            else:
                self._enter_create_mode()
                if selected.winners:
                    self.view.toast(f"Item #{selected.id} is currently marked No Bid")
            self.view.show_winners(winners)

            if advance:
                self._focus(Field.BIDDER)
            return selected

    def _select_bidder(self, result: Dict[str, Any], advance: bool = True):
        self._cancel_debounce(Field.BIDDER)
        self._guard.invalidate(("lookup", Field.BIDDER))
        self.lookups[Field.BIDDER] = Selected(result)
        self._set_value(Field.BIDDER, str(result["id"]))
        self.view.hide_results(Field.BIDDER)
        self._clear_error(Field.BIDDER)
        if advance:
            self._focus(Field.PRICE)

    def _drop_selection(self, field: Field):
        self.lookups[field] = Idle()
        if field == Field.ITEM:
            self._guard.invalidate("inventory")
            self.selected_item = None
            self.mode = Creating()
            self.view.set_save_label(SAVE_LABEL)
            self.view.show_delete(False)
            self.view.show_item_info(None, None)

    def _enter_edit_mode(self, bid: Dict[str, Any]):
        self.mode = Editing(int(bid["bid_id"]))
        self.lookups[Field.BIDDER] = Selected({"id": bid["bidder_id"], "name": bid.get("bidder_name", "")})
        self._set_value(Field.BIDDER, str(bid["bidder_id"]))
        self._set_value(Field.PRICE, f"{to_decimal(bid['winning_price']):.2f}")
        self._set_value(Field.QUANTITY, str(bid.get("quantity_won") or 1))
        self.view.set_save_label(UPDATE_LABEL)
        self.view.show_delete(True)

    def _enter_create_mode(self, append: bool = False):
        self.mode = Creating(append)
        self._cancel_debounce(Field.BIDDER)
        self.lookups[Field.BIDDER] = Idle()
        self.view.hide_results(Field.BIDDER)
        self._set_value(Field.BIDDER, "")
        self._set_value(Field.PRICE, "")
        self._set_value(Field.QUANTITY, "1")
        self.view.set_save_label(ADD_WINNER_LABEL if append else SAVE_LABEL)
        self.view.show_delete(False)

    def edit_winner(self, bid_id: int) -> bool:
        """Point the form at another winner of the selected item."""
        with self._lock:
            winner = next((w for w in self.winners if int(w["bid_id"]) == bid_id), None)
            if winner is None:
                self.view.alert(f"Bid {bid_id} is not a winner of the selected item")
                return False
            self._enter_edit_mode(winner)
            self._focus(Field.BIDDER)
            return True

    def add_winner(self) -> bool:
        """Switch the form to recording an additional winner for a multi-quantity item."""
        with self._lock:
            item = self.selected_item
            if item is None:
                self.view.alert("Select an item first")
                return False
            if not item.can_add_bid:
                self.view.alert(f"Item #{item.id} has no quantity left for another winner")
                return False
            self._enter_create_mode(append=True)
            self._focus(Field.BIDDER)
            return True

    # ------------------------------------------------------------------
    # Mutations

    def _begin_mutation(self):
        self.mutations_in_flight += 1
        self._items_generation += 1

    def _end_mutation(self):
        self.mutations_in_flight = max(0, self.mutations_in_flight - 1)

    def _resolve_bidder_id(self, text: str) -> Optional[int]:
        selected = self.selected_bidder
        if selected is not None:
            return selected.id
        if is_numeric(text):
            return int(text)
        return None

    def save_bid(self) -> Future:
        """Save the form: update the edited winner, or record a new one."""
        with self._lock:
            item = self.selected_item
            if item is None:
                self.view.alert("Select an item before saving")
                return resolved(False)

            bidder_text = self.values[Field.BIDDER].strip()
            price_text = self.values[Field.PRICE].strip()
            if not bidder_text or not price_text:
                self.view.alert("Please enter both Bidder ID and Winning Price")
                return resolved(False)

            bidder_id = self._resolve_bidder_id(bidder_text)
            if bidder_id is None:
                self.view.alert(INVALID_BIDDER)
                return resolved(False)

            checked = validate_price(price_text)
            if not checked.valid:
                self.view.alert(checked.message)
                return resolved(False)
            price = parse_price(price_text)
            if price is None or price <= 0:
                self.view.alert("Winning price must be greater than 0")
                return resolved(False)

            quantity = parse_quantity(self.values[Field.QUANTITY])
            if quantity is None or quantity < 1:
                self.view.alert("Quantity must be at least 1")
                return resolved(False)

            if isinstance(self.mode, Editing):
                limit = self._quantity_limit()
                if limit is not None and quantity > limit:
                    self.view.alert(not_enough_inventory(max(limit, 0)))
                    return resolved(False)
                payload = {
                    "action": "update",
                    "bid_id": self.mode.bid_id,
                    "bidder_id": bidder_id,
                    "winning_price": float(price),
                    "quantity_won": quantity,
                }
                call = self.client.update_bid
            else:
                if not item.can_add_bid:
                    self.view.alert(f"Item #{item.id} has no quantity left. Edit or delete an existing winner instead.")
                    return resolved(False)
                limit = item.available_quantity
                if limit is not None and quantity > limit:
                    self.view.alert(not_enough_inventory(max(limit, 0)))
                    return resolved(False)
                payload = {
                    "action": "save",
                    "auction_id": self.auction_id,
                    "item_id": item.id,
                    "bidder_id": bidder_id,
                    "winning_price": float(price),
                    "quantity_won": quantity,
                }
                if self.mode.append:
                    payload["append"] = True
                call = self.client.save_bid

            selected = self.selected_bidder
            bidder_name = selected.entity.get("name") if selected is not None else None
            self._begin_mutation()
            future = self.executor.submit(call, payload)
        return chain(future, lambda f: self._on_saved(f, item, payload, price, bidder_name))

    def _on_saved(self, future: Future, item: SelectedItem, payload: Dict[str, Any],
                  price: Decimal, bidder_name: Optional[str]):
        with self._lock:
            self._end_mutation()
            try:
                data = future.result()
            except Exception as e:
                logger.error(f"Failed to save bid for item {item.id}: {e}")
                self.view.alert("Failed to save bid. Please try again.")
                return False
            if not data.get("success"):
                self.view.alert(f"Error saving bid: {data.get('error') or 'Unknown error'}")
                return False

            winner = {
                "bid_id": payload.get("bid_id"),
                "bidder_id": payload["bidder_id"],
                "bidder_name": bidder_name or f"Bidder {payload['bidder_id']}",
                "winning_price": str(price),
                "quantity_won": payload["quantity_won"],
            }
            row = self._cached_row(item)
            row["winners"] = _merge_winner(row.get("winners") or [], winner, payload)
            summarize_winners(row)

            self._push_recent({
                "item_id": item.id,
                "item_name": item.entity.get("name", ""),
                "bidder_id": payload["bidder_id"],
                "winning_price": price,
                "quantity_won": payload["quantity_won"],
                "no_bid": False,
            })
            self._render_derived()
            self.clear_form()
            verb = "updated" if payload["action"] == "update" else "saved"
            self.view.toast(f"Bid {verb} for item #{item.id}")
            logger.info(f"Bid {verb}: item {item.id} bidder {payload['bidder_id']} ${price} x{payload['quantity_won']}")
        return chain(self.refresh_items(), lambda f: True)

    def mark_no_bid(self) -> Future:
        """Record that the selected item explicitly received no bids."""
        with self._lock:
            item = self.selected_item
            if item is None:
                self.view.alert("Select an item before marking it as No Bid")
                return resolved(False)
            payload = {
                "action": "save",
                "auction_id": self.auction_id,
                "item_id": item.id,
                "bidder_id": NO_BID_BIDDER_ID,
                "winning_price": 0,
                "no_bid": True,
            }
            self._begin_mutation()
            future = self.executor.submit(self.client.save_bid, payload)
        return chain(future, lambda f: self._on_no_bid(f, item))

    def _on_no_bid(self, future: Future, item: SelectedItem):
        with self._lock:
            self._end_mutation()
            try:
                data = future.result()
            except Exception as e:
                logger.error(f"Failed to mark item {item.id} as no bid: {e}")
                self.view.alert("Failed to save No Bid. Please try again.")
                return False
            if not data.get("success"):
                self.view.alert(f"Error saving No Bid: {data.get('error') or 'Unknown error'}")
                return False

            row = self._cached_row(item)
            row["winners"] = [{
                "bid_id": None,
                "bidder_id": NO_BID_BIDDER_ID,
                "bidder_name": "No Bid",
                "winning_price": "0",
                "quantity_won": 0,
            }]
            summarize_winners(row)
            self._push_recent({
                "item_id": item.id,
                "item_name": item.entity.get("name", ""),
                "bidder_id": NO_BID_BIDDER_ID,
                "winning_price": Decimal("0"),
                "quantity_won": 0,
                "no_bid": True,
            })
            self._render_derived()
            self.clear_form()
            self.view.toast(f"Item #{item.id} marked as No Bid")
            logger.info(f"Item {item.id} marked as no bid")
        return chain(self.refresh_items(), lambda f: True)

    def delete_bid(self) -> Future:
        """Remove every winner of the selected item, returning it to pending."""
        item = self.selected_item
        if item is None:
            self.view.alert("Select an item first")
            return resolved(False)
        if not self.view.confirm(f"Delete the bid for item #{item.id}?"):
            return resolved(False)
        with self._lock:
            payload = {"action": "delete", "auction_id": self.auction_id, "item_id": item.id}
            self._begin_mutation()
            future = self.executor.submit(self.client.save_bid, payload)
        return chain(future, lambda f: self._on_deleted(f, item.id, None))

    def delete_winner(self, bid_id: int) -> Future:
        """Remove a single winner by bid id (batch and multi-winner path)."""
        if not self.view.confirm(f"Delete bid {bid_id}?"):
            return resolved(False)
        with self._lock:
            item_id = self._item_id_for_bid(bid_id)
            self._begin_mutation()
            future = self.executor.submit(self.client.update_bid, {"action": "delete", "bid_id": bid_id})
        return chain(future, lambda f: self._on_deleted(f, item_id, bid_id))

    def _item_id_for_bid(self, bid_id: int) -> Optional[int]:
        for row in self.items:
            for winner in row.get("winners") or []:
                if winner.get("bid_id") is not None and int(winner["bid_id"]) == bid_id:
                    return row["item_id"]
        if self.selected_item is not None:
            return self.selected_item.id
        return None

    def _on_deleted(self, future: Future, item_id: Optional[int], bid_id: Optional[int]):
        with self._lock:
            self._end_mutation()
            try:
                data = future.result()
            except Exception as e:
                logger.error(f"Failed to delete bid (item {item_id}, bid {bid_id}): {e}")
                self.view.alert("Failed to delete bid. Please try again.")
                return False
            if not data.get("success"):
                self.view.alert(f"Error deleting bid: {data.get('error') or 'Unknown error'}")
                return False

            row = next((r for r in self.items if r["item_id"] == item_id), None)
            if row is not None:
                if bid_id is None:
                    row["winners"] = []
                else:
                    row["winners"] = [
                        w for w in row.get("winners") or []
                        if w.get("bid_id") is None or int(w["bid_id"]) != bid_id
                    ]
                summarize_winners(row)
            self._render_derived()
            self.clear_form()
            self.view.toast("Bid deleted")
            logger.info(f"Deleted bid (item {item_id}, bid {bid_id})")
        return chain(self.refresh_items(), lambda f: True)

    def _cached_row(self, item: SelectedItem) -> Dict[str, Any]:
        row = next((r for r in self.items if r["item_id"] == item.id), None)
        if row is None:
            row = {
                "item_id": item.id,
                "item_name": item.entity.get("name", ""),
                "item_description": item.entity.get("description", ""),
                "item_quantity": item.entity.get("quantity", 1),
                "winners": [],
            }
            self.items.append(row)
        return row

    def _push_recent(self, entry: Dict[str, Any]):
        self.recent_entries.insert(0, entry)
        del self.recent_entries[self.recent_limit:]
        self.view.render_recent(self.recent_entries)

    # ------------------------------------------------------------------
    # Form-level actions

    def skip_item(self) -> Future:
        """Move on to the next item that has no outcome yet."""
        with self._lock:
            current = self.selected_item.id if self.selected_item else None
            pending = [row for row in self.items if row.get("bidder_id") is None]
            if not pending:
                self.clear_form()
                self.view.toast("All items have been processed")
                return resolved(False)
            later = [row for row in pending if current is None or row["item_id"] > current]
            row = (later or pending)[0]
            self.clear_form()
        result = {
            "id": row["item_id"],
            "name": row["item_name"],
            "description": row.get("item_description", ""),
            "quantity": row["item_quantity"],
        }
        return chain(self.select_item(result), lambda f: True)

    def clear_form(self):
        """Empty every field and return to creating a new winner."""
        with self._lock:
            for field in LOOKUP_FIELDS:
                self._cancel_debounce(field)
                self._guard.invalidate(("lookup", field))
                self._guard.invalidate(("validate", field))
                self.lookups[field] = Idle()
                self.view.hide_results(field)
            self._guard.invalidate("inventory")
            self.selected_item = None
            self._set_value(Field.ITEM, "")
            self._enter_create_mode()
            for field in Field:
                self._clear_error(field)
            self.view.show_item_info(None, None)
            self.view.show_winners([])
            self._focus(Field.ITEM)

    def close(self):
        """Cancel every timer and drop every outstanding response."""
        with self._lock:
            self.closed = True
            for timers in (self._debounce_timers, self._blur_timers, self._error_timers):
                for timer in timers.values():
                    cancel_timer(timer)
                timers.clear()
            for field in LOOKUP_FIELDS:
                self._guard.invalidate(("lookup", field))
                self._guard.invalidate(("validate", field))
            self._guard.invalidate("inventory")
            self._guard.invalidate("items")
        if self._owns_executor:
            self.executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # View helpers

    def _set_value(self, field: Field, value: str):
        self.values[field] = value
        self.view.set_value(field, value)

    def _focus(self, field: Field, select: bool = False):
        self.focused = field
        self.view.focus(field, select=select)

    def _cancel_debounce(self, field: Field):
        cancel_timer(self._debounce_timers.pop(field, None))

    def _reject(self, field: Field, message: Optional[str]):
        """Keep focus on a field that failed validation, text selected for overtyping."""
        self._focus(field, select=True)
        self._show_error(field, message or "Invalid entry")

    def _show_error(self, field: Field, message: str):
        cancel_timer(self._error_timers.pop(field, None))
        self.view.show_field_error(field, message)
        self._error_timers[field] = self.scheduler.call_later(
            self.error_dismiss_seconds, lambda: self._dismiss_error(field)
        )

    def _dismiss_error(self, field: Field):
        with self._lock:
            self._error_timers.pop(field, None)
            if not self.closed:
                self.view.clear_field_error(field)

    def _clear_error(self, field: Field):
        timer = self._error_timers.pop(field, None)
        if timer is not None:
            cancel_timer(timer)
            self.view.clear_field_error(field)


def _merge_winner(winners: List[Dict[str, Any]], winner: Dict[str, Any], payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Apply a saved winner to a cached winners list the way the server does."""
    winners = [w for w in winners if is_real_bidder(w.get("bidder_id"))]

    if payload["action"] == "update":
        for index, existing in enumerate(winners):
            if existing.get("bid_id") is not None and int(existing["bid_id"]) == payload["bid_id"]:
                winners[index] = winner
                return winners
        return winners + [winner]

    for index, existing in enumerate(winners):
        if int(existing["bidder_id"]) == payload["bidder_id"]:
            winner["bid_id"] = existing.get("bid_id")
            winners[index] = winner
            return winners
    if winners and not payload.get("append"):
        winner["bid_id"] = winners[0].get("bid_id")
        winners[0] = winner
        return winners
    return winners + [winner]
