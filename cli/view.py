"""
Rendering surface for the bid entry controller.

``BidEntryView`` is the interface the controller talks to; every method is a
no-op so a view only overrides what it can show. ``TerminalView`` renders to
the terminal with click.
"""
import click
from decimal import Decimal
from typing import Any, Dict, List, Optional
from .fields import Field
from .status_grid import format_money, COMPLETED, MULTIPLE, NO_BID

STATUS_COLORS = {
    COMPLETED: "green",
    MULTIPLE: "blue",
    NO_BID: "yellow",
}


class BidEntryView:
    def show_results(self, field: Field, results: List[Dict[str, Any]], highlighted: int):
        pass

    def show_no_results(self, field: Field, term: str):
        pass

    def hide_results(self, field: Field):
        pass

    def set_value(self, field: Field, value: str):
        pass

    def focus(self, field: Field, select: bool = False):
        pass

    def show_field_error(self, field: Field, message: str):
        pass

    def clear_field_error(self, field: Field):
        pass

    def show_item_info(self, item: Optional[Dict[str, Any]], inventory: Optional[Dict[str, Any]]):
        pass

    def set_save_label(self, label: str):
        pass

    def show_delete(self, visible: bool):
        pass

    def show_winners(self, winners: List[Dict[str, Any]]):
        pass

    def alert(self, message: str):
        pass

    def confirm(self, message: str) -> bool:
        return True

    def toast(self, message: str):
        pass

    def render_progress(self, processed: int, total: int, percent: float):
        pass

    def render_running_total(self, total: Decimal):
        pass

    def render_recent(self, entries: List[Dict[str, Any]]):
        pass

    def render_status_grid(self, cards: List[Dict[str, Any]]):
        pass


class TerminalView(BidEntryView):
    """Line-oriented terminal rendering of the bid entry form."""

    def __init__(self, show_grid_updates: bool = False):
        self.show_grid_updates = show_grid_updates
        self.values = {field: "" for field in Field}
        self.save_label = "SAVE BID"

    def show_results(self, field, results, highlighted):
        click.echo(f"  {field.value} matches:")
        for index, result in enumerate(results):
            marker = ">" if index == highlighted else " "
            detail = result.get("description") or " ".join(
                part for part in (result.get("phone"), result.get("email")) if part
            )
            line = f"  {marker} {index + 1:>2}. {result.get('display', result.get('name'))}"
            if detail:
                line += f"  - {detail[:50]}"
            click.secho(line, bold=index == highlighted)

    def show_no_results(self, field, term):
        click.echo(f"  No {field.value} matches for '{term}'")

    def set_value(self, field, value):
        self.values[field] = value

    def focus(self, field, select=False):
        click.secho(f"[{field.value}] {self.values.get(field, '')}", fg="cyan")

    def show_field_error(self, field, message):
        click.secho(f"  ! {field.value}: {message}", fg="red")

    def show_item_info(self, item, inventory):
        if item is None:
            return
        line = f"  #{item['id']}: {item['name']}"
        if item.get("description"):
            line += f" - {item['description']}"
        click.secho(line, bold=True)
        if inventory is not None:
            click.echo(
                f"  Available: {inventory['available_quantity']} of {inventory['total_quantity']}"
                f" ({inventory['allocated_quantity']} allocated)"
            )
        else:
            click.echo(f"  Quantity: {item.get('quantity', '?')} (inventory not checked)")

    def set_save_label(self, label):
        self.save_label = label
        click.echo(f"  Mode: {label}")

    def show_delete(self, visible):
        if visible:
            click.echo("  /delete removes this bid")

    def show_winners(self, winners):
        if len(winners) < 2:
            return
        click.echo("  Winners:")
        for winner in winners:
            click.echo(
                f"    bid {winner['bid_id']}: {winner['bidder_name']} ({winner['bidder_id']})"
                f" {format_money(winner['winning_price'])} x{winner['quantity_won']}"
            )
        click.echo("  /edit <bid id> to change one, /add-winner to split the quantity")

    def alert(self, message):
        click.secho(f"\n*** {message} ***\n", fg="red", bold=True, err=True)

    def confirm(self, message):
        return click.confirm(message, default=False)

    def toast(self, message):
        click.secho(f"  ✓ {message}", fg="green")

    def render_progress(self, processed, total, percent):
        width = 30
        filled = int(width * percent / 100)
        click.echo(f"  [{'#' * filled}{'.' * (width - filled)}] {processed} of {total} items processed")

    def render_running_total(self, total):
        click.echo(f"  Running total: {format_money(total)}")

    def render_recent(self, entries):
        if not entries:
            return
        click.echo("  Recent entries:")
        for entry in entries:
            if entry.get("no_bid"):
                click.echo(f"    Item #{entry['item_id']} ({entry['item_name']}) marked No Bid")
                continue
            quantity = f" x{entry['quantity_won']}" if entry["quantity_won"] > 1 else ""
            click.echo(
                f"    Bidder {entry['bidder_id']} won Item #{entry['item_id']} ({entry['item_name']})"
                f" for {format_money(entry['winning_price'])}{quantity}"
            )

    def render_status_grid(self, cards):
        if not self.show_grid_updates:
            return
        print_status_grid(cards)


def print_status_grid(cards: List[Dict[str, Any]]):
    for card in cards:
        line = f"  #{card['item_id']:<5} {card['name'][:28]:<28} {card['status']:<10} {card['winner'] or ''}"
        if card.get("price"):
            line += f"  {card['price']}"
        if card.get("quantity"):
            line += f"  Qty: {card['quantity']}"
        click.secho(line, fg=STATUS_COLORS.get(card["status"]))
