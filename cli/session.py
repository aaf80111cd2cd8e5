"""
Line-driven terminal session for bid entry.

Each input line is either text for the focused field (typed, then Enter),
``?term`` to search without leaving the field, or a ``/command`` standing in
for a key or button of the entry form.
"""
import logging
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Iterable, Optional

import click

from .controller import BidEntryController
from .fields import Field, Key
from .status_grid import build_cards, format_money
from .validation import is_numeric
from .view import print_status_grid

logger = logging.getLogger(__name__)

KEY_COMMANDS = {
    "/tab": Key.TAB,
    "/enter": Key.ENTER,
    "/up": Key.ARROW_UP,
    "/down": Key.ARROW_DOWN,
    "/esc": Key.ESCAPE,
    "/f5": Key.F5,
    "/f6": Key.F6,
}

HELP_TEXT = """\
Type a value and press Enter to validate it and move to the next field.
  ?term            search the focused field without leaving it
  /pick N          choose result N from the list
  /up /down        move the highlight; /enter picks it
  /tab /enter      validate and move on (Enter on Quantity saves)
  /esc             hide the list, or clear the form
  /f5              skip to the next pending item
  /f6              mark the item as No Bid
  /save            save or update the bid
  /delete          delete every bid on the item
  /winners         list the item's winners
  /edit ID         edit winner with bid id ID
  /add-winner      record another winner for a multi-quantity item
  /delete-winner ID  delete one winner by bid id
  /grid            show the item status grid
  /quit            leave bid entry"""


class BidEntrySession:
    def __init__(self, controller: BidEntryController, timeout: float = 30.0):
        self.controller = controller
        self.timeout = timeout

    @property
    def field(self) -> Field:
        return self.controller.focused

    def _wait(self, future: Optional[Future]):
        if future is None:
            return None
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            click.echo("  Still waiting for the server...", err=True)
            return None
        except Exception as e:
            logger.error(f"Bid entry action failed: {e}", exc_info=True)
            click.echo(f"  Error: {e}", err=True)
            return None

    def prompt(self) -> str:
        return f"{self.field.value}> "

    def handle(self, line: str) -> bool:
        """Process one input line; False once the user asked to quit."""
        text = line.rstrip("\n")
        stripped = text.strip()

        if stripped.startswith("/"):
            return self._command(stripped)

        if stripped.startswith("?"):
            self.controller.type_text(self.field, stripped[1:].strip())
            self._wait(self.controller.search_now(self.field))
            return True

        # A blank line keeps the field's text and just presses Enter
        if stripped:
            self.controller.type_text(self.field, stripped)
        self._wait(self.controller.press_key(self.field, Key.ENTER))
        return True

    def _command(self, command_line: str) -> bool:
        command, _, argument = command_line.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command in ("/quit", "/q", "/exit"):
            return False
        if command in KEY_COMMANDS:
            self._wait(self.controller.press_key(self.field, KEY_COMMANDS[command]))
        elif command == "/pick":
            if not is_numeric(argument):
                click.echo("  Usage: /pick N")
            else:
                self._wait(self.controller.select_result(self.field, int(argument) - 1))
        elif command == "/save":
            self._wait(self.controller.save_bid())
        elif command == "/delete":
            self._wait(self.controller.delete_bid())
        elif command == "/winners":
            self.show_winners()
        elif command == "/edit":
            if not is_numeric(argument):
                click.echo("  Usage: /edit BID_ID")
            else:
                self.controller.edit_winner(int(argument))
        elif command == "/add-winner":
            self.controller.add_winner()
        elif command == "/delete-winner":
            if not is_numeric(argument):
                click.echo("  Usage: /delete-winner BID_ID")
            else:
                self._wait(self.controller.delete_winner(int(argument)))
        elif command == "/grid":
            print_status_grid(build_cards(self.controller.items))
        elif command == "/help":
            click.echo(HELP_TEXT)
        else:
            click.echo(f"  Unknown command {command}. Type /help for the list.")
        return True

    def show_winners(self):
        winners = self.controller.winners
        if not winners:
            click.echo("  No winners recorded for this item")
            return
        for winner in winners:
            marker = "*" if winner["bid_id"] == self.controller.editing_bid_id else " "
            click.echo(
                f"  {marker} bid {winner['bid_id']}: {winner['bidder_name']} ({winner['bidder_id']})"
                f" {format_money(winner['winning_price'])} x{winner['quantity_won']}"
            )

    def run(self, lines: Optional[Iterable[str]] = None):
        """Read lines until /quit or end of input."""
        self._wait(self.controller.load())
        click.echo("Bid entry ready. Type /help for commands.")
        if lines is None:
            while True:
                try:
                    line = click.prompt(self.prompt(), default="", show_default=False, prompt_suffix="")
                except (EOFError, click.Abort):
                    break
                if not self.handle(line):
                    break
        else:
            for line in lines:
                if not self.handle(line):
                    break
