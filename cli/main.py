#!/usr/bin/env python3
import click
import logging
import sys
from .client import AuctionClient
from .config import save_token, get_settings
from .bulk_parser import parse_bulk_input
from .controller import BidEntryController
from .scheduling import ThreadingScheduler
from .session import BidEntrySession
from .status_grid import StatusPoller, build_cards, format_money, processed_count, progress_percent, running_total
from .view import TerminalView, print_status_grid


def build_separator(left, middle, right, widths):
    return left + middle.join("─" * (w + 2) for w in widths) + right


def print_table(headers, rows, min_width=6):
    """Print rows as a box-drawn table, columns sized to their content."""
    rows = [[str(value) for value in row] for row in rows]
    col_widths = [
        max([len(headers[i])] + [len(row[i]) for row in rows] + [min_width])
        for i in range(len(headers))
    ]

    click.echo(build_separator("┌", "┬", "┐", col_widths))
    click.echo("│ " + " │ ".join(f"{headers[i]:<{col_widths[i]}}" for i in range(len(headers))) + " │")
    click.echo(build_separator("├", "┼", "┤", col_widths))
    for row in rows:
        click.echo("│ " + " │ ".join(f"{row[i]:<{col_widths[i]}}" for i in range(len(row))) + " │")
    click.echo(build_separator("└", "┴", "┘", col_widths))


def fail(message):
    click.echo(message, err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose):
    """Silent Auction Bid Entry CLI"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@cli.command()
@click.option("--username", prompt="Username")
@click.option("--password", prompt="Password", hide_input=True)
def auth(username, password):
    """Authenticate with the server."""
    try:
        client = AuctionClient(token="")
        token = client.authenticate(username, password)
        save_token(token)
        click.echo("Authentication successful!")
    except Exception as e:
        fail(f"Authentication failed: {e}")


@cli.command()
@click.argument("kind", type=click.Choice(["item", "bidder"]))
@click.argument("term")
@click.option("--auction", "auction_id", type=int, help="Auction to search items in.")
def lookup(kind, term, auction_id):
    """Search items in an auction, or bidders."""
    try:
        client = AuctionClient()
        data = client.lookup(kind, term, auction_id)
    except Exception as e:
        fail(f"Lookup failed: {e}")
        return
    if data.get("error"):
        fail(f"Lookup failed: {data['error']}")
    results = data.get("results") or []
    if not results:
        click.echo(f"No {kind} matches for '{term}'")
        return
    if kind == "item":
        print_table(["ID", "Name", "Qty", "Description"], [
            (r["id"], r["name"], r["quantity"], (r.get("description") or "")[:40]) for r in results
        ])
    else:
        print_table(["ID", "Name", "Phone", "Email"], [
            (r["id"], r["name"], r.get("phone") or "", r.get("email") or "") for r in results
        ])


@cli.command()
@click.argument("auction_id", type=int)
@click.argument("item_id", type=int)
def inventory(auction_id, item_id):
    """Show quantity left on an item and its recorded winners."""
    try:
        client = AuctionClient()
        data = client.check_inventory(item_id, auction_id)
    except Exception as e:
        fail(f"Inventory check failed: {e}")
        return
    if data.get("error"):
        fail(f"Inventory check failed: {data['error']}")

    click.echo(f"Total: {data['total_quantity']}  Allocated: {data['allocated_quantity']}  "
               f"Available: {data['available_quantity']}")
    bids = data.get("existing_bids") or []
    if bids:
        print_table(["Bid", "Bidder", "Name", "Price", "Qty"], [
            (b["bid_id"], b["bidder_id"], b["bidder_name"], format_money(b["winning_price"]), b["quantity_won"])
            for b in bids
        ])
    else:
        click.echo("No bids recorded.")


@cli.command()
@click.argument("auction_id", type=int)
def items(auction_id):
    """Show the item status grid for an auction."""
    try:
        client = AuctionClient()
        data = client.get_auction_items(auction_id)
    except Exception as e:
        fail(f"Failed to load items: {e}")
        return
    if not data.get("success"):
        fail(f"Failed to load items: {data.get('error', 'Unknown error')}")

    rows = data["items"]
    if not rows:
        click.echo("No items in this auction.")
        return
    print_status_grid(build_cards(rows))
    done = processed_count(rows)
    click.echo(f"\n{done} of {len(rows)} items processed ({progress_percent(done, len(rows)):.0f}%)"
               f"  Running total: {format_money(running_total(rows))}")


@cli.command()
@click.argument("auction_id", type=int)
@click.option("--grid/--no-grid", default=False, help="Print the status grid whenever it refreshes.")
def enter(auction_id, grid):
    """Interactive bid entry for an auction."""
    settings = get_settings()
    scheduler = ThreadingScheduler()
    controller = BidEntryController(
        AuctionClient(),
        auction_id,
        view=TerminalView(show_grid_updates=grid),
        scheduler=scheduler,
        debounce_seconds=settings["debounce_ms"] / 1000,
        blur_delay=settings["blur_delay_ms"] / 1000,
        error_dismiss_seconds=settings["error_dismiss_seconds"],
        recent_limit=settings["recent_limit"],
    )
    poller = StatusPoller(controller, scheduler, interval=settings["poll_seconds"])
    poller.start()
    try:
        BidEntrySession(controller).run()
    except KeyboardInterrupt:
        click.echo("\nCancelled.", err=True)
    finally:
        poller.stop()
        controller.close()


@cli.command("add-bulk")
@click.option("--auction", "auction_id", type=int, required=True, help="Auction the bids belong to.")
def add_bulk(auction_id):
    """Bulk enter winning bids from stdin.

    Reads input from stdin until EOF. One item per line:
    - item bidder price [quantity]
    - item,bidder,price[,quantity]
    - item<TAB>bidder<TAB>price
    - item nobid

    Ignores blank lines and lines starting with #.
    """
    try:
        parsed = parse_bulk_input(sys.stdin.readlines())
        to_send = [line for line in parsed if line.ok]

        response = {"results": []}
        if to_send:
            client = AuctionClient()
            response = client.save_bids_bulk(auction_id, [
                {
                    "item_id": line.item_id,
                    "bidder_id": line.bidder_id,
                    "winning_price": float(line.winning_price),
                    "quantity_won": line.quantity_won,
                    "no_bid": line.no_bid,
                }
                for line in to_send
            ])
            if response.get("error"):
                fail(f"Failed to save bids: {response['error']}")

        server_results = {r["item_id"]: r for r in response["results"]}

        output_rows = []
        for line in parsed:
            if line.no_bid:
                bidder, price = "No Bid", "-"
            else:
                bidder = str(line.bidder_id) if line.bidder_id else "-"
                price = format_money(line.winning_price) if line.winning_price else "-"

            if not line.ok:
                result, reason = ("Duplicate" if line.error == "Duplicate item in input" else "Error"), line.error
            else:
                server_result = server_results.get(line.item_id)
                if server_result and server_result.get("success"):
                    result, reason = "Saved", "-"
                else:
                    result = "Error"
                    reason = server_result.get("error_message") if server_result else "Item not processed"
            output_rows.append((
                line.row_num,
                line.item_id if line.item_id is not None else "Invalid",
                bidder,
                price,
                line.quantity_won if not line.no_bid else "-",
                result,
                reason or "Unknown error",
            ))

        saved = sum(1 for row in output_rows if row[5] == "Saved")
        errors = sum(1 for row in output_rows if row[5] == "Error")
        duplicates = sum(1 for row in output_rows if row[5] == "Duplicate")
        click.echo(f"Processed: {len(output_rows)}  Saved: {saved}  Errors: {errors}  Duplicates: {duplicates}\n")

        if output_rows:
            print_table(["Row", "Item", "Bidder", "Price", "Qty", "Result", "Reason"], output_rows)

    except KeyboardInterrupt:
        click.echo("\nCancelled.", err=True)
        sys.exit(1)
    except Exception as e:
        fail(f"Failed to bulk enter bids: {e}")


@cli.group()
def report():
    """Post-auction reports."""
    pass


def _fetch_report(auction_id, name, **params):
    try:
        data = AuctionClient().get_report(auction_id, name, **params)
    except Exception as e:
        fail(f"Failed to load report: {e}")
        return None
    if isinstance(data, dict) and data.get("error"):
        fail(f"Failed to load report: {data['error']}")
    return data


@report.command()
@click.argument("auction_id", type=int)
def summary(auction_id):
    """Totals for an auction."""
    data = _fetch_report(auction_id, "summary")
    rows = [
        ("Auction", f"#{data['auction_id']} {data['description']}"),
        ("Date", data["auction_date"]),
        ("Items", data["total_items"]),
        ("Sold", data["items_sold"]),
        ("No Bid", data["items_no_bid"]),
        ("Unsold", data["items_unsold"]),
        ("Bidders", data["unique_bidders"]),
        ("Revenue", format_money(data["total_revenue"])),
        ("Average Price", format_money(data["average_price"]) if data["average_price"] is not None else "N/A"),
        ("Highest Price", format_money(data["highest_price"]) if data["highest_price"] is not None else "N/A"),
    ]
    print_table(["Field", "Value"], rows, min_width=20)


@report.command()
@click.argument("auction_id", type=int)
def payments(auction_id):
    """What each winning bidder owes."""
    data = _fetch_report(auction_id, "payments")
    if not data:
        click.echo("No winning bidders yet.")
        return
    print_table(["Bidder", "Name", "Phone", "Items", "Total"], [
        (row["bidder_id"], f"{row['first_name']} {row['last_name']}", row["phone"], row["items_won"],
         format_money(row["total_payment"]))
        for row in data
    ])
    click.echo(f"Total due: {format_money(sum(float(row['total_payment']) for row in data))}")


@report.command("items")
@click.argument("auction_id", type=int)
def item_report(auction_id):
    """Outcome of every item in the auction."""
    data = _fetch_report(auction_id, "items")
    print_table(["Item", "Name", "Status", "Winner", "Price", "Qty"], [
        (row["item_id"], row["item_name"][:30], row["status"], row["winner_name"] or "-",
         format_money(row["winning_price"]) if row["winning_price"] is not None else "-",
         row["quantity_won"] or "-")
        for row in data
    ])


@report.command()
@click.argument("auction_id", type=int)
@click.option("--limit", default=10, show_default=True)
def top(auction_id, limit):
    """Highest winning prices."""
    data = _fetch_report(auction_id, "top", limit=limit)
    if not data:
        click.echo("No winning bids yet.")
        return
    print_table(["Item", "Name", "Price", "Winner"], [
        (row["item_id"], row["item_name"][:30], format_money(row["winning_price"]), row["winner_name"])
        for row in data
    ])


@report.command()
@click.argument("auction_id", type=int)
@click.argument("bidder_id", type=int)
def bidder(auction_id, bidder_id):
    """Items one bidder won, with line totals."""
    try:
        data = AuctionClient().get_bidder_report(auction_id, bidder_id)
    except Exception as e:
        fail(f"Failed to load report: {e}")
        return
    if isinstance(data, dict) and data.get("error"):
        fail(f"Failed to load report: {data['error']}")
    if not data:
        click.echo(f"Bidder {bidder_id} won nothing in auction {auction_id}.")
        return
    print_table(["Item", "Name", "Price", "Qty", "Total"], [
        (row["item_id"], row["item_name"][:30], format_money(row["winning_price"]), row["quantity_won"],
         format_money(row["line_total"]))
        for row in data
    ])
    click.echo(f"Total due: {format_money(sum(float(row['line_total']) for row in data))}")


if __name__ == "__main__":
    cli()
