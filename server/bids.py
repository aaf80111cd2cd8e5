"""
Winning bid persistence: inventory accounting, upserts and deletes.

A plain save keeps a single row per (auction, item); additional winners for
multi-quantity items are only created through the explicit append path.
"""
import logging
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session
from database import AuctionItem, Bidder, Item, WinningBid, NO_BID_BIDDER_ID

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class BidError(Exception):
    """A bid operation was rejected; carries the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _bidder_name(bid: WinningBid, bidder: Optional[Bidder]) -> str:
    if bid.is_no_bid:
        return "No Bid"
    if bidder is None:
        return f"Bidder {bid.bidder_id}"
    return bidder.name


def _bid_rows(db: Session, auction_id: int, item_id: int):
    """Bids on one item with their bidders, oldest first."""
    return (
        db.query(WinningBid, Bidder)
        .outerjoin(Bidder, Bidder.id == WinningBid.bidder_id)
        .filter(WinningBid.auction_id == auction_id, WinningBid.item_id == item_id)
        .order_by(WinningBid.created_at, WinningBid.id)
        .all()
    )


def _allocated_quantity(db: Session, auction_id: int, item_id: int, exclude_bid_id: Optional[int] = None) -> int:
    query = db.query(func.coalesce(func.sum(WinningBid.quantity_won), 0)).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.item_id == item_id,
    )
    if exclude_bid_id is not None:
        query = query.filter(WinningBid.id != exclude_bid_id)
    return int(query.scalar() or 0)


def item_in_auction(db: Session, auction_id: int, item_id: int) -> bool:
    link = db.query(AuctionItem).filter(
        AuctionItem.auction_id == auction_id,
        AuctionItem.item_id == item_id,
    ).first()
    return link is not None


def get_inventory(db: Session, item_id: int, auction_id: int) -> Dict[str, Any]:
    """Total, allocated and available quantity of an item plus its current bids."""
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise BidError("Item not found", status_code=404)

    allocated = _allocated_quantity(db, auction_id, item_id)
    available = item.quantity - allocated

    existing_bids = [
        {
            "bid_id": bid.id,
            "bidder_id": bid.bidder_id,
            "bidder_name": _bidder_name(bid, bidder),
            "winning_price": bid.winning_price,
            "quantity_won": bid.quantity_won,
            "created_at": bid.created_at,
        }
        for bid, bidder in _bid_rows(db, auction_id, item_id)
    ]

    return {
        "total_quantity": item.quantity,
        "allocated_quantity": allocated,
        "available_quantity": available,
        "can_add_bid": available > 0,
        "existing_bids": existing_bids,
    }


def save_bid(
    db: Session,
    auction_id: Optional[int],
    item_id: Optional[int],
    bidder_id: Optional[int],
    winning_price: Optional[Decimal],
    quantity_won: int = 1,
    no_bid: bool = False,
    append: bool = False,
) -> WinningBid:
    """
    Record the winner of an item.

    Upserts rather than inserts: the row already held by this bidder is
    updated, otherwise the item's first row is overwritten. Only with
    ``append`` does a second bidder get a row of their own.

    Raises:
        BidError: item not in auction, bad fields, unknown bidder or not
            enough inventory left.
    """
    if not auction_id or not item_id:
        raise BidError("Missing required fields")

    if not item_in_auction(db, auction_id, item_id):
        raise BidError(f"Item #{item_id} is not part of this auction")

    item_bids = db.query(WinningBid).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.item_id == item_id,
    )

    if no_bid:
        item_bids.delete(synchronize_session=False)
        bid = WinningBid(
            auction_id=auction_id,
            item_id=item_id,
            bidder_id=NO_BID_BIDDER_ID,
            winning_price=Decimal("0"),
            quantity_won=0,
        )
        db.add(bid)
        db.commit()
        db.refresh(bid)
        logger.info(f"Item {item_id} in auction {auction_id} marked as no bid")
        return bid

    if not bidder_id:
        raise BidError("Bidder ID required for bid entries")
    if winning_price is None or winning_price <= 0:
        raise BidError("Winning price must be greater than 0")
    if quantity_won is None or quantity_won < 1:
        raise BidError("Quantity must be at least 1")

    bidder = db.query(Bidder).filter(Bidder.id == bidder_id).first()
    if not bidder:
        raise BidError(f"Bidder #{bidder_id} not found")

    # A real winner replaces any earlier "no bid" marker
    item_bids.filter(WinningBid.bidder_id == NO_BID_BIDDER_ID).delete(synchronize_session=False)

    existing = item_bids.filter(WinningBid.bidder_id != NO_BID_BIDDER_ID).order_by(
        WinningBid.created_at, WinningBid.id
    ).all()
    target = next((b for b in existing if b.bidder_id == bidder_id), None)
    if target is None and existing and not append:
        target = existing[0]

    item = db.query(Item).filter(Item.id == item_id).first()
    allocated = _allocated_quantity(db, auction_id, item_id, exclude_bid_id=target.id if target else None)
    available = item.quantity - allocated
    if quantity_won > available:
        db.rollback()
        raise BidError(f"Only {max(available, 0)} available in inventory")

    if target is not None:
        target.bidder_id = bidder_id
        target.winning_price = winning_price
        target.quantity_won = quantity_won
        bid = target
    else:
        bid = WinningBid(
            auction_id=auction_id,
            item_id=item_id,
            bidder_id=bidder_id,
            winning_price=winning_price,
            quantity_won=quantity_won,
        )
        db.add(bid)

    db.commit()
    db.refresh(bid)
    logger.info(
        f"Saved bid {bid.id}: auction {auction_id} item {item_id} bidder {bidder_id} "
        f"${winning_price} x{quantity_won}"
    )
    return bid


def update_bid(
    db: Session,
    bid_id: int,
    bidder_id: Optional[int],
    quantity_won: Optional[int],
    winning_price: Optional[Decimal] = None,
) -> WinningBid:
    """Update one winner by bid id, re-checking inventory when the quantity grows."""
    if not bidder_id or not quantity_won:
        raise BidError("Bidder ID and Quantity required")
    if quantity_won <= 0:
        raise BidError("Quantity must be a positive number")

    bid = db.query(WinningBid).filter(WinningBid.id == bid_id).first()
    if not bid:
        raise BidError("Bid not found", status_code=404)

    if not db.query(Bidder).filter(Bidder.id == bidder_id).first():
        raise BidError(f"Bidder #{bidder_id} not found")

    clash = db.query(WinningBid).filter(
        WinningBid.auction_id == bid.auction_id,
        WinningBid.item_id == bid.item_id,
        WinningBid.bidder_id == bidder_id,
        WinningBid.id != bid.id,
    ).first()
    if clash:
        raise BidError(f"Bidder #{bidder_id} already has a bid on item #{bid.item_id}")

    if quantity_won > bid.quantity_won:
        item = db.query(Item).filter(Item.id == bid.item_id).first()
        available = item.quantity - _allocated_quantity(db, bid.auction_id, bid.item_id, exclude_bid_id=bid.id)
        if quantity_won > available:
            raise BidError(f"Only {max(available, 0)} available in inventory")

    bid.bidder_id = bidder_id
    bid.quantity_won = quantity_won
    if winning_price is not None:
        bid.winning_price = winning_price

    db.commit()
    db.refresh(bid)
    logger.info(f"Updated bid {bid.id}: bidder {bidder_id} ${bid.winning_price} x{quantity_won}")
    return bid


def delete_bid(db: Session, bid_id: int) -> bool:
    """Delete one winner. Returns False when there was nothing to delete."""
    deleted = db.query(WinningBid).filter(WinningBid.id == bid_id).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Delete bid {bid_id}: {deleted} row(s) removed")
    return deleted > 0


def delete_item_bids(db: Session, auction_id: int, item_id: int) -> int:
    """Delete every bid on an item, returning it to unprocessed."""
    deleted = db.query(WinningBid).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.item_id == item_id,
    ).delete(synchronize_session=False)
    db.commit()
    logger.info(f"Cleared {deleted} bid(s) for item {item_id} in auction {auction_id}")
    return deleted


def get_bid_stats(db: Session, auction_id: int) -> Dict[str, Any]:
    total_revenue, bid_count = db.query(
        func.coalesce(func.sum(WinningBid.winning_price * WinningBid.quantity_won), 0),
        func.count(WinningBid.id),
    ).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.bidder_id != NO_BID_BIDDER_ID,
    ).one()
    return {"total_revenue": Decimal(str(total_revenue)).quantize(CENTS), "bid_count": bid_count}


def get_items_for_bid_entry(db: Session, auction_id: int) -> List[Dict[str, Any]]:
    """Every item in the auction with its winners aggregated for the status grid."""
    items = (
        db.query(Item)
        .join(AuctionItem, AuctionItem.item_id == Item.id)
        .filter(AuctionItem.auction_id == auction_id)
        .order_by(Item.id)
        .all()
    )

    rows = (
        db.query(WinningBid, Bidder)
        .outerjoin(Bidder, Bidder.id == WinningBid.bidder_id)
        .filter(WinningBid.auction_id == auction_id)
        .order_by(WinningBid.created_at, WinningBid.id)
        .all()
    )
    bids_by_item = defaultdict(list)
    for bid, bidder in rows:
        bids_by_item[bid.item_id].append((bid, bidder))

    result = []
    for item in items:
        bids = bids_by_item.get(item.id, [])
        winners = [
            {
                "bid_id": bid.id,
                "bidder_id": bid.bidder_id,
                "bidder_name": _bidder_name(bid, bidder),
                "winning_price": bid.winning_price,
                "quantity_won": bid.quantity_won,
            }
            for bid, bidder in bids
        ]
        total_won = sum(bid.quantity_won for bid, _ in bids)

        if not bids:
            bidder_id, price, winner_name = None, None, None
        elif len(bids) == 1:
            bid, bidder = bids[0]
            bidder_id, price, winner_name = bid.bidder_id, bid.winning_price, _bidder_name(bid, bidder)
        else:
            prices = [bid.winning_price for bid, _ in bids]
            bidder_id = bids[0][0].bidder_id
            price = (sum(prices) / len(prices)).quantize(CENTS, rounding=ROUND_HALF_UP)
            winner_name = f"{len(bids)} Winners"

        result.append({
            "item_id": item.id,
            "item_name": item.name,
            "item_description": item.description or "",
            "item_quantity": item.quantity,
            "winner_count": len(bids),
            "total_quantity_won": total_won,
            "bidder_id": bidder_id,
            "winning_price": price,
            "quantity_won": total_won,
            "winner_name": winner_name,
            "winners": winners,
        })

    return result


def save_bids_bulk(db: Session, auction_id: int, entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Save a batch of entries, each on its own so one bad line does not sink the rest."""
    results = []
    for entry in entries:
        result = {"item_id": entry["item_id"], "success": False, "error_message": None}
        try:
            save_bid(
                db,
                auction_id,
                entry["item_id"],
                entry.get("bidder_id"),
                entry.get("winning_price"),
                entry.get("quantity_won") or 1,
                no_bid=entry.get("no_bid", False),
            )
            result["success"] = True
        except BidError as e:
            db.rollback()
            result["error_message"] = e.message
        except Exception as e:
            db.rollback()
            logger.error(f"Unexpected error saving bulk entry for item {entry['item_id']}: {e}", exc_info=True)
            result["error_message"] = f"Unexpected error: {str(e)}"
        results.append(result)
    return results
