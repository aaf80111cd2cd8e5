"""
Post-event reports: auction summary, bidder payments and item results.
"""
import logging
from decimal import Decimal
from typing import Optional, List, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session
from database import Auction, AuctionItem, Bidder, Item, WinningBid, NO_BID_BIDDER_ID
from .lookup import format_phone

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def get_auction_summary(db: Session, auction_id: int) -> Optional[Dict[str, Any]]:
    auction = db.query(Auction).filter(Auction.id == auction_id).first()
    if not auction:
        return None

    total_items = db.query(func.count(AuctionItem.id)).filter(AuctionItem.auction_id == auction_id).scalar()

    real_bids = db.query(WinningBid).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.bidder_id != NO_BID_BIDDER_ID,
    )
    items_sold = real_bids.with_entities(func.count(func.distinct(WinningBid.item_id))).scalar()
    unique_bidders = real_bids.with_entities(func.count(func.distinct(WinningBid.bidder_id))).scalar()
    total_revenue, average_price, highest_price = real_bids.with_entities(
        func.sum(WinningBid.winning_price * WinningBid.quantity_won),
        func.avg(WinningBid.winning_price),
        func.max(WinningBid.winning_price),
    ).one()

    items_no_bid = db.query(func.count(func.distinct(WinningBid.item_id))).filter(
        WinningBid.auction_id == auction_id,
        WinningBid.bidder_id == NO_BID_BIDDER_ID,
    ).scalar()

    return {
        "auction_id": auction.id,
        "description": auction.description,
        "auction_date": auction.auction_date.isoformat(),
        "total_items": total_items,
        "items_sold": items_sold,
        "items_no_bid": items_no_bid,
        "items_unsold": total_items - items_sold - items_no_bid,
        "unique_bidders": unique_bidders,
        "total_revenue": _money(total_revenue),
        "average_price": _money(average_price) if average_price is not None else None,
        "highest_price": _money(highest_price) if highest_price is not None else None,
    }


def get_bidder_payments(db: Session, auction_id: int) -> List[Dict[str, Any]]:
    """What each winning bidder owes, ordered by last name."""
    rows = (
        db.query(
            Bidder,
            func.count(WinningBid.id),
            func.sum(WinningBid.winning_price * WinningBid.quantity_won),
        )
        .join(WinningBid, WinningBid.bidder_id == Bidder.id)
        .filter(WinningBid.auction_id == auction_id)
        .group_by(Bidder.id)
        .order_by(Bidder.last_name, Bidder.first_name)
        .all()
    )
    return [
        {
            "bidder_id": bidder.id,
            "first_name": bidder.first_name,
            "last_name": bidder.last_name,
            "phone": format_phone(bidder.phone),
            "email": bidder.email or "",
            "address1": bidder.address1,
            "address2": bidder.address2,
            "city": bidder.city,
            "state": bidder.state,
            "postal_code": bidder.postal_code,
            "items_won": items_won,
            "total_payment": _money(total),
        }
        for bidder, items_won, total in rows
    ]


def get_bidder_details(db: Session, auction_id: int, bidder_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(WinningBid, Item)
        .join(Item, Item.id == WinningBid.item_id)
        .filter(WinningBid.auction_id == auction_id, WinningBid.bidder_id == bidder_id)
        .order_by(Item.name)
        .all()
    )
    return [
        {
            "item_id": item.id,
            "item_name": item.name,
            "item_description": item.description or "",
            "winning_price": _money(bid.winning_price),
            "quantity_won": bid.quantity_won,
            "line_total": _money(bid.winning_price * bid.quantity_won),
        }
        for bid, item in rows
    ]


def get_item_results(db: Session, auction_id: int) -> List[Dict[str, Any]]:
    """One row per winner (or per unsold item), ordered by item id."""
    rows = (
        db.query(Item, WinningBid, Bidder)
        .join(AuctionItem, AuctionItem.item_id == Item.id)
        .outerjoin(WinningBid, (WinningBid.item_id == Item.id) & (WinningBid.auction_id == auction_id))
        .outerjoin(Bidder, Bidder.id == WinningBid.bidder_id)
        .filter(AuctionItem.auction_id == auction_id)
        .order_by(Item.id, WinningBid.id)
        .all()
    )
    results = []
    for item, bid, bidder in rows:
        if bid is None:
            status = "UNSOLD"
        elif bid.is_no_bid:
            status = "NO BID"
        else:
            status = "SOLD"
        sold = status == "SOLD"
        results.append({
            "item_id": item.id,
            "item_name": item.name,
            "item_description": item.description or "",
            "item_quantity": item.quantity,
            "winning_price": _money(bid.winning_price) if sold else None,
            "quantity_won": bid.quantity_won if sold else None,
            "winner_name": bidder.name if sold and bidder else None,
            "bidder_id": bid.bidder_id if sold else None,
            "phone": format_phone(bidder.phone) if sold and bidder else None,
            "email": bidder.email if sold and bidder else None,
            "status": status,
        })
    return results


def get_top_performers(db: Session, auction_id: int, limit: int = 10) -> List[Dict[str, Any]]:
    rows = (
        db.query(WinningBid, Item, Bidder)
        .join(Item, Item.id == WinningBid.item_id)
        .join(Bidder, Bidder.id == WinningBid.bidder_id)
        .filter(WinningBid.auction_id == auction_id)
        .order_by(WinningBid.winning_price.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "item_id": item.id,
            "item_name": item.name,
            "winning_price": _money(bid.winning_price),
            "winner_name": bidder.name,
        }
        for bid, item, bidder in rows
    ]
