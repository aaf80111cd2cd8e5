"""
Typeahead search for the bid entry form.

Item searches only ever see items linked to the auction being entered.
Bidder searches are global. Exact id matches always rank first.
"""
import re
import logging
from typing import List, Dict, Any
from sqlalchemy import String, case, cast, func, or_
from sqlalchemy.orm import Session
from database import AuctionItem, Bidder, Item

logger = logging.getLogger(__name__)

MAX_RESULTS = 10
NUMERIC_TERM = re.compile(r"^[0-9]+$")


def is_numeric_term(term: str) -> bool:
    return NUMERIC_TERM.match(term) is not None


def format_phone(phone: str) -> str:
    """Format a ten digit phone number as (555) 123-4567."""
    if not phone:
        return ""
    digits = re.sub(r"[^0-9]", "", phone)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return digits


def search_items(db: Session, auction_id: int, term: str) -> List[Dict[str, Any]]:
    """Search items belonging to an auction by name, description or id."""
    pattern = f"%{term}%"
    query = (
        db.query(Item)
        .join(AuctionItem, AuctionItem.item_id == Item.id)
        .filter(AuctionItem.auction_id == auction_id)
    )

    if is_numeric_term(term):
        exact_id = int(term)
        id_prefix = cast(Item.id, String).like(f"{term}%")
        query = query.filter(or_(
            Item.name.ilike(pattern),
            Item.description.ilike(pattern),
            Item.id == exact_id,
            id_prefix,
        )).order_by(
            case((Item.id == exact_id, 1), (id_prefix, 2), else_=3),
            Item.name,
        )
    else:
        query = query.filter(or_(
            Item.name.ilike(pattern),
            Item.description.ilike(pattern),
        )).order_by(Item.name)

    items = query.limit(MAX_RESULTS).all()
    logger.debug(f"Item lookup auction={auction_id} term={term!r}: {len(items)} results")

    return [
        {
            "id": item.id,
            "name": item.name,
            "description": item.description or "",
            "quantity": item.quantity,
            "display": f"{item.name} (#{item.id})",
        }
        for item in items
    ]


def search_bidders(db: Session, term: str) -> List[Dict[str, Any]]:
    """Search all bidders by first, last or full name, or exact id."""
    pattern = f"%{term}%"
    full_name = Bidder.first_name + " " + Bidder.last_name
    conditions = [
        Bidder.first_name.ilike(pattern),
        Bidder.last_name.ilike(pattern),
        full_name.ilike(pattern),
    ]
    ordering = []
    if is_numeric_term(term):
        exact_id = int(term)
        conditions.append(Bidder.id == exact_id)
        ordering.append(case((Bidder.id == exact_id, 1), else_=2))
    ordering.extend([func.lower(Bidder.last_name), func.lower(Bidder.first_name)])

    bidders = db.query(Bidder).filter(or_(*conditions)).order_by(*ordering).limit(MAX_RESULTS).all()
    logger.debug(f"Bidder lookup term={term!r}: {len(bidders)} results")

    return [
        {
            "id": bidder.id,
            "name": bidder.name,
            "phone": format_phone(bidder.phone),
            "email": bidder.email or "",
            "display": f"{bidder.name} ({bidder.id})",
        }
        for bidder in bidders
    ]
