from fastapi import FastAPI, Depends, HTTPException, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional, List
import jwt
import os
from dotenv import load_dotenv
from database import get_db
from .models import (
    AuthRequest, AuthResponse, InventoryResponse, SaveBidRequest, UpdateBidRequest, MutationResponse,
    BulkSaveRequest, BulkSaveResponse, AuctionItemsResponse, AuctionSummary, BidderPayment,
    BidderLineItem, ItemResult, TopPerformer,
)
from .bids import (
    BidError, get_inventory, save_bid as save_winning_bid, update_bid as update_winning_bid,
    delete_bid, delete_item_bids, get_bid_stats, get_items_for_bid_entry, save_bids_bulk,
)
from .lookup import search_items, search_bidders
from . import reports
import logging

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="Silent Auction Bid Entry")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")


@app.exception_handler(HTTPException)
def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(BidError)
def bid_error_handler(request: Request, exc: BidError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", []) if part not in ("body", "query"))
        message = f"Invalid {location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def verify_token(authorization: str = Header(None)) -> str:
    """Verify and extract token from Authorization header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid authorization header")

    token = authorization.split(" ")[1]
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=["HS256"])
        return payload.get("sub", "")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


@app.post("/auth", response_model=AuthResponse)
def auth(request: AuthRequest):
    """Log a staff member in and return an API token."""
    admin_password = os.getenv("ADMIN_PASSWORD")
    if admin_password and request.password != admin_password:
        logger.warning(f"Failed login for {request.username}")
        raise HTTPException(status_code=401, detail="Invalid password")
    token = jwt.encode(
        {"sub": request.username, "exp": datetime.utcnow() + timedelta(days=2)},
        SECRET_KEY,
        algorithm="HS256"
    )
    return AuthResponse(token=token)


@app.get("/api/lookup")
def lookup(
    type: str = "",
    term: str = "",
    auction_id: Optional[int] = None,
    db: Session = Depends(get_db),
    username: str = Depends(verify_token),
):
    """Typeahead search for items (within one auction) or bidders."""
    term = term.strip()
    if not term:
        return {"results": []}

    try:
        if type == "bidder":
            return {"results": search_bidders(db, term)}
        if type == "item":
            if not auction_id:
                return JSONResponse(
                    status_code=400,
                    content={"error": "Auction ID required for item search", "results": []},
                )
            return {"results": search_items(db, auction_id, term)}
    except Exception as e:
        logger.error(f"Lookup failed for type={type} term={term!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Lookup failed: {str(e)}")

    raise HTTPException(status_code=400, detail="Invalid lookup type")


@app.get("/api/check_inventory", response_model=InventoryResponse)
def check_inventory(
    item_id: Optional[int] = None,
    auction_id: Optional[int] = None,
    db: Session = Depends(get_db),
    username: str = Depends(verify_token),
):
    """Quantity left on an item and the bids already recorded against it."""
    if not item_id or not auction_id:
        raise HTTPException(status_code=400, detail="Item ID and Auction ID required")
    return InventoryResponse(**get_inventory(db, item_id, auction_id))


@app.post("/api/save_bid", response_model=MutationResponse)
def save_bid(request: SaveBidRequest, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    """Save, overwrite or clear the winner of an item."""
    if request.action not in ("save", "update", "delete"):
        raise HTTPException(status_code=400, detail="Invalid action")

    try:
        if request.action == "delete":
            if not request.auction_id or not request.item_id:
                raise HTTPException(status_code=400, detail="Missing required fields")
            delete_item_bids(db, request.auction_id, request.item_id)
            message = "Bid deleted successfully"
        else:
            save_winning_bid(
                db,
                request.auction_id,
                request.item_id,
                request.bidder_id,
                request.winning_price,
                request.quantity_won,
                no_bid=request.no_bid,
                append=request.append,
            )
            message = "Bid saved successfully"
    except (BidError, HTTPException):
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Bid save error for item {request.item_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save bid")

    return MutationResponse(success=True, message=message, stats=get_bid_stats(db, request.auction_id))


@app.post("/api/save_bid/bulk", response_model=BulkSaveResponse)
def save_bid_bulk(request: BulkSaveRequest, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    """Batch entry: save many winners at once."""
    results = save_bids_bulk(db, request.auction_id, [entry.model_dump() for entry in request.entries])
    return BulkSaveResponse(results=results)


@app.post("/api/update_bid", response_model=MutationResponse)
def update_bid(request: UpdateBidRequest, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    """Update or delete a single winner by bid id."""
    if not request.action or not request.bid_id:
        raise HTTPException(status_code=400, detail="Action and Bid ID required")

    try:
        if request.action == "delete":
            delete_bid(db, request.bid_id)
            return MutationResponse(success=True, message="Bid deleted successfully")
        if request.action == "update":
            update_winning_bid(
                db,
                request.bid_id,
                request.bidder_id,
                request.quantity_won,
                winning_price=request.winning_price,
            )
            return MutationResponse(success=True, message="Bid updated successfully")
    except BidError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Update bid error for bid {request.bid_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update bid: {str(e)}")

    raise HTTPException(status_code=400, detail="Invalid action")


@app.get("/api/get_auction_items", response_model=AuctionItemsResponse)
def get_auction_items(
    auction_id: Optional[int] = None,
    db: Session = Depends(get_db),
    username: str = Depends(verify_token),
):
    """Authoritative item/bid list, polled by the status grid."""
    if not auction_id:
        raise HTTPException(status_code=400, detail="Auction ID required")
    return AuctionItemsResponse(success=True, items=get_items_for_bid_entry(db, auction_id))


@app.get("/api/reports/{auction_id}/summary", response_model=AuctionSummary)
def auction_summary(auction_id: int, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    summary = reports.get_auction_summary(db, auction_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Auction not found")
    return AuctionSummary(**summary)


@app.get("/api/reports/{auction_id}/payments", response_model=List[BidderPayment])
def bidder_payments(auction_id: int, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    return [BidderPayment(**row) for row in reports.get_bidder_payments(db, auction_id)]


@app.get("/api/reports/{auction_id}/bidders/{bidder_id}", response_model=List[BidderLineItem])
def bidder_details(auction_id: int, bidder_id: int, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    return [BidderLineItem(**row) for row in reports.get_bidder_details(db, auction_id, bidder_id)]


@app.get("/api/reports/{auction_id}/items", response_model=List[ItemResult])
def item_results(auction_id: int, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    return [ItemResult(**row) for row in reports.get_item_results(db, auction_id)]


@app.get("/api/reports/{auction_id}/top", response_model=List[TopPerformer])
def top_performers(auction_id: int, limit: int = 10, db: Session = Depends(get_db), username: str = Depends(verify_token)):
    return [TopPerformer(**row) for row in reports.get_top_performers(db, auction_id, limit)]
