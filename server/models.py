from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import Optional, List


class AuthRequest(BaseModel):
    username: str
    password: str


class AuthResponse(BaseModel):
    token: str


class ItemLookupResult(BaseModel):
    id: int
    name: str
    description: str
    quantity: int
    display: str


class BidderLookupResult(BaseModel):
    id: int
    name: str
    phone: str
    email: str
    display: str


class ExistingBid(BaseModel):
    bid_id: int
    bidder_id: int
    bidder_name: str
    winning_price: Decimal
    quantity_won: int
    created_at: datetime


class InventoryResponse(BaseModel):
    total_quantity: int
    allocated_quantity: int
    available_quantity: int
    can_add_bid: bool
    existing_bids: List[ExistingBid]


class SaveBidRequest(BaseModel):
    action: str = "save"
    auction_id: Optional[int] = None
    item_id: Optional[int] = None
    bidder_id: Optional[int] = None
    winning_price: Optional[Decimal] = None
    quantity_won: int = 1
    no_bid: bool = False
    append: bool = False


class UpdateBidRequest(BaseModel):
    action: str = ""
    bid_id: Optional[int] = None
    bidder_id: Optional[int] = None
    winning_price: Optional[Decimal] = None
    quantity_won: Optional[int] = None


class BidStats(BaseModel):
    total_revenue: Decimal
    bid_count: int


class MutationResponse(BaseModel):
    success: bool
    message: str
    stats: Optional[BidStats] = None


class BulkBidEntry(BaseModel):
    item_id: int
    bidder_id: Optional[int] = None
    winning_price: Optional[Decimal] = None
    quantity_won: int = 1
    no_bid: bool = False


class BulkSaveRequest(BaseModel):
    auction_id: int
    entries: List[BulkBidEntry]


class BulkSaveResult(BaseModel):
    item_id: int
    success: bool
    error_message: Optional[str] = None


class BulkSaveResponse(BaseModel):
    results: List[BulkSaveResult]


class WinnerRow(BaseModel):
    bid_id: int
    bidder_id: int
    bidder_name: str
    winning_price: Decimal
    quantity_won: int


class AuctionItemStatus(BaseModel):
    item_id: int
    item_name: str
    item_description: str
    item_quantity: int
    winner_count: int
    total_quantity_won: int
    bidder_id: Optional[int]
    winning_price: Optional[Decimal]
    quantity_won: int
    winner_name: Optional[str]
    winners: List[WinnerRow]


class AuctionItemsResponse(BaseModel):
    success: bool
    items: List[AuctionItemStatus]


class AuctionSummary(BaseModel):
    auction_id: int
    description: str
    auction_date: str
    total_items: int
    items_sold: int
    items_no_bid: int
    items_unsold: int
    unique_bidders: int
    total_revenue: Decimal
    average_price: Optional[Decimal]
    highest_price: Optional[Decimal]


class BidderPayment(BaseModel):
    bidder_id: int
    first_name: str
    last_name: str
    phone: str
    email: str
    address1: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    items_won: int
    total_payment: Decimal


class BidderLineItem(BaseModel):
    item_id: int
    item_name: str
    item_description: str
    winning_price: Decimal
    quantity_won: int
    line_total: Decimal


class ItemResult(BaseModel):
    item_id: int
    item_name: str
    item_description: str
    item_quantity: int
    winning_price: Optional[Decimal]
    quantity_won: Optional[int]
    winner_name: Optional[str]
    bidder_id: Optional[int]
    phone: Optional[str]
    email: Optional[str]
    status: str


class TopPerformer(BaseModel):
    item_id: int
    item_name: str
    winning_price: Decimal
    winner_name: str
