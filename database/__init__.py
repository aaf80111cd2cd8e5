from .models import Auction, AuctionItem, AuctionStatus, Bidder, Item, WinningBid, NO_BID_BIDDER_ID
from .session import init_db, get_db, SessionLocal

__all__ = ["Auction", "AuctionItem", "AuctionStatus", "Bidder", "Item", "WinningBid", "NO_BID_BIDDER_ID", "init_db", "get_db", "SessionLocal"]
