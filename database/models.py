from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, UniqueConstraint
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from enum import Enum

Base = declarative_base()

# bidder_id reserved for the explicit "no bid" marker row
NO_BID_BIDDER_ID = 0


class AuctionStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


class Auction(Base):
    __tablename__ = "auctions"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String, nullable=False)
    auction_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=AuctionStatus.PLANNING.value, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    auction_items = relationship("AuctionItem", back_populates="auction", cascade="all, delete-orphan")
    bids = relationship("WinningBid", back_populates="auction")


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    auction_items = relationship("AuctionItem", back_populates="item")


class AuctionItem(Base):
    __tablename__ = "auction_items"
    __table_args__ = (UniqueConstraint("auction_id", "item_id", name="uq_auction_item"),)

    id = Column(Integer, primary_key=True)
    auction_id = Column(Integer, ForeignKey("auctions.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)

    auction = relationship("Auction", back_populates="auction_items")
    item = relationship("Item", back_populates="auction_items")


class Bidder(Base):
    __tablename__ = "bidders"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address1 = Column(String, nullable=True)
    address2 = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class WinningBid(Base):
    __tablename__ = "winning_bids"
    __table_args__ = (UniqueConstraint("auction_id", "item_id", "bidder_id", name="uq_winning_bid"),)

    id = Column(Integer, primary_key=True, index=True)
    auction_id = Column(Integer, ForeignKey("auctions.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    # No foreign key: NO_BID_BIDDER_ID never exists in bidders
    bidder_id = Column(Integer, nullable=False, index=True)
    winning_price = Column(Numeric(10, 2), nullable=False)
    quantity_won = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    auction = relationship("Auction", back_populates="bids")
    item = relationship("Item")

    @property
    def is_no_bid(self) -> bool:
        return self.bidder_id == NO_BID_BIDDER_ID
