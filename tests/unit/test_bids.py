import pytest
from decimal import Decimal

from database.models import WinningBid, NO_BID_BIDDER_ID
from server.bids import (
    BidError, get_inventory, save_bid, update_bid, delete_bid, delete_item_bids,
    get_bid_stats, get_items_for_bid_entry, save_bids_bulk,
)


def _bids(db_session, item_id):
    return db_session.query(WinningBid).filter(WinningBid.auction_id == 80, WinningBid.item_id == item_id).all()


@pytest.fixture
def auction(sample_auction, sample_bidders):
    return sample_auction


class TestInventory:
    def test_no_bids(self, db_session, auction):
        inventory = get_inventory(db_session, 58, 80)
        assert inventory["total_quantity"] == 3
        assert inventory["allocated_quantity"] == 0
        assert inventory["available_quantity"] == 3
        assert inventory["can_add_bid"] is True
        assert inventory["existing_bids"] == []

    def test_allocated_and_existing_bids(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
        inventory = get_inventory(db_session, 58, 80)
        assert inventory["allocated_quantity"] == 2
        assert inventory["available_quantity"] == 1
        assert inventory["existing_bids"][0]["bidder_name"] == "John Smith"
        assert inventory["existing_bids"][0]["quantity_won"] == 2

    def test_fully_allocated_cannot_add(self, db_session, auction):
        save_bid(db_session, 80, 57, 1, Decimal("25.00"))
        inventory = get_inventory(db_session, 57, 80)
        assert inventory["available_quantity"] == 0
        assert inventory["can_add_bid"] is False

    def test_unknown_item(self, db_session, auction):
        with pytest.raises(BidError) as exc:
            get_inventory(db_session, 4040, 80)
        assert exc.value.status_code == 404
        assert exc.value.message == "Item not found"

    def test_existing_bids_oldest_first(self, db_session, auction):
        save_bid(db_session, 80, 58, 2, Decimal("40.00"))
        save_bid(db_session, 80, 58, 1, Decimal("42.00"), append=True)

        bids = get_inventory(db_session, 58, 80)["existing_bids"]
        assert [b["bidder_id"] for b in bids] == [2, 1]
        assert bids[0]["created_at"] <= bids[1]["created_at"]


class TestSaveBid:
    def test_creates_winner(self, db_session, auction):
        bid = save_bid(db_session, 80, 57, 1, Decimal("25.00"))
        assert bid.id is not None
        assert bid.quantity_won == 1
        assert len(_bids(db_session, 57)) == 1

    def test_plain_save_overwrites_existing_winner(self, db_session, auction):
        first = save_bid(db_session, 80, 57, 1, Decimal("25.00"))
        second = save_bid(db_session, 80, 57, 2, Decimal("30.00"))

        bids = _bids(db_session, 57)
        assert len(bids) == 1
        assert second.id == first.id
        assert bids[0].bidder_id == 2
        assert bids[0].winning_price == Decimal("30.00")

    def test_same_bidder_updates_their_row(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        save_bid(db_session, 80, 58, 2, Decimal("41.00"), 1, append=True)
        save_bid(db_session, 80, 58, 2, Decimal("45.00"), 2)

        bids = {b.bidder_id: b for b in _bids(db_session, 58)}
        assert len(bids) == 2
        assert bids[2].winning_price == Decimal("45.00")
        assert bids[2].quantity_won == 2

    def test_append_adds_winner(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
        save_bid(db_session, 80, 58, 2, Decimal("40.00"), 1, append=True)
        assert len(_bids(db_session, 58)) == 2

    def test_append_beyond_inventory_rejected(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
        with pytest.raises(BidError) as exc:
            save_bid(db_session, 80, 58, 2, Decimal("40.00"), 2, append=True)
        assert exc.value.message == "Only 1 available in inventory"
        assert len(_bids(db_session, 58)) == 1

    def test_overwrite_checks_inventory_without_old_quantity(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 3)
        assert _bids(db_session, 58)[0].quantity_won == 3

    def test_item_not_in_auction(self, db_session, auction):
        with pytest.raises(BidError) as exc:
            save_bid(db_session, 80, 99, 1, Decimal("10.00"))
        assert exc.value.message == "Item #99 is not part of this auction"

    @pytest.mark.parametrize("bidder_id,price,quantity,message", [
        (None, Decimal("10"), 1, "Bidder ID required for bid entries"),
        (1, Decimal("0"), 1, "Winning price must be greater than 0"),
        (1, None, 1, "Winning price must be greater than 0"),
        (1, Decimal("10"), 0, "Quantity must be at least 1"),
        (999, Decimal("10"), 1, "Bidder #999 not found"),
    ])
    def test_rejects_bad_fields(self, db_session, auction, bidder_id, price, quantity, message):
        with pytest.raises(BidError) as exc:
            save_bid(db_session, 80, 57, bidder_id, price, quantity)
        assert exc.value.message == message
        assert _bids(db_session, 57) == []

    def test_missing_ids(self, db_session, auction):
        with pytest.raises(BidError) as exc:
            save_bid(db_session, None, 57, 1, Decimal("10"))
        assert exc.value.message == "Missing required fields"

    def test_no_bid_replaces_winners(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        save_bid(db_session, 80, 58, 2, Decimal("40.00"), 1, append=True)

        marker = save_bid(db_session, 80, 58, None, None, no_bid=True)

        bids = _bids(db_session, 58)
        assert len(bids) == 1
        assert bids[0].id == marker.id
        assert bids[0].bidder_id == NO_BID_BIDDER_ID
        assert bids[0].winning_price == Decimal("0")
        assert bids[0].quantity_won == 0

    def test_real_winner_replaces_no_bid(self, db_session, auction):
        save_bid(db_session, 80, 57, None, None, no_bid=True)
        save_bid(db_session, 80, 57, 15, Decimal("60.00"))

        bids = _bids(db_session, 57)
        assert len(bids) == 1
        assert bids[0].bidder_id == 15


class TestUpdateBid:
    def test_updates_fields(self, db_session, auction):
        bid = save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        updated = update_bid(db_session, bid.id, 2, 2, winning_price=Decimal("35.00"))
        assert updated.bidder_id == 2
        assert updated.quantity_won == 2
        assert updated.winning_price == Decimal("35.00")

    def test_keeps_price_when_not_given(self, db_session, auction):
        bid = save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        updated = update_bid(db_session, bid.id, 1, 2)
        assert updated.winning_price == Decimal("40.00")

    def test_quantity_increase_checks_inventory(self, db_session, auction):
        first = save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
        save_bid(db_session, 80, 58, 2, Decimal("40.00"), 1, append=True)
        with pytest.raises(BidError) as exc:
            update_bid(db_session, first.id, 1, 3)
        assert exc.value.message == "Only 2 available in inventory"

    def test_not_found(self, db_session, auction):
        with pytest.raises(BidError) as exc:
            update_bid(db_session, 4242, 1, 1)
        assert exc.value.status_code == 404

    def test_requires_bidder_and_quantity(self, db_session, auction):
        with pytest.raises(BidError) as exc:
            update_bid(db_session, 1, None, 1)
        assert exc.value.message == "Bidder ID and Quantity required"

    def test_negative_quantity(self, db_session, auction):
        bid = save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        with pytest.raises(BidError) as exc:
            update_bid(db_session, bid.id, 1, -1)
        assert exc.value.message == "Quantity must be a positive number"

    def test_bidder_clash(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        second = save_bid(db_session, 80, 58, 2, Decimal("40.00"), 1, append=True)
        with pytest.raises(BidError) as exc:
            update_bid(db_session, second.id, 1, 1)
        assert "already has a bid" in exc.value.message


class TestDelete:
    def test_delete_bid_is_idempotent(self, db_session, auction):
        bid = save_bid(db_session, 80, 57, 1, Decimal("25.00"))
        assert delete_bid(db_session, bid.id) is True
        assert delete_bid(db_session, bid.id) is False
        assert _bids(db_session, 57) == []

    def test_delete_item_bids(self, db_session, auction):
        save_bid(db_session, 80, 58, 1, Decimal("40.00"), 1)
        save_bid(db_session, 80, 58, 2, Decimal("40.00"), 1, append=True)
        assert delete_item_bids(db_session, 80, 58) == 2
        assert _bids(db_session, 58) == []


def test_bid_stats_exclude_no_bid(db_session, auction):
    save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
    save_bid(db_session, 80, 57, None, None, no_bid=True)
    stats = get_bid_stats(db_session, 80)
    assert stats["bid_count"] == 1
    assert stats["total_revenue"] == Decimal("80.00")


def test_items_for_bid_entry(db_session, auction):
    save_bid(db_session, 80, 57, None, None, no_bid=True)
    save_bid(db_session, 80, 58, 1, Decimal("40.00"), 2)
    save_bid(db_session, 80, 58, 2, Decimal("45.00"), 1, append=True)

    items = {row["item_id"]: row for row in get_items_for_bid_entry(db_session, 80)}

    assert sorted(items) == [57, 58, 102]
    assert items[57]["bidder_id"] == NO_BID_BIDDER_ID
    assert items[57]["winner_name"] == "No Bid"
    assert items[58]["winner_count"] == 2
    assert items[58]["winner_name"] == "2 Winners"
    assert items[58]["winning_price"] == Decimal("42.50")
    assert items[58]["total_quantity_won"] == 3
    assert [w["bidder_id"] for w in items[58]["winners"]] == [1, 2]
    assert items[102]["bidder_id"] is None
    assert items[102]["winner_count"] == 0
    assert items[102]["winners"] == []


def test_bulk_save_reports_each_entry(db_session, auction):
    results = save_bids_bulk(db_session, 80, [
        {"item_id": 57, "bidder_id": 1, "winning_price": Decimal("25.00"), "quantity_won": 1},
        {"item_id": 99, "bidder_id": 1, "winning_price": Decimal("25.00"), "quantity_won": 1},
        {"item_id": 102, "no_bid": True},
    ])
    assert [r["success"] for r in results] == [True, False, True]
    assert results[1]["error_message"] == "Item #99 is not part of this auction"
    assert len(_bids(db_session, 57)) == 1
