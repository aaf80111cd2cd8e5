import pytest
from unittest.mock import MagicMock

from cli.fields import Field
from cli.session import BidEntrySession

BIDDERS = [
    {"id": 1, "name": "John Smith", "phone": "", "email": ""},
    {"id": 2, "name": "Jane Smith", "phone": "", "email": ""},
]


def fake_lookup(type, term, auction_id=None):
    if type == "item":
        return {"results": [{"id": 57, "name": "Gift Basket", "quantity": 1}] if term in ("57", "gift") else []}
    if term.isdigit():
        return {"results": [b for b in BIDDERS if b["id"] == int(term)]}
    return {"results": [b for b in BIDDERS if term.lower() in b["name"].lower()]}


@pytest.fixture
def api():
    client = MagicMock()
    client.lookup.side_effect = fake_lookup
    client.check_inventory.return_value = {
        "total_quantity": 1, "allocated_quantity": 0, "available_quantity": 1,
        "can_add_bid": True, "existing_bids": [],
    }
    client.get_auction_items.return_value = {"success": True, "items": []}
    client.save_bid.return_value = {"success": True, "message": "Bid saved successfully"}
    return client


@pytest.fixture
def session(make_controller, api):
    return BidEntrySession(make_controller(api), timeout=1)


def test_lines_walk_the_form(session, api):
    session.run(lines=["57", "2", "60", ""])

    api.save_bid.assert_called_once_with({
        "action": "save",
        "auction_id": 80,
        "item_id": 57,
        "bidder_id": 2,
        "winning_price": 60.0,
        "quantity_won": 1,
    })
    assert session.field == Field.ITEM


def test_prompt_names_focused_field(session):
    assert session.prompt() == "item> "
    session.handle("57")
    assert session.prompt() == "bidder> "


def test_search_and_pick(session, view):
    session.handle("57")
    session.handle("?smith")
    assert [r["id"] for r in view.results[Field.BIDDER]] == [1, 2]
    assert session.field == Field.BIDDER

    session.handle("/pick 2")
    assert view.values[Field.BIDDER] == "2"
    assert session.field == Field.PRICE


def test_arrow_commands(session, view):
    session.handle("?gift")
    session.handle("/down")
    session.handle("/enter")
    assert session.controller.selected_item.id == 57


def test_quit_stops_run(session, api):
    session.run(lines=["/quit", "57"])
    api.lookup.assert_not_called()


def test_bad_arguments(session, capsys):
    session.handle("/pick two")
    session.handle("/edit")
    assert "Usage: /pick N" in capsys.readouterr().out


def test_unknown_command(session, capsys):
    assert session.handle("/bogus") is True
    assert "Unknown command /bogus" in capsys.readouterr().out


def test_winners_without_item(session, capsys):
    session.handle("/winners")
    assert "No winners recorded for this item" in capsys.readouterr().out


def test_help(session, capsys):
    session.handle("/help")
    assert "/f6" in capsys.readouterr().out
