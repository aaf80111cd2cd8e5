#!/usr/bin/env python3
"""
Integration tests for bulk add command.
"""
import requests
from unittest.mock import patch
from click.testing import CliRunner
from cli.client import AuctionClient
from cli.main import add_bulk


def saved(item_id):
    return {"item_id": item_id, "success": True, "error_message": None}


def failed(item_id, message):
    return {"item_id": item_id, "success": False, "error_message": message}


class TestBulkAddCommand:
    """Integration tests for add-bulk command."""

    def test_bulk_add_success(self):
        """Test successful bulk entry of several items."""
        runner = CliRunner()
        mock_response = {"results": [saved(57), saved(58)]}
        input_data = "57 15 60\n58\t1\t40.00\t2\n"

        with patch.object(AuctionClient, "save_bids_bulk", return_value=mock_response) as mock_save:
            result = runner.invoke(add_bulk, ["--auction", "80"], input=input_data)

        assert result.exit_code == 0
        assert "Processed: 2  Saved: 2  Errors: 0  Duplicates: 0" in result.output
        assert "$60.00" in result.output
        mock_save.assert_called_once_with(80, [
            {"item_id": 57, "bidder_id": 15, "winning_price": 60.0, "quantity_won": 1, "no_bid": False},
            {"item_id": 58, "bidder_id": 1, "winning_price": 40.0, "quantity_won": 2, "no_bid": False},
        ])

    def test_bulk_add_no_bid_line(self):
        runner = CliRunner()
        with patch.object(AuctionClient, "save_bids_bulk", return_value={"results": [saved(102)]}) as mock_save:
            result = runner.invoke(add_bulk, ["--auction", "80"], input="102 nobid\n")

        assert result.exit_code == 0
        assert "No Bid" in result.output
        entry = mock_save.call_args[0][1][0]
        assert entry["no_bid"] is True
        assert entry["bidder_id"] == 0

    def test_bulk_add_with_duplicates(self):
        """Second line for the same item is reported, not sent."""
        runner = CliRunner()
        input_data = "57 15 60\n57 2 65\n"

        with patch.object(AuctionClient, "save_bids_bulk", return_value={"results": [saved(57)]}) as mock_save:
            result = runner.invoke(add_bulk, ["--auction", "80"], input=input_data)

        assert result.exit_code == 0
        assert "Processed: 2  Saved: 1  Errors: 0  Duplicates: 1" in result.output
        assert "Duplicate item in input" in result.output
        assert len(mock_save.call_args[0][1]) == 1

    def test_bulk_add_with_server_errors(self):
        runner = CliRunner()
        mock_response = {"results": [saved(57), failed(99, "Item #99 is not part of this auction")]}

        with patch.object(AuctionClient, "save_bids_bulk", return_value=mock_response):
            result = runner.invoke(add_bulk, ["--auction", "80"], input="57 15 60\n99 15 20\n")

        assert result.exit_code == 0
        assert "Saved: 1  Errors: 1" in result.output
        assert "Item #99 is not part of this auction" in result.output

    def test_bulk_add_with_invalid_format(self):
        """Lines that do not parse never reach the server."""
        runner = CliRunner()

        with patch.object(AuctionClient, "save_bids_bulk") as mock_save:
            result = runner.invoke(add_bulk, ["--auction", "80"], input="abc 15 60\n57 15\n")

        assert result.exit_code == 0
        assert "Errors: 2" in result.output
        assert "could not parse item number" in result.output
        mock_save.assert_not_called()

    def test_bulk_add_ignores_comments_and_blanks(self):
        runner = CliRunner()
        input_data = "# table 4\n\n57 15 60\n   \n"

        with patch.object(AuctionClient, "save_bids_bulk", return_value={"results": [saved(57)]}):
            result = runner.invoke(add_bulk, ["--auction", "80"], input=input_data)

        assert result.exit_code == 0
        assert "Processed: 1  Saved: 1" in result.output

    def test_bulk_add_server_unreachable(self):
        runner = CliRunner()

        with patch.object(AuctionClient, "save_bids_bulk", side_effect=requests.ConnectionError("refused")):
            result = runner.invoke(add_bulk, ["--auction", "80"], input="57 15 60\n")

        assert result.exit_code == 1
        assert "Failed to bulk enter bids" in result.output

    def test_bulk_add_requires_auction(self):
        result = CliRunner().invoke(add_bulk, input="57 15 60\n")
        assert result.exit_code == 2
