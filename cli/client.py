import requests
from typing import Optional, List, Dict, Any
from datetime import datetime
import pytz
from .config import SERVER_URL, get_token, get_timezone


class AuctionClient:
    """Client for the bid entry server.

    Every call returns the decoded JSON body. Error responses that carry a
    JSON ``{"error": ...}`` body are returned as-is so callers can show the
    server's message; anything else raises ``requests.RequestException``.
    """

    def __init__(self, server_url: Optional[str] = None, token: Optional[str] = None,
                 http=None, timezone: Optional[str] = None):
        self.server_url = (server_url or SERVER_URL).rstrip("/")
        self.token: Optional[str] = token if token is not None else get_token()
        self.http = http if http is not None else requests.Session()
        self.timezone = pytz.timezone(timezone or get_timezone())

    def _get_headers(self) -> Dict[str, str]:
        """Get headers with authentication."""
        if not self.token:
            raise ValueError("Not authenticated. Run 'auction auth' first.")
        return {"Authorization": f"Bearer {self.token}"}

    def _decode(self, response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if response.status_code >= 400 and not (isinstance(data, dict) and "error" in data):
            response.raise_for_status()
        return data

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self.http.get(f"{self.server_url}{path}", params=params, headers=self._get_headers())
        return self._decode(response)

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        response = self.http.post(f"{self.server_url}{path}", json=payload, headers=self._get_headers())
        return self._decode(response)

    def authenticate(self, username: str, password: str) -> str:
        """Authenticate and return token."""
        response = self.http.post(
            f"{self.server_url}/auth",
            json={"username": username, "password": password}
        )
        response.raise_for_status()
        data = response.json()
        self.token = data["token"]
        return self.token

    def lookup(self, type: str, term: str, auction_id: Optional[int] = None) -> Dict[str, Any]:
        """Search items (scoped to an auction) or bidders."""
        params = {"type": type, "term": term}
        if auction_id is not None:
            params["auction_id"] = auction_id
        return self._get("/api/lookup", params)

    def check_inventory(self, item_id: int, auction_id: int) -> Dict[str, Any]:
        return self._get("/api/check_inventory", {"item_id": item_id, "auction_id": auction_id})

    def save_bid(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Save, no-bid or delete through the item-keyed mutation endpoint."""
        return self._post("/api/save_bid", payload)

    def update_bid(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Update or delete one winner by bid id."""
        return self._post("/api/update_bid", payload)

    def save_bids_bulk(self, auction_id: int, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._post("/api/save_bid/bulk", {"auction_id": auction_id, "entries": entries})

    def get_auction_items(self, auction_id: int) -> Dict[str, Any]:
        return self._get("/api/get_auction_items", {"auction_id": auction_id})

    def get_report(self, auction_id: int, report: str, **params) -> Any:
        """Fetch one of the summary/payments/items/top reports."""
        return self._get(f"/api/reports/{auction_id}/{report}", params or None)

    def get_bidder_report(self, auction_id: int, bidder_id: int) -> List[Dict[str, Any]]:
        return self._get(f"/api/reports/{auction_id}/bidders/{bidder_id}")

    def to_local_time(self, utc_time_str: str) -> str:
        """Convert UTC time string to local timezone string."""
        dt_utc = datetime.fromisoformat(utc_time_str.replace("Z", "+00:00"))
        if dt_utc.tzinfo is None:
            dt_utc = pytz.UTC.localize(dt_utc)

        dt_local = dt_utc.astimezone(self.timezone)
        return dt_local.strftime("%Y-%m-%d %H:%M:%S")
