"""
Data Interface - Storefront Data API Access Layer
Read/write contract the assistant uses for events, categories and tickets.
Field names follow the storefront's camelCase JSON.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from ..algorithms.knowledge_stats import compute_revenue_stats, compute_system_stats
from ..config import settings
from ..errors import DataFetchError


class DataAPI(ABC):
    """
    Abstract contract for the storefront data API.

    Every list method returns a full replacement collection; the
    synchronizer never expects partial or delta updates.
    """

    @abstractmethod
    async def list_events(self, filters: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], Dict]:
        """
        Returns:
            (events, pagination)
        """

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[Dict]:
        """Single event, or None when it does not exist"""

    @abstractmethod
    async def list_categories(self) -> List[Dict]:
        pass

    @abstractmethod
    async def list_user_tickets(self, user_id: Optional[str] = None) -> List[Dict]:
        pass

    @abstractmethod
    async def create_booking(self, request: Dict[str, Any]) -> Dict:
        pass

    async def get_system_stats(self, period: str = "month") -> Dict[str, Any]:
        """
        System-wide statistics (admin only), aggregated from full collections

        Args:
            period: Revenue comparison window (day, week, month, quarter, year)
        """
        events, _ = await self.list_events()
        tickets = await self.list_user_tickets()
        now = datetime.now(timezone.utc)

        stats = compute_system_stats(events, tickets, now)
        stats["revenue"] = compute_revenue_stats(tickets, now, period)
        return stats


class HttpDataAPI(DataAPI):
    """
    httpx-backed client for the storefront REST API

    Accepts the three event payload shapes the storefront has served:
    `{"eventSystem": {"events": [...]}}`, `{"events": [...]}` and a bare list.
    """

    FILTER_KEYS = ("search", "location", "dateRange", "sortBy", "sortOrder")

    def __init__(self, client: Optional[httpx.AsyncClient] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url or settings.DATA_API_BASE_URL,
            timeout=timeout or settings.DATA_API_TIMEOUT,
            headers={"Accept": "application/json"}
        )

    async def _request(self, resource: str, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Data API {method} {path} failed with HTTP {status}")
            raise DataFetchError(resource, f"HTTP error! status: {status}", status) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Data API {method} {path} failed: {e}")
            raise DataFetchError(resource, f"Network error: {e}") from e

    @staticmethod
    def _expect(resource: str, value: Any, kind: type) -> Any:
        """Reject a payload (or payload field) of the wrong JSON shape"""
        if not isinstance(value, kind):
            logger.error(f"Data API returned {type(value).__name__} for {resource}, expected {kind.__name__}")
            raise DataFetchError(resource, f"Unexpected {resource} payload: {type(value).__name__}")
        return value

    @classmethod
    def _filter_params(cls, filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if not filters:
            return params
        for key in cls.FILTER_KEYS:
            if filters.get(key):
                params[key] = str(filters[key])
        if filters.get("categories"):
            params["categories"] = ",".join(filters["categories"])
        return params

    async def list_events(self, filters: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], Dict]:
        payload = await self._request("events", "GET", "/events", params=self._filter_params(filters))

        if isinstance(payload, list):
            return payload, {}

        payload = self._expect("events", payload, dict)
        system = self._expect("events", payload.get("eventSystem") or {}, dict)
        events = self._expect("events", system.get("events") or payload.get("events") or [], list)
        pagination = (system.get("metadata") or {}).get("pagination") or payload.get("pagination") or {}
        return events, pagination

    async def get_event(self, event_id: str) -> Optional[Dict]:
        try:
            payload = await self._request("events", "GET", f"/events/{event_id}")
        except DataFetchError as e:
            if e.status_code == 404:
                return None
            raise
        payload = self._expect("events", payload, dict)
        return payload.get("event") or payload

    async def list_categories(self) -> List[Dict]:
        # Categories ship alongside the events listing
        payload = await self._request("categories", "GET", "/events")
        if isinstance(payload, list):
            return []
        payload = self._expect("categories", payload, dict)
        system = self._expect("categories", payload.get("eventSystem") or {}, dict)
        return self._expect("categories", system.get("categories") or payload.get("categories") or [], list)

    async def list_user_tickets(self, user_id: Optional[str] = None) -> List[Dict]:
        bookings = self._expect("tickets", await self._request("tickets", "GET", "/event-tickets") or [], list)
        tickets: List[Dict] = []

        for booking in bookings:
            self._expect("tickets", booking, dict)
            owner = booking.get("userId")
            if user_id and owner and owner != user_id:
                continue
            tickets.extend(self._booking_to_tickets(booking))

        return tickets

    @staticmethod
    def _booking_to_tickets(booking: Dict[str, Any]) -> List[Dict]:
        """Flatten one booking record into one ticket per ticket type"""
        holder = booking.get("holder") or {"name": "", "email": "", "phone": ""}
        purchase_date = (booking.get("purchaseDate") or booking.get("createdAt")
                         or datetime.now(timezone.utc).isoformat())
        return [
            {
                "id": f"{booking.get('id')}-{ticket.get('type')}",
                "eventId": booking.get("eventId"),
                "ticketType": ticket.get("type"),
                "price": ticket.get("price", 0),
                "currency": booking.get("currency") or "THB",
                "holder": holder,
                "customerInfo": booking.get("customerInfo"),
                "purchaseDate": purchase_date,
                "status": booking.get("status") or "confirmed",
                "quantity": ticket.get("quantity"),
                "totalAmount": booking.get("totalAmount"),
                "notes": booking.get("notes"),
            }
            for ticket in booking.get("tickets") or []
        ]

    async def create_booking(self, request: Dict[str, Any]) -> Dict:
        return await self._request("bookings", "POST", "/event-tickets", json=request)

    async def close(self):
        if self._owns_client:
            await self.client.aclose()
            logger.info("HttpDataAPI client closed")
