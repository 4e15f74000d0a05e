"""
Order tracking lookup for the storefront footer.

A lookup goes idle -> loading -> found | not found | error. Statuses come
from the carrier in SHOUTING_SNAKE_CASE and are shown as "Out For Delivery".
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from exceptions import ApiError, NotFoundError
from formatting import format_date
from logger import get_logger
from schemas import TrackingInfo

logger = get_logger(__name__)

STATUS_COLORS = {
    "DELIVERED": "green",
    "OUT_FOR_DELIVERY": "blue",
    "IN_TRANSIT": "yellow",
    "PICKED_UP": "orange",
    "CREATED": "gray",
    "PICKUP_SCHEDULED": "gray",
    "RETURNED": "red",
    "LOST": "red",
}
DEFAULT_STATUS_COLOR = "gray"


class TrackingState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


def format_status(status: Optional[str]) -> str:
    if not status:
        return "Unknown"
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), status.replace("_", " ").lower())


def status_color(status: Optional[str]) -> str:
    return STATUS_COLORS.get((status or "").upper(), DEFAULT_STATUS_COLOR)


@dataclass
class TrackingResult:
    state: TrackingState
    title: str
    message: str
    info: Optional[TrackingInfo] = None


class OrderTracker:
    """Runs one tracking lookup at a time against the backend."""

    def __init__(self, client):
        self.client = client
        self.state = TrackingState.IDLE
        self.result: Optional[TrackingResult] = None

    def track(self, tracking_number: str) -> TrackingResult:
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            return TrackingResult(TrackingState.IDLE, "Error", "Please enter a tracking number")

        self.state = TrackingState.LOADING
        try:
            info = self.client.track(tracking_number)
        except NotFoundError:
            logger.info(f"Tracking number {tracking_number} not found")
            result = TrackingResult(TrackingState.NOT_FOUND, "Tracking Number Not Found",
                                    "Please check your tracking number and try again")
        except ApiError as e:
            logger.error(f"Error tracking order {tracking_number}: {e}")
            result = TrackingResult(TrackingState.ERROR, "Error",
                                    "Failed to track order. Please try again later.")
        else:
            logger.info(f"Tracking {tracking_number}: {info.status}")
            result = TrackingResult(TrackingState.FOUND, "Order Found!",
                                    "Your order tracking information has been retrieved", info)

        self.state = result.state
        self.result = result
        return result


def describe(info: TrackingInfo) -> Dict[str, Any]:
    """Display-ready view of a tracking response."""
    destination = ", ".join([info.recipient_city, info.recipient_state, info.recipient_country])
    return {
        "trackingNumber": info.tracking_number,
        "status": format_status(info.status),
        "statusColor": status_color(info.status),
        "carrier": info.carrier,
        "destination": destination,
        "estimatedDelivery": format_date(info.estimated_delivery_date),
        "actualDelivery": format_date(info.actual_delivery_date) if info.actual_delivery_date else None,
        "events": [
            {
                "status": event.status,
                "timestamp": format_date(event.timestamp),
                "description": event.description,
                "location": event.location,
            }
            for event in info.tracking_events
        ],
        "lastUpdated": format_date(info.last_tracking_update) if info.last_tracking_update else None,
    }
