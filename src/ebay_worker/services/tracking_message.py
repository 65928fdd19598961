"""Rendering of tracking events into Discord embed payloads."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ebay_worker.services.event_detector import TrackingEventType

EVENT_TITLES = {
    TrackingEventType.CARRIER_SCAN: "Carrier scan received",
    TrackingEventType.MOVEMENT: "Shipment update",
    TrackingEventType.DELIVERED: "Delivered",
    TrackingEventType.DELAY: "Delivery issue detected",
}

EVENT_COLORS = {
    TrackingEventType.DELIVERED: 0x22C55E,
    TrackingEventType.DELAY: 0xEF4444,
    TrackingEventType.CARRIER_SCAN: 0x3B82F6,
    TrackingEventType.MOVEMENT: 0x8B5CF6,
}


@dataclass
class TrackingNotification:
    """One rendered event, ready for fan-out."""

    event_type: TrackingEventType
    embed: Dict[str, Any] = field(default_factory=dict)


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_tracking_embed(
    event_type: TrackingEventType,
    order_id: str,
    tracking_number: str,
    carrier: Optional[str] = None,
    checkpoint_at: Optional[datetime] = None,
    delivered_at: Optional[datetime] = None,
    tag: Optional[str] = None,
    summary: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build an embed for a tracking event.

    Delivered events show the delivery time; every other event shows the
    latest checkpoint time.
    """
    fields = [
        {"name": "Order", "value": order_id, "inline": True},
        {"name": "Tracking", "value": tracking_number, "inline": True},
    ]
    if carrier:
        fields.append({"name": "Carrier", "value": carrier, "inline": True})
    if tag:
        fields.append({"name": "Status", "value": tag, "inline": True})

    if event_type == TrackingEventType.DELIVERED and delivered_at:
        fields.append({"name": "Delivered at", "value": _iso(delivered_at), "inline": False})
    elif checkpoint_at:
        fields.append({"name": "Updated at", "value": _iso(checkpoint_at), "inline": False})

    embed: Dict[str, Any] = {
        "title": EVENT_TITLES[event_type],
        "color": EVENT_COLORS[event_type],
        "fields": fields,
        "timestamp": _iso(now or datetime.now(timezone.utc)),
    }
    if summary:
        embed["description"] = summary
    return embed
