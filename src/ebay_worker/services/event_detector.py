"""
Tracking event detection.

Compares the previously stored checkpoint state of a tracking number with the
freshly fetched one and classifies the transition. Rules are evaluated in
order and the first match wins, so a delivery always outranks a delay or a
movement seen in the same tick.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ebay_api.config.constants import DELAY_TAG_KEYWORDS


class TrackingEventType(str, Enum):
    DELIVERED = "delivered"
    DELAY = "delay"
    CARRIER_SCAN = "carrier_scan"
    MOVEMENT = "movement"
    NONE = "none"


@dataclass(frozen=True)
class CheckpointState:
    delivered_at: Optional[datetime] = None
    checkpoint_at: Optional[datetime] = None
    tag: Optional[str] = None


def normalize_tag(tag: Optional[str]) -> str:
    return (tag or "").strip().lower()


def is_delay_tag(tag: Optional[str]) -> bool:
    """Case-insensitive substring match against the delay vocabulary."""
    normalized = normalize_tag(tag)
    return bool(normalized) and any(keyword in normalized for keyword in DELAY_TAG_KEYWORDS)


def _is_delivered(previous: CheckpointState, current: CheckpointState) -> bool:
    if current.delivered_at and (previous.delivered_at is None or current.delivered_at > previous.delivered_at):
        return True
    return normalize_tag(current.tag) == "delivered" and normalize_tag(previous.tag) != "delivered"


def _is_delay(previous: CheckpointState, current: CheckpointState) -> bool:
    return is_delay_tag(current.tag) and current.tag != previous.tag


def _is_carrier_scan(previous: CheckpointState, current: CheckpointState) -> bool:
    return current.checkpoint_at is not None and previous.checkpoint_at is None


def _is_movement(previous: CheckpointState, current: CheckpointState) -> bool:
    return (
        current.checkpoint_at is not None
        and previous.checkpoint_at is not None
        and current.checkpoint_at > previous.checkpoint_at
    )


RULES: List[Tuple[TrackingEventType, Callable[[CheckpointState, CheckpointState], bool]]] = [
    (TrackingEventType.DELIVERED, _is_delivered),
    (TrackingEventType.DELAY, _is_delay),
    (TrackingEventType.CARRIER_SCAN, _is_carrier_scan),
    (TrackingEventType.MOVEMENT, _is_movement),
]


def detect_tracking_event(previous: CheckpointState, current: CheckpointState) -> TrackingEventType:
    """Classify the transition from previous to current checkpoint state."""
    for event_type, matches in RULES:
        if matches(previous, current):
            return event_type
    return TrackingEventType.NONE
