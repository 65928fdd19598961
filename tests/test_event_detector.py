import pytest

from ebay_worker.services.event_detector import (
    CheckpointState,
    TrackingEventType,
    detect_tracking_event,
    is_delay_tag,
)
from fakes import utc

T1 = utc(2024, 3, 1, 10, 0)
T2 = utc(2024, 3, 2, 10, 0)


def test_first_checkpoint_is_carrier_scan():
    previous = CheckpointState()
    current = CheckpointState(checkpoint_at=T1, tag="InTransit")

    assert detect_tracking_event(previous, current) == TrackingEventType.CARRIER_SCAN


def test_newer_checkpoint_with_same_tag_is_movement():
    previous = CheckpointState(checkpoint_at=T1, tag="InTransit")
    current = CheckpointState(checkpoint_at=T2, tag="InTransit")

    assert detect_tracking_event(previous, current) == TrackingEventType.MOVEMENT


def test_same_checkpoint_is_none():
    state = CheckpointState(checkpoint_at=T1, tag="InTransit")

    assert detect_tracking_event(state, state) == TrackingEventType.NONE
    assert detect_tracking_event(CheckpointState(), CheckpointState()) == TrackingEventType.NONE


def test_older_checkpoint_is_none():
    previous = CheckpointState(checkpoint_at=T2, tag="InTransit")
    current = CheckpointState(checkpoint_at=T1, tag="InTransit")

    assert detect_tracking_event(previous, current) == TrackingEventType.NONE


@pytest.mark.parametrize("tag", [None, "InTransit", "Exception", "Delivered"])
def test_new_delivered_time_wins_regardless_of_tag(tag):
    previous = CheckpointState(checkpoint_at=T1, tag="InTransit")
    current = CheckpointState(delivered_at=T2, checkpoint_at=T2, tag=tag)

    assert detect_tracking_event(previous, current) == TrackingEventType.DELIVERED


def test_later_delivered_time_is_delivered_again():
    previous = CheckpointState(delivered_at=T1, checkpoint_at=T1, tag="Delivered")
    current = CheckpointState(delivered_at=T2, checkpoint_at=T2, tag="Delivered")

    assert detect_tracking_event(previous, current) == TrackingEventType.DELIVERED


def test_unchanged_delivered_time_is_not_delivered():
    previous = CheckpointState(delivered_at=T1, checkpoint_at=T1, tag="Delivered")

    assert detect_tracking_event(previous, previous) == TrackingEventType.NONE


def test_tag_turning_delivered_without_time_is_delivered():
    previous = CheckpointState(checkpoint_at=T1, tag="OutForDelivery")
    current = CheckpointState(checkpoint_at=T1, tag="DELIVERED")

    assert detect_tracking_event(previous, current) == TrackingEventType.DELIVERED


def test_delay_tag_change_beats_movement():
    previous = CheckpointState(checkpoint_at=T1, tag="InTransit")
    current = CheckpointState(checkpoint_at=T2, tag="Delivery Exception")

    assert detect_tracking_event(previous, current) == TrackingEventType.DELAY


def test_unchanged_delay_tag_falls_through_to_movement():
    previous = CheckpointState(checkpoint_at=T1, tag="Exception")
    current = CheckpointState(checkpoint_at=T2, tag="Exception")

    assert detect_tracking_event(previous, current) == TrackingEventType.MOVEMENT


def test_case_only_change_of_delay_tag_is_a_new_delay():
    previous = CheckpointState(checkpoint_at=T1, tag="Exception")
    current = CheckpointState(checkpoint_at=T1, tag="EXCEPTION")

    assert detect_tracking_event(previous, current) == TrackingEventType.DELAY


@pytest.mark.parametrize(
    "tag,expected",
    [
        ("Delivery Exception", True),
        ("DeliveryFailure", False),
        ("AttemptFailed", True),
        ("Expired", True),
        ("Delayed", True),
        ("Alert", True),
        ("InTransit", False),
        ("", False),
        (None, False),
    ],
)
def test_delay_tag_matching_is_case_insensitive_substring(tag, expected):
    assert is_delay_tag(tag) is expected
