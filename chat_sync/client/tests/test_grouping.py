from datetime import datetime
from datetime import timedelta
from datetime import timezone

from chat_sync.client.grouping import group_messages
from chat_sync.conversations.models import SYSTEM_SENDER_ID
from chat_sync.conversations.models import Message

T0 = datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc)


def _msg(idx, sender, offset, recipient=None):
    if recipient is None:
        recipient = 2 if sender == 1 else 1
    return Message(f"m{idx}", sender, recipient, f"text {idx}", T0 + offset)


def _shape(groups):
    return [([m.id for m in g.messages], g.show_timestamp) for g in groups]


def test_empty():
    assert group_messages([]) == []


def test_merge_window_is_inclusive():
    at_limit = [_msg(1, 1, timedelta(0)), _msg(2, 1, timedelta(seconds=20))]
    past_limit = [_msg(1, 1, timedelta(0)), _msg(2, 1, timedelta(seconds=20, milliseconds=1))]
    assert _shape(group_messages(at_limit)) == [(["m1", "m2"], True)]
    assert _shape(group_messages(past_limit)) == [(["m1"], True), (["m2"], False)]


def test_header_gap_is_strict():
    one_hour = [_msg(1, 1, timedelta(0)), _msg(2, 2, timedelta(hours=1))]
    over_hour = [_msg(1, 1, timedelta(0)), _msg(2, 2, timedelta(seconds=3601))]
    assert _shape(group_messages(one_hour)) == [(["m1"], True), (["m2"], False)]
    assert _shape(group_messages(over_hour)) == [(["m1"], True), (["m2"], True)]


def test_header_gap_splits_same_sender():
    messages = [_msg(1, 1, timedelta(0)), _msg(2, 1, timedelta(hours=2))]
    assert _shape(group_messages(messages)) == [(["m1"], True), (["m2"], True)]


def test_system_messages_never_merge():
    messages = [
        _msg(1, SYSTEM_SENDER_ID, timedelta(0), recipient=0),
        _msg(2, SYSTEM_SENDER_ID, timedelta(seconds=1), recipient=0),
        _msg(3, 1, timedelta(seconds=2)),
    ]
    assert _shape(group_messages(messages)) == [
        (["m1"], True),
        (["m2"], False),
        (["m3"], False),
    ]


def test_alternating_senders():
    messages = [
        _msg(1, 1, timedelta(seconds=0)),
        _msg(2, 1, timedelta(seconds=5)),
        _msg(3, 2, timedelta(seconds=8)),
        _msg(4, 1, timedelta(seconds=10)),
    ]
    assert _shape(group_messages(messages)) == [
        (["m1", "m2"], True),
        (["m3"], False),
        (["m4"], False),
    ]


def test_comparison_is_with_previous_message():
    # Each step is 15s, so the run stays one group although it spans 45s.
    messages = [_msg(i, 1, timedelta(seconds=15 * i)) for i in range(4)]
    assert _shape(group_messages(messages)) == [(["m0", "m1", "m2", "m3"], True)]


def test_input_order_does_not_matter_and_ties_are_stable():
    a = _msg(1, 1, timedelta(0))
    b = _msg(2, 2, timedelta(0))
    c = _msg(3, 1, timedelta(seconds=30))
    assert _shape(group_messages([c, a, b])) == [
        (["m1"], True),
        (["m2"], False),
        (["m3"], False),
    ]


def test_regrouping_is_idempotent():
    messages = [
        _msg(1, 1, timedelta(0)),
        _msg(2, 1, timedelta(seconds=3)),
        _msg(3, 2, timedelta(hours=3)),
    ]
    first = group_messages(messages)
    flattened = [m for group in first for m in group.messages]
    assert group_messages(flattened) == first
    assert first[0].first.id == "m1"


def test_same_sender_past_an_hour_gets_a_header():
    messages = [_msg(1, 1, timedelta(0)), _msg(2, 1, timedelta(seconds=3601))]
    assert _shape(group_messages(messages)) == [(["m1"], True), (["m2"], True)]


def test_sender_change_splits_even_within_window():
    messages = [
        _msg(1, 1, timedelta(0)),
        _msg(2, 2, timedelta(seconds=10)),
        _msg(3, 1, timedelta(seconds=19)),
    ]
    assert _shape(group_messages(messages)) == [
        (["m1"], True),
        (["m2"], False),
        (["m3"], False),
    ]
