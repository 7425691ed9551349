from datetime import datetime, timedelta

from quoteflow.error_aggregator import (
    ErrorAggregator,
    first_stack_frame,
    get_error_fingerprint,
    normalize_message,
)


def raise_lookup(order_id):
    raise LookupError(f"Order {order_id} not found")


def capture(func, *args):
    try:
        func(*args)
    except Exception as e:
        return e
    raise AssertionError("expected an exception")


def test_normalize_message_collapses_variable_parts():
    message = "Quotation 42 for 550e8400-e29b-41d4-a716-446655440000 failed at 0xdeadbeef"
    assert normalize_message(message) == "Quotation <n> for <uuid> failed at <hex>"


def test_first_stack_frame_drops_line_numbers():
    stack = '  File "/app/orders.py", line 88, in confirm\n    raise ValueError()\n'
    assert first_stack_frame(stack) == 'File "/app/orders.py", in confirm'
    assert first_stack_frame(None) == ""


def test_same_failure_with_different_ids_shares_fingerprint():
    first = {"error_type": "LookupError", "message": "Order 1 not found", "stack": None}
    second = {"error_type": "LookupError", "message": "Order 99 not found", "stack": None}
    other = {"error_type": "KeyError", "message": "Order 1 not found", "stack": None}
    assert get_error_fingerprint(first) == get_error_fingerprint(second)
    assert get_error_fingerprint(first) != get_error_fingerprint(other)


def test_record_error_inserts_then_counts(db):
    aggregator = ErrorAggregator(db)

    first = aggregator.record_error(capture(raise_lookup, 1), path="/api/orders/1")
    second = aggregator.record_error(capture(raise_lookup, 2), path="/api/orders/2")

    assert first["is_new"] is True
    assert second == {"fingerprint": first["fingerprint"], "is_new": False, "count": 2}
    aggregate = aggregator.get_aggregate(first["fingerprint"])
    assert aggregate.count == 2
    assert aggregate.path == "/api/orders/1"


def test_recorded_message_is_redacted(db):
    aggregator = ErrorAggregator(db)
    result = aggregator.record_error({"error_type": "ValueError", "message": "bad email amy@example.com"})
    assert aggregator.get_aggregate(result["fingerprint"]).message == "bad email [EMAIL_REDACTED]"


def test_top_and_recent_errors_and_stats(db):
    aggregator = ErrorAggregator(db)
    for _ in range(3):
        aggregator.record_error({"error_type": "A", "message": "frequent"})
    aggregator.record_error({"error_type": "B", "message": "rare"})

    top = aggregator.get_top_errors(limit=1)
    assert [e.message for e in top] == ["frequent"]
    assert len(aggregator.get_recent_errors()) == 2
    assert aggregator.get_stats() == {
        "total_errors": 2,
        "unresolved_errors": 2,
        "resolved_errors": 0,
        "total_occurrences": 4,
    }


def test_resolve_reopen_and_cleanup(db):
    aggregator = ErrorAggregator(db)
    fingerprint = aggregator.record_error({"error_type": "A", "message": "boom"})["fingerprint"]

    assert aggregator.resolve_error(fingerprint, resolved_by="ops@example.com")
    assert aggregator.get_top_errors() == []
    assert aggregator.reopen_error(fingerprint)
    assert aggregator.get_aggregate(fingerprint).resolved is False
    assert not aggregator.resolve_error("missing")

    aggregator.resolve_error(fingerprint)
    assert aggregator.cleanup_resolved_errors(days_ago=30) == 0
    aggregator.get_aggregate(fingerprint).resolved_at = datetime.utcnow() - timedelta(days=31)
    db.commit()
    assert aggregator.cleanup_resolved_errors(days_ago=30) == 1
    assert aggregator.get_aggregate(fingerprint) is None
