import logging
from decimal import Decimal
import pytest
from fastapi import HTTPException

from vowmarket.services.exceptions import (
    AggregateConflict,
    AuthenticationFailed,
    BookingAccessDenied,
    Inconsistency,
    InvalidTransition,
    NotFound,
    PaymentFailed,
    ValidationError,
)
from vowmarket.utils.errors import domain_error_response, error_response, status_for


def test_error_response_logs(caplog):
    caplog.set_level(logging.ERROR, logger="vowmarket.utils.errors")
    with pytest.raises(HTTPException):
        raise error_response("Invalid", {"field": "bad"})
    assert any(
        "Invalid" in r.getMessage() and "'field': 'bad'" in r.getMessage()
        for r in caplog.records
    )


@pytest.mark.parametrize(
    "exc,code",
    [
        (AuthenticationFailed("nope"), 401),
        (BookingAccessDenied("not yours"), 403),
        (InvalidTransition("no", {"status": "not_allowed"}), 409),
        (ValidationError("bad", {"date": "past"}), 422),
        (NotFound("gone", {"vendor_id": "not_found"}), 404),
        (PaymentFailed("declined"), 402),
        (AggregateConflict(7, 5), 503),
    ],
)
def test_status_for_each_error(exc, code):
    assert status_for(exc) == code


def test_domain_error_keeps_field_errors():
    http_exc = domain_error_response(PaymentFailed("Too slow", timed_out=True))
    assert http_exc.status_code == 402
    assert http_exc.detail == {"message": "Too slow", "field_errors": {"payment": "timeout"}}


def test_inconsistency_is_a_server_error():
    exc = Inconsistency("TXN_1", Decimal("100"), "INR", 1, 2)
    assert domain_error_response(exc).status_code == 500
