import logging
from sqlalchemy import event
from sqlalchemy.orm.attributes import NO_VALUE

from .. import models

logger = logging.getLogger(__name__)

_registered = False


def _booking_status_change(target, value, oldvalue, initiator):  # noqa: ANN001
    """Log every in-session change of ``Booking.status``."""
    if oldvalue is NO_VALUE or oldvalue is None or oldvalue == value:
        return value
    logger.info(
        "Booking id=%s status changed from %s to %s",
        getattr(target, "id", "unknown"),
        getattr(oldvalue, "value", oldvalue),
        getattr(value, "value", value),
    )
    return value


def register_status_listeners() -> None:
    """Attach the booking status listener once per process."""
    global _registered
    if _registered:
        return
    event.listen(
        models.Booking.status,  # type: ignore[arg-type]
        "set",
        _booking_status_change,
        retval=False,
        propagate=True,
    )
    _registered = True
