import threading
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from vowmarket.core.config import Settings
from vowmarket.database import make_engine
from vowmarket.models import Booking, BookingStatus, User, UserRole, Vendor
from vowmarket.models.base import BaseModel
from vowmarket.schemas.booking import TimeSlot
from vowmarket.schemas.payment import PaymentDetails, PaymentMethod, PaymentResult
from vowmarket.services import booking_lifecycle
from vowmarket.services.booking_lifecycle import (
    Actor,
    BookingLifecycleManager,
    resolve_actor,
)
from vowmarket.services.exceptions import (
    BookingAccessDenied,
    Inconsistency,
    InvalidTransition,
    NotFound,
    PaymentFailed,
    ValidationError,
)
from vowmarket.services.payment_gateway import PaymentGateway, PaymentGatewayError

TODAY = date(2026, 3, 1)
MORNING = TimeSlot(start='09:00', end='11:00')
CARD = PaymentDetails(
    method=PaymentMethod.CREDIT_CARD,
    card_number='4111111111111111',
    card_expiry='12/29',
    card_cvc='123',
)


class StubGateway(PaymentGateway):
    name = 'stub'

    def __init__(self, result=None, error=None, wait=None):
        self.result = result or PaymentResult(success=True, transaction_id='TXN_stub_1')
        self.error = error
        self.wait = wait
        self.requests = []

    def process(self, request):
        self.requests.append(request)
        if self.wait is not None:
            self.wait.wait(5)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingReporter:
    def __init__(self):
        self.reports = []
        self.reported = threading.Event()

    def report(self, inconsistency):
        self.reports.append(inconsistency)
        self.reported.set()


def setup_db():
    engine = create_engine('sqlite:///:memory:', connect_args={'check_same_thread': False})
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


def create_data(db, approved=True):
    customer = User(email='bride@test.com', password='x', display_name='Priya', role=UserRole.USER)
    owner = User(email='studio@test.com', password='x', display_name='Studio', role=UserRole.VENDOR)
    stranger = User(email='other@test.com', password='x', display_name='Other', role=UserRole.USER)
    db.add_all([customer, owner, stranger])
    db.commit()
    vendor = Vendor(
        user_id=owner.id,
        name='Golden Hour Studio',
        category='photography',
        price_min=Decimal('25000.00'),
        price_max=Decimal('80000.00'),
        is_approved=approved,
    )
    db.add(vendor)
    db.commit()
    db.refresh(vendor)
    return customer, owner, stranger, vendor


def make_manager(db, gateway=None, reporter=None, **config):
    return BookingLifecycleManager(
        db,
        gateway or StubGateway(),
        config=Settings(**config),
        reporter=reporter,
        today=lambda: TODAY,
    )


def create_booking(db, customer, vendor, status=BookingStatus.PENDING):
    booking = Booking(
        user_id=customer.id,
        vendor_id=vendor.id,
        date=TODAY + timedelta(days=10),
        slot_start='09:00',
        slot_end='11:00',
        status=status,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


# ─── initiate_booking ─────────────────────────────────────────────────────────

def test_draft_for_tomorrow_succeeds():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    manager = make_manager(db)

    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING, ' Haldi at noon ')

    assert draft.vendor_id == vendor.id
    assert draft.time_slot == MORNING
    assert draft.notes == 'Haldi at noon'
    assert db.query(Booking).count() == 0


def test_draft_accepts_slot_string():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    draft = make_manager(db).initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=5), '14:00-16:00')
    assert str(draft.time_slot) == '14:00-16:00'


@pytest.mark.parametrize('days,reason', [(100, 'too_far'), (91, 'too_far'), (0, 'past'), (-3, 'past')])
def test_draft_rejects_dates_outside_window(days, reason):
    db = setup_db()
    customer, _, _, vendor = create_data(db)

    with pytest.raises(ValidationError) as exc:
        make_manager(db).initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=days), MORNING)

    assert exc.value.field_errors == {'date': reason}


def test_draft_accepts_last_day_of_horizon():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    draft = make_manager(db).initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=90), MORNING)
    assert draft.date == TODAY + timedelta(days=90)


def test_horizon_is_configurable():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    with pytest.raises(ValidationError):
        make_manager(db, BOOKING_HORIZON_DAYS=30).initiate_booking(
            customer.id, vendor.id, TODAY + timedelta(days=31), MORNING
        )


@pytest.mark.parametrize('slot', ['13:00-14:00', '09:00-10:00', 'noon', '11:00-09:00'])
def test_draft_rejects_unpublished_slots(slot):
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    with pytest.raises(ValidationError) as exc:
        make_manager(db).initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=2), slot)
    assert 'time_slot' in exc.value.field_errors


def test_draft_rejects_long_notes():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    manager = make_manager(db)

    manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=2), MORNING, 'x' * 500)
    with pytest.raises(ValidationError) as exc:
        manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=2), MORNING, 'x' * 501)
    assert exc.value.field_errors == {'notes': 'too_long'}


def test_draft_requires_existing_approved_vendor():
    db = setup_db()
    customer, _, _, vendor = create_data(db, approved=False)
    manager = make_manager(db)

    with pytest.raises(NotFound):
        manager.initiate_booking(customer.id, 999, TODAY + timedelta(days=2), MORNING)
    with pytest.raises(ValidationError) as exc:
        manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=2), MORNING)
    assert exc.value.field_errors == {'vendor_id': 'not_approved'}


# ─── authorize_and_create ─────────────────────────────────────────────────────

def test_successful_payment_creates_pending_booking():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    gateway = StubGateway(PaymentResult(success=True, transaction_id='TXN_abc_1'))
    manager = make_manager(db, gateway)
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=3), MORNING, 'Mehendi')

    booking = manager.authorize_and_create(draft, CARD)

    assert booking.status == BookingStatus.PENDING
    assert booking.transaction_id == 'TXN_abc_1'
    assert booking.amount == Decimal('25000.00')
    assert booking.currency == 'INR'
    assert booking.payment_method == 'credit_card'
    assert (booking.slot_start, booking.slot_end) == ('09:00', '11:00')
    assert booking.notes == 'Mehendi'
    request = gateway.requests[0]
    assert request.amount == Decimal('25000.00')
    assert request.method_details.card_number == '4111111111111111'


def test_declined_payment_persists_nothing():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    gateway = StubGateway(PaymentResult(success=False, error='Payment failed. Please try again.'))
    manager = make_manager(db, gateway)

    with pytest.raises(ValidationError):
        manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=100), MORNING)
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    with pytest.raises(PaymentFailed) as exc:
        manager.authorize_and_create(draft, CARD)

    assert not exc.value.timed_out
    assert db.query(Booking).count() == 0


def test_gateway_error_persists_nothing():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    manager = make_manager(db, StubGateway(error=PaymentGatewayError('Payment gateway unreachable')))
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    with pytest.raises(PaymentFailed):
        manager.authorize_and_create(draft, CARD)
    assert db.query(Booking).count() == 0


def test_slow_payment_times_out_and_late_success_is_reported():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    release = threading.Event()
    reporter = RecordingReporter()
    gateway = StubGateway(PaymentResult(success=True, transaction_id='TXN_late_1'), wait=release)
    manager = make_manager(db, gateway, reporter, PAYMENT_TIMEOUT_SECONDS=0.05)
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    with pytest.raises(PaymentFailed) as exc:
        manager.authorize_and_create(draft, CARD)

    assert exc.value.timed_out
    assert db.query(Booking).count() == 0

    release.set()
    assert reporter.reported.wait(5)
    assert reporter.reports[0].transaction_id == 'TXN_late_1'
    assert reporter.reports[0].vendor_id == vendor.id


def test_queued_payment_is_never_charged_after_timeout():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    reporter = RecordingReporter()
    gateway = StubGateway()
    manager = make_manager(db, gateway, reporter, PAYMENT_TIMEOUT_SECONDS=0.05)
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    # Occupy every payment worker so the charge can only sit in the queue
    release = threading.Event()
    started = [threading.Event() for _ in range(booking_lifecycle._payment_executor._max_workers)]

    def block(ready):
        ready.set()
        release.wait(5)

    blockers = [booking_lifecycle._payment_executor.submit(block, ready) for ready in started]
    for ready in started:
        assert ready.wait(5)

    try:
        with pytest.raises(PaymentFailed) as exc:
            manager.authorize_and_create(draft, CARD)
        assert exc.value.timed_out
    finally:
        release.set()
    for blocker in blockers:
        blocker.result(5)
    # Anything still queued ahead of this marker has run by the time it returns
    booking_lifecycle._payment_executor.submit(lambda: None).result(5)

    assert gateway.requests == []
    assert reporter.reports == []
    assert db.query(Booking).count() == 0


def test_failed_write_after_payment_raises_inconsistency(monkeypatch):
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    reporter = RecordingReporter()
    manager = make_manager(db, StubGateway(PaymentResult(success=True, transaction_id='TXN_lost_1')), reporter)
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    def broken_commit():
        raise OperationalError('INSERT INTO bookings', {}, Exception('disk I/O error'))

    monkeypatch.setattr(db, 'commit', broken_commit)

    with pytest.raises(Inconsistency) as exc:
        manager.authorize_and_create(draft, CARD)

    monkeypatch.undo()
    assert exc.value.transaction_id == 'TXN_lost_1'
    assert exc.value.amount == Decimal('25000.00')
    assert [r.transaction_id for r in reporter.reports] == ['TXN_lost_1']
    assert db.query(Booking).count() == 0


def test_default_reporter_logs_inconsistency(monkeypatch, caplog):
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    manager = make_manager(db, StubGateway(PaymentResult(success=True, transaction_id='TXN_log_1')))
    draft = manager.initiate_booking(customer.id, vendor.id, TODAY + timedelta(days=1), MORNING)

    def broken_commit():
        raise OperationalError('INSERT INTO bookings', {}, Exception('database is locked'))

    monkeypatch.setattr(db, 'commit', broken_commit)
    caplog.set_level('ERROR', logger='vowmarket.services.booking_lifecycle')

    with pytest.raises(Inconsistency):
        manager.authorize_and_create(draft, CARD)

    record = next(r for r in caplog.records if r.getMessage() == 'booking.reconciliation_required')
    assert record.transaction_id == 'TXN_log_1'


# ─── transition_status ────────────────────────────────────────────────────────

ALLOWED = [
    ('user', BookingStatus.PENDING, BookingStatus.CANCELLED),
    ('user', BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    ('vendor', BookingStatus.PENDING, BookingStatus.CONFIRMED),
    ('vendor', BookingStatus.PENDING, BookingStatus.CANCELLED),
    ('vendor', BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
]


def _all_combinations():
    for actor in ('user', 'vendor'):
        for current in BookingStatus:
            for requested in BookingStatus:
                yield actor, current, requested


@pytest.mark.parametrize('actor_kind,current,requested', list(_all_combinations()))
def test_transition_table(actor_kind, current, requested):
    db = setup_db()
    customer, owner, _, vendor = create_data(db)
    booking = create_booking(db, customer, vendor, current)
    actor = Actor(customer.id, UserRole.USER) if actor_kind == 'user' else Actor(owner.id, UserRole.VENDOR)
    manager = make_manager(db)

    if (actor_kind, current, requested) in ALLOWED:
        updated = manager.transition_status(booking.id, actor, requested)
        assert updated.status == requested
    else:
        with pytest.raises(InvalidTransition):
            manager.transition_status(booking.id, actor, requested)
        db.expire_all()
        assert db.get(Booking, booking.id).status == current


def test_vendor_cannot_complete_pending_booking():
    db = setup_db()
    customer, owner, _, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)

    with pytest.raises(InvalidTransition):
        make_manager(db).transition_status(booking.id, Actor(owner.id, UserRole.VENDOR), 'completed')

    db.expire_all()
    assert db.get(Booking, booking.id).status == BookingStatus.PENDING


@pytest.mark.parametrize('terminal', [BookingStatus.COMPLETED, BookingStatus.CANCELLED])
def test_terminal_bookings_never_change(terminal):
    db = setup_db()
    customer, owner, _, vendor = create_data(db)
    booking = create_booking(db, customer, vendor, terminal)
    manager = make_manager(db)

    for actor in (Actor(customer.id, UserRole.USER), Actor(owner.id, UserRole.VENDOR)):
        for requested in BookingStatus:
            with pytest.raises(InvalidTransition):
                manager.transition_status(booking.id, actor, requested)

    db.expire_all()
    assert db.get(Booking, booking.id).status == terminal


def test_non_party_is_denied():
    db = setup_db()
    customer, _, stranger, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)

    with pytest.raises(BookingAccessDenied):
        make_manager(db).transition_status(booking.id, Actor(stranger.id, UserRole.USER), 'cancelled')


def test_admin_cannot_transition():
    db = setup_db()
    customer, _, stranger, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)

    with pytest.raises(InvalidTransition):
        make_manager(db).transition_status(booking.id, Actor(stranger.id, UserRole.ADMIN), 'confirmed')


def test_unknown_status_and_missing_booking():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)
    manager = make_manager(db)

    with pytest.raises(ValidationError):
        manager.transition_status(booking.id, Actor(customer.id, UserRole.USER), 'archived')
    with pytest.raises(NotFound):
        manager.transition_status(999, Actor(customer.id, UserRole.USER), 'cancelled')


def test_concurrent_transition_loser_gets_invalid_transition(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    db = Session()
    customer, owner, _, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)

    vendor_db, customer_db = Session(), Session()
    vendor_manager = make_manager(vendor_db)
    customer_manager = make_manager(customer_db)
    # Both load the pending booking before either writes. The identity map
    # only holds weak references, so keep them alive.
    vendor_copy = vendor_manager.get_booking(booking.id)
    customer_copy = customer_manager.get_booking(booking.id)
    assert vendor_copy.version_id == customer_copy.version_id

    vendor_manager.transition_status(booking.id, Actor(owner.id, UserRole.VENDOR), 'confirmed')

    with pytest.raises(InvalidTransition) as exc:
        customer_manager.transition_status(booking.id, Actor(customer.id, UserRole.USER), 'cancelled')

    assert exc.value.field_errors == {'status': 'stale'}
    check = Session()
    assert check.get(Booking, booking.id).status == BookingStatus.CONFIRMED

    for s in (db, vendor_db, customer_db, check):
        s.close()
    engine.dispose()


def test_resolve_actor_uses_booking_relationship():
    db = setup_db()
    customer, owner, stranger, vendor = create_data(db)
    booking = create_booking(db, customer, vendor)

    assert resolve_actor(booking, customer.id, UserRole.VENDOR) == Actor(customer.id, UserRole.USER)
    assert resolve_actor(booking, owner.id, UserRole.VENDOR) == Actor(owner.id, UserRole.VENDOR)
    assert resolve_actor(booking, stranger.id, UserRole.USER) == Actor(stranger.id, UserRole.USER)
    assert resolve_actor(booking, stranger.id, UserRole.ADMIN).role == UserRole.ADMIN


def test_lists_are_newest_first():
    db = setup_db()
    customer, _, _, vendor = create_data(db)
    for days in (5, 20, 12):
        db.add(Booking(
            user_id=customer.id,
            vendor_id=vendor.id,
            date=TODAY + timedelta(days=days),
            slot_start='09:00',
            slot_end='11:00',
        ))
    db.commit()
    manager = make_manager(db)

    expected = [TODAY + timedelta(days=d) for d in (20, 12, 5)]
    assert [b.date for b in manager.list_for_user(customer.id)] == expected
    assert [b.date for b in manager.list_for_vendor(vendor.id)] == expected
