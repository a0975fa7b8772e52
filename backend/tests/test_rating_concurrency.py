import threading

import pytest
from sqlalchemy.orm import sessionmaker

from vowmarket.database import make_engine
from vowmarket.models import Review, User, UserRole, Vendor
from vowmarket.models.base import BaseModel
from vowmarket.schemas.review import ReviewAuthor
from vowmarket.services.rating_aggregator import RatingAggregator

WRITERS = 6
REVIEWS_PER_WRITER = 5


def setup_file_db(tmp_path):
    # Separate connections per thread need a real file, not :memory:
    engine = make_engine(f"sqlite:///{tmp_path / 'ratings.db'}")
    BaseModel.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine)


def test_concurrent_reviews_lose_no_updates(tmp_path):
    engine, Session = setup_file_db(tmp_path)
    db = Session()
    owner = User(email='owner@test.com', password='x', display_name='Owner', role=UserRole.VENDOR)
    db.add(owner)
    db.commit()
    vendor = Vendor(user_id=owner.id, name='Mehfil Caterers', category='catering', price_min=500, price_max=900, is_approved=True)
    db.add(vendor)
    db.commit()
    vendor_id = vendor.id
    db.close()

    errors = []
    start = threading.Barrier(WRITERS)

    def writer(n):
        session = Session()
        agg = RatingAggregator(session, max_attempts=200, backoff_seconds=0.002)
        author = ReviewAuthor(user_id=100 + n, display_name=f'Guest {n}')
        try:
            start.wait()
            for i in range(REVIEWS_PER_WRITER):
                agg.add_review(vendor_id, (n + i) % 5 + 1, f'Review {i} from guest {n}', author)
        except Exception as exc:  # surfaced below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(WRITERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []

    db = Session()
    vendor = db.get(Vendor, vendor_id)
    ratings = [r.rating for r in db.query(Review).filter(Review.vendor_id == vendor_id)]
    assert len(ratings) == WRITERS * REVIEWS_PER_WRITER
    assert vendor.review_count == len(ratings)
    assert vendor.rating == pytest.approx(sum(ratings) / len(ratings))
    db.close()
    engine.dispose()
