"""Vendor rating aggregate maintenance.

``Vendor.rating`` and ``Vendor.review_count`` are written here and nowhere
else. Each review insert or delete and the matching aggregate update commit
in one transaction. ``Vendor.version_id`` makes a concurrent writer's UPDATE
match zero rows; that attempt is rolled back and replayed against fresh data.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import Settings, settings
from ..crud import crud_booking, crud_review
from ..models import Review, Vendor
from ..schemas.review import ReviewAuthor
from .exceptions import AggregateConflict, NotFound, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_RATING = 1
MAX_RATING = 5
MIN_TEXT_LENGTH = 10
MAX_TEXT_LENGTH = 2000


def mean_after_add(rating: float, count: int, value: int) -> Tuple[float, int]:
    new_count = count + 1
    return (rating * count + value) / new_count, new_count


def mean_after_remove(rating: float, count: int, value: int) -> Tuple[float, int]:
    if count <= 1:
        return 0.0, 0
    new_count = count - 1
    return (rating * count - value) / new_count, new_count


def _is_lock_error(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return "locked" in text or "busy" in text


class RatingAggregator:
    def __init__(
        self,
        db: Session,
        *,
        config: Settings = settings,
        max_attempts: Optional[int] = None,
        backoff_seconds: float = 0.01,
        require_completed_booking: Optional[bool] = None,
    ) -> None:
        self.db = db
        self.config = config
        self.max_attempts = max(1, max_attempts or config.AGGREGATE_MAX_ATTEMPTS)
        self.backoff_seconds = backoff_seconds
        if require_completed_booking is None:
            require_completed_booking = config.REVIEW_REQUIRES_COMPLETED_BOOKING
        self.require_completed_booking = require_completed_booking

    def add_review(self, vendor_id: int, rating: int, text: str, author: ReviewAuthor) -> Review:
        """Insert a review and fold its rating into the vendor aggregate."""
        text = self._validate(rating, text)
        if self.require_completed_booking and not crud_booking.booking.has_completed(
            self.db, author.user_id, vendor_id
        ):
            raise ValidationError(
                "You can review a vendor after a completed booking with them.",
                {"vendor_id": "no_completed_booking"},
            )

        def apply(vendor: Vendor) -> Review:
            vendor.rating, vendor.review_count = mean_after_add(
                vendor.rating or 0.0, vendor.review_count or 0, rating
            )
            review = Review(
                user_id=author.user_id,
                vendor_id=vendor.id,
                rating=rating,
                text=text,
                user_display_name=author.display_name or "",
                user_photo_url=author.photo_url,
            )
            self.db.add(review)
            return review

        review = self._run_atomic(vendor_id, apply)
        self.db.refresh(review)
        logger.info(
            "review.added id=%s vendor_id=%s rating=%s user_id=%s",
            review.id,
            vendor_id,
            rating,
            author.user_id,
        )
        return review

    def delete_review(self, review_id: int, vendor_id: int) -> Vendor:
        """Remove a review and reverse exactly its contribution. Returns the vendor."""

        def apply(vendor: Vendor) -> Vendor:
            review = self.db.get(Review, review_id, populate_existing=True)
            if review is None or review.vendor_id != vendor.id:
                raise NotFound(f"Review {review_id} not found for vendor {vendor_id}.", {"review_id": "not_found"})
            vendor.rating, vendor.review_count = mean_after_remove(
                vendor.rating or 0.0, vendor.review_count or 0, review.rating
            )
            self.db.delete(review)
            return vendor

        vendor = self._run_atomic(vendor_id, apply)
        self.db.refresh(vendor)
        logger.info("review.deleted id=%s vendor_id=%s", review_id, vendor_id)
        return vendor

    def list_vendor_reviews(self, vendor_id: int) -> List[Review]:
        return crud_review.review.list_by_vendor(self.db, vendor_id)

    def list_user_reviews(self, user_id: int) -> List[Review]:
        return crud_review.review.list_by_user(self.db, user_id)

    # ─── Internals ─────────────────────────────────────────────────────────
    @staticmethod
    def _validate(rating: int, text: str) -> str:
        errors = {}
        if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
            errors["rating"] = f"Rating must be a whole number from {MIN_RATING} to {MAX_RATING}."
        text = (text or "").strip()
        if len(text) < MIN_TEXT_LENGTH:
            errors["text"] = f"Review must be at least {MIN_TEXT_LENGTH} characters."
        elif len(text) > MAX_TEXT_LENGTH:
            errors["text"] = f"Review must be at most {MAX_TEXT_LENGTH} characters."
        if errors:
            raise ValidationError("Invalid review.", errors)
        return text

    def _run_atomic(self, vendor_id: int, apply: Callable[[Vendor], T]) -> T:
        """Run ``apply`` on a freshly loaded vendor and commit, retrying on conflict."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                vendor = self.db.get(Vendor, vendor_id, populate_existing=True)
                if vendor is None:
                    raise NotFound(f"Vendor {vendor_id} not found.", {"vendor_id": "not_found"})
                result = apply(vendor)
                self.db.commit()
                return result
            except StaleDataError:
                self.db.rollback()
                reason = "version"
            except OperationalError as exc:
                self.db.rollback()
                if not _is_lock_error(exc):
                    raise
                reason = "locked"
            except Exception:
                self.db.rollback()
                raise

            logger.info(
                "rating.retry",
                extra={"vendor_id": vendor_id, "attempt": attempt, "reason": reason},
            )
            if attempt < self.max_attempts and self.backoff_seconds:
                time.sleep(self.backoff_seconds * attempt * random.uniform(0.5, 1.5))

        logger.warning(
            "rating.conflict_exhausted",
            extra={"vendor_id": vendor_id, "attempts": self.max_attempts},
        )
        raise AggregateConflict(vendor_id, self.max_attempts)
