from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .. import models, schemas
from ..models.booking_status import BookingStatus

FEATURED_LIMIT = 8
PAGE_LIMIT = 12

# Profile columns a vendor may write. Aggregate and admin columns are not here.
_PROFILE_FIELDS = (
    "name",
    "category",
    "description",
    "city",
    "address",
    "phone_number",
    "email",
    "website",
    "cover_image",
    "gallery_images",
)


def _apply_and_commit(db: Session, db_vendor: models.Vendor, apply, attempts: int = 3) -> models.Vendor:
    """Apply profile/flag edits, replaying them if a rating update bumped the version first."""
    for attempt in range(attempts):
        apply(db_vendor)
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            if attempt == attempts - 1:
                raise
            db.refresh(db_vendor)
            continue
        db.refresh(db_vendor)
        return db_vendor
    return db_vendor


def _newest_first(vendors: List[models.Vendor]) -> List[models.Vendor]:
    return sorted(vendors, key=lambda v: (v.created_at or datetime.min, v.id), reverse=True)


class CRUDVendor:
    def get(self, db: Session, vendor_id: int) -> Optional[models.Vendor]:
        return db.query(models.Vendor).filter(models.Vendor.id == vendor_id).first()

    def get_by_user(self, db: Session, user_id: int) -> Optional[models.Vendor]:
        return db.query(models.Vendor).filter(models.Vendor.user_id == user_id).first()

    def create(self, db: Session, owner_id: int, vendor_in: schemas.VendorCreate) -> models.Vendor:
        data = vendor_in.model_dump(mode="json", exclude={"price_range", "services"})
        db_vendor = models.Vendor(
            **{k: v for k, v in data.items() if v is not None},
            user_id=owner_id,
            price_min=vendor_in.price_range.min,
            price_max=vendor_in.price_range.max,
            services=[s.model_dump(mode="json") for s in vendor_in.services],
            is_approved=False,
            is_featured=False,
            rating=0.0,
            review_count=0,
        )
        db.add(db_vendor)
        try:
            db.commit()
        except IntegrityError:
            # Another request created this owner's profile first
            db.rollback()
            raise
        db.refresh(db_vendor)
        return db_vendor

    def update(self, db: Session, db_vendor: models.Vendor, vendor_in: schemas.VendorUpdate) -> models.Vendor:
        changes = vendor_in.model_dump(mode="json", exclude_unset=True)

        def apply(v: models.Vendor) -> None:
            for field in _PROFILE_FIELDS:
                if field in changes and changes[field] is not None:
                    setattr(v, field, changes[field])
            if vendor_in.price_range is not None:
                v.price_min = vendor_in.price_range.min
                v.price_max = vendor_in.price_range.max
            if vendor_in.services is not None:
                v.services = [s.model_dump(mode="json") for s in vendor_in.services]

        return _apply_and_commit(db, db_vendor, apply)

    def _approved(self, db: Session) -> List[models.Vendor]:
        return db.query(models.Vendor).filter(models.Vendor.is_approved.is_(True)).all()

    def featured(self, db: Session, limit: int = FEATURED_LIMIT) -> List[models.Vendor]:
        vendors = [v for v in self._approved(db) if v.is_featured]
        vendors.sort(key=lambda v: v.rating or 0.0, reverse=True)
        return vendors[:limit]

    def by_category(
        self,
        db: Session,
        category: str,
        after: Optional[int] = None,
        limit: int = PAGE_LIMIT,
    ) -> Tuple[List[models.Vendor], Optional[int]]:
        """Approved vendors in ``category`` newest first, resuming after vendor id ``after``.

        Returns the page and the cursor for the next one (``None`` at the end).
        An unknown cursor restarts from the first page.
        """
        vendors = _newest_first([v for v in self._approved(db) if v.category == category])
        start = 0
        if after is not None:
            for idx, v in enumerate(vendors):
                if v.id == after:
                    start = idx + 1
                    break
        page = vendors[start:start + limit]
        next_cursor = page[-1].id if page and start + limit < len(vendors) else None
        return page, next_cursor

    def search(
        self,
        db: Session,
        q: Optional[str] = None,
        category: Optional[str] = None,
        city: Optional[str] = None,
        limit: int = PAGE_LIMIT,
    ) -> List[models.Vendor]:
        # Filters run in-process over every approved vendor. Move to SQL or a
        # search index before the catalogue grows past a few thousand rows.
        vendors = self._approved(db)
        if q:
            needle = q.lower()
            vendors = [
                v for v in vendors
                if needle in (v.name or "").lower() or needle in (v.description or "").lower()
            ]
        if category:
            vendors = [v for v in vendors if v.category == category]
        if city:
            vendors = [v for v in vendors if v.city == city]
        return vendors[:limit]

    # ─── Admin ─────────────────────────────────────────────────────────────
    def list_for_admin(self, db: Session, status: str = "all") -> List[models.Vendor]:
        query = db.query(models.Vendor)
        if status == "pending":
            query = query.filter(models.Vendor.is_approved.is_(False))
        elif status == "approved":
            query = query.filter(models.Vendor.is_approved.is_(True))
        return _newest_first(query.all())

    def set_flags(
        self,
        db: Session,
        db_vendor: models.Vendor,
        is_approved: Optional[bool] = None,
        is_featured: Optional[bool] = None,
    ) -> models.Vendor:
        def apply(v: models.Vendor) -> None:
            if is_approved is not None:
                v.is_approved = is_approved
            if is_featured is not None:
                v.is_featured = is_featured

        return _apply_and_commit(db, db_vendor, apply)

    def dashboard_counts(self, db: Session) -> Dict[str, int]:
        total = db.query(func.count(models.Vendor.id)).scalar() or 0
        approved = (
            db.query(func.count(models.Vendor.id)).filter(models.Vendor.is_approved.is_(True)).scalar() or 0
        )
        featured = (
            db.query(func.count(models.Vendor.id)).filter(models.Vendor.is_featured.is_(True)).scalar() or 0
        )
        users = db.query(func.count(models.User.id)).scalar() or 0
        bookings = db.query(func.count(models.Booking.id)).scalar() or 0
        pending_bookings = (
            db.query(func.count(models.Booking.id))
            .filter(models.Booking.status == BookingStatus.PENDING)
            .scalar()
            or 0
        )
        reviews = db.query(func.count(models.Review.id)).scalar() or 0
        return {
            "total_vendors": int(total),
            "approved_vendors": int(approved),
            "pending_vendors": int(total - approved),
            "featured_vendors": int(featured),
            "total_users": int(users),
            "total_bookings": int(bookings),
            "pending_bookings": int(pending_bookings),
            "total_reviews": int(reviews),
        }


vendor = CRUDVendor()
