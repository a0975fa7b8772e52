from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models


class CRUDReview:
    """Read side of reviews. Writes go through ``services.rating_aggregator``."""

    def get(self, db: Session, review_id: int) -> Optional[models.Review]:
        return db.query(models.Review).filter(models.Review.id == review_id).first()

    def list_by_vendor(self, db: Session, vendor_id: int, skip: int = 0, limit: int = 100) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.vendor_id == vendor_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def list_by_user(self, db: Session, user_id: int, skip: int = 0, limit: int = 100) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.user_id == user_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )


review = CRUDReview()
