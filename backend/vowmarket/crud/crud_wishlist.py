from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from .. import models


class CRUDWishlist:
    def vendor_ids(self, db: Session, user_id: int) -> List[int]:
        rows = (
            db.query(models.WishlistItem.vendor_id)
            .filter(models.WishlistItem.user_id == user_id)
            .order_by(models.WishlistItem.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    def contains(self, db: Session, user_id: int, vendor_id: int) -> bool:
        return (
            db.query(models.WishlistItem.id)
            .filter(models.WishlistItem.user_id == user_id, models.WishlistItem.vendor_id == vendor_id)
            .first()
            is not None
        )

    def add(self, db: Session, user_id: int, vendor_id: int) -> None:
        if self.contains(db, user_id, vendor_id):
            return
        db.add(models.WishlistItem(user_id=user_id, vendor_id=vendor_id))
        try:
            db.commit()
        except IntegrityError:
            # A concurrent add of the same pair won; the set already holds it.
            db.rollback()

    def remove(self, db: Session, user_id: int, vendor_id: int) -> None:
        (
            db.query(models.WishlistItem)
            .filter(models.WishlistItem.user_id == user_id, models.WishlistItem.vendor_id == vendor_id)
            .delete(synchronize_session=False)
        )
        db.commit()


wishlist = CRUDWishlist()
