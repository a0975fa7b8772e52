from sqlalchemy.orm import Session
from typing import Dict, Optional

from .. import models, schemas
from ..models.user import UserRole
from ..utils.auth import get_password_hash, normalize_email


class CRUDUser:
    def get_user(self, db: Session, user_id: int) -> Optional[models.User]:
        return db.query(models.User).filter(models.User.id == user_id).first()

    def get_user_by_email(self, db: Session, email: str) -> Optional[models.User]:
        return db.query(models.User).filter(models.User.email == normalize_email(email)).first()

    def create_user(self, db: Session, user: schemas.UserCreate) -> models.User:
        db_user = models.User(
            email=normalize_email(user.email),
            password=get_password_hash(user.password),
            display_name=user.display_name.strip(),
            role=UserRole(user.role),
            phone_number=user.phone_number,
            city=user.city,
            profile_complete=is_profile_complete(user.phone_number, user.city),
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user

    def update_user(self, db: Session, db_user: models.User, changes: Dict[str, Optional[str]]) -> models.User:
        """Apply already-cleaned profile changes and recompute ``profile_complete``."""
        for field, value in changes.items():
            setattr(db_user, field, value)
        db_user.profile_complete = is_profile_complete(db_user.phone_number, db_user.city)
        db.commit()
        db.refresh(db_user)
        return db_user


def is_profile_complete(phone_number: Optional[str], city: Optional[str]) -> bool:
    return bool(phone_number and city)


user = CRUDUser()
