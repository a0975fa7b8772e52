from datetime import datetime

from sqlalchemy import Column, DateTime

from ..database import Base


class BaseModel(Base):
    """Abstract parent of every vowmarket table; adds row timestamps."""

    __abstract__ = True

    created_at = Column(DateTime, default=datetime.utcnow)
    # Bumped on every ORM update, including aggregate and status changes
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
