from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime


class ReviewBase(BaseModel):
  rating: Annotated[int, Field(ge=1, le=5)]
  text: Annotated[str, Field(min_length=10, max_length=2000)]


class ReviewCreate(ReviewBase):
  """Customer → vendor review payload."""
  pass


class ReviewAuthor(BaseModel):
  """Author snapshot stored alongside the review."""
  user_id: int
  display_name: str = ""
  photo_url: Optional[str] = None


class ReviewResponse(ReviewBase):
  id: int
  user_id: int
  vendor_id: int
  user_display_name: str
  user_photo_url: Optional[str] = None
  created_at: Optional[datetime] = None

  model_config = {"from_attributes": True}
