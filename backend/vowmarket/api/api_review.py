from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud
from ..database import get_db
from ..models.user import UserRole
from ..schemas.review import ReviewAuthor, ReviewCreate, ReviewResponse
from ..services.identity import Principal
from ..services.rating_aggregator import RatingAggregator
from ..utils import error_response
from .dependencies import get_current_principal

router = APIRouter(tags=["reviews"])


def get_rating_aggregator(db: Session = Depends(get_db)) -> RatingAggregator:
    return RatingAggregator(db)


@router.post(
    "/vendors/{vendor_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    vendor_id: int,
    review_in: ReviewCreate,
    principal: Principal = Depends(get_current_principal),
    aggregator: RatingAggregator = Depends(get_rating_aggregator),
):
    author = ReviewAuthor(
        user_id=principal.user_id,
        display_name=principal.identity.display_name,
        photo_url=principal.identity.photo_url,
    )
    return aggregator.add_review(vendor_id, review_in.rating, review_in.text, author)


@router.get("/vendors/{vendor_id}/reviews", response_model=List[ReviewResponse])
def list_vendor_reviews(
    vendor_id: int,
    aggregator: RatingAggregator = Depends(get_rating_aggregator),
):
    return aggregator.list_vendor_reviews(vendor_id)


@router.get("/reviews/me", response_model=List[ReviewResponse])
def list_my_reviews(
    principal: Principal = Depends(get_current_principal),
    aggregator: RatingAggregator = Depends(get_rating_aggregator),
):
    return aggregator.list_user_reviews(principal.user_id)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    aggregator: RatingAggregator = Depends(get_rating_aggregator),
):
    review = crud.review.get(db, review_id)
    if review is None:
        raise error_response("Review not found.", {"review_id": "not_found"}, status.HTTP_404_NOT_FOUND)
    if review.user_id != principal.user_id and principal.role != UserRole.ADMIN:
        raise error_response(
            "You can only delete your own reviews.",
            {},
            status.HTTP_403_FORBIDDEN,
        )
    aggregator.delete_review(review.id, review.vendor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
