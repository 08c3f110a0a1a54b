from __future__ import annotations

import logging

from ..backend.base import Backend
from ..errors import ValidationFailure
from .models import Review, ReviewCreate

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_review(review: ReviewCreate) -> ReviewCreate:
    """Caller-side checks; nothing is sent when these fail."""
    if not review.comment or not review.comment.strip():
        raise ValidationFailure("Review comment cannot be empty")
    if not MIN_RATING <= review.rating <= MAX_RATING:
        raise ValidationFailure(f"Rating must be between {MIN_RATING} and {MAX_RATING} stars")
    return review.model_copy(update={"comment": review.comment.strip()})


async def submit_review(backend: Backend, review: ReviewCreate) -> Review:
    backend.require_user()
    created = await backend.create_review(validate_review(review))
    logger.info("Review %s posted for restaurant %s", created.id, created.restaurant_id)
    return created
