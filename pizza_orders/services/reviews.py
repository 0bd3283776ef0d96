"""
Review Service

Reviews are the downstream consumer of the order workflow: a user may
review an order once, and only after it was delivered to them.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pizza_orders.exceptions import OrderAccessDenied, ReviewError, ReviewNotFound
from pizza_orders.models import Order, OrderStatus, Review
from pizza_orders.schemas import ReviewCreate, ReviewUpdate
from pizza_orders.services.orders.validator import parse_reference

logger = logging.getLogger(__name__)


async def create_review(session: AsyncSession, data: ReviewCreate) -> Review:
    """
    Create a review for a delivered order.

    Raises:
        ReviewError: Order not delivered to this user, or already reviewed
    """
    user_id = str(data.user_id)
    order_id = str(data.order_id)

    try:
        async with session.begin():
            order = await session.get(Order, order_id)
            if (
                order is None
                or order.user_id != user_id
                or order.status != OrderStatus.DELIVERED
            ):
                raise ReviewError("You can only review orders that have been delivered to you")

            existing = await session.execute(
                select(Review.id).where(Review.order_id == order_id)
            )
            if existing.first() is not None:
                raise ReviewError("You have already reviewed this order")

            review = Review(
                user_id=user_id,
                order_id=order_id,
                rating=data.rating,
                title=data.title,
                comment=data.comment,
                photo=data.photo,
            )
            session.add(review)
    except IntegrityError as exc:
        # Lost the race against a concurrent review of the same order
        raise ReviewError("You have already reviewed this order") from exc

    logger.info(f"Review {review.id} created for order #{order_id}")
    return review


async def get_reviews_for_user(session: AsyncSession, user_id: str) -> List[Review]:
    """All reviews written by a user, newest first."""
    user_id = parse_reference(user_id, "userId")
    result = await session.execute(
        select(Review)
        .where(Review.user_id == user_id)
        .order_by(Review.created_at.desc())
    )
    return list(result.scalars().all())


async def update_review(
    session: AsyncSession,
    review_id: str,
    acting_user_id: str,
    changes: ReviewUpdate,
) -> Review:
    """
    Edit rating, title or comment of one's own review.

    Raises:
        ReviewNotFound: No such review
        OrderAccessDenied: Review belongs to someone else
    """
    review_id = parse_reference(review_id, "reviewId")
    acting_user_id = parse_reference(acting_user_id, "userId")

    async with session.begin():
        review = await session.get(Review, review_id)
        if review is None:
            raise ReviewNotFound()
        if review.user_id != acting_user_id:
            raise OrderAccessDenied("You cannot edit this review")

        for field, value in changes.model_dump(exclude_none=True).items():
            setattr(review, field, value)

    logger.info(f"Review {review.id} updated")
    return review
