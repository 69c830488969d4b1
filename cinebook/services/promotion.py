import logging

from cinebook.errors import CinebookError, UserInputError
from cinebook.metrics import COUPON_CHECKS
from cinebook.schemas.booking import AMOUNT_TOLERANCE
from cinebook.schemas.promotion import CouponCheckRequest, PromotionOutcome
from cinebook.services.cinema_api import CinemaApiClient, CinemaApiRejection, CinemaApiUnavailable

logger = logging.getLogger(__name__)


class PromotionRejected(CinebookError):
    """Coupon not found, expired or not eligible for this order."""

    status_code = 422
    code = "COUPON_REJECTED"


class PromotionUnavailable(CinebookError):
    status_code = 503
    code = "COUPON_CHECK_UNAVAILABLE"
    retryable = True


class PromotionValidator:
    def __init__(self, api: CinemaApiClient):
        self.api = api

    async def validate(self, coupon_code: str, subtotal: float, movie_id: str, cinema_id: str) -> PromotionOutcome:
        """Check a coupon against the promotion service for the given subtotal.

        Raises UserInputError for a blank code (no request is sent), PromotionRejected
        when the service refuses the coupon or reports a discount above the subtotal,
        and PromotionUnavailable on network/server failures.
        """
        code = (coupon_code or "").strip()
        if not code:
            raise UserInputError("Please enter a coupon code")

        req = CouponCheckRequest(coupon_code=code, total_amount=subtotal, movie_id=movie_id, cinema_id=cinema_id)
        try:
            result = await self.api.check_coupon(req)
        except CinemaApiUnavailable as exc:
            COUPON_CHECKS.labels(result="unavailable").inc()
            raise PromotionUnavailable("Could not check the coupon right now, please try again") from exc
        except CinemaApiRejection as exc:
            COUPON_CHECKS.labels(result="rejected").inc()
            logger.info("coupon %s rejected: %s", code, exc.message)
            raise PromotionRejected(exc.message) from exc

        discount = result.discount_amount
        if discount < 0 or discount > subtotal + AMOUNT_TOLERANCE:
            COUPON_CHECKS.labels(result="rejected").inc()
            logger.warning("coupon %s returned discount %s for subtotal %s", code, discount, subtotal)
            raise PromotionRejected("Coupon discount is not valid for this order")

        COUPON_CHECKS.labels(result="accepted").inc()
        return PromotionOutcome(
            coupon_code=code,
            discount_amount=discount,
            promotion_id=result.promotion_id,
            name=result.name,
            subtotal_basis=subtotal,
        )
