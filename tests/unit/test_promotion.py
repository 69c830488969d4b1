from unittest.mock import AsyncMock

import pytest

from cinebook.errors import UserInputError
from cinebook.schemas.promotion import CouponCheckResult
from cinebook.services.cinema_api import CinemaApiRejection, CinemaApiUnavailable
from cinebook.services.promotion import PromotionRejected, PromotionUnavailable, PromotionValidator


@pytest.fixture
def api():
    api = AsyncMock()
    api.check_coupon = AsyncMock(
        return_value=CouponCheckResult(discount_amount=20000, promotion_id="p1", name="Weekend deal")
    )
    return api


async def test_valid_coupon(api):
    outcome = await PromotionValidator(api).validate("  WEEKEND  ", 270000, "m1", "c1")

    assert outcome.coupon_code == "WEEKEND"
    assert outcome.discount_amount == 20000
    assert outcome.promotion_id == "p1"
    assert outcome.name == "Weekend deal"
    assert outcome.subtotal_basis == 270000
    req = api.check_coupon.await_args.args[0]
    assert req.model_dump(by_alias=True) == {
        "couponCode": "WEEKEND", "totalAmount": 270000, "movieId": "m1", "cinemaId": "c1",
    }


@pytest.mark.parametrize("code", ["", "   ", None])
async def test_blank_code_is_rejected_without_a_request(api, code):
    with pytest.raises(UserInputError):
        await PromotionValidator(api).validate(code, 270000, "m1", "c1")
    api.check_coupon.assert_not_awaited()


async def test_rejected_coupon(api):
    api.check_coupon.side_effect = CinemaApiRejection("Coupon is invalid or expired", upstream_status=404)
    with pytest.raises(PromotionRejected) as exc_info:
        await PromotionValidator(api).validate("OLD", 270000, "m1", "c1")
    assert exc_info.value.message == "Coupon is invalid or expired"
    assert not exc_info.value.retryable


async def test_service_failure_is_retryable(api):
    api.check_coupon.side_effect = CinemaApiUnavailable("boom")
    with pytest.raises(PromotionUnavailable) as exc_info:
        await PromotionValidator(api).validate("WEEKEND", 270000, "m1", "c1")
    assert exc_info.value.retryable


async def test_discount_above_subtotal_is_rejected_not_clamped(api):
    api.check_coupon.return_value = CouponCheckResult(discount_amount=300000, promotion_id="p1")
    with pytest.raises(PromotionRejected):
        await PromotionValidator(api).validate("BIG", 270000, "m1", "c1")


async def test_discount_equal_to_subtotal_is_accepted(api):
    api.check_coupon.return_value = CouponCheckResult(discount_amount=90000, promotion_id="p1")
    outcome = await PromotionValidator(api).validate("FREE", 90000, "m1", "c1")
    assert outcome.discount_amount == 90000


def test_nested_promotion_payload_is_flattened():
    result = CouponCheckResult.model_validate({"promotion": {"_id": "p9", "name": "X"}, "discountAmount": 5})
    assert (result.promotion_id, result.name, result.discount_amount) == ("p9", "X", 5)
