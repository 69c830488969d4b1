from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cinebook.schemas.booking import AMOUNT_TOLERANCE


class CouponCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    coupon_code: str = Field(..., alias="couponCode")
    total_amount: float = Field(..., alias="totalAmount")
    movie_id: str = Field(..., alias="movieId")
    cinema_id: str = Field(..., alias="cinemaId")


class CouponCheckResult(BaseModel):
    """Body of a successful POST /promotions/check-coupon."""

    model_config = ConfigDict(populate_by_name=True)

    discount_amount: float = Field(0, alias="discountAmount")
    promotion_id: Optional[str] = Field(None, alias="promotionId")
    name: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_promotion(cls, data):
        # the server nests the promotion document: {"promotion": {"_id", "name", ...}, "discountAmount"}
        if isinstance(data, dict) and isinstance(data.get("promotion"), dict):
            promo = data["promotion"]
            data = dict(data)
            data.setdefault("promotionId", promo.get("_id"))
            data.setdefault("name", promo.get("name"))
        return data


class PromotionOutcome(BaseModel):
    """A validated coupon, tagged with the subtotal it was computed against."""

    model_config = ConfigDict(frozen=True)

    coupon_code: str
    discount_amount: float = Field(..., ge=0)
    promotion_id: Optional[str] = None
    name: Optional[str] = None
    subtotal_basis: float

    def applies_to(self, subtotal: float) -> bool:
        return abs(self.subtotal_basis - subtotal) <= AMOUNT_TOLERANCE
