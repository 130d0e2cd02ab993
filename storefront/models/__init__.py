"""
数据模型包初始化文件
"""

from .coupon import (
    Coupon,
    CouponCreate,
    CouponUpdate,
    CouponAccepted,
    CouponRejected,
    CouponValidation,
    CouponRedemption,
    CouponResponse,
    CouponRejectionReason,
    DiscountType
)
from .cart import (
    CartItem,
    CartPrices,
    CartPriceBreakdown
)

__all__ = [
    "Coupon",
    "CouponCreate",
    "CouponUpdate",
    "CouponAccepted",
    "CouponRejected",
    "CouponValidation",
    "CouponRedemption",
    "CouponResponse",
    "CouponRejectionReason",
    "DiscountType",
    "CartItem",
    "CartPrices",
    "CartPriceBreakdown"
]
