"""
示例优惠券静态配置 - 开发/演示环境的初始优惠券目录
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List

from storefront.models.coupon import Coupon, DiscountType

_VALID_FROM = datetime(2024, 1, 1, tzinfo=timezone.utc)
_VALID_UNTIL = datetime(2030, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

SAMPLE_COUPONS_CONFIG: List[Dict[str, Any]] = [
    {
        "code": "WELCOME10",
        "description": "10% off your first order",
        "discount_type": DiscountType.PERCENTAGE,
        "value": Decimal("10"),
        "min_purchase": Decimal("0"),
    },
    {
        "code": "SAVE20",
        "description": "20% off orders over $100",
        "discount_type": DiscountType.PERCENTAGE,
        "value": Decimal("20"),
        "min_purchase": Decimal("100"),
        "max_discount": Decimal("50"),
    },
    {
        "code": "SHIP5",
        "description": "$5 off shipping",
        "discount_type": DiscountType.FIXED,
        "value": Decimal("5"),
        "min_purchase": Decimal("25"),
    },
]


def get_sample_coupons() -> List[Coupon]:
    """
    获取示例优惠券目录

    Returns:
        新建的Coupon列表，调用方修改不会影响配置
    """
    return [
        Coupon(valid_from=_VALID_FROM, valid_until=_VALID_UNTIL, **config)
        for config in SAMPLE_COUPONS_CONFIG
    ]
