"""
服务包初始化文件
"""

from .common_cache import SimpleCache, coupon_cache
from .coupon_service import CouponService

__all__ = [
    "SimpleCache",
    "coupon_cache",
    "CouponService"
]
