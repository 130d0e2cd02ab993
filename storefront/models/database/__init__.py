"""
数据库模型包初始化文件
"""

from .coupon_db import CouponDB, CouponRedemptionDB

__all__ = [
    "CouponDB",
    "CouponRedemptionDB"
]
