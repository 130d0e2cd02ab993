"""
仓库包初始化文件 - 数据库访问层
"""

from .coupon_repository import CouponRepository

__all__ = [
    "CouponRepository"
]
