"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from storefront.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息，代码统一大写存储
    code = Column(String(50), primary_key=True, comment="优惠券代码")
    description = Column(Text, default="", comment="优惠券描述")
    discount_type = Column(String(20), nullable=False, comment="折扣类型")

    # 折扣信息
    value = Column(Numeric(10, 2), nullable=False, comment="折扣值")
    min_purchase = Column(Numeric(10, 2), nullable=False, default=0, comment="最低消费金额")
    max_discount = Column(Numeric(10, 2), comment="最大折扣金额")

    # 有效期
    valid_from = Column(DateTime(timezone=True), nullable=False, index=True, comment="有效开始时间")
    valid_until = Column(DateTime(timezone=True), nullable=False, index=True, comment="有效结束时间")

    # 使用限制
    usage_limit = Column(Integer, comment="总使用次数限制")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    is_active = Column(Boolean, nullable=False, default=True, index=True, comment="是否启用")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '优惠券信息表'}
    )


class CouponRedemptionDB(Base):
    """优惠券核销记录表"""

    __tablename__ = "coupon_redemptions"

    redemption_id = Column(String(50), primary_key=True, comment="核销记录ID")
    coupon_code = Column(String(50), ForeignKey("coupons.code"), nullable=False, index=True, comment="优惠券代码")
    # 每个订单只能核销一次
    order_id = Column(String(64), nullable=False, unique=True, comment="关联订单ID")
    user_id = Column(String(64), index=True, comment="下单用户ID")

    subtotal = Column(Numeric(12, 2), nullable=False, comment="核销时商品小计")
    discount_amount = Column(Numeric(12, 2), nullable=False, comment="折扣金额")

    redeemed_at = Column(DateTime(timezone=True), server_default=func.now(), comment="核销时间")

    __table_args__ = (
        {'comment': '优惠券核销记录表'}
    )
