"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import Optional, Union, Literal
from pydantic import BaseModel, Field, validator
from enum import Enum


class DiscountType(str, Enum):
    """优惠券折扣类型枚举"""
    PERCENTAGE = "percentage"  # 百分比折扣券
    FIXED = "fixed"  # 固定金额折扣券


class CouponRejectionReason(str, Enum):
    """优惠券校验失败原因"""
    NOT_FOUND = "not_found"  # 优惠券不存在或已停用
    EXPIRED = "expired"  # 不在有效期内
    USAGE_LIMIT_REACHED = "usage_limit_reached"  # 使用次数已达上限
    MINIMUM_NOT_MET = "minimum_not_met"  # 未达到最低消费


def ensure_utc(value: datetime) -> datetime:
    """无时区的时间按UTC处理，统一转换为UTC时间"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_code(code: str) -> str:
    """优惠券代码统一去空格并大写"""
    return code.strip().upper()


class Coupon(BaseModel):
    """优惠券基础模型，除used_count外不可变"""

    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    description: str = Field(default="", max_length=500, description="优惠券描述")
    discount_type: DiscountType = Field(..., description="折扣类型")
    value: Decimal = Field(..., gt=0, description="折扣值（百分点或金额）")
    min_purchase: Decimal = Field(default=Decimal("0"), ge=0, description="最低消费金额")
    max_discount: Optional[Decimal] = Field(None, gt=0, description="最大折扣金额，仅对百分比券生效")
    valid_from: datetime = Field(..., description="有效开始时间（含）")
    valid_until: datetime = Field(..., description="有效结束时间（含）")
    usage_limit: Optional[int] = Field(None, ge=1, description="总使用次数限制")
    used_count: int = Field(default=0, ge=0, description="已使用次数")
    is_active: bool = Field(default=True, description="是否启用")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @validator('code')
    def validate_code(cls, v):
        code = normalize_code(v)
        if not code:
            raise ValueError('优惠券代码不能为空')
        return code

    @validator('value')
    def validate_value(cls, v, values):
        """百分比折扣不能超过100"""
        if values.get('discount_type') == DiscountType.PERCENTAGE and v > Decimal('100'):
            raise ValueError('百分比折扣值不能超过100')
        return v

    @validator('valid_from')
    def validate_valid_from(cls, v):
        return ensure_utc(v)

    @validator('valid_until')
    def validate_validity_period(cls, v, values):
        """验证有效期"""
        v = ensure_utc(v)
        if 'valid_from' in values and v < values['valid_from']:
            raise ValueError('结束时间不能早于开始时间')
        return v

    @property
    def remaining_uses(self) -> Optional[int]:
        """剩余可用次数，不限次数时为None"""
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - self.used_count, 0)

    def matches_code(self, code: str) -> bool:
        """大小写不敏感的代码匹配"""
        return self.code == normalize_code(code)

    def is_within_validity(self, now: datetime) -> bool:
        """检查时间是否在有效期内（两端包含）"""
        now = ensure_utc(now)
        return self.valid_from <= now <= self.valid_until

    def is_used_up(self) -> bool:
        """检查使用次数是否已达上限"""
        return self.usage_limit is not None and self.used_count >= self.usage_limit


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    code: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=500)
    discount_type: DiscountType = Field(...)
    value: Decimal = Field(..., gt=0)
    min_purchase: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    valid_from: datetime = Field(...)
    valid_until: datetime = Field(...)
    usage_limit: Optional[int] = Field(None, ge=1)


class CouponUpdate(BaseModel):
    """更新优惠券模型，used_count只能通过核销变化"""

    description: Optional[str] = Field(None, max_length=500)
    value: Optional[Decimal] = Field(None, gt=0)
    min_purchase: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class CouponAccepted(BaseModel):
    """优惠券校验通过"""

    valid: Literal[True] = True
    message: str = "Coupon applied successfully"
    coupon: Coupon


class CouponRejected(BaseModel):
    """优惠券校验失败"""

    valid: Literal[False] = False
    message: str
    reason: CouponRejectionReason


CouponValidation = Union[CouponAccepted, CouponRejected]


class CouponValidationRequest(BaseModel):
    """优惠券校验请求"""

    code: str = Field(..., min_length=1, max_length=50, description="用户输入的优惠券代码")
    subtotal: Decimal = Field(..., ge=0, description="当前商品小计")


class CouponValidationResponse(BaseModel):
    """优惠券校验响应"""

    valid: bool
    message: str
    reason: Optional[CouponRejectionReason] = None
    coupon: Optional["CouponResponse"] = None
    discount_amount: Decimal = Decimal("0")


class CouponRedeemRequest(BaseModel):
    """下单时核销优惠券请求"""

    order_id: str = Field(..., min_length=1, max_length=64, description="订单ID")
    user_id: Optional[str] = Field(None, max_length=64, description="下单用户ID")
    subtotal: Decimal = Field(..., ge=0, description="订单商品小计")


class CouponRedemption(BaseModel):
    """优惠券核销记录"""

    redemption_id: str = Field(..., description="核销记录ID")
    coupon_code: str = Field(..., description="优惠券代码")
    order_id: str = Field(..., description="关联订单ID")
    user_id: Optional[str] = Field(None, description="下单用户ID")
    subtotal: Decimal = Field(..., ge=0, description="核销时的商品小计")
    discount_amount: Decimal = Field(..., ge=0, description="折扣金额")
    redeemed_at: Optional[datetime] = Field(None, description="核销时间")


class CouponResponse(BaseModel):
    """优惠券响应模型"""

    code: str
    description: str
    discount_type: DiscountType
    value: Decimal
    min_purchase: Decimal
    max_discount: Optional[Decimal]
    valid_from: datetime
    valid_until: datetime
    usage_limit: Optional[int]
    used_count: int
    remaining_uses: Optional[int]
    is_active: bool

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> "CouponResponse":
        """从Coupon模型创建响应对象"""
        return cls(
            code=coupon.code,
            description=coupon.description,
            discount_type=coupon.discount_type,
            value=coupon.value,
            min_purchase=coupon.min_purchase,
            max_discount=coupon.max_discount,
            valid_from=coupon.valid_from,
            valid_until=coupon.valid_until,
            usage_limit=coupon.usage_limit,
            used_count=coupon.used_count,
            remaining_uses=coupon.remaining_uses,
            is_active=coupon.is_active
        )


class CouponStats(BaseModel):
    """优惠券统计信息"""

    code: str
    is_active: bool
    usage_limit: Optional[int]
    used_count: int
    remaining_uses: Optional[int]
    total_redemptions: int = 0
    total_discount: Decimal = Decimal("0")
    unique_users: int = 0


CouponValidationResponse.model_rebuild()
