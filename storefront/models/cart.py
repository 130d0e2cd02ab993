"""
购物车计价相关数据模型
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, validator

from storefront.config.cart_constants import CART_CONSTANTS


class CartItem(BaseModel):
    """购物车商品项"""

    product_id: str = Field(..., min_length=1, description="商品ID")
    name: str = Field(..., description="商品名称")
    slug: str = Field(default="", description="商品slug")
    image: Optional[str] = Field(None, description="商品图片")
    price: Decimal = Field(..., gt=0, description="单价")
    qty: int = Field(..., ge=1, description="数量")

    @validator('qty')
    def validate_qty(cls, v):
        """单个商品数量不能超过上限"""
        if v > CART_CONSTANTS["MAX_QUANTITY_PER_ITEM"]:
            raise ValueError(f'单个商品数量不能超过{CART_CONSTANTS["MAX_QUANTITY_PER_ITEM"]}')
        return v

    @property
    def subtotal(self) -> Decimal:
        """商品小计"""
        return self.price * self.qty


class CartPrices(BaseModel):
    """购物车基础价格（不含优惠券）"""

    items_price: Decimal = Field(..., description="商品小计")
    shipping_price: Decimal = Field(..., description="运费")
    tax_price: Decimal = Field(..., description="税费")
    total_price: Decimal = Field(..., description="合计")


class CartPriceBreakdown(CartPrices):
    """购物车价格明细（含优惠券折扣），随购物车每次变动重新计算，不单独持久化"""

    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, description="优惠券折扣金额")
    coupon_code: Optional[str] = Field(None, description="已应用的优惠券代码")
    coupon_message: Optional[str] = Field(None, description="优惠券校验提示")


class CartPricingRequest(BaseModel):
    """购物车计价请求"""

    items: List[CartItem] = Field(default_factory=list, description="购物车商品")
    coupon_code: Optional[str] = Field(None, max_length=50, description="优惠券代码")


class CartMergeRequest(BaseModel):
    """购物车合并请求（匿名购物车并入用户购物车）"""

    items: List[CartItem] = Field(default_factory=list, description="用户购物车商品")
    incoming: List[CartItem] = Field(default_factory=list, description="待并入的商品")
    coupon_code: Optional[str] = Field(None, max_length=50, description="优惠券代码")


class CartPricingResponse(BaseModel):
    """购物车计价响应"""

    items: List[CartItem]
    items_count: int
    prices: CartPriceBreakdown
