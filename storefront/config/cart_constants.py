"""
购物车计价静态配置 - 进程启动时从Settings加载，运行期间只读
"""

from decimal import Decimal
from typing import Dict, Any

from pydantic import BaseModel, Field

from storefront.core.config import settings


class PricingRules(BaseModel):
    """运费、税率等计价规则"""

    free_shipping_threshold: Decimal = Field(..., ge=0, description="免运费门槛（严格大于才免运费）")
    shipping_price: Decimal = Field(..., ge=0, description="固定运费")
    tax_rate: Decimal = Field(..., ge=0, description="税率")
    max_quantity_per_item: int = Field(..., ge=1, description="单个商品最大购买数量")

    class Config:
        frozen = True


CART_CONSTANTS: Dict[str, Any] = {
    "FREE_SHIPPING_THRESHOLD": settings.free_shipping_threshold,
    "SHIPPING_PRICE": settings.shipping_price,
    "TAX_RATE": settings.tax_rate,
    "MAX_QUANTITY_PER_ITEM": settings.max_quantity_per_item,
    "CART_SESSION_DURATION": settings.cart_session_duration,
}

PRICING_RULES = PricingRules(
    free_shipping_threshold=CART_CONSTANTS["FREE_SHIPPING_THRESHOLD"],
    shipping_price=CART_CONSTANTS["SHIPPING_PRICE"],
    tax_rate=CART_CONSTANTS["TAX_RATE"],
    max_quantity_per_item=CART_CONSTANTS["MAX_QUANTITY_PER_ITEM"],
)


def get_pricing_rules() -> PricingRules:
    """
    获取当前进程的计价规则

    Returns:
        启动时加载的只读计价规则
    """
    return PRICING_RULES
