"""
购物车计价与优惠券规则引擎

纯函数集合，不做任何I/O，金额统一使用Decimal计算。
购物车、结算流程以及优惠券服务都通过这里计算运费、税费和折扣。
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from storefront.api.exceptions import CartQuantityExceeded
from storefront.config.cart_constants import PricingRules, get_pricing_rules
from storefront.config.sample_coupons import get_sample_coupons
from storefront.models.cart import CartItem, CartPrices, CartPriceBreakdown
from storefront.models.coupon import (
    Coupon,
    CouponAccepted,
    CouponRejected,
    CouponRejectionReason,
    CouponValidation,
    DiscountType,
    normalize_code,
)

ZERO = Decimal("0")

MESSAGE_INVALID = "Invalid coupon code"
MESSAGE_EXPIRED = "Coupon has expired"
MESSAGE_USAGE_LIMIT = "Coupon usage limit reached"
MESSAGE_APPLIED = "Coupon applied successfully"


def format_amount(value: Decimal) -> str:
    """金额展示：整数不带小数位，否则保留两位小数"""
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def calculate_items_price(items: Iterable[CartItem]) -> Decimal:
    """商品小计 = sum(单价 * 数量)"""
    return sum((item.price * item.qty for item in items), ZERO)


def calculate_cart_prices(items_price: Decimal, rules: Optional[PricingRules] = None) -> CartPrices:
    """
    根据商品小计计算运费、税费和合计（不含优惠券折扣）

    小计严格大于免运费门槛才免运费，等于门槛仍收取运费。
    """
    rules = rules or get_pricing_rules()
    items_price = Decimal(items_price)

    shipping_price = ZERO if items_price > rules.free_shipping_threshold else rules.shipping_price
    tax_price = items_price * rules.tax_rate
    total_price = items_price + shipping_price + tax_price

    return CartPrices(
        items_price=items_price,
        shipping_price=shipping_price,
        tax_price=tax_price,
        total_price=total_price
    )


def evaluate_coupon(coupon: Coupon, subtotal: Decimal, now: Optional[datetime] = None) -> CouponValidation:
    """
    对已查到的优惠券按顺序校验：有效期 -> 使用次数 -> 最低消费

    第一个失败的检查决定返回的提示信息，不修改used_count。
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if not coupon.is_within_validity(now):
        return CouponRejected(message=MESSAGE_EXPIRED, reason=CouponRejectionReason.EXPIRED)

    if coupon.is_used_up():
        return CouponRejected(message=MESSAGE_USAGE_LIMIT, reason=CouponRejectionReason.USAGE_LIMIT_REACHED)

    if Decimal(subtotal) < coupon.min_purchase:
        return CouponRejected(
            message=f"Minimum purchase of {format_amount(coupon.min_purchase)} required",
            reason=CouponRejectionReason.MINIMUM_NOT_MET
        )

    return CouponAccepted(message=MESSAGE_APPLIED, coupon=coupon)


def find_coupon(code: str, catalog: Iterable[Coupon]) -> Optional[Coupon]:
    """在优惠券目录中按代码查找（大小写不敏感，忽略已停用的券）"""
    normalized = normalize_code(code)
    for coupon in catalog:
        if coupon.is_active and coupon.code == normalized:
            return coupon
    return None


def validate_coupon(
    code: str,
    subtotal: Decimal,
    catalog: Optional[Iterable[Coupon]] = None,
    now: Optional[datetime] = None
) -> CouponValidation:
    """
    校验用户输入的优惠券代码

    Args:
        code: 用户输入的代码，大小写不敏感
        subtotal: 当前商品小计
        catalog: 优惠券目录，默认使用示例优惠券
        now: 校验时间，默认当前UTC时间

    Returns:
        CouponAccepted 或 CouponRejected
    """
    if catalog is None:
        catalog = get_sample_coupons()

    coupon = find_coupon(code, catalog)
    if coupon is None:
        return CouponRejected(message=MESSAGE_INVALID, reason=CouponRejectionReason.NOT_FOUND)

    return evaluate_coupon(coupon, subtotal, now)


def calculate_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """
    计算优惠券折扣金额

    百分比券按 subtotal * value / 100 计算，有max_discount时封顶；
    固定金额券不超过subtotal。
    """
    subtotal = Decimal(subtotal)
    if subtotal <= ZERO:
        return ZERO

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * coupon.value / Decimal("100")
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
        return discount

    return min(coupon.value, subtotal)


def build_price_breakdown(
    items_price: Decimal,
    coupon: Optional[Coupon] = None,
    rules: Optional[PricingRules] = None,
    coupon_message: Optional[str] = None
) -> CartPriceBreakdown:
    """生成含优惠券折扣的价格明细，合计不低于0"""
    prices = calculate_cart_prices(items_price, rules)
    discount_amount = calculate_discount(coupon, prices.items_price) if coupon else ZERO
    total_price = max(prices.total_price - discount_amount, ZERO)

    return CartPriceBreakdown(
        items_price=prices.items_price,
        shipping_price=prices.shipping_price,
        tax_price=prices.tax_price,
        discount_amount=discount_amount,
        total_price=total_price,
        coupon_code=coupon.code if coupon else None,
        coupon_message=coupon_message
    )


def merge_cart_items(
    existing: Iterable[CartItem],
    incoming: Iterable[CartItem],
    rules: Optional[PricingRules] = None
) -> List[CartItem]:
    """
    合并购物车商品：同一商品数量相加，保持首次出现的顺序

    用于加入购物车以及登录后合并匿名购物车。
    """
    rules = rules or get_pricing_rules()
    merged: List[CartItem] = []
    positions = {}

    for item in list(existing) + list(incoming):
        index = positions.get(item.product_id)
        if index is None:
            positions[item.product_id] = len(merged)
            merged.append(item)
            continue

        current = merged[index]
        qty = current.qty + item.qty
        if qty > rules.max_quantity_per_item:
            raise CartQuantityExceeded(item.product_id, rules.max_quantity_per_item)
        merged[index] = current.model_copy(update={"qty": qty})

    return merged
