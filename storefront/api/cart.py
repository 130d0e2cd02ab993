from fastapi import APIRouter, Depends

from storefront.api.dependencies import get_coupon_service
from storefront.models.cart import CartMergeRequest, CartPricingRequest, CartPricingResponse
from storefront.services.coupon_service import CouponService

router = APIRouter(prefix="/cart", tags=["购物车计价"])


@router.post("/prices", response_model=CartPricingResponse)
async def calculate_cart_prices(
    request: CartPricingRequest,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """计算购物车价格明细（运费、税费、优惠券折扣）"""
    return await coupon_service.price_cart(request.items, request.coupon_code)


@router.post("/merge", response_model=CartPricingResponse)
async def merge_cart(
    request: CartMergeRequest,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """合并购物车商品并重新计价"""
    return await coupon_service.merge_cart(request.items, request.incoming, request.coupon_code)
