from typing import List

from fastapi import APIRouter, Depends, Query, status

from storefront.api.dependencies import get_coupon_service
from storefront.models.coupon import (
    CouponAccepted,
    CouponCreate,
    CouponRedeemRequest,
    CouponRedemption,
    CouponResponse,
    CouponStats,
    CouponUpdate,
    CouponValidationRequest,
    CouponValidationResponse,
)
from storefront.services import pricing
from storefront.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["优惠券"])


@router.post("/validate", response_model=CouponValidationResponse)
async def validate_coupon(
    request: CouponValidationRequest,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """校验优惠券并返回可抵扣金额"""
    validation = await coupon_service.validate_coupon(request.code, request.subtotal)

    if isinstance(validation, CouponAccepted):
        return CouponValidationResponse(
            valid=True,
            message=validation.message,
            coupon=CouponResponse.from_coupon(validation.coupon),
            discount_amount=pricing.calculate_discount(validation.coupon, request.subtotal)
        )

    return CouponValidationResponse(
        valid=False,
        message=validation.message,
        reason=validation.reason
    )


@router.get("", response_model=List[CouponResponse])
async def list_coupons(
    include_inactive: bool = Query(False, description="是否包含已停用的优惠券"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """优惠券列表"""
    coupons = await coupon_service.list_coupons(include_inactive, limit, offset)
    return [CouponResponse.from_coupon(coupon) for coupon in coupons]


@router.get("/active", response_model=List[CouponResponse])
async def get_active_coupons(
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """当前可用的优惠券"""
    coupons = await coupon_service.get_active_coupons()
    return [CouponResponse.from_coupon(coupon) for coupon in coupons]


@router.post("", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    coupon_data: CouponCreate,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """创建优惠券"""
    coupon = await coupon_service.create_coupon(coupon_data)
    return CouponResponse.from_coupon(coupon)


@router.get("/{code}", response_model=CouponResponse)
async def get_coupon(
    code: str,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """优惠券详情"""
    coupon = await coupon_service.get_coupon_or_404(code)
    return CouponResponse.from_coupon(coupon)


@router.patch("/{code}", response_model=CouponResponse)
async def update_coupon(
    code: str,
    coupon_data: CouponUpdate,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """更新优惠券"""
    coupon = await coupon_service.update_coupon(code, coupon_data)
    return CouponResponse.from_coupon(coupon)


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_coupon(
    code: str,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """停用优惠券"""
    await coupon_service.deactivate_coupon(code)


@router.get("/{code}/stats", response_model=CouponStats)
async def get_coupon_stats(
    code: str,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """优惠券使用统计"""
    return await coupon_service.get_coupon_stats(code)


@router.get("/{code}/redemptions", response_model=List[CouponRedemption])
async def get_coupon_redemptions(
    code: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """优惠券核销记录"""
    return await coupon_service.get_redemptions(code, limit=limit, offset=offset)


@router.post("/{code}/redeem", response_model=CouponRedemption)
async def redeem_coupon(
    code: str,
    request: CouponRedeemRequest,
    coupon_service: CouponService = Depends(get_coupon_service)
):
    """下单时核销优惠券，同一订单重复提交不会重复计数"""
    return await coupon_service.redeem_coupon(
        code=code,
        order_id=request.order_id,
        user_id=request.user_id,
        subtotal=request.subtotal
    )
