"""
优惠券业务服务层
提供优惠券查询、校验、购物车计价和下单核销的业务逻辑
"""

import logging
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from storefront.api.exceptions import (
    BusinessException,
    CouponAlreadyExistsError,
    CouponNotFoundError,
    CouponRedemptionConflict,
    CouponRejectedError,
)
from storefront.config.sample_coupons import get_sample_coupons
from storefront.models.cart import CartItem, CartPricingResponse
from storefront.models.coupon import (
    Coupon,
    CouponAccepted,
    CouponCreate,
    CouponRejected,
    CouponRejectionReason,
    CouponRedemption,
    CouponStats,
    CouponUpdate,
    CouponValidation,
    normalize_code,
)
from storefront.repositories.coupon_repository import CouponRepository
from storefront.services.common_cache import coupon_cache
from storefront.services import pricing

logger = logging.getLogger(__name__)


class CouponService:
    """优惠券业务服务"""

    def __init__(self, coupon_repo: CouponRepository):
        self.coupon_repo = coupon_repo
        self.cache = coupon_cache
        self.cache_prefix = "coupon"
        self.cache_ttl = 1800  # 30分钟缓存

    async def get_coupon_by_code(self, code: str, use_cache: bool = True) -> Optional[Coupon]:
        """根据优惠券代码获取优惠券"""
        cache_key = f"{self.cache_prefix}:code:{normalize_code(code)}"

        if use_cache:
            cached_coupon = await self.cache.get(cache_key)
            if cached_coupon:
                return Coupon(**cached_coupon)

        db_coupon = await self.coupon_repo.get_by_code(code)
        if not db_coupon:
            return None

        coupon = self.coupon_repo.to_model(db_coupon)

        if use_cache:
            await self.cache.set(cache_key, coupon.model_dump(mode="json"), ttl=self.cache_ttl)

        return coupon

    async def get_coupon_or_404(self, code: str) -> Coupon:
        coupon = await self.get_coupon_by_code(code)
        if not coupon:
            raise CouponNotFoundError(normalize_code(code))
        return coupon

    async def list_coupons(
        self,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> List[Coupon]:
        """获取优惠券列表（后台管理使用，不走缓存）"""
        db_coupons = await self.coupon_repo.list_coupons(
            include_inactive=include_inactive,
            limit=limit,
            offset=offset
        )
        return [self.coupon_repo.to_model(db_coupon) for db_coupon in db_coupons]

    async def get_active_coupons(self) -> List[Coupon]:
        """获取当前可用的优惠券"""
        db_coupons = await self.coupon_repo.get_active_coupons()
        return [self.coupon_repo.to_model(db_coupon) for db_coupon in db_coupons]

    async def create_coupon(self, coupon_data: CouponCreate) -> Coupon:
        """创建优惠券"""
        coupon = self._build_coupon(coupon_data.model_dump())

        if await self.coupon_repo.get_by_code(coupon.code):
            raise CouponAlreadyExistsError(coupon.code)

        db_coupon = await self.coupon_repo.create(
            self._to_db_data(coupon)
        )
        logger.info(f"创建优惠券 {coupon.code}")

        await self._clear_coupon_caches(coupon.code)
        return self.coupon_repo.to_model(db_coupon)

    async def update_coupon(self, code: str, coupon_data: CouponUpdate) -> Coupon:
        """更新优惠券"""
        db_coupon = await self.coupon_repo.get_by_code(code)
        if not db_coupon:
            raise CouponNotFoundError(normalize_code(code))

        requested = coupon_data.model_dump(exclude_unset=True)
        current = self.coupon_repo.to_model(db_coupon)
        # 合并后整体校验，保证有效期、折扣值等约束
        merged = self._build_coupon({**current.model_dump(), **requested})
        changes = {field: getattr(merged, field) for field in requested}

        updated = await self.coupon_repo.update(code, changes)
        logger.info(f"更新优惠券 {current.code}: {sorted(changes)}")

        await self._clear_coupon_caches(current.code)
        return self.coupon_repo.to_model(updated)

    async def deactivate_coupon(self, code: str) -> None:
        """停用优惠券"""
        if not await self.coupon_repo.deactivate(code):
            raise CouponNotFoundError(normalize_code(code))

        logger.info(f"停用优惠券 {normalize_code(code)}")
        await self._clear_coupon_caches(code)

    async def validate_coupon(
        self,
        code: str,
        subtotal: Decimal,
        now: Optional[datetime] = None
    ) -> CouponValidation:
        """校验优惠券，不使用缓存以保证used_count实时"""
        db_coupon = await self.coupon_repo.get_by_code(code)
        if not db_coupon or not db_coupon.is_active:
            return CouponRejected(
                message=pricing.MESSAGE_INVALID,
                reason=CouponRejectionReason.NOT_FOUND
            )

        coupon = self.coupon_repo.to_model(db_coupon)
        return pricing.evaluate_coupon(coupon, subtotal, now)

    async def price_cart(
        self,
        items: List[CartItem],
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CartPricingResponse:
        """
        计算购物车价格明细

        优惠券无效时折扣为0，coupon_message返回失败原因。
        """
        items_price = pricing.calculate_items_price(items)

        coupon = None
        coupon_message = None
        if coupon_code and coupon_code.strip():
            validation = await self.validate_coupon(coupon_code, items_price, now)
            coupon_message = validation.message
            if isinstance(validation, CouponAccepted):
                coupon = validation.coupon

        breakdown = pricing.build_price_breakdown(items_price, coupon, coupon_message=coupon_message)

        return CartPricingResponse(
            items=items,
            items_count=sum(item.qty for item in items),
            prices=breakdown
        )

    async def merge_cart(
        self,
        items: List[CartItem],
        incoming: List[CartItem],
        coupon_code: Optional[str] = None
    ) -> CartPricingResponse:
        """合并购物车后重新计价"""
        merged = pricing.merge_cart_items(items, incoming)
        return await self.price_cart(merged, coupon_code)

    async def redeem_coupon(
        self,
        code: str,
        order_id: str,
        user_id: Optional[str],
        subtotal: Decimal
    ) -> CouponRedemption:
        """
        下单时核销优惠券

        同一订单重复提交返回已有核销记录，使用次数只增加一次。
        """
        normalized = normalize_code(code)

        existing = await self.coupon_repo.get_redemption_by_order(order_id)
        if existing:
            if existing.coupon_code != normalized:
                raise CouponRedemptionConflict(order_id)
            return self.coupon_repo.to_redemption_model(existing)

        validation = await self.validate_coupon(normalized, subtotal)
        if isinstance(validation, CouponRejected):
            raise CouponRejectedError(validation.message, validation.reason.value)

        discount_amount = pricing.calculate_discount(validation.coupon, subtotal)

        try:
            redemption = await self.coupon_repo.redeem(
                code=normalized,
                order_id=order_id,
                user_id=user_id,
                subtotal=subtotal,
                discount_amount=discount_amount
            )
        except IntegrityError:
            logger.warning(f"订单 {order_id} 并发核销优惠券 {normalized}")
            raise CouponRedemptionConflict(order_id)

        if redemption is None:
            # 校验之后被其他订单用完
            raise CouponRejectedError(
                pricing.MESSAGE_USAGE_LIMIT,
                CouponRejectionReason.USAGE_LIMIT_REACHED.value
            )

        logger.info(f"订单 {order_id} 核销优惠券 {normalized}，折扣 {discount_amount}")
        await self._clear_coupon_caches(normalized)
        return self.coupon_repo.to_redemption_model(redemption)

    async def get_redemptions(
        self,
        code: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[CouponRedemption]:
        """获取优惠券核销历史"""
        db_redemptions = await self.coupon_repo.get_redemptions(code, limit=limit, offset=offset)
        return [self.coupon_repo.to_redemption_model(item) for item in db_redemptions]

    async def get_coupon_stats(self, code: str) -> CouponStats:
        """获取优惠券统计信息"""
        stats = await self.coupon_repo.get_coupon_stats(code)
        if not stats:
            raise CouponNotFoundError(normalize_code(code))
        return CouponStats(**stats)

    async def seed_sample_coupons(self) -> int:
        """写入示例优惠券，已存在的跳过"""
        created = 0
        for coupon in get_sample_coupons():
            if await self.coupon_repo.get_by_code(coupon.code):
                continue
            await self.coupon_repo.create(self._to_db_data(coupon))
            created += 1

        if created:
            logger.info(f"写入示例优惠券 {created} 张")
            await self._clear_all_coupon_caches()
        return created

    def _build_coupon(self, data: dict) -> Coupon:
        try:
            return Coupon(**data)
        except ValidationError as e:
            raise BusinessException(
                "Invalid coupon definition",
                code="invalid_coupon",
                status_code=422,
                details={"errors": e.errors(include_url=False, include_context=False)}
            )

    def _to_db_data(self, coupon: Coupon) -> dict:
        data = coupon.model_dump(exclude={"created_at", "updated_at"})
        data["discount_type"] = coupon.discount_type.value
        return data

    async def _clear_coupon_caches(self, code: str):
        """清除优惠券相关缓存"""
        await self.cache.delete(f"{self.cache_prefix}:code:{normalize_code(code)}")

    async def _clear_all_coupon_caches(self):
        """清除所有优惠券缓存"""
        await self.cache.delete_pattern(f"{self.cache_prefix}:*")
