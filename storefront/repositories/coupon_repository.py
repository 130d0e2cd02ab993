"""
优惠券数据库操作层
"""

import uuid
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update, and_, or_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.coupon import Coupon, CouponRedemption, normalize_code
from storefront.models.database.coupon_db import CouponDB, CouponRedemptionDB


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠券代码获取优惠券（大小写不敏感）"""
        # 核销使用批量UPDATE，需刷新会话中已加载的对象
        result = await self.db.execute(
            select(CouponDB)
            .where(CouponDB.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_coupons(
        self,
        include_inactive: bool = False,
        limit: int = 50,
        offset: int = 0
    ) -> List[CouponDB]:
        """获取优惠券列表"""
        query = select(CouponDB)
        if not include_inactive:
            query = query.where(CouponDB.is_active.is_(True))

        query = query.order_by(desc(CouponDB.created_at), CouponDB.code).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_active_coupons(
        self,
        current_time: Optional[datetime] = None
    ) -> List[CouponDB]:
        """获取当前可用的优惠券（启用、在有效期内、未用完）"""
        if current_time is None:
            current_time = datetime.now(timezone.utc)

        query = select(CouponDB).where(
            and_(
                CouponDB.is_active.is_(True),
                CouponDB.valid_from <= current_time,
                CouponDB.valid_until >= current_time,
                or_(
                    CouponDB.usage_limit.is_(None),
                    CouponDB.used_count < CouponDB.usage_limit
                )
            )
        ).order_by(CouponDB.code)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, data: Dict[str, Any]) -> CouponDB:
        """创建优惠券"""
        db_coupon = CouponDB(**data)
        self.db.add(db_coupon)
        await self.db.flush()
        await self.db.refresh(db_coupon)
        return db_coupon

    async def update(self, code: str, data: Dict[str, Any]) -> Optional[CouponDB]:
        """更新优惠券字段"""
        db_coupon = await self.get_by_code(code)
        if not db_coupon:
            return None

        for field, value in data.items():
            setattr(db_coupon, field, value)

        await self.db.flush()
        await self.db.refresh(db_coupon)
        return db_coupon

    async def deactivate(self, code: str) -> bool:
        """停用优惠券"""
        result = await self.db.execute(
            update(CouponDB)
            .where(CouponDB.code == normalize_code(code))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def get_redemption_by_order(self, order_id: str) -> Optional[CouponRedemptionDB]:
        """根据订单ID获取核销记录"""
        result = await self.db.execute(
            select(CouponRedemptionDB).where(CouponRedemptionDB.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def redeem(
        self,
        code: str,
        order_id: str,
        user_id: Optional[str],
        subtotal: Decimal,
        discount_amount: Decimal
    ) -> Optional[CouponRedemptionDB]:
        """
        核销优惠券：原子地增加使用次数并写入核销记录

        同一订单重复核销直接返回已有记录；
        使用次数已达上限时返回None。
        """
        existing = await self.get_redemption_by_order(order_id)
        if existing:
            return existing

        normalized = normalize_code(code)

        # 比较并递增，条件不满足时影响行数为0
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.code == normalized,
                    CouponDB.is_active.is_(True),
                    or_(
                        CouponDB.usage_limit.is_(None),
                        CouponDB.used_count < CouponDB.usage_limit
                    )
                )
            )
            .values(used_count=CouponDB.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        redemption = CouponRedemptionDB(
            redemption_id=str(uuid.uuid4()),
            coupon_code=normalized,
            order_id=order_id,
            user_id=user_id,
            subtotal=subtotal,
            discount_amount=discount_amount
        )
        self.db.add(redemption)
        await self.db.flush()
        await self.db.refresh(redemption)
        return redemption

    async def get_redemptions(
        self,
        code: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[CouponRedemptionDB]:
        """获取优惠券核销历史"""
        query = select(CouponRedemptionDB).where(
            CouponRedemptionDB.coupon_code == normalize_code(code)
        ).order_by(desc(CouponRedemptionDB.redeemed_at)).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_coupon_stats(self, code: str) -> Dict[str, Any]:
        """获取优惠券统计信息"""
        coupon = await self.get_by_code(code)
        if not coupon:
            return {}

        usage_stats = await self.db.execute(
            select(
                func.count(CouponRedemptionDB.redemption_id).label("total_redemptions"),
                func.sum(CouponRedemptionDB.discount_amount).label("total_discount"),
                func.count(func.distinct(CouponRedemptionDB.user_id)).label("unique_users")
            ).where(CouponRedemptionDB.coupon_code == coupon.code)
        )
        stats_row = usage_stats.fetchone()

        remaining = None
        if coupon.usage_limit is not None:
            remaining = max(coupon.usage_limit - coupon.used_count, 0)

        return {
            "code": coupon.code,
            "is_active": coupon.is_active,
            "usage_limit": coupon.usage_limit,
            "used_count": coupon.used_count,
            "remaining_uses": remaining,
            "total_redemptions": stats_row.total_redemptions or 0,
            "total_discount": Decimal(str(stats_row.total_discount or 0)),
            "unique_users": stats_row.unique_users or 0
        }

    def to_model(self, db_coupon: CouponDB) -> Coupon:
        """转换为Pydantic模型"""
        return Coupon(
            code=db_coupon.code,
            description=db_coupon.description or "",
            discount_type=db_coupon.discount_type,
            value=db_coupon.value,
            min_purchase=db_coupon.min_purchase if db_coupon.min_purchase is not None else Decimal("0"),
            max_discount=db_coupon.max_discount,
            valid_from=db_coupon.valid_from,
            valid_until=db_coupon.valid_until,
            usage_limit=db_coupon.usage_limit,
            used_count=db_coupon.used_count or 0,
            is_active=db_coupon.is_active if db_coupon.is_active is not None else True,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )

    def to_redemption_model(self, db_redemption: CouponRedemptionDB) -> CouponRedemption:
        """核销记录转换为Pydantic模型"""
        return CouponRedemption(
            redemption_id=db_redemption.redemption_id,
            coupon_code=db_redemption.coupon_code,
            order_id=db_redemption.order_id,
            user_id=db_redemption.user_id,
            subtotal=db_redemption.subtotal,
            discount_amount=db_redemption.discount_amount,
            redeemed_at=db_redemption.redeemed_at
        )
