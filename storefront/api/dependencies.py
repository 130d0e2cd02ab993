from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.database import get_db_session
from storefront.repositories.coupon_repository import CouponRepository
from storefront.services.coupon_service import CouponService


async def get_coupon_repository(db: AsyncSession = Depends(get_db_session)) -> CouponRepository:
    return CouponRepository(db)


async def get_coupon_service(
    coupon_repo: CouponRepository = Depends(get_coupon_repository)
) -> CouponService:
    return CouponService(coupon_repo)
