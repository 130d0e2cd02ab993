"""
优惠券数据库表初始化脚本

运行方式:
python -m storefront.scripts.init_coupon_tables
"""

import asyncio
import logging

from storefront.core import database
from storefront.repositories.coupon_repository import CouponRepository
from storefront.services.coupon_service import CouponService

logger = logging.getLogger(__name__)


async def init_coupon_tables(seed: bool = True) -> None:
    """创建优惠券相关数据表并写入示例优惠券"""
    try:
        await database.init_database()

        logger.info("开始创建优惠券数据表...")
        await database.create_tables()
        logger.info("优惠券数据表创建成功")

        if seed:
            async with database.async_session_maker() as session:
                service = CouponService(CouponRepository(session))
                created = await service.seed_sample_coupons()
                await session.commit()
            logger.info(f"示例优惠券写入完成，新增 {created} 张")

    except Exception as e:
        logger.error(f"初始化优惠券数据表失败: {e}")
        raise
    finally:
        await database.close_database()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(init_coupon_tables())
