from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from storefront.core.config import settings
from storefront.core.redis import redis_manager
from storefront.core.database import init_database, close_database
from storefront.services.common_cache import coupon_cache
from storefront.api.health import router as health_router
from storefront.api.cart import router as cart_router
from storefront.api.coupons import router as coupons_router
from storefront.api.exceptions import (
    validation_exception_handler,
    http_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    BusinessException
)

import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动计价服务")

    try:
        await init_database()
        logger.info("PostgreSQL数据库初始化成功")

        await redis_manager.init_redis()
        coupon_cache.bind(redis_manager.redis_pool)
        logger.info("Redis初始化成功")

        logger.info("应用启动完成")

    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield

    logger.info("正在关闭应用")
    coupon_cache.bind(None)
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="商城购物车计价与优惠券服务",
        debug=settings.debug and not settings.is_production,
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    application.include_router(health_router)
    application.include_router(cart_router)
    application.include_router(coupons_router)

    # 注册异常处理器
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(SQLAlchemyError, database_exception_handler)
    application.add_exception_handler(BusinessException, business_exception_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    @application.get("/")
    async def root():
        """根路径"""
        return {
            "message": f"欢迎使用 {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "storefront.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
