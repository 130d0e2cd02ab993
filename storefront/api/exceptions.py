"""
业务异常定义及FastAPI异常处理器
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

logger = logging.getLogger(__name__)


class BusinessException(Exception):
    """业务异常基类"""

    status_code: int = 400
    code: str = "business_error"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details or {}


class CouponNotFoundError(BusinessException):
    status_code = 404
    code = "coupon_not_found"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} not found", details={"coupon_code": coupon_code})


class CouponAlreadyExistsError(BusinessException):
    status_code = 409
    code = "coupon_already_exists"

    def __init__(self, coupon_code: str):
        super().__init__(f"Coupon {coupon_code} already exists", details={"coupon_code": coupon_code})


class CouponRejectedError(BusinessException):
    """优惠券校验未通过，message为面向用户的提示"""

    status_code = 422
    code = "coupon_rejected"

    def __init__(self, message: str, reason: str):
        super().__init__(message, details={"reason": reason})
        self.reason = reason


class CouponRedemptionConflict(BusinessException):
    status_code = 409
    code = "coupon_redemption_conflict"

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} is already being redeemed", details={"order_id": order_id})


class CartQuantityExceeded(BusinessException):
    status_code = 422
    code = "cart_quantity_exceeded"

    def __init__(self, product_id: str, max_quantity: int):
        super().__init__(
            f"Maximum quantity per item is {max_quantity}",
            details={"product_id": product_id, "max_quantity": max_quantity}
        )


def _error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    content = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        content["error"]["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求参数校验失败"""
    logger.info(f"请求参数校验失败 {request.url.path}: {exc.errors()}")
    return _error_response(422, "validation_error", "Validation error", exc.errors())


async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(exc.status_code, "http_error", str(exc.detail))


async def business_exception_handler(request: Request, exc: BusinessException):
    """业务异常"""
    logger.info(f"业务异常 {request.url.path}: {exc.code} - {exc.message}")
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """数据库异常"""
    if isinstance(exc, IntegrityError):
        logger.warning(f"数据完整性冲突 {request.url.path}: {exc}")
        return _error_response(409, "integrity_error", "Conflicting data")

    logger.error(f"数据库操作失败 {request.url.path}: {exc}")
    return _error_response(503, "database_error", "Database unavailable, try again later")


async def general_exception_handler(request: Request, exc: Exception):
    """未处理异常"""
    logger.exception(f"未处理异常 {request.url.path}: {exc}")
    return _error_response(500, "internal_error", "Internal Server Error")
