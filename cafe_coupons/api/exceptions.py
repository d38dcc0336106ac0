"""
业务异常与全局异常处理器
统一返回 {"success": false, "error": {...}} 格式
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from cafe_coupons.services.identity_service import IdentityServiceUnavailable

logger = logging.getLogger(__name__)


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class SessionNotFound(BusinessException):
    """会话不存在或已结束"""

    def __init__(self, session_id: str):
        super().__init__(
            code="SESSION_NOT_FOUND",
            message=f"会话不存在: {session_id}",
            status_code=status.HTTP_404_NOT_FOUND
        )


class CouponNotAvailable(BusinessException):
    """优惠券不可用 (未解锁、已使用或不可见)"""

    def __init__(self, coupon_id: str):
        super().__init__(
            code="COUPON_NOT_AVAILABLE",
            message=f"优惠券当前不可用: {coupon_id}",
            status_code=status.HTTP_409_CONFLICT
        )


class NoActiveCode(BusinessException):
    """当前没有兑换码"""

    def __init__(self):
        super().__init__(
            code="NO_ACTIVE_CODE",
            message="当前没有兑换码",
            status_code=status.HTTP_404_NOT_FOUND
        )


class InvalidIdentifier(BusinessException):
    """登录标识为空或格式无效"""

    def __init__(self):
        super().__init__(
            code="INVALID_IDENTIFIER",
            message="请输入手机号或会员号",
            status_code=status.HTTP_400_BAD_REQUEST
        )


def _error_response(status_code: int, code: str, message: str, details: Optional[Any] = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    logger.info(f"业务异常 {exc.code}: {exc.message} path={request.url.path}")
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


async def identity_unavailable_handler(request: Request, exc: IdentityServiceUnavailable) -> JSONResponse:
    logger.warning(f"会员服务不可用: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "IDENTITY_SERVICE_UNAVAILABLE",
        str(exc) or "会员服务暂时不可用"
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "请求参数无效",
        jsonable_errors(exc)
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(f"数据库异常 path={request.url.path}: {exc}")
    return _error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "DATABASE_ERROR",
        "数据库暂时不可用"
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"未处理的异常 path={request.url.path}: {exc}")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "服务器内部错误"
    )
