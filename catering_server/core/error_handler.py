"""
统一错误处理模块
提供标准化的错误响应格式和错误处理中间件

主要功能：
- 统一的错误响应格式 {"success": false, "error", "error_code", "details"}
- 错误码到 HTTP 状态码的映射
- 未知异常只返回通用消息，堆栈只写日志
"""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """标准错误响应格式"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.http_status,
            content=jsonable_encoder(self.to_dict()),
        )


class ErrorHandler:
    """全局错误处理器"""

    # 错误代码到HTTP状态码的映射
    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "PERMISSION_DENIED": 403,
        "INTERNAL_ERROR": 500,
        "DATABASE_ERROR": 500,
        "CONCURRENCY_CONFLICT": 409,

        # 报价相关错误
        "QUOTE_NOT_FOUND": 404,
        "ADDON_NOT_FOUND": 404,
        "PRICING_ERROR": 400,

        # 支付相关错误
        "PAYMENT_FAILED": 400,
        "AMOUNT_MISMATCH": 400,
        "CURRENCY_MISMATCH": 400,
        "INVALID_STATE_TRANSITION": 400,
        "EVENT_DATE_PASSED": 400,
        "PAYMENT_IN_PROGRESS": 409,
        "ORDER_CREATION_FAILED": 500,
        "ORDER_SERVICE_ERROR": 502,
        "EMAIL_SEND_FAILED": 500,

        # 访问令牌错误
        "TOKEN_INVALID": 403,
        "TOKEN_EXPIRED": 403,
        "TOKEN_STALE": 403,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        """处理应用业务异常"""
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("%s: %s %s", error.error_code, error.message, error.details)

        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        """处理FastAPI HTTP异常"""
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            details={"status_code": error.status_code},
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        """处理请求参数验证错误"""
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg"),
                "type": err.get("type"),
            }
            for err in error.errors()
        ]
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Invalid request data",
            details={"errors": errors},
            http_status=400
        )

    @classmethod
    def handle_unknown_error(cls, request: Request, error: Exception) -> ErrorResponse:
        """处理未知异常，详细信息只写日志"""
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path,
            exc_info=(type(error), error, error.__traceback__),
        )
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="Internal server error",
            http_status=500
        )


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    """应用异常处理中间件"""
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP异常处理中间件"""
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """验证异常处理中间件"""
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理中间件"""
    return ErrorHandler.handle_unknown_error(request, exc).to_json_response()


def create_success_response(data: Any = None, message: str = "OK") -> Dict[str, Any]:
    """创建标准成功响应"""
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = data

    return response


def create_paginated_response(items: list, total: int, limit: int, offset: int,
                              message: str = "OK") -> Dict[str, Any]:
    """创建分页响应"""
    return {
        "success": True,
        "message": message,
        "data": {
            "items": items,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
            }
        }
    }
