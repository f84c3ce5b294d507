from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """错误响应格式（用于 OpenAPI 文档）"""
    success: bool = Field(False, description="请求失败")
    error: str = Field(description="可展示的错误消息")
    error_code: str = Field(description="错误码")
    details: Optional[Dict[str, Any]] = Field(None, description="诊断信息")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "Payment amount does not match expected deposit",
                "error_code": "AMOUNT_MISMATCH",
                "details": {
                    "expected": 30.0,
                    "received": 25.0,
                    "expectedCents": 3000,
                    "receivedCents": 2500,
                },
            }
        }
    }


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "请求无效"},
    403: {"model": ErrorResponse, "description": "无权访问"},
    404: {"model": ErrorResponse, "description": "资源不存在"},
    500: {"model": ErrorResponse, "description": "服务器错误"},
}
