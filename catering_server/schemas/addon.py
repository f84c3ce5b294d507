"""
附加服务的请求模式
"""

from typing import Optional

from pydantic import Field

from ..models.base import CamelModel


class AddonCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price_cents: int = Field(..., ge=0)
    is_active: bool = True
    category: Optional[str] = Field(None, max_length=100)


class AddonUpdateRequest(CamelModel):
    """部分更新，只写入请求中出现的字段"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price_cents: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    category: Optional[str] = Field(None, max_length=100)
