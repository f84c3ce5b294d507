"""
附加服务目录模型
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CamelModel, cents_to_dollars


class CateringAddon(CamelModel):
    """附加服务（独立目录实体，报价通过 id 引用，删除时不做引用检查）"""
    id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price_cents: int = Field(..., ge=0)
    is_active: bool = True
    category: Optional[str] = Field(None, max_length=100)
    created_at: Optional[datetime] = None

    @property
    def price_dollars(self) -> float:
        return cents_to_dollars(self.price_cents)
