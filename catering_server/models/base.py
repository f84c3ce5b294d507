"""
基础数据模型
定义通用的模型基类和常用字段

对外 JSON 使用 camelCase，Python 内部使用 snake_case，
两种写法在入参时都接受。
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase 别名基类"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        """转换为对外输出的字典"""
        return self.model_dump(by_alias=True, mode="json")


class TimestampMixin(BaseModel):
    """时间戳混入类"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def cents_to_dollars(cents: int) -> float:
    """分转元（仅用于展示和响应体）"""
    return round(cents / 100, 2)
