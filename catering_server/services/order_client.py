"""
外部订单服务客户端

支付校验通过后，每个阶段（定金/尾款）在外部订单系统中创建一张订单。
配置了 order_api_url 时走 HTTP 接口，否则在本地生成订单号（开发模式）。
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from ..core.exceptions import BaseApplicationError
from ..models.payment import ExternalOrder

logger = logging.getLogger(__name__)


class OrderClientError(BaseApplicationError):
    """外部订单服务调用失败"""
    default_error_code = "ORDER_SERVICE_ERROR"


class OrderClient:
    """订单服务接口"""

    def create_order(self, payload: Dict[str, Any], idempotency_key: str) -> ExternalOrder:
        raise NotImplementedError


class HttpOrderClient(OrderClient):
    """
    通过 HTTP 调用订单服务
    同一个 idempotency_key 重复提交时，订单服务应返回同一张订单
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def create_order(self, payload: Dict[str, Any], idempotency_key: str) -> ExternalOrder:
        headers = {"Idempotency-Key": idempotency_key}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                f"{self.base_url}/orders", json=payload, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise OrderClientError("Order service request failed", details={"reason": str(e)}) from e
        except ValueError as e:
            raise OrderClientError("Order service returned invalid JSON") from e

        order = data.get("order", data) if isinstance(data, dict) else None
        if not order or not order.get("id"):
            raise OrderClientError("Order service response has no order id")

        return ExternalOrder(
            id=order["id"],
            status=order.get("status", "pending"),
            total_cents=order.get("total"),
            created_at=order.get("created_at"),
        )


class LocalOrderClient(OrderClient):
    """未配置订单服务时使用，只生成订单号并记日志"""

    def create_order(self, payload: Dict[str, Any], idempotency_key: str) -> ExternalOrder:
        order = ExternalOrder(
            id=f"order_{uuid.uuid4().hex}",
            total_cents=payload.get("amount_cents"),
            created_at=datetime.now(timezone.utc),
        )
        logger.info("Created local order %s for %s", order.id, idempotency_key)
        return order


def build_order_client(settings) -> OrderClient:
    if settings.order_api_url:
        return HttpOrderClient(
            settings.order_api_url,
            api_key=settings.order_api_key,
            timeout=settings.order_api_timeout_seconds,
        )
    return LocalOrderClient()
