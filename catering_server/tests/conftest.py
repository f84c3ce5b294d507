"""
测试配置文件
提供测试所需的fixtures和配置
"""

import json
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from ..app import create_app
from ..config.settings import Settings
from ..core.database import DatabaseManager
from ..core.security import PaymentTokenManager
from ..models.payment import ExternalOrder
from ..schemas.quote import QuoteCreateRequest
from .utils.factories import TOKEN_SECRET, quote_payload

ADMIN_KEY = "test-admin-key"


class FakeOrderClient:
    """记录调用的订单服务替身；fail=True 时模拟订单服务故障，on_create 在下单时回调"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.fail = False
        self.on_create = None

    def create_order(self, payload, idempotency_key):
        self.calls.append({"payload": payload, "idempotency_key": idempotency_key})
        if self.on_create is not None:
            self.on_create(payload)
        if self.fail:
            raise ConnectionError("order service unavailable")
        return ExternalOrder(id=f"order_test_{len(self.calls)}", total_cents=payload["amount_cents"])


@pytest.fixture
def test_settings():
    """测试配置"""
    return Settings(
        _env_file=None,
        database_url="duckdb:///:memory:",
        payment_token_secret=TOKEN_SECRET,
        admin_api_key=ADMIN_KEY,
        public_base_url="https://catering.test",
        seed_default_addons=False,
        log_level="WARNING",
    )


@pytest.fixture
def test_db():
    """内存测试数据库"""
    db = DatabaseManager(":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def order_client():
    return FakeOrderClient()


@pytest.fixture
def app_instance(test_settings, test_db, order_client):
    """测试应用"""
    return create_app(test_settings, db=test_db, order_client=order_client)


@pytest.fixture
def client(app_instance):
    """测试客户端"""
    return TestClient(app_instance)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def quote_service(app_instance):
    return app_instance.state.quote_service


@pytest.fixture
def payment_service(app_instance):
    return app_instance.state.payment_service


@pytest.fixture
def token_manager():
    return PaymentTokenManager(TOKEN_SECRET)


@pytest.fixture
def make_quote(quote_service):
    """按需创建报价"""
    def _make(**kwargs):
        return quote_service.create_quote(QuoteCreateRequest.model_validate(quote_payload(**kwargs)))
    return _make


@pytest.fixture
def sample_quote(make_quote):
    """定金 30.00 / 尾款 150.00 的待处理报价"""
    return make_quote()


@pytest.fixture
def read_logs(test_db):
    """读取某个报价的操作日志"""
    def _read(quote_id: str, action: str = None):
        rows = test_db.execute_query(
            "SELECT action, detail_json FROM logs WHERE quote_id = ? ORDER BY log_id", [quote_id]
        )
        logs = [{"action": row[0], "detail": json.loads(row[1])} for row in rows]
        if action:
            logs = [log for log in logs if log["action"] == action]
        return logs
    return _read
