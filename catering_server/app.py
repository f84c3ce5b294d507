"""
餐饮报价支付服务 - 主应用入口

主要功能模块：
- 报价提交、试算与管理
- 定金/尾款支付校验、幂等处理与订单对账
- 尾款支付访问令牌
- 附加服务目录
- 操作日志记录

技术栈：FastAPI + DuckDB + JWT
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .config.settings import Settings, settings
from .core.database import DatabaseManager, db_manager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .core.kv_store import DuckDBKeyValueStore
from .core.security import PaymentTokenManager
from .services.addon_service import AddonService
from .services.idempotency import IdempotencyGuard
from .services.notification_service import NotificationService
from .services.order_client import OrderClient, build_order_client
from .services.payment_service import PaymentService
from .services.pricing_service import PricingService
from .services.quote_service import QuoteService

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    db: DatabaseManager = app.state.db
    try:
        db.init_database()
        if app.state.settings.seed_default_addons:
            app.state.addon_service.seed_defaults()
    except BaseApplicationError:
        # 不让应用启动失败，首次请求时会重新建立连接
        logger.exception("Database initialization failed")

    yield

    db.close()


def create_app(app_settings: Optional[Settings] = None,
               db: Optional[DatabaseManager] = None,
               order_client: Optional[OrderClient] = None,
               notifier: Optional[NotificationService] = None) -> FastAPI:
    """创建FastAPI应用，未传入的依赖使用全局配置构建"""
    app_settings = app_settings or settings
    db = db or db_manager
    configure_logging(app_settings.log_level)

    app = FastAPI(
        title=app_settings.api_title,
        version=app_settings.api_version,
        description="餐饮报价与定金/尾款支付API",
        debug=app_settings.debug,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 组装服务
    quote_service = QuoteService(db)
    addon_service = AddonService(db)
    tokens = PaymentTokenManager(
        app_settings.payment_token_secret,
        algorithm=app_settings.payment_token_algorithm,
        expire_hours=app_settings.payment_token_expire_hours,
    )
    app.state.settings = app_settings
    app.state.db = db
    app.state.quote_service = quote_service
    app.state.addon_service = addon_service
    app.state.pricing_service = PricingService(app_settings, addon_service)
    app.state.payment_service = PaymentService(
        app_settings,
        db,
        quote_service,
        IdempotencyGuard(DuckDBKeyValueStore(db), db),
        tokens,
        order_client or build_order_client(app_settings),
        notifier or NotificationService(app_settings),
    )

    # 注册路由
    app.include_router(api_router, prefix=app_settings.api_prefix)

    @app.get("/health")
    def health_check():
        try:
            db.execute_one("SELECT 1")
            return {
                "status": "healthy",
                "version": app_settings.api_version,
                "database": "connected"
            }
        except BaseApplicationError as e:
            logger.error("Health check failed: %s", e.message)
            return {
                "status": "unhealthy",
                "version": app_settings.api_version,
                "database": "error"
            }

    @app.get("/")
    def root():
        return {
            "name": app_settings.api_title,
            "version": app_settings.api_version,
            "description": "餐饮报价与定金/尾款支付API"
        }

    return app


# 应用实例
app = create_app()
