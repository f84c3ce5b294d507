from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, Optional


class Settings(BaseSettings):
    # 数据库配置
    database_url: str = "duckdb://./data/catering.duckdb"

    # 支付访问令牌
    payment_token_secret: str = "change-me-payment-token-secret-32b"
    payment_token_algorithm: str = "HS256"
    payment_token_expire_hours: int = 48

    # 管理端口令（为空时不校验）
    admin_api_key: str = ""

    # API配置
    api_title: str = "Catering Quote Payments API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api"
    public_base_url: str = "http://localhost:4005"
    currency: str = "USD"

    # 外部订单服务；未配置时本地生成订单号
    order_api_url: Optional[str] = None
    order_api_key: Optional[str] = None
    order_api_timeout_seconds: float = 10.0

    # 邮件；未配置 smtp_host 时只写日志
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_sender: str = "catering@troybbq.com"
    smtp_use_tls: bool = True

    contact_email: str = "catering@troybbq.com"
    contact_phone: str = "(555) 123-4567"
    emergency_phone: str = "(555) 987-6543"

    # 报价计算规则
    tax_rate: float = 0.0825
    deposit_percentage: float = 0.3
    delivery_radius_miles: float = 50
    base_fee_per_mile_cents: int = 200
    minimum_order_cents: int = 20000
    minimum_per_guest_cents: int = 1000
    hunger_multipliers: Dict[str, float] = {
        "normal": 1.0,
        "prettyHungry": 1.25,
        "reallyHungry": 1.5,
    }

    # 附加服务目录为空时写入默认条目
    seed_default_addons: bool = True

    # 开发模式
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CATERING_",
        case_sensitive=False,
        extra="ignore",
    )


# 全局设置实例
settings = Settings()
