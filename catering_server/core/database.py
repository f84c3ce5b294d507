"""
数据库连接和管理模块
负责 DuckDB 数据库的初始化、连接管理和表结构定义

数据库表说明：
- catering_quotes: 餐饮报价（活动信息、菜单、附加服务、价格快照、状态）
- catering_addons: 可配置的附加服务目录
- kv_store: 通用键值存储（幂等记录等跨请求状态）
- logs: 业务操作日志
"""

import duckdb
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Generator, Optional
from contextlib import contextmanager

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

# 完整的表结构定义
# 注意：DuckDB 对带索引列的 UPDATE 会转成 delete+insert，
# 因此 status 等会被更新的列上不建索引
SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS catering_quotes (
  id VARCHAR PRIMARY KEY,
  customer_email VARCHAR NOT NULL,
  event_details_json TEXT NOT NULL,
  menu_selections_json TEXT NOT NULL,
  add_ons_json TEXT NOT NULL,
  pricing_json TEXT NOT NULL,
  status VARCHAR NOT NULL CHECK(status IN ('pending','approved','deposit_paid','confirmed','completed','cancelled')),
  medusa_order_id VARCHAR,  -- 定金订单号，只写一次
  balance_order_id VARCHAR,  -- 尾款订单号，只写一次
  created_at TIMESTAMP DEFAULT current_timestamp,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE INDEX IF NOT EXISTS idx_catering_quotes_customer_email ON catering_quotes(customer_email);

CREATE TABLE IF NOT EXISTS catering_addons (
  id VARCHAR PRIMARY KEY,
  name VARCHAR NOT NULL,
  description TEXT,
  price_cents INTEGER NOT NULL CHECK(price_cents >= 0),
  is_active BOOLEAN DEFAULT TRUE,
  category VARCHAR,
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE TABLE IF NOT EXISTS kv_store (
  key VARCHAR PRIMARY KEY,  -- 主键即唯一约束，CAS 依赖它
  value TEXT NOT NULL,
  updated_at TIMESTAMP DEFAULT current_timestamp
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  quote_id VARCHAR,  -- 操作涉及的报价
  actor VARCHAR,  -- 执行者：customer / admin / system
  action VARCHAR,  -- 操作类型标识
  detail_json TEXT,  -- 操作详情的结构化数据
  created_at TIMESTAMP DEFAULT current_timestamp
);

CREATE INDEX IF NOT EXISTS idx_logs_quote ON logs(quote_id);
"""


class DatabaseManager:
    """数据库管理器，封装所有数据库操作"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path or self._get_db_path_from_settings()

    def _get_db_path_from_settings(self) -> str:
        """从设置中获取数据库路径"""
        db_url = settings.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url.replace("duckdb://", "", 1)
        if db_url in ("", "/:memory:"):
            return ":memory:"
        return db_url

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接（首次访问时建表）"""
        with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """初始化数据库"""
        self.get_connection()
        logger.info("Database ready at %s", self.db_path)

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        同一进程内通过 RLock 串行化；业务异常原样抛出，
        唯一约束冲突转换为 ConcurrencyError，其余驱动错误转换为 DatabaseError。
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    logger.exception("Rollback failed")

                if isinstance(e, BaseApplicationError):
                    raise
                if isinstance(e, duckdb.ConstraintException) or "conflict" in str(e).lower():
                    raise ConcurrencyError(
                        "Request conflicts with a concurrent update, please retry"
                    ) from e
                if isinstance(e, duckdb.Error):
                    raise DatabaseError(f"Database operation failed: {e}") from e
                raise

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        try:
            with self._lock:
                return self.connection.execute(query, params or []).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        try:
            with self._lock:
                return self.connection.execute(query, params or []).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def write_log(self, quote_id: Optional[str], actor: str, action: str,
                  detail: Dict[str, Any], conn: Optional[duckdb.DuckDBPyConnection] = None):
        """写业务操作日志；传入 conn 时随外层事务一起提交"""
        params = [quote_id, actor, action, json.dumps(detail, default=str)]
        sql = "INSERT INTO logs(quote_id, actor, action, detail_json) VALUES (?,?,?,?)"
        if conn is not None:
            conn.execute(sql, params)
        else:
            self.execute_query(sql, params)

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


# 全局数据库管理器实例
db_manager = DatabaseManager()
