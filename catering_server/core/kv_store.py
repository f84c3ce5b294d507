"""
键值存储抽象
跨请求共享的状态（幂等记录等）不能放在进程内字典里，
多实例部署时必须落到共享存储上。

所有方法都接受可选的 conn：传入时加入调用方已打开的事务，
否则各自开启一个短事务。
"""

from typing import Optional

import duckdb

from .database import DatabaseManager


class KeyValueStore:
    """键值存储接口"""

    def get(self, key: str, conn=None) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str, conn=None) -> None:
        raise NotImplementedError

    def compare_and_swap(self, key: str, expected: Optional[str], new: str, conn=None) -> bool:
        """
        当前值等于 expected 时写入 new 并返回 True，否则返回 False。
        expected 为 None 表示“仅当键不存在时写入”。
        """
        raise NotImplementedError


class DuckDBKeyValueStore(KeyValueStore):
    """基于 kv_store 表的实现，主键保证同一个键只能被插入一次"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get(self, key: str, conn=None) -> Optional[str]:
        if conn is not None:
            row = conn.execute("SELECT value FROM kv_store WHERE key=?", [key]).fetchone()
        else:
            row = self.db.execute_one("SELECT value FROM kv_store WHERE key=?", [key])
        return row[0] if row else None

    def set(self, key: str, value: str, conn=None) -> None:
        if conn is None:
            with self.db.transaction() as tx:
                self._upsert(tx, key, value)
        else:
            self._upsert(conn, key, value)

    def compare_and_swap(self, key: str, expected: Optional[str], new: str, conn=None) -> bool:
        if conn is None:
            with self.db.transaction() as tx:
                return self._cas(tx, key, expected, new)
        return self._cas(conn, key, expected, new)

    def _upsert(self, conn: duckdb.DuckDBPyConnection, key: str, value: str):
        updated = conn.execute(
            "UPDATE kv_store SET value=?, updated_at=current_timestamp WHERE key=? RETURNING key",
            [value, key],
        ).fetchone()
        if not updated:
            conn.execute("INSERT INTO kv_store(key, value) VALUES (?, ?)", [key, value])

    def _cas(self, conn: duckdb.DuckDBPyConnection, key: str,
             expected: Optional[str], new: str) -> bool:
        if expected is None:
            exists = conn.execute("SELECT 1 FROM kv_store WHERE key=?", [key]).fetchone()
            if exists:
                return False
            # 主键兜底：并发插入同一键时由数据库拒绝
            conn.execute("INSERT INTO kv_store(key, value) VALUES (?, ?)", [key, new])
            return True

        swapped = conn.execute(
            "UPDATE kv_store SET value=?, updated_at=current_timestamp "
            "WHERE key=? AND value=? RETURNING key",
            [new, key, expected],
        ).fetchone()
        return swapped is not None
