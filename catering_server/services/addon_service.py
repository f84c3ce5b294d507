"""
附加服务目录
简单的增删改查；报价按 id 引用附加服务，删除时不检查引用
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import AddonNotFoundError, ValidationError
from ..models.addon import CateringAddon
from ..schemas.addon import AddonCreateRequest, AddonUpdateRequest

logger = logging.getLogger(__name__)

ADDON_COLUMNS = "id, name, description, price_cents, is_active, category, created_at"

DEFAULT_ADDONS = [
    ("Setup Service", "Professional setup and breakdown of catering equipment", 15000, "service"),
    ("Disposable Plates & Utensils", "Eco-friendly disposable dinnerware for all guests", 250, "equipment"),
    ("Chafing Dishes", "Professional warming trays to keep food at optimal temperature", 2500, "equipment"),
    ("Serving Staff (per hour)", "Professional catering staff to serve your guests", 2500, "service"),
    ("Tablecloths & Linens", "Premium linens for buffet tables", 1500, "equipment"),
    ("Beverage Service", "Sweet tea, lemonade, and water service", 300, "beverage"),
]


def _row_to_addon(row: tuple) -> CateringAddon:
    return CateringAddon(
        id=row[0],
        name=row[1],
        description=row[2],
        price_cents=row[3],
        is_active=bool(row[4]),
        category=row[5],
        created_at=row[6],
    )


class AddonService:
    """附加服务目录服务"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def list_addons(self, active: Optional[bool] = True,
                    category: Optional[str] = None) -> List[CateringAddon]:
        """按分类、名称排序；active 为 None 时不过滤"""
        clauses = []
        params: List[Any] = []
        if active is not None:
            clauses.append("is_active = ?")
            params.append(active)
        if category:
            clauses.append("lower(category) = lower(?)")
            params.append(category)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute_query(
            f"SELECT {ADDON_COLUMNS} FROM catering_addons {where} ORDER BY category, name",
            params,
        )
        return [_row_to_addon(row) for row in rows]

    def get_addon(self, addon_id: str) -> CateringAddon:
        row = self.db.execute_one(
            f"SELECT {ADDON_COLUMNS} FROM catering_addons WHERE id = ?", [addon_id]
        )
        if not row:
            raise AddonNotFoundError(addon_id)
        return _row_to_addon(row)

    def get_addons(self, addon_ids: List[str]) -> Dict[str, CateringAddon]:
        """批量读取，返回 id -> 附加服务，不存在的 id 不出现在结果中"""
        if not addon_ids:
            return {}
        placeholders = ",".join("?" for _ in addon_ids)
        rows = self.db.execute_query(
            f"SELECT {ADDON_COLUMNS} FROM catering_addons WHERE id IN ({placeholders})",
            list(addon_ids),
        )
        return {row[0]: _row_to_addon(row) for row in rows}

    def create_addon(self, request: AddonCreateRequest) -> CateringAddon:
        addon_id = str(uuid.uuid4())
        with self.db.transaction() as conn:
            row = conn.execute(
                f"""
                INSERT INTO catering_addons(id, name, description, price_cents, is_active, category)
                VALUES (?, ?, ?, ?, ?, ?)
                RETURNING {ADDON_COLUMNS}
                """,
                [addon_id, request.name, request.description, request.price_cents,
                 request.is_active, request.category],
            ).fetchone()
            self.db.write_log(None, "admin", "addon_created",
                              {"addon_id": addon_id, "name": request.name}, conn=conn)
        return _row_to_addon(row)

    def update_addon(self, addon_id: str, request: AddonUpdateRequest) -> CateringAddon:
        """部分更新，只写请求中出现的字段"""
        changes = request.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        nulls = [f for f in ("name", "price_cents", "is_active") if f in changes and changes[f] is None]
        if nulls:
            raise ValidationError("Fields cannot be null", details={"fields": nulls})

        assignments = ", ".join(f"{column} = ?" for column in changes)
        with self.db.transaction() as conn:
            row = conn.execute(
                f"UPDATE catering_addons SET {assignments} WHERE id = ? RETURNING {ADDON_COLUMNS}",
                list(changes.values()) + [addon_id],
            ).fetchone()
            if not row:
                raise AddonNotFoundError(addon_id)
            self.db.write_log(None, "admin", "addon_updated",
                              {"addon_id": addon_id, "fields": sorted(changes)}, conn=conn)
        return _row_to_addon(row)

    def delete_addon(self, addon_id: str) -> None:
        with self.db.transaction() as conn:
            row = conn.execute(
                "DELETE FROM catering_addons WHERE id = ? RETURNING id", [addon_id]
            ).fetchone()
            if not row:
                raise AddonNotFoundError(addon_id)
            self.db.write_log(None, "admin", "addon_deleted", {"addon_id": addon_id}, conn=conn)

    def seed_defaults(self) -> int:
        """目录为空时写入默认附加服务，返回写入条数"""
        with self.db.transaction() as conn:
            count = conn.execute("SELECT COUNT(*) FROM catering_addons").fetchone()[0]
            if count:
                return 0
            for name, description, price_cents, category in DEFAULT_ADDONS:
                conn.execute(
                    "INSERT INTO catering_addons(id, name, description, price_cents, category) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [str(uuid.uuid4()), name, description, price_cents, category],
                )
        logger.info("Seeded %d default add-ons", len(DEFAULT_ADDONS))
        return len(DEFAULT_ADDONS)
