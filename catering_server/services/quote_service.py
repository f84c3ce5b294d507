"""
报价服务模块
报价的创建、查询、状态变更和价格快照替换

业务规则：
- 新报价状态固定为 pending
- 状态只能沿状态机前进，写入时以“当前状态”作为比较条件（CAS），
  比较失败说明有并发请求先改了状态
- 定金/尾款订单号各自只写一次
- 价格快照只能整体替换；已收定金后定金金额不能再变
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import InvalidStateTransitionError, QuoteNotFoundError, ValidationError
from ..models.quote import CateringQuote, PricingBreakdown, QuoteStatus
from ..schemas.quote import QuoteCreateRequest
from .status_guard import require_admin_transition

logger = logging.getLogger(__name__)

QUOTE_COLUMNS = (
    "id, customer_email, event_details_json, menu_selections_json, add_ons_json, "
    "pricing_json, status, medusa_order_id, balance_order_id, created_at, updated_at"
)

REPRICEABLE_STATUSES = (QuoteStatus.PENDING, QuoteStatus.APPROVED, QuoteStatus.DEPOSIT_PAID)


def _row_to_quote(row: tuple) -> CateringQuote:
    return CateringQuote(
        id=row[0],
        customer_email=row[1],
        event_details=json.loads(row[2]),
        menu_selections=json.loads(row[3]),
        add_ons=json.loads(row[4]),
        pricing=json.loads(row[5]),
        status=row[6],
        medusa_order_id=row[7],
        balance_order_id=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


def _dump_list(items) -> str:
    return json.dumps([item.model_dump(by_alias=True, mode="json") for item in items])


class QuoteService:
    """报价服务类"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def create_quote(self, request: QuoteCreateRequest) -> CateringQuote:
        quote_id = str(uuid.uuid4())
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO catering_quotes(
                    id, customer_email, event_details_json, menu_selections_json,
                    add_ons_json, pricing_json, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    quote_id,
                    str(request.customer_email),
                    request.event_details.model_dump_json(by_alias=True),
                    _dump_list(request.menu_selections),
                    _dump_list(request.add_ons),
                    request.pricing.model_dump_json(by_alias=True),
                    QuoteStatus.PENDING.value,
                ],
            )
            self.db.write_log(quote_id, "customer", "quote_created", {
                "customer_email": str(request.customer_email),
                "total_cents": request.pricing.total_cents,
            }, conn=conn)

        logger.info("Created quote %s for %s", quote_id, request.customer_email)
        return self.get_quote(quote_id)

    def get_quote(self, quote_id: str, conn=None) -> CateringQuote:
        """
        Raises:
            QuoteNotFoundError: 报价不存在
        """
        sql = f"SELECT {QUOTE_COLUMNS} FROM catering_quotes WHERE id = ?"
        if conn is not None:
            row = conn.execute(sql, [quote_id]).fetchone()
        else:
            row = self.db.execute_one(sql, [quote_id])
        if not row:
            raise QuoteNotFoundError(quote_id)
        return _row_to_quote(row)

    def list_quotes(self, limit: int = 50, offset: int = 0, email: Optional[str] = None,
                    status: Optional[QuoteStatus] = None) -> Dict[str, Any]:
        clauses = []
        params: List[Any] = []
        if email:
            clauses.append("lower(customer_email) = lower(?)")
            params.append(email)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        total = self.db.execute_one(f"SELECT COUNT(*) FROM catering_quotes {where}", params)[0]
        rows = self.db.execute_query(
            f"SELECT {QUOTE_COLUMNS} FROM catering_quotes {where} "
            f"ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
            params + [limit, offset],
        )
        return {"quotes": [_row_to_quote(row) for row in rows], "total": total}

    def list_quotes_by_email(self, email: str) -> List[CateringQuote]:
        return self.list_quotes(limit=1000, email=email)["quotes"]

    def transition_status(self, quote_id: str, expected: QuoteStatus, new: QuoteStatus,
                          medusa_order_id: Optional[str] = None,
                          balance_order_id: Optional[str] = None, conn=None) -> bool:
        """
        以 (id, expected) 为条件更新状态

        订单号只在当前为空时写入；条件不满足时不做任何修改并返回 False。
        """
        if conn is None:
            with self.db.transaction() as tx:
                return self.transition_status(
                    quote_id, expected, new, medusa_order_id, balance_order_id, conn=tx
                )

        sets = ["status = ?", "updated_at = current_timestamp"]
        params: List[Any] = [new.value]
        where = ["id = ?", "status = ?"]
        where_params: List[Any] = [quote_id, expected.value]
        if medusa_order_id is not None:
            sets.append("medusa_order_id = ?")
            params.append(medusa_order_id)
            where.append("medusa_order_id IS NULL")
        if balance_order_id is not None:
            sets.append("balance_order_id = ?")
            params.append(balance_order_id)
            where.append("balance_order_id IS NULL")

        row = conn.execute(
            f"UPDATE catering_quotes SET {', '.join(sets)} "
            f"WHERE {' AND '.join(where)} RETURNING id",
            params + where_params,
        ).fetchone()
        return row is not None

    def change_status(self, quote_id: str, new: QuoteStatus, actor: str = "admin") -> CateringQuote:
        """管理端状态变更（approve / confirm / complete / cancel）"""
        with self.db.transaction() as conn:
            quote = self.get_quote(quote_id, conn=conn)
            require_admin_transition(quote.status, new)
            if not self.transition_status(quote_id, quote.status, new, conn=conn):
                raise InvalidStateTransitionError(
                    "Quote status changed concurrently",
                    current_status=quote.status.value,
                    expected_status=quote.status.value,
                )
            self.db.write_log(quote_id, actor, "status_changed", {
                "from": quote.status.value, "to": new.value,
            }, conn=conn)

        logger.info("Quote %s status %s -> %s", quote_id, quote.status.value, new.value)
        return self.get_quote(quote_id)

    def approve(self, quote_id: str) -> CateringQuote:
        return self.change_status(quote_id, QuoteStatus.APPROVED)

    def confirm(self, quote_id: str) -> CateringQuote:
        return self.change_status(quote_id, QuoteStatus.CONFIRMED)

    def complete(self, quote_id: str) -> CateringQuote:
        return self.change_status(quote_id, QuoteStatus.COMPLETED)

    def cancel(self, quote_id: str) -> CateringQuote:
        return self.change_status(quote_id, QuoteStatus.CANCELLED)

    def replace_pricing(self, quote_id: str, pricing: PricingBreakdown,
                        actor: str = "admin") -> CateringQuote:
        """
        整体替换价格快照

        Raises:
            InvalidStateTransitionError: 当前状态不允许重新定价
            ValidationError: 已收定金后试图修改定金金额
        """
        with self.db.transaction() as conn:
            quote = self.get_quote(quote_id, conn=conn)
            if quote.status not in REPRICEABLE_STATUSES:
                raise InvalidStateTransitionError(
                    "Quote can no longer be repriced",
                    current_status=quote.status.value,
                    expected_status=[s.value for s in REPRICEABLE_STATUSES],
                )
            if (quote.status == QuoteStatus.DEPOSIT_PAID
                    and pricing.deposit_cents != quote.pricing.deposit_cents):
                raise ValidationError(
                    "Deposit amount cannot change after the deposit was paid",
                    details={
                        "depositCents": quote.pricing.deposit_cents,
                        "requestedDepositCents": pricing.deposit_cents,
                    },
                )

            row = conn.execute(
                "UPDATE catering_quotes SET pricing_json = ?, updated_at = current_timestamp "
                "WHERE id = ? AND status = ? RETURNING id",
                [pricing.model_dump_json(by_alias=True), quote_id, quote.status.value],
            ).fetchone()
            if row is None:
                raise InvalidStateTransitionError(
                    "Quote status changed concurrently",
                    current_status=quote.status.value,
                    expected_status=quote.status.value,
                )
            self.db.write_log(quote_id, actor, "pricing_replaced", {
                "old": quote.pricing.model_dump(),
                "new": pricing.model_dump(),
            }, conn=conn)

        return self.get_quote(quote_id)
