"""SQLAlchemy adapter for the customer PO repository port."""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models.base import utcnow
from models.customer_po import CustomerPo, CustomerPoItem
from .errors import ConcurrentReconciliationError, NotFoundError, db_errors_as_transient
from .ports import CustomerPoRepositoryPort, CustomerPoRef, CustomerPoLine


def _to_line(item: CustomerPoItem) -> CustomerPoLine:
    return CustomerPoLine(
        id=item.id,
        customer_po_id=item.customer_po_id,
        product_name=item.product_name,
        quantity=item.quantity,
        vintage=item.vintage,
        lwin=item.lwin,
        sell_price_per_case_usd=item.sell_price_per_case_usd,
        buy_price_per_case_usd=item.buy_price_per_case_usd,
        matched_quote_id=item.matched_quote_id,
        matched_rfq_item_id=item.matched_rfq_item_id,
        match_source=item.match_source,
        profit_usd=item.profit_usd,
        profit_margin_percent=item.profit_margin_percent,
        is_losing_item=bool(item.is_losing_item),
        status=item.status,
    )


class SqlAlchemyCustomerPoRepository(CustomerPoRepositoryPort):
    """Customer PO repository backed by a SQLAlchemy session.

    get_order() takes a row lock (SELECT ... FOR UPDATE, a no-op on SQLite)
    and update_order() only writes when the version read at load time is
    still current, so two runs against the same PO cannot interleave.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, customer_po_id: UUID) -> Optional[CustomerPoRef]:
        with db_errors_as_transient("Loading customer PO"):
            po = (
                self.db.query(CustomerPo)
                .filter(CustomerPo.id == customer_po_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
        if po is None:
            return None
        return CustomerPoRef(id=po.id, rfq_id=po.rfq_id, status=po.status, version=po.version)

    def get_lines(self, customer_po_id: UUID) -> List[CustomerPoLine]:
        with db_errors_as_transient("Loading customer PO items"):
            items = (
                self.db.query(CustomerPoItem)
                .filter(CustomerPoItem.customer_po_id == customer_po_id)
                .order_by(CustomerPoItem.sort_order, CustomerPoItem.created_at, CustomerPoItem.id)
                .all()
            )
        return [_to_line(item) for item in items]

    def get_line(self, item_id: UUID) -> Optional[CustomerPoLine]:
        with db_errors_as_transient("Loading customer PO item"):
            item = self.db.get(CustomerPoItem, item_id, populate_existing=True)
        return _to_line(item) if item is not None else None

    def update_line(self, item_id: UUID, fields: Dict[str, Any]) -> None:
        with db_errors_as_transient("Updating customer PO item"):
            item = self.db.get(CustomerPoItem, item_id)
            if item is None:
                raise NotFoundError(f"Customer PO item {item_id} not found")
            for field, value in fields.items():
                setattr(item, field, value)
            self.db.flush()

    def update_order(
        self,
        customer_po_id: UUID,
        fields: Dict[str, Any],
        expected_version: int
    ) -> None:
        values = dict(fields)
        values["version"] = CustomerPo.version + 1
        values["updated_at"] = utcnow()

        with db_errors_as_transient("Updating customer PO"):
            updated = (
                self.db.query(CustomerPo)
                .filter(
                    CustomerPo.id == customer_po_id,
                    CustomerPo.version == expected_version
                )
                .update(values, synchronize_session="fetch")
            )

        if updated == 0:
            raise ConcurrentReconciliationError(
                f"Customer PO {customer_po_id} was modified concurrently "
                f"(expected version {expected_version})"
            )

    def commit(self) -> None:
        with db_errors_as_transient("Committing customer PO"):
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
