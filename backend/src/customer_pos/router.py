"""Customer PO API Router - auto-match, detail and item edit endpoints.

Authentication is handled in front of this service and is not part of
these endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload

from config import settings
from database import get_db
from matching import MatchingConfig
from models.customer_po import CustomerPo, CustomerPoItem
from notifications import get_notification_dispatcher
from sourcing import SqlAlchemyQuoteSource
from .errors import (
    ReconciliationError,
    NotFoundError,
    InvalidStateError,
    ConcurrentReconciliationError,
    TransientError,
)
from .ports import NotificationDispatcherPort
from .repository import SqlAlchemyCustomerPoRepository
from .schemas import (
    ReconciliationReport,
    CustomerPoDetailResponse,
    CustomerPoItemResponse,
    CustomerPoItemUpdate,
)
from .service import ReconciliationService


router = APIRouter(prefix="/customer-pos", tags=["customer_pos"])


def get_reconciliation_service(
    db: Session = Depends(get_db),
    notifier: NotificationDispatcherPort = Depends(get_notification_dispatcher)
) -> ReconciliationService:
    """Build a ReconciliationService bound to the request's session."""
    return ReconciliationService(
        repository=SqlAlchemyCustomerPoRepository(db),
        quote_source=SqlAlchemyQuoteSource(db),
        notifier=notifier,
        config=MatchingConfig.from_settings(settings),
        max_scan_cost=settings.RECONCILE_MAX_SCAN_COST,
    )


def to_http_exception(error: ReconciliationError) -> HTTPException:
    """Map auto-match errors to HTTP status codes."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, InvalidStateError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, ConcurrentReconciliationError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, TransientError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Temporary failure while auto-matching. Please try again."
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to auto-match items. Please try again."
    )


@router.post(
    "/{customer_po_id}/auto-match",
    response_model=ReconciliationReport,
    status_code=200,
    summary="Auto-match customer PO items to RFQ quotes",
    description="""
    Match every item of the customer PO to the cheapest viable supplier quote
    of the linked RFQ and recompute profitability.

    **Matching strategy (first hit wins):**
    1. LWIN7 identifier match
    2. Product name + vintage match
    3. Fuzzy product name match

    Re-running overwrites all previous match results.

    **Errors:**
    - 404: Customer PO not found
    - 400: PO not linked to an RFQ, has no items, or is too large
    - 409: PO modified by a concurrent run
    - 503: Temporary database failure
    """
)
def auto_match_customer_po(
    customer_po_id: UUID,
    service: ReconciliationService = Depends(get_reconciliation_service)
) -> ReconciliationReport:
    try:
        return service.reconcile(customer_po_id)
    except ReconciliationError as e:
        raise to_http_exception(e)


@router.get(
    "/{customer_po_id}",
    response_model=CustomerPoDetailResponse,
    summary="Get customer PO with items",
)
def get_customer_po(
    customer_po_id: UUID,
    db: Session = Depends(get_db)
) -> CustomerPoDetailResponse:
    customer_po = (
        db.query(CustomerPo)
        .options(selectinload(CustomerPo.items))
        .filter(CustomerPo.id == customer_po_id)
        .first()
    )
    if customer_po is None:
        raise HTTPException(status_code=404, detail="Customer PO not found")

    return CustomerPoDetailResponse.model_validate(customer_po)


@router.patch(
    "/items/{item_id}",
    response_model=CustomerPoItemResponse,
    summary="Update a customer PO item",
    description="""
    Edit prices, quantity or the matched quote of a single item. Profit
    fields and the PO totals are recalculated. Send matched_quote_id=null
    to clear a match.
    """
)
def update_customer_po_item(
    item_id: UUID,
    update_data: CustomerPoItemUpdate,
    service: ReconciliationService = Depends(get_reconciliation_service),
    db: Session = Depends(get_db)
) -> CustomerPoItemResponse:
    try:
        service.update_item(item_id, update_data.model_dump(exclude_unset=True))
    except ReconciliationError as e:
        raise to_http_exception(e)

    item = db.get(CustomerPoItem, item_id)
    return CustomerPoItemResponse.model_validate(item)
