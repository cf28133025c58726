"""
Finance API endpoints - invoice and payment issuance, purchase order lookup
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from finance_core.database import get_db
from finance_core.errors import FinanceCoreError
from finance_core.schemas import (
    InvoiceCreate,
    InvoiceResponse,
    PaymentCreate,
    PaymentResponse,
    Principal,
    PurchaseOrderResponse,
)
from finance_core.services.budget_refresh import BudgetRefresher
from finance_core.services.document_issuer import DocumentIssuer
from finance_core.api.auth import FINANCE_ROLES, get_principal, http_error, require_roles

router = APIRouter()


@router.post("/invoices", response_model=InvoiceResponse)
async def create_invoice(
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(*FINANCE_ROLES))
):
    issuer = DocumentIssuer(db, refresher=BudgetRefresher(db, principal.id))
    try:
        return await issuer.issue_invoice(data, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.post("/payments", response_model=PaymentResponse)
async def create_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(*FINANCE_ROLES))
):
    try:
        return await DocumentIssuer(db).issue_payment(data, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.get("/purchase-orders/{purchase_order_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    purchase_order_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        return await DocumentIssuer(db).get_purchase_order(purchase_order_id)
    except FinanceCoreError as e:
        raise http_error(e)
