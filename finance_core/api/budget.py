"""
Project budget API endpoints - supplier quotations, approval, PO issuance and budget health
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from pydantic import BaseModel

from finance_core.database import get_db
from finance_core.errors import FinanceCoreError
from finance_core.schemas import (
    AlertDraft,
    BudgetAlertResponse,
    BudgetItemCreate,
    BudgetItemResponse,
    BudgetItemUpdate,
    BudgetSummaryRecord,
    ExtractedQuotation,
    POIssueDetails,
    Principal,
    PurchaseOrderResponse,
)
from finance_core.services.alert_evaluator import AlertEvaluator
from finance_core.services.budget_ledger import BudgetLedger
from finance_core.services.budget_refresh import BudgetRefresher, wired_ledger
from finance_core.services.document_issuer import DocumentIssuer
from finance_core.api.auth import PO_ISSUER_ROLES, get_principal, http_error, require_roles

router = APIRouter()


class RecalculateResponse(BaseModel):
    summary: BudgetSummaryRecord
    alerts: List[AlertDraft]


# --- Budget Items ---

@router.get("/{project_id}/budget/items", response_model=List[BudgetItemResponse])
async def list_budget_items(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    ledger = BudgetLedger(db)
    try:
        await ledger.get_project(project_id)
    except FinanceCoreError as e:
        raise http_error(e)
    return await ledger.list_items(project_id)


@router.post("/{project_id}/budget/items", response_model=BudgetItemResponse)
async def create_budget_item(
    project_id: int,
    data: BudgetItemCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    """Manual quotation entry"""
    try:
        return await wired_ledger(db, principal.id).create(project_id, data, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.post("/{project_id}/budget/quotations", response_model=BudgetItemResponse)
async def create_from_quotation(
    project_id: int,
    data: ExtractedQuotation,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    """Budget item from an extracted quotation document"""
    try:
        return await wired_ledger(db, principal.id).create_from_extraction(project_id, data, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.put("/{project_id}/budget/items/{item_id}", response_model=BudgetItemResponse)
async def update_budget_item(
    project_id: int,
    item_id: int,
    data: BudgetItemUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        return await wired_ledger(db, principal.id).update(project_id, item_id, data, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.delete("/{project_id}/budget/items/{item_id}")
async def delete_budget_item(
    project_id: int,
    item_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        await wired_ledger(db, principal.id).delete(project_id, item_id)
    except FinanceCoreError as e:
        raise http_error(e)
    return {"message": "Budget item deleted"}


@router.post("/{project_id}/budget/items/{item_id}/approve", response_model=BudgetItemResponse)
async def approve_budget_item(
    project_id: int,
    item_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        return await wired_ledger(db, principal.id).approve(project_id, item_id, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.post("/{project_id}/budget/items/{item_id}/reject", response_model=BudgetItemResponse)
async def reject_budget_item(
    project_id: int,
    item_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        return await wired_ledger(db, principal.id).reject(project_id, item_id, principal)
    except FinanceCoreError as e:
        raise http_error(e)


@router.post("/{project_id}/budget/items/{item_id}/issue-po", response_model=PurchaseOrderResponse)
async def issue_purchase_order(
    project_id: int,
    item_id: int,
    details: Optional[POIssueDetails] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(*PO_ISSUER_ROLES))
):
    """Issue a purchase order from an approved budget item"""
    issuer = DocumentIssuer(db, refresher=BudgetRefresher(db, principal.id))
    try:
        return await issuer.issue_po(project_id, item_id, details or POIssueDetails(), principal)
    except FinanceCoreError as e:
        raise http_error(e)


# --- Budget Health ---

@router.get("/{project_id}/budget/summary", response_model=BudgetSummaryRecord)
async def get_budget_summary(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    """Stored summary; computed on first request"""
    refresher = BudgetRefresher(db, principal.id)
    try:
        summary = await refresher.aggregator.get(project_id)
        if summary is None:
            summary, _ = await refresher.refresh(project_id)
    except FinanceCoreError as e:
        raise http_error(e)
    return summary


@router.post("/{project_id}/budget/recalculate", response_model=RecalculateResponse)
async def recalculate_budget(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        summary, alerts = await BudgetRefresher(db, principal.id).refresh(project_id)
    except FinanceCoreError as e:
        raise http_error(e)
    return RecalculateResponse(summary=summary, alerts=alerts)


@router.get("/{project_id}/budget/alerts", response_model=List[BudgetAlertResponse])
async def list_budget_alerts(
    project_id: int,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_principal)
):
    try:
        await BudgetLedger(db).get_project(project_id)
    except FinanceCoreError as e:
        raise http_error(e)
    return await AlertEvaluator(db).list_alerts(project_id, limit)
