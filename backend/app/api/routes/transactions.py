"""
Transaction routes: listing and settling consolidated debts.
"""
from functools import partial
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.utils import format_response
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.transaction import TransactionResponse
from app.schemas.user import UserBrief
from app.api.dependencies import get_current_user, get_push_pool
from app.services import notification_service, settlement_service
from app.services.push_service import PushWorkerPool

router = APIRouter(prefix="/transactions", tags=["transactions"])


def build_transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        consolidation_id=transaction.consolidation_id,
        payer=UserBrief.model_validate(transaction.payer),
        payee=UserBrief.model_validate(transaction.payee),
        amount=transaction.amount,
        is_paid=transaction.is_paid,
        paid_at=transaction.paid_at,
    )


@router.get("")
async def get_transactions(
    is_paid: bool = Query(False, alias="isPaid"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Transactions where the current user pays or is paid."""
    transactions = settlement_service.get_transactions_by_user(current_user.id, is_paid, db)
    return format_response(
        [build_transaction_response(t) for t in transactions],
        "Retrieved transactions successfully"
    )


@router.patch("/{transaction_id}/settle")
async def settle_transaction(
    transaction_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    push_pool: Optional[PushWorkerPool] = Depends(get_push_pool),
    db: Session = Depends(get_db)
):
    """Mark a transaction as paid and notify the payee."""
    transaction = settlement_service.settle_transaction(transaction_id, current_user.id, db)

    # Runs after the response, the settlement is committed by then
    background_tasks.add_task(
        settlement_service.notify_settlement,
        transaction,
        current_user.username,
        partial(notification_service.deliver_notification, push_pool=push_pool),
    )
    return format_response(build_transaction_response(transaction), "Transaction settled successfully")
