"""
Bill and consolidation routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.utils import format_response
from app.models.bill import Bill
from app.models.user import User
from app.schemas.bill import BillCreate, BillResponse, ConsolidateRequest, ConsolidationStatusResponse
from app.schemas.user import UserBrief
from app.api.dependencies import get_current_user
from app.services import bill_service, room_service, settlement_service

router = APIRouter(prefix="/bills", tags=["bills"])


def build_bill_response(bill: Bill) -> BillResponse:
    return BillResponse(
        id=bill.id,
        room_id=bill.room_id,
        name=bill.name,
        amount=bill.amount,
        include_owner=bill.include_owner,
        consolidation_id=bill.consolidation_id,
        owner=UserBrief.model_validate(bill.owner),
        payers=[UserBrief.model_validate(p.user) for p in bill.payers],
        created_at=bill.created_at,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_data: BillCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a bill paid by the current user."""
    room_service.check_room_access(bill_data.room_id, current_user.id, db)
    bill = bill_service.create_bill(
        room_id=bill_data.room_id,
        owner_id=current_user.id,
        name=bill_data.name,
        amount=bill_data.amount,
        payer_ids=bill_data.payers,
        include_owner=bill_data.include_owner,
        db=db,
    )
    return format_response(build_bill_response(bill), "Created bill successfully")


@router.get("")
async def get_bills(
    room_id: str = Query(..., alias="roomId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get all bills of a room."""
    room_service.check_room_access(room_id, current_user.id, db)
    bills = bill_service.get_bills_for_room(room_id, db)
    return format_response([build_bill_response(b) for b in bills], "Retrieved bills successfully")


@router.post("/consolidate")
async def consolidate_bills(
    request_data: ConsolidateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Consolidate all bills of a room into transactions. Host only."""
    settlement_service.consolidate_room(request_data.room_id, current_user.id, db)
    return format_response(message="Consolidated bills successfully")


@router.get("/consolidate/{room_id}")
async def get_consolidation_status(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Whether the bills of a room have been consolidated."""
    is_consolidated = settlement_service.is_room_consolidated(room_id, db)
    return format_response(
        ConsolidationStatusResponse(is_consolidated=is_consolidated),
        "Retrieved consolidation status successfully"
    )
